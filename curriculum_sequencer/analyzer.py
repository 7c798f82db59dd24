"""
Validation of clustering responses.

Model output is untrusted: it must have the required shape and cover
exactly the chunk's index range before any of it is used.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from .errors import ResponseValidationError
from .records import Chunk, ClusterItem, ProcessedChunkResult, ThematicCluster

logger = logging.getLogger(__name__)


def normalize_index(value: Any) -> Optional[int]:
    """Accept ints, integral floats and digit strings; reject booleans and everything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _cluster_list(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("clusters")
    return data


class ResponseAnalyzer:
    """Shape and completeness checks for clustering responses."""

    @staticmethod
    def validate_response(data: Any) -> Tuple[bool, List[str]]:
        """Validate ``{"clusters": [...]}`` (or a bare cluster list)."""
        errors = []
        clusters = _cluster_list(data)

        if not isinstance(clusters, list) or not clusters:
            errors.append("Response must contain a non-empty 'clusters' list")
            return False, errors

        for i, cluster in enumerate(clusters):
            if not isinstance(cluster, dict):
                errors.append(f"Cluster {i} must be an object")
                continue

            name = cluster.get("name")
            if not isinstance(name, str) or not name.strip():
                errors.append(f"Cluster {i} is missing a name")

            items = cluster.get("items")
            if not isinstance(items, list) or not items:
                errors.append(f"Cluster {i} must contain a non-empty 'items' list")
                continue

            for j, item in enumerate(items):
                if not isinstance(item, dict):
                    errors.append(f"Item {j} in cluster {i} must be an object")
                    continue
                if normalize_index(item.get("index")) is None:
                    errors.append(f"Item {j} in cluster {i} has a non-numeric index: {item.get('index')!r}")
                item_id = item.get("id")
                if item_id is None or str(item_id).strip() == "":
                    errors.append(f"Item {j} in cluster {i} is missing an id")

        return len(errors) == 0, errors

    @staticmethod
    def check_completeness(indexes: List[int], start_index: int,
                           end_index: int) -> Tuple[bool, List[str]]:
        """The returned indexes must equal ``{start..end}`` exactly, without duplicates."""
        errors = []
        expected = set(range(start_index, end_index + 1))
        counts = Counter(indexes)

        missing = sorted(expected - set(counts))
        unexpected = sorted(set(counts) - expected)
        duplicates = sorted(index for index, count in counts.items() if count > 1)

        if missing:
            errors.append(f"Missing indexes: {missing[:20]}")
        if unexpected:
            errors.append(f"Unexpected indexes: {unexpected[:20]}")
        if duplicates:
            errors.append(f"Duplicate indexes: {duplicates[:20]}")

        return len(errors) == 0, errors

    @staticmethod
    def extract_ordered_indexes(result: ProcessedChunkResult) -> List[int]:
        """Flat index list in cluster order, then item order."""
        return result.ordered_indexes()

    def parse_response(self, data: Any, chunk: Chunk, attempts: int = 1) -> ProcessedChunkResult:
        """Validate ``data`` for ``chunk`` and convert it; raises ``ResponseValidationError``."""
        valid, errors = self.validate_response(data)
        if not valid:
            raise ResponseValidationError(f"Invalid clustering response for {chunk.chunk_id}", errors)

        expected_ids: Dict[int, str] = {record.index: record.id for record in chunk.items}
        clusters = []
        for raw in _cluster_list(data):
            items = []
            for raw_item in raw["items"]:
                index = normalize_index(raw_item["index"])
                item_id = str(raw_item["id"])
                if index in expected_ids and expected_ids[index] != item_id:
                    logger.debug(f"Index {index} returned with id {item_id}; using {expected_ids[index]}")
                    item_id = expected_ids[index]
                items.append(ClusterItem(
                    index=index,
                    id=item_id,
                    reason=str(raw_item.get("reason") or raw_item.get("clusterPositionReason") or ""),
                ))
            clusters.append(ThematicCluster(
                name=raw["name"].strip(),
                description=str(raw.get("description") or ""),
                items=items,
            ))

        result = ProcessedChunkResult(
            chunk_id=chunk.chunk_id,
            start_index=chunk.start_index,
            end_index=chunk.end_index,
            clusters=clusters,
            source="llm",
            attempts=attempts,
        )

        complete, errors = self.check_completeness(
            self.extract_ordered_indexes(result), chunk.start_index, chunk.end_index
        )
        if not complete:
            raise ResponseValidationError(f"Incomplete clustering response for {chunk.chunk_id}", errors)

        return result
