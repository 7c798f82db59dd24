"""
Phase 6: Aggregation

1. Merge per-chunk results into one ordered list
2. Deduplicate by id, keeping the first occurrence
3. Resolve cross-chunk dependencies with a bounded number of passes
"""

import re
from pathlib import Path
from typing import Dict, List, Any, Optional, Set, Tuple

from .analyzer import normalize_index
from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from .errors import InputMissingError, MalformedInputError
from .graph_builder import load_dependency_graph, prerequisite_map
from .metadata_extractor import load_optional_metadata
from .records import AggregatedItem, MetadataRecord, to_int, to_str_list


def deduplicate_items(items: List[AggregatedItem]) -> List[AggregatedItem]:
    """Keep the first item per id; items without an id always pass through."""
    seen: Set[str] = set()
    unique = []
    for item in items:
        if item.id is None:
            unique.append(item)
            continue
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique


def resolve_dependencies(items: List[AggregatedItem], prerequisites: Dict[str, List[str]],
                         max_iterations: int = 100) -> Tuple[List[AggregatedItem], Dict[str, Any]]:
    """Move each item right after its latest-placed prerequisite until nothing moves.

    Each pass moves an item at most once. Cycles keep items moving, so the
    number of passes is capped and the last order is returned as best effort.
    """
    result = list(items)
    position = {item.id: pos for pos, item in enumerate(result) if item.id is not None}

    iterations = 0
    moves = 0
    changed = True
    while changed and iterations < max_iterations:
        changed = False
        iterations += 1
        moved_this_pass: Set[str] = set()

        i = 0
        while i < len(result):
            item = result[i]
            if item.id is None or item.id in moved_this_pass:
                i += 1
                continue

            later = [position[p] for p in prerequisites.get(item.id, ())
                     if p in position and position[p] > i]
            if not later:
                i += 1
                continue

            target = max(later)
            result.pop(i)
            result.insert(target, item)
            for pos in range(i, target + 1):
                if result[pos].id is not None:
                    position[result[pos].id] = pos

            moved_this_pass.add(item.id)
            moves += 1
            changed = True

    stats = {"iterations": iterations, "moves": moves, "converged": not changed}
    return result, stats


def collect_prerequisites(file_manager: FileManager, config: CurriculumConfig,
                          metadata: Dict[str, MetadataRecord]) -> Dict[str, List[str]]:
    """Graph prerequisites, plus the ones recorded on metadata records."""
    graph = load_dependency_graph(file_manager, config)
    prerequisites = prerequisite_map(graph)
    for item_id, record in metadata.items():
        merged = prerequisites.setdefault(item_id, [])
        merged.extend(p for p in record.prerequisites if p not in merged)
    return prerequisites


class Aggregator:
    """Merges chunk results into ``aggregated-items.json``."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def aggregate(self) -> Dict[str, Any]:
        metadata = load_optional_metadata(self.file_manager, self.config)

        merged = self.merge_chunks(metadata)
        unique = deduplicate_items(merged)
        duplicates = len(merged) - len(unique)
        if duplicates:
            self.logger.info(f"Removed {duplicates} duplicate items")

        prerequisites = collect_prerequisites(self.file_manager, self.config, metadata)
        resolved, resolution = resolve_dependencies(
            unique, prerequisites, self.config.max_resolution_iterations
        )
        if not resolution["converged"]:
            self.logger.warning(
                f"Dependency resolution stopped after {resolution['iterations']} passes without "
                f"converging (likely a prerequisite cycle); keeping best-effort order"
            )

        stats = {"mergedItems": len(merged), "duplicatesRemoved": duplicates,
                 "totalItems": len(resolved), **resolution}
        output_path = self.config.artifact_path("aggregated")
        self.file_manager.save_json({"items": [i.to_dict() for i in resolved], "stats": stats}, output_path)

        self.logger.info(f"Aggregated {len(resolved)} items ({resolution['moves']} dependency moves)")
        return {**stats, "outputPath": str(output_path)}

    def chunk_result_paths(self) -> List[Path]:
        """Result files listed in ``chunks-processed.json``, or found in the results directory.

        A listed chunk without a result (status ``failed``) stops aggregation,
        since merging the rest would drop that chunk's items from the curriculum.
        """
        results_dir = self.config.artifact_path("results_dir")
        summary = self.file_manager.load_optional_json(self.config.artifact_path("chunks_processed"))

        if isinstance(summary, dict) and isinstance(summary.get("chunks"), list):
            entries = [entry for entry in summary["chunks"] if isinstance(entry, dict)]
            if self.config.max_chunks is not None:
                entries = entries[:self.config.max_chunks]

            failed = [entry.get("chunkId") for entry in entries if entry.get("status") == "failed"]
            if failed:
                raise InputMissingError(
                    f"No clustering result for failed chunk(s) {failed}; rerun Step 5 before aggregating"
                )

            paths = []
            for entry in entries:
                if entry.get("resultPath"):
                    paths.append(Path(self.config.output_dir) / entry["resultPath"])
                elif entry.get("chunkId"):
                    paths.append(results_dir / f"{entry['chunkId']}.json")
                else:
                    raise MalformedInputError(f"Chunk summary entry names no result: {entry}")
            return paths

        def chunk_number(path: Path) -> int:
            match = re.search(r"(\d+)$", path.stem)
            return int(match.group(1)) if match else 0

        paths = sorted(results_dir.glob("chunk-*.json"), key=chunk_number)
        if self.config.max_chunks is not None:
            paths = paths[:self.config.max_chunks]
        return paths

    def merge_chunks(self, metadata: Dict[str, MetadataRecord]) -> List[AggregatedItem]:
        merged: List[AggregatedItem] = []
        for chunk_number, path in enumerate(self.chunk_result_paths()):
            data = self.file_manager.load_json(path)

            items = items_from_chunk_result(data, chunk_number)
            if not items:
                self.logger.warning(f"No usable items in chunk result {path}")
            merged.extend(enrich_item(item, metadata) for item in items)

        self.logger.info(f"Merged {len(merged)} items from chunk results")
        return merged


def items_from_chunk_result(data: Any, chunk_number: int = 0) -> List[AggregatedItem]:
    """Read any of the known chunk result layouts.

    - ``{"clusters": [...]}``: clustering result, flattened in cluster order
    - ``{"items": [...]}``: already aggregated items
    - a bare list of content containers: first theory entry per container
    """
    if isinstance(data, dict) and isinstance(data.get("clusters"), list):
        items = []
        for cluster in data["clusters"]:
            for entry in cluster.get("items", []) if isinstance(cluster, dict) else []:
                index = normalize_index(entry.get("index")) if isinstance(entry, dict) else None
                if index is None:
                    continue
                item_id = entry.get("id")
                items.append(AggregatedItem(index=index, id=str(item_id) if item_id else None))
        return items

    if isinstance(data, dict) and isinstance(data.get("items"), list):
        return [AggregatedItem.from_dict(entry) for entry in data["items"] if isinstance(entry, dict)]

    if isinstance(data, list):
        items = []
        for position, container in enumerate(data):
            content = container.get("content") if isinstance(container, dict) else None
            theory = content.get("theory") if isinstance(content, dict) else None
            if not isinstance(theory, list) or not theory or not isinstance(theory[0], dict):
                continue
            entry = theory[0]
            technology = to_str_list(entry.get("technology"))
            index = to_int(container.get("index"))
            items.append(AggregatedItem(
                index=index if index is not None else chunk_number * 1000 + position,
                id=str(entry["id"]) if entry.get("id") else None,
                module_id=technology[0].lower() if technology else "default",
                complexity=to_int(entry.get("complexity")) or 5,
                tags=to_str_list(entry.get("tags")),
            ))
        return items

    return []


def enrich_item(item: AggregatedItem, metadata: Dict[str, MetadataRecord]) -> AggregatedItem:
    """Fill missing module, complexity and tags from metadata."""
    record: Optional[MetadataRecord] = metadata.get(item.id) if item.id else None
    if record is not None:
        if item.module_id is None:
            item.module_id = record.module_id
        if item.complexity is None:
            item.complexity = record.complexity
        if not item.tags:
            item.tags = list(record.tags)
    if item.module_id is None:
        item.module_id = "default"
    return item
