"""
Phase 8: Content Interleaving

Places each theory item's related questions, then its related tasks,
directly after it. Every item appears exactly once in the output.
"""

from typing import Dict, List, Any, Optional, Set, Tuple

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager, load_items_artifact
from .metadata_extractor import load_optional_metadata
from .records import AggregatedItem, MetadataRecord


def interleave(items: List[AggregatedItem],
               metadata: Dict[str, MetadataRecord]) -> Tuple[List[AggregatedItem], int]:
    """Single forward pass; returns the new sequence and the number of pulled-forward items."""
    position_of: Dict[str, int] = {}
    for pos, item in enumerate(items):
        if item.id is not None:
            position_of.setdefault(item.id, pos)

    result: List[AggregatedItem] = []
    seen: Set[int] = set()
    inserted = 0

    for pos, item in enumerate(items):
        if pos in seen:
            continue
        seen.add(pos)
        if item.is_related_item is None:
            item.is_related_item = False
        result.append(item)

        record: Optional[MetadataRecord] = metadata.get(item.id) if item.id else None
        if record is None or record.kind != "theory":
            continue

        for related_id in record.related_questions + record.related_tasks:
            related_pos = position_of.get(related_id)
            if related_pos is None or related_pos in seen:
                continue
            seen.add(related_pos)
            related = items[related_pos]
            related.is_related_item = True
            result.append(related)
            inserted += 1

    return result, inserted


class ContentInterleaver:
    """Writes ``interleaved-items.json`` from ``ordered-items.json``."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def interleave(self) -> Dict[str, Any]:
        raw_items = load_items_artifact(self.file_manager, self.config.artifact_path("ordered"))
        items = [AggregatedItem.from_dict(entry) for entry in raw_items if isinstance(entry, dict)]
        metadata = load_optional_metadata(self.file_manager, self.config)

        result, inserted = interleave(items, metadata)

        output_path = self.config.artifact_path("interleaved")
        self.file_manager.save_json(
            {"items": [item.to_dict() for item in result], "stats": {"relatedInserted": inserted}},
            output_path,
        )

        self.logger.info(f"Interleaved {inserted} related items into {len(result)}-item sequence")
        return {"totalItems": len(result), "relatedInserted": inserted, "outputPath": str(output_path)}
