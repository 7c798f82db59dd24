"""
Phase 9: Curriculum Writing

Maps the interleaved sequence back to full content records and writes
``curriculum.json``. Ids missing from the content store become explicit
placeholders, so the curriculum always has as many items as its input.
"""

import re
from datetime import datetime
from typing import Dict, Any, Optional

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager, load_items_artifact
from .errors import MalformedInputError
from .metadata_extractor import CONTENT_SECTIONS
from .records import AggregatedItem, CurriculumItem, to_int, to_str_list

# parent.kind.position, e.g. "react-hooks.questions.2"
NESTED_ID_PATTERN = re.compile(r"^(?P<parent>.+)\.(?P<section>theory|questions|tasks)\.(?P<position>\d+)$")

SECTION_KINDS = dict(CONTENT_SECTIONS)


def normalize_content_store(database: Any) -> Dict[str, Dict[str, Any]]:
    """Turn a nested container list into an ``{id: record}`` map; flat maps pass through."""
    if isinstance(database, dict):
        return {str(key): value for key, value in database.items() if isinstance(value, dict)}
    if not isinstance(database, list):
        raise MalformedInputError("Content store must be a container list or an id-keyed map")

    records: Dict[str, Dict[str, Any]] = {}
    for container in database:
        content = container.get("content") if isinstance(container, dict) else None
        if not isinstance(content, dict):
            continue
        for section, kind in CONTENT_SECTIONS:
            for entry in content.get(section) or []:
                if isinstance(entry, dict) and entry.get("id"):
                    records.setdefault(str(entry["id"]), {**entry, "type": kind})
    return records


def fallback_item(item: AggregatedItem) -> CurriculumItem:
    return CurriculumItem(
        index=item.index,
        id=item.id or f"fallback-item-{item.index}",
        type="theory",
        title=f"Item {item.index}",
        description="This item was not found in the content store",
        content={"content": "Content not available. The item was referenced but not found."},
        module_id=item.module_id,
        complexity=item.complexity or 1,
        is_related_item=bool(item.is_related_item),
        is_fallback=True,
    )


class CurriculumWriter:
    """Resolves sequence entries against the content store."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def write(self) -> Dict[str, Any]:
        raw_items = load_items_artifact(self.file_manager, self.config.artifact_path("interleaved"))
        items = [AggregatedItem.from_dict(entry) for entry in raw_items if isinstance(entry, dict)]
        store = normalize_content_store(self.file_manager.load_json(self.config.database_path))

        curriculum = [self.build_item(item, store) for item in items]
        fallbacks = sum(1 for entry in curriculum if entry.is_fallback)
        if fallbacks:
            self.logger.warning(f"{fallbacks} items could not be resolved and were written as placeholders")

        stats = {"totalItems": len(curriculum), "resolvedItems": len(curriculum) - fallbacks,
                 "fallbackItems": fallbacks}
        output_path = self.config.artifact_path("curriculum")
        self.file_manager.save_json({
            "items": [entry.to_dict() for entry in curriculum],
            "stats": stats,
            "generatedAt": datetime.now().isoformat(),
        }, output_path)

        self.logger.info(f"Wrote curriculum with {len(curriculum)} items")
        return {**stats, "outputPath": str(output_path)}

    def build_item(self, item: AggregatedItem, store: Dict[str, Dict[str, Any]]) -> CurriculumItem:
        if not item.id:
            self.logger.warning(f"Item at index {item.index} has no id; writing placeholder")
            return fallback_item(item)

        record = store.get(item.id)
        if record is not None:
            return self._from_record(item, record, record.get("type") or "theory")

        nested = self._resolve_nested(item, store)
        if nested is not None:
            return nested

        self.logger.warning(f"Item {item.id} not found in content store; writing placeholder")
        return fallback_item(item)

    def _resolve_nested(self, item: AggregatedItem,
                        store: Dict[str, Dict[str, Any]]) -> Optional[CurriculumItem]:
        match = NESTED_ID_PATTERN.match(item.id)
        if not match:
            return None

        parent = store.get(match.group("parent"))
        section = match.group("section")
        entries = parent.get(section) if parent else None
        position = int(match.group("position"))
        if not isinstance(entries, list) or position >= len(entries) or not isinstance(entries[position], dict):
            return None

        entry = entries[position]
        kind = SECTION_KINDS[section]
        result = self._from_record(item, {**parent, **entry}, kind)
        result.content = entry
        if kind != "theory":
            result.title = entry.get("title") or f"{kind.capitalize()}: {parent.get('title', '')}".strip()
            result.parent_id = match.group("parent")
        return result

    @staticmethod
    def _from_record(item: AggregatedItem, record: Dict[str, Any], kind: str) -> CurriculumItem:
        return CurriculumItem(
            index=item.index,
            id=item.id,
            type=kind,
            title=str(record.get("title") or kind.capitalize()),
            description=str(record.get("description") or ""),
            content=record,
            module_id=item.module_id,
            complexity=item.complexity or to_int(record.get("complexity")) or 1,
            tags=to_str_list(record.get("tags")) or list(item.tags),
            prerequisites=to_str_list(record.get("prerequisites")),
            is_related_item=bool(item.is_related_item),
        )
