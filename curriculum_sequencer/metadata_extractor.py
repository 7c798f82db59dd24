"""
Phase 1: Metadata Extraction

Reads the nested content store (containers holding theory, questions and
tasks) and writes a flat list of compact metadata records, dropping text
and code payloads.
"""

from typing import Dict, List, Any, Optional, Tuple

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from .errors import MalformedInputError
from .records import MetadataRecord, to_int, to_str_list


# container.content key -> item kind
CONTENT_SECTIONS = (
    ("theory", "theory"),
    ("questions", "question"),
    ("tasks", "task"),
)

CONTAINER_STRIDE = 1000


class MetadataExtractor:
    """Extracts per-item metadata from the full content store."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def extract(self) -> Dict[str, Any]:
        """Run extraction and write ``metadata.json``; returns stats and output path."""
        database = self.file_manager.load_json(self.config.database_path)
        records, stats = self.extract_records(database)

        output_path = self.config.artifact_path("metadata")
        self.file_manager.save_json(
            {"items": [record.to_dict() for record in records], "stats": stats},
            output_path
        )

        self.logger.info(
            f"Extracted {stats['totalItems']} items "
            f"({stats['theoryItems']} theory, {stats['questionItems']} questions, "
            f"{stats['taskItems']} tasks)"
        )
        return {"stats": stats, "outputPath": str(output_path)}

    def extract_records(self, database: Any) -> Tuple[List[MetadataRecord], Dict[str, int]]:
        if not isinstance(database, list):
            raise MalformedInputError("Content store must be a list of containers")

        records: List[MetadataRecord] = []
        seen_ids = set()
        counts = {"theory": 0, "question": 0, "task": 0}

        for container_index, container in enumerate(database):
            content = container.get("content") if isinstance(container, dict) else None
            if not isinstance(content, dict):
                continue

            for section, kind in CONTENT_SECTIONS:
                entries = content.get(section)
                if not isinstance(entries, list):
                    continue

                for item_index, entry in enumerate(entries):
                    if not isinstance(entry, dict) or entry.get("irrelevant") is True:
                        continue

                    original_index = container_index * CONTAINER_STRIDE + item_index
                    record = self._build_record(entry, kind, original_index)
                    if record is None:
                        self.logger.warning(
                            f"Skipping {kind} without id at container {container_index}, position {item_index}"
                        )
                        continue
                    if record.id in seen_ids:
                        self.logger.warning(f"Duplicate item id {record.id}; keeping first occurrence")
                        continue

                    record.index = len(records)
                    seen_ids.add(record.id)
                    records.append(record)
                    counts[kind] += 1

        stats = {
            "theoryItems": counts["theory"],
            "questionItems": counts["question"],
            "taskItems": counts["task"],
            "totalItems": len(records),
        }
        return records, stats

    def _build_record(self, entry: Dict[str, Any], kind: str,
                      original_index: int) -> Optional[MetadataRecord]:
        item_id = entry.get("id")
        if item_id in (None, ""):
            return None

        record = MetadataRecord(
            id=str(item_id),
            kind=kind,
            title=str(entry.get("title") or entry.get("topic") or ""),
            tags=to_str_list(entry.get("tags")),
            technology=to_str_list(entry.get("technology")),
            complexity=to_int(entry.get("complexity")),
            learning_path=entry.get("learningPath"),
            original_index=original_index,
        )

        if kind == "theory":
            record.prerequisites = to_str_list(entry.get("prerequisites"))
            record.required_for = to_str_list(entry.get("requiredFor"))
            record.related_questions = to_str_list(entry.get("relatedQuestions"))
            record.related_tasks = to_str_list(entry.get("relatedTasks"))
            record.interview_relevance = to_int(entry.get("interviewRelevance"))
            record.difficulty = entry.get("difficulty")
        elif kind == "question":
            record.prerequisites = to_str_list(entry.get("prerequisites"))
            record.topic = entry.get("topic")
            record.level = entry.get("level")
            record.question_type = entry.get("type")
            record.analysis_points = to_str_list(entry.get("analysisPoints"))
            record.key_concepts = to_str_list(entry.get("keyConcepts"))
            record.evaluation_criteria = to_str_list(entry.get("evaluationCriteria"))
            record.interview_frequency = to_int(entry.get("interviewFrequency"))
        else:
            record.prerequisites = to_str_list(entry.get("prerequisites"))
            record.difficulty = entry.get("difficulty")
            record.related_concepts = to_str_list(entry.get("relatedConcepts"))
            record.interview_relevance = to_int(entry.get("interviewRelevance"))

        return record


def load_metadata(file_manager: FileManager, config: CurriculumConfig) -> List[MetadataRecord]:
    """Read ``metadata.json`` as records, reindexed by position."""
    data = file_manager.load_json(config.artifact_path("metadata"))
    items = data.get("items") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise MalformedInputError("metadata.json does not contain an item list")

    records = []
    for position, item in enumerate(items):
        record = MetadataRecord.from_dict(item)
        record.index = position
        records.append(record)
    return records


def load_optional_metadata(file_manager: FileManager,
                           config: CurriculumConfig) -> Dict[str, MetadataRecord]:
    """Metadata keyed by id, or an empty map when the artifact is unusable."""
    data = file_manager.load_optional_json(config.artifact_path("metadata"), default={})
    items = data.get("items") if isinstance(data, dict) else data
    if not isinstance(items, list):
        return {}

    by_id = {}
    for position, item in enumerate(items):
        if isinstance(item, dict) and item.get("id"):
            record = MetadataRecord.from_dict(item)
            record.index = position
            by_id[record.id] = record
    return by_id
