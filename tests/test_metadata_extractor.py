"""
Tests for MetadataExtractor
"""

import pytest

from curriculum_sequencer.errors import InputMissingError, MalformedInputError
from curriculum_sequencer.metadata_extractor import (
    MetadataExtractor, load_metadata, load_optional_metadata
)


SAMPLE_STORE = [
    {
        "content": {
            "theory": [{
                "id": "t1", "title": "Closures", "technology": "JavaScript",
                "tags": ["functions"], "complexity": 3, "learningPath": "beginner",
                "relatedQuestions": ["q1"], "relatedTasks": ["k1"], "interviewRelevance": 4,
                "content": "A closure keeps its lexical scope.",
            }],
            "questions": [{
                "id": "q1", "topic": "Closures", "type": "mcq", "level": "easy",
                "interviewFrequency": 4, "keyConcepts": ["scope"],
            }],
            "tasks": [{
                "id": "k1", "title": "Counter", "difficulty": "medium", "relatedConcepts": ["closure"],
            }],
        }
    },
    {
        "content": {
            "theory": [
                {"id": "t2", "title": "Hidden", "irrelevant": True},
                {"id": "t3", "title": "Hooks", "prerequisites": ["t1"], "technology": ["React"]},
            ]
        }
    },
    {"title": "Container without content"},
]


class TestMetadataExtractor:
    """Test cases for MetadataExtractor"""

    def test_extract_counts_by_kind(self, config, logger, write_database):
        write_database(SAMPLE_STORE)

        result = MetadataExtractor(config, logger).extract()

        assert result["stats"] == {"theoryItems": 2, "questionItems": 1, "taskItems": 1, "totalItems": 4}
        assert result["outputPath"].endswith("metadata.json")

    def test_records_are_flat_and_indexed(self, config, logger, file_manager, write_database):
        write_database(SAMPLE_STORE)
        MetadataExtractor(config, logger).extract()

        records = load_metadata(file_manager, config)

        assert [r.id for r in records] == ["t1", "q1", "k1", "t3"]
        assert [r.index for r in records] == [0, 1, 2, 3]
        assert records[0].technology == ["JavaScript"]
        assert records[0].related_questions == ["q1"]
        assert records[3].original_index == 1001
        assert records[3].prerequisites == ["t1"]

    def test_kind_specific_fields(self, config, logger, file_manager, write_database):
        write_database(SAMPLE_STORE)
        MetadataExtractor(config, logger).extract()

        by_id = load_optional_metadata(file_manager, config)

        question = by_id["q1"]
        assert question.kind == "question"
        assert question.title == "Closures"
        assert question.question_type == "mcq"
        assert question.relevance == 4
        assert question.key_concepts == ["scope"]

        task = by_id["k1"]
        assert task.kind == "task"
        assert task.difficulty == "medium"
        assert task.related_concepts == ["closure"]

    def test_irrelevant_items_are_excluded(self, config, logger, file_manager, write_database):
        write_database(SAMPLE_STORE)
        MetadataExtractor(config, logger).extract()

        assert "t2" not in load_optional_metadata(file_manager, config)

    def test_duplicate_and_idless_items_are_skipped(self, config, logger):
        extractor = MetadataExtractor(config, logger)
        store = [{"content": {
            "theory": [{"id": "a"}, {"title": "no id"}],
            "questions": [{"id": "a", "topic": "duplicate"}, {"id": "b"}],
        }}]

        records, stats = extractor.extract_records(store)

        assert [r.id for r in records] == ["a", "b"]
        assert records[0].kind == "theory"
        assert stats["totalItems"] == 2

    def test_missing_store_fails_fast(self, config, logger):
        with pytest.raises(InputMissingError):
            MetadataExtractor(config, logger).extract()

    def test_non_list_store_is_malformed(self, config, logger, write_database):
        write_database({"items": []})

        with pytest.raises(MalformedInputError):
            MetadataExtractor(config, logger).extract()

    def test_unparsable_store_is_malformed(self, config, logger):
        with open(config.database_path, "w", encoding="utf-8") as f:
            f.write("{not json")

        with pytest.raises(MalformedInputError):
            MetadataExtractor(config, logger).extract()

    def test_optional_metadata_absent_is_empty(self, config, file_manager):
        assert load_optional_metadata(file_manager, config) == {}
