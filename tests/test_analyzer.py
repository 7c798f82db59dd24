"""
Tests for ResponseAnalyzer
"""

import pytest

from conftest import record
from curriculum_sequencer.analyzer import ResponseAnalyzer, normalize_index
from curriculum_sequencer.errors import ResponseValidationError
from curriculum_sequencer.records import Chunk


def make_chunk(start=5, end=9):
    items = [record(f"item-{n}", index=n) for n in range(start, end + 1)]
    return Chunk(chunk_id="chunk-1", start_index=start, end_index=end, items=items)


def cluster(name, indexes):
    return {"name": name, "description": "", "items": [{"index": i, "id": f"item-{i}"} for i in indexes]}


class TestValidation:
    """Test cases for response shape validation"""

    def test_valid_response(self):
        valid, errors = ResponseAnalyzer.validate_response({"clusters": [cluster("A", [5, 6])]})
        assert valid and errors == []

    def test_bare_cluster_list_is_accepted(self):
        valid, _ = ResponseAnalyzer.validate_response([cluster("A", [5])])
        assert valid

    @pytest.mark.parametrize("data", [
        {},
        {"clusters": []},
        {"clusters": [{"name": "", "items": [{"index": 1, "id": "a"}]}]},
        {"clusters": [{"name": "A", "items": []}]},
        {"clusters": [{"name": "A", "items": [{"index": "one", "id": "a"}]}]},
        {"clusters": [{"name": "A", "items": [{"index": True, "id": "a"}]}]},
        {"clusters": [{"name": "A", "items": [{"index": 1, "id": ""}]}]},
    ])
    def test_structural_violations_fail(self, data):
        valid, errors = ResponseAnalyzer.validate_response(data)
        assert not valid
        assert errors

    def test_normalize_index(self):
        assert normalize_index(3) == 3
        assert normalize_index(3.0) == 3
        assert normalize_index("7") == 7
        assert normalize_index(True) is None
        assert normalize_index(2.5) is None


class TestCompleteness:
    """Test cases for the completeness contract"""

    def test_any_split_of_the_range_passes(self):
        complete, _ = ResponseAnalyzer.check_completeness([9, 5, 7, 6, 8], 5, 9)
        assert complete

    def test_missing_index_fails(self):
        complete, errors = ResponseAnalyzer.check_completeness([5, 6, 8, 9], 5, 9)
        assert not complete
        assert "Missing indexes: [7]" in errors

    def test_unexpected_index_fails(self):
        complete, errors = ResponseAnalyzer.check_completeness([5, 6, 7, 8, 9, 12], 5, 9)
        assert not complete
        assert "Unexpected indexes: [12]" in errors

    def test_duplicate_index_fails(self):
        complete, errors = ResponseAnalyzer.check_completeness([5, 6, 7, 7, 8, 9], 5, 9)
        assert not complete
        assert "Duplicate indexes: [7]" in errors


class TestParseResponse:
    """Test cases for parse_response"""

    def test_parses_complete_response(self):
        data = {"clusters": [cluster("Basics", [5, 7]), cluster("Advanced", [6, 8, 9])]}

        result = ResponseAnalyzer().parse_response(data, make_chunk(), attempts=2)

        assert result.cluster_count == 2
        assert result.item_count == 5
        assert result.attempts == 2
        assert ResponseAnalyzer.extract_ordered_indexes(result) == [5, 7, 6, 8, 9]

    def test_incomplete_response_raises(self):
        data = {"clusters": [cluster("Basics", [5, 6, 8, 9])]}

        with pytest.raises(ResponseValidationError) as exc_info:
            ResponseAnalyzer().parse_response(data, make_chunk())
        assert any("7" in error for error in exc_info.value.errors)

    def test_mismatched_id_uses_chunk_id(self):
        data = {"clusters": [{"name": "A", "items": [
            {"index": n, "id": "wrong" if n == 5 else f"item-{n}"} for n in range(5, 10)
        ]}]}

        result = ResponseAnalyzer().parse_response(data, make_chunk())

        assert result.clusters[0].items[0].id == "item-5"
