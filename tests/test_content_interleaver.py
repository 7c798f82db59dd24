"""
Tests for ContentInterleaver
"""

from conftest import record
from curriculum_sequencer.content_interleaver import ContentInterleaver, interleave
from curriculum_sequencer.records import AggregatedItem


def sequence(*ids):
    return [AggregatedItem(index=n, id=item_id) for n, item_id in enumerate(ids)]


def ids(items):
    return [item.id for item in items]


class TestInterleave:
    """Test cases for the interleaving pass"""

    def test_related_items_follow_their_theory(self):
        metadata = {
            "t": record("t", related_questions=["q1", "q2"], related_tasks=["k1"]),
            "q1": record("q1", "question"),
            "q2": record("q2", "question"),
            "k1": record("k1", "task"),
        }

        result, inserted = interleave(sequence("k1", "x", "q2", "t", "y", "q1"), metadata)

        assert ids(result) == ["k1", "x", "q2", "t", "q1", "y"]
        assert inserted == 1
        assert [item.is_related_item for item in result] == [False, False, False, False, True, False]

    def test_questions_come_before_tasks(self):
        metadata = {"t": record("t", related_questions=["q1", "q2"], related_tasks=["k1"])}

        result, inserted = interleave(sequence("t", "k1", "q2", "q1"), metadata)

        assert ids(result) == ["t", "q1", "q2", "k1"]
        assert inserted == 3

    def test_item_claimed_once(self):
        metadata = {
            "t1": record("t1", related_questions=["q"]),
            "t2": record("t2", related_questions=["q"]),
        }

        result, _ = interleave(sequence("t1", "t2", "q"), metadata)

        assert ids(result) == ["t1", "q", "t2"]

    def test_only_theory_pulls_items_forward(self):
        metadata = {"q0": record("q0", "question", related_questions=["q1"])}

        result, inserted = interleave(sequence("q0", "x", "q1"), metadata)

        assert ids(result) == ["q0", "x", "q1"]
        assert inserted == 0

    def test_unknown_related_ids_are_ignored(self):
        metadata = {"t": record("t", related_questions=["missing"])}

        result, inserted = interleave(sequence("t", "x"), metadata)

        assert ids(result) == ["t", "x"]
        assert inserted == 0

    def test_count_and_ids_preserved(self):
        items = sequence(*[f"i{n}" for n in range(40)])
        metadata = {f"i{n}": record(f"i{n}", related_questions=[f"i{39 - n}", f"i{(n * 7) % 40}"])
                    for n in range(0, 40, 3)}

        result, _ = interleave(items, metadata)

        assert len(result) == 40
        assert sorted(ids(result)) == sorted(ids(items))


class TestContentInterleaver:
    """Test cases for the interleaving phase"""

    def test_writes_interleaved_artifact(self, config, logger, file_manager, write_metadata):
        write_metadata([
            record("t", related_questions=["q"]),
            record("x"),
            record("q", "question"),
        ])
        file_manager.save_json(
            {"items": [{"index": 0, "id": "t"}, {"index": 1, "id": "x"}, {"index": 2, "id": "q"}]},
            config.artifact_path("ordered"),
        )

        stats = ContentInterleaver(config, logger).interleave()

        assert stats == {"totalItems": 3, "relatedInserted": 1,
                         "outputPath": str(config.artifact_path("interleaved"))}
        data = file_manager.load_json(config.artifact_path("interleaved"))
        assert [(i["id"], i["isRelatedItem"]) for i in data["items"]] == [
            ("t", False), ("q", True), ("x", False),
        ]
