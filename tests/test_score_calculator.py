"""
Tests for ScoreCalculator
"""

import networkx as nx
import pytest

from conftest import record
from curriculum_sequencer.score_calculator import (
    ScoreCalculator, compute_depths, difficulty_relevance, load_composite_scores
)


def chain_graph(*ids):
    graph = nx.DiGraph()
    graph.add_nodes_from(ids)
    nx.add_path(graph, ids)
    return graph


class TestDepths:
    """Test cases for prerequisite depth layering"""

    def test_chain_depths(self):
        assert compute_depths(chain_graph("a", "b", "c"), ["a", "b", "c"]) == {"a": 0, "b": 1, "c": 2}

    def test_depth_is_longest_path(self):
        graph = chain_graph("a", "b", "c")
        graph.add_edge("a", "c")
        assert compute_depths(graph, ["a", "b", "c"])["c"] == 2

    def test_cycle_members_keep_depth_zero(self):
        graph = nx.DiGraph([("a", "b"), ("b", "a"), ("b", "c")])
        depths = compute_depths(graph, ["a", "b", "c"])
        assert depths == {"a": 0, "b": 0, "c": 0}

    def test_edges_to_unknown_items_are_ignored(self):
        graph = nx.DiGraph([("ghost", "a")])
        assert compute_depths(graph, ["a"]) == {"a": 0}


class TestDifficultyRelevance:
    """Test cases for difficulty_relevance"""

    def test_theory_fields(self):
        item = record("t", complexity=5, difficulty="hard", interview_relevance=5)
        assert difficulty_relevance(item) == pytest.approx(0.75)

    def test_question_fields(self):
        item = record("q", kind="question", complexity=1, level="hard", interview_frequency=5)
        assert difficulty_relevance(item) == pytest.approx(0.25)

    def test_missing_fields_contribute_zero(self):
        assert difficulty_relevance(record("empty")) == 0.0

    def test_out_of_range_fields_are_clamped_individually(self):
        low = record("t", complexity=0, difficulty="hard")
        high = record("t", complexity=5, interview_relevance=7)
        assert difficulty_relevance(low) == pytest.approx(0.3)
        assert difficulty_relevance(high) == pytest.approx(0.45)


class TestScoreCalculator:
    """Test cases for ScoreCalculator"""

    def test_foundational_items_score_higher(self, config, logger):
        records = [record("a", index=0), record("b", index=1), record("c", index=2)]
        scores, max_depth = ScoreCalculator(config, logger).score_records(records, chain_graph("a", "b", "c"))

        by_id = {s.id: s for s in scores}
        assert max_depth == 2
        assert by_id["a"].prerequisite_depth == 1.0
        assert by_id["b"].prerequisite_depth == pytest.approx(0.5)
        assert by_id["c"].prerequisite_depth == 0.0
        assert all(0.0 <= s.prerequisite_depth <= 1.0 for s in scores)

    def test_no_edges_scores_every_item_one(self, config, logger):
        records = [record("a", index=0), record("b", index=1)]
        scores, _ = ScoreCalculator(config, logger).score_records(records, nx.DiGraph())

        assert [s.prerequisite_depth for s in scores] == [1.0, 1.0]

    def test_scores_sorted_descending(self, config, logger):
        records = [
            record("easy", index=0, complexity=1),
            record("hard", index=1, complexity=5, difficulty="hard"),
        ]
        scores, _ = ScoreCalculator(config, logger).score_records(records, nx.DiGraph())

        assert [s.id for s in scores] == ["hard", "easy"]
        assert scores[0].composite_score >= scores[1].composite_score

    def test_cohesion_rewards_groups_near_target_share(self, config, logger):
        records = [record(f"p{n}", learning_path="big", technology=["T"]) for n in range(9)]
        records.append(record("solo", learning_path="small", technology=["S"]))

        cohesion = ScoreCalculator(config, logger).thematic_cohesion(records)

        # one item in ten matches the 10% target exactly
        assert cohesion[-1] == pytest.approx(1.0)
        assert cohesion[0] == pytest.approx(0.0)

    def test_calculate_writes_scores_without_graph(self, config, logger, file_manager, write_metadata):
        write_metadata([record("a", complexity=2), record("b", complexity=4)])

        result = ScoreCalculator(config, logger).calculate()

        assert result["totalItems"] == 2
        assert result["maxDepth"] == 0
        data = file_manager.load_json(config.artifact_path("scores"))
        assert data["metadata"]["totalItems"] == 2
        assert set(load_composite_scores(file_manager, config)) == {"a", "b"}
