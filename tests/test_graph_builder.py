"""
Tests for GraphBuilder
"""

import json

import networkx as nx
import pytest

from conftest import record
from curriculum_sequencer.graph_builder import (
    GraphBuilder, dependency_graph_from_dict, load_dependency_graph, prerequisite_map, similarity_weight
)


class TestSimilarityWeight:
    """Test cases for similarity_weight"""

    def test_weight_components(self):
        a = record("a", learning_path="beginner", tags=["x", "y"], technology=["React"])
        b = record("b", learning_path="beginner", tags=["x", "y", "z"], technology=["React", "JS"])

        assert similarity_weight(a, b) == pytest.approx(0.9)

    def test_weight_is_capped(self):
        tags = ["a", "b", "c", "d", "e", "f"]
        a = record("a", learning_path="p", tags=tags, technology=["T"])
        b = record("b", learning_path="p", tags=tags, technology=["T"])

        assert similarity_weight(a, b) == 1.0

    def test_no_overlap(self):
        assert similarity_weight(record("a"), record("b")) == 0.0


class TestGraphBuilder:
    """Test cases for GraphBuilder"""

    def test_dependency_edges_and_invalid_references(self, config, logger):
        builder = GraphBuilder(config, logger)
        records = [
            record("a", required_for=["c"]),
            record("b", prerequisites=["a", "missing", "b"]),
            record("c"),
        ]

        graph = builder.build_dependency_graph(records)

        assert set(graph.edges()) == {("a", "b"), ("a", "c")}
        assert graph.edges["a", "c"]["type"] == "requiredFor"
        assert graph.edges["a", "b"]["type"] == "prerequisite"
        assert builder.invalid_references == 2

    def test_report_cycles_does_not_raise(self, config, logger):
        builder = GraphBuilder(config, logger)
        graph = builder.build_dependency_graph([
            record("a", prerequisites=["b"]),
            record("b", prerequisites=["a"]),
            record("c"),
        ])

        assert builder.report_cycles(graph) == [["a", "b"]]

    def test_similarity_requires_shared_tag_and_threshold(self, config, logger):
        builder = GraphBuilder(config, logger)
        records = [
            record("a", learning_path="p", tags=["x", "y"], technology=["T"]),
            record("b", learning_path="p", tags=["x", "y"], technology=["T"]),
            record("c", learning_path="p", tags=["q"], technology=["T"]),
            record("d", learning_path="other", tags=["x", "y"], technology=["T"]),
        ]

        edges = list(builder.iter_similarity_edges(records))

        assert [(e.source, e.target) for e in edges] == [("a", "b")]
        assert edges[0].weight == pytest.approx(0.9)

    def test_large_groups_are_skipped(self, config, logger):
        config.max_similarity_group_size = 2
        builder = GraphBuilder(config, logger)
        records = [record(f"i{n}", learning_path="big", tags=["t", "u"], technology=["T"]) for n in range(3)]

        assert list(builder.iter_similarity_edges(records)) == []
        assert builder.skipped_groups == ["big"]

    def test_edge_ceiling(self, config, logger):
        config.max_similarity_edges = 2
        builder = GraphBuilder(config, logger)
        records = [record(f"i{n}", learning_path="p", tags=["t", "u"], technology=["T"]) for n in range(5)]

        edges = list(builder.iter_similarity_edges(records))

        assert len(edges) == 2
        assert builder.edge_limit_reached

    def test_build_writes_artifacts(self, config, logger, file_manager, write_metadata):
        write_metadata([
            record("a", learning_path="p", tags=["x", "y"], technology=["T"]),
            record("b", learning_path="p", tags=["x", "y"], technology=["T"], prerequisites=["a"]),
        ])

        result = GraphBuilder(config, logger).build()

        assert result["nodeCount"] == 2
        assert result["dependencyEdgeCount"] == 1
        assert result["similarityEdgeCount"] == 1
        assert result["isAcyclic"] is True

        with open(config.artifact_path("similarity_graph"), encoding="utf-8") as f:
            similarity = json.load(f)
        assert similarity["edges"] == [{"source": "a", "target": "b", "weight": 0.9}]

        graph = load_dependency_graph(file_manager, config)
        assert prerequisite_map(graph)["b"] == ["a"]


class TestDependencyGraphLoading:
    """Test cases for the accepted dependency graph layouts"""

    def test_nodes_map_layout(self):
        graph = dependency_graph_from_dict({"nodes": {"b": {"prerequisites": ["a"]}, "a": {}}})
        assert list(graph.edges()) == [("a", "b")]

    def test_wrapped_flat_layout(self):
        graph = dependency_graph_from_dict({"dependency": {"b": ["a"], "c": ["a", "b"]}})
        assert set(graph.edges()) == {("a", "b"), ("a", "c"), ("b", "c")}

    def test_unknown_layout_is_empty(self):
        assert isinstance(dependency_graph_from_dict("nope"), nx.DiGraph)
        assert dependency_graph_from_dict("nope").number_of_nodes() == 0

    def test_missing_graph_file_is_empty(self, config, file_manager):
        assert load_dependency_graph(file_manager, config).number_of_edges() == 0
