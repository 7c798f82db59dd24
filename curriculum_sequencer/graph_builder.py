"""
Phase 2: Dependency and Similarity Graphs

Features:
- Directed dependency graph from ``prerequisites`` and ``requiredFor`` references
- Invalid references dropped (both endpoints must exist in the metadata snapshot)
- Cycle reporting without failing, since authored data may contain cycles
- Sparse weighted similarity graph within learning-path groups
- Similarity graph streamed to disk edge by edge
"""

import os
import json
import itertools
import tempfile
import networkx as nx
from pathlib import Path
from typing import Dict, List, Any, Iterator, Optional
from collections import defaultdict

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from .metadata_extractor import load_metadata
from .records import GraphEdge, MetadataRecord, SimilarityEdge


def similarity_weight(a: MetadataRecord, b: MetadataRecord) -> float:
    """Weighted overlap of two items, capped at 1.0."""
    weight = 0.0
    if a.learning_path and a.learning_path == b.learning_path:
        weight += 0.5
    weight += 0.1 * len(set(a.tags) & set(b.tags))
    if set(a.technology) & set(b.technology):
        weight += 0.2
    weight += 0.1 * len(set(a.related_concepts) & set(b.related_concepts))
    weight += 0.1 * len(set(a.key_concepts) & set(b.key_concepts))
    return min(weight, 1.0)


class GraphBuilder:
    """Builds the dependency and similarity graphs from metadata."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

        self.invalid_references = 0
        self.skipped_groups: List[str] = []
        self.edge_limit_reached = False

    def build(self) -> Dict[str, Any]:
        """Build both graphs and write them plus the ``graphs.json`` index."""
        records = load_metadata(self.file_manager, self.config)

        dependency_graph = self.build_dependency_graph(records)
        dependency_path = self.config.artifact_path("dependency_graph")
        self.file_manager.save_json(dependency_graph_to_dict(dependency_graph), dependency_path)

        similarity_path = self.config.artifact_path("similarity_graph")
        similarity_edge_count = self._write_similarity_graph(
            records, self.iter_similarity_edges(records), similarity_path
        )

        cycle_components = self.report_cycles(dependency_graph)

        index = {
            "dependencyGraphPath": dependency_path.name,
            "similarityGraphPath": similarity_path.name,
            "nodeCount": dependency_graph.number_of_nodes(),
            "dependencyEdgeCount": dependency_graph.number_of_edges(),
            "similarityEdgeCount": similarity_edge_count,
            "invalidReferenceCount": self.invalid_references,
            "skippedGroups": self.skipped_groups,
            "isAcyclic": not cycle_components,
            "cycleComponents": len(cycle_components),
        }
        output_path = self.config.artifact_path("graphs")
        self.file_manager.save_json(index, output_path)

        return {**index, "outputPath": str(output_path)}

    def build_dependency_graph(self, records: List[MetadataRecord]) -> nx.DiGraph:
        graph = nx.DiGraph()
        for record in records:
            graph.add_node(record.id, index=record.index, type=record.kind, title=record.title)

        self.invalid_references = 0
        for record in records:
            for prereq_id in record.prerequisites:
                self._add_edge(graph, prereq_id, record.id, "prerequisite")
            for target_id in record.required_for:
                self._add_edge(graph, record.id, target_id, "requiredFor")

        if self.invalid_references:
            self.logger.warning(f"Dropped {self.invalid_references} invalid dependency references")

        self.logger.info(
            f"Dependency graph: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges"
        )
        return graph

    def _add_edge(self, graph: nx.DiGraph, source: str, target: str, edge_type: str) -> None:
        if source == target or source not in graph or target not in graph:
            self.invalid_references += 1
            return
        if not graph.has_edge(source, target):
            graph.add_edge(source, target, type=edge_type)

    def report_cycles(self, graph: nx.DiGraph) -> List[List[str]]:
        """Strongly connected components that form cycles; logged, never raised."""
        if nx.is_directed_acyclic_graph(graph):
            return []

        components = [sorted(c) for c in nx.strongly_connected_components(graph) if len(c) > 1]
        self.logger.warning(
            f"Dependency graph contains {len(components)} cycle(s); "
            f"downstream ordering will be best-effort"
        )
        for component in components[:5]:
            self.logger.debug(f"  Cycle members: {component[:10]}")
        return components

    def iter_similarity_edges(self, records: List[MetadataRecord]) -> Iterator[SimilarityEdge]:
        """Yield thresholded similarity edges, group by group, up to the edge ceiling."""
        groups: Dict[str, List[MetadataRecord]] = defaultdict(list)
        for record in records:
            if record.learning_path:
                groups[record.learning_path].append(record)

        self.skipped_groups = []
        self.edge_limit_reached = False
        emitted = 0

        for path_name, members in groups.items():
            if len(members) > self.config.max_similarity_group_size:
                self.logger.warning(
                    f"Skipping similarity for learning path '{path_name}' "
                    f"({len(members)} items > {self.config.max_similarity_group_size})"
                )
                self.skipped_groups.append(path_name)
                continue

            for a, b in itertools.combinations(members, 2):
                if not set(a.tags) & set(b.tags):
                    continue

                weight = similarity_weight(a, b)
                if weight < self.config.similarity_threshold:
                    continue

                yield SimilarityEdge(a.id, b.id, weight)
                emitted += 1
                if emitted >= self.config.max_similarity_edges:
                    self.edge_limit_reached = True
                    self.logger.warning(
                        f"Similarity edge ceiling reached ({self.config.max_similarity_edges}); stopping"
                    )
                    return

    def _write_similarity_graph(self, records: List[MetadataRecord],
                                edges: Iterator[SimilarityEdge], output_path: Path) -> int:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        nodes = [{"id": r.id, "index": r.index, "type": r.kind, "title": r.title} for r in records]

        count = 0
        fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", dir=str(output_path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write('{"nodes": ')
                json.dump(nodes, f, ensure_ascii=False)
                f.write(', "edges": [')
                for edge in edges:
                    f.write(",\n" if count else "\n")
                    json.dump(edge.to_dict(), f, ensure_ascii=False)
                    count += 1
                f.write("\n]}\n")
            os.replace(tmp_name, output_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self.logger.info(f"Saved {count} similarity edges to {output_path}")
        return count


def dependency_graph_to_dict(graph: nx.DiGraph) -> Dict[str, Any]:
    nodes = [
        {"id": node, "index": data.get("index"), "type": data.get("type"), "title": data.get("title", "")}
        for node, data in graph.nodes(data=True)
    ]
    edges = [
        GraphEdge(source, target, data.get("type", "prerequisite")).to_dict()
        for source, target, data in graph.edges(data=True)
    ]
    return {"nodes": nodes, "edges": edges}


def dependency_graph_from_dict(data: Any) -> nx.DiGraph:
    """Parse any of the supported dependency graph layouts into ``prereq -> item`` edges.

    Accepted layouts: ``{nodes: [...], edges: [...]}``; ``{nodes: {id: {prerequisites}}}``;
    either of those under a ``dependency`` key; a flat ``{id: [prerequisite ids]}`` map.
    Anything else yields an empty graph.
    """
    graph = nx.DiGraph()
    if not isinstance(data, dict):
        return graph

    if isinstance(data.get("dependency"), dict):
        data = data["dependency"]

    nodes = data.get("nodes")
    edges = data.get("edges")

    if isinstance(nodes, list):
        for node in nodes:
            if isinstance(node, dict) and node.get("id"):
                graph.add_node(node["id"], **{k: v for k, v in node.items() if k != "id"})
            elif isinstance(node, str):
                graph.add_node(node)
        for edge in edges if isinstance(edges, list) else []:
            if isinstance(edge, dict) and edge.get("source") and edge.get("target"):
                graph.add_edge(edge["source"], edge["target"], type=edge.get("type", "prerequisite"))
        return graph

    if isinstance(nodes, dict):
        for node_id, node in nodes.items():
            graph.add_node(node_id)
            prerequisites = node.get("prerequisites", []) if isinstance(node, dict) else []
            for prereq_id in prerequisites or []:
                graph.add_edge(prereq_id, node_id, type="prerequisite")
        return graph

    for node_id, prerequisites in data.items():
        if isinstance(prerequisites, list):
            graph.add_node(node_id)
            for prereq_id in prerequisites:
                if isinstance(prereq_id, str):
                    graph.add_edge(prereq_id, node_id, type="prerequisite")
    return graph


def load_dependency_graph(file_manager: FileManager, config: CurriculumConfig,
                          path: Optional[Path] = None) -> nx.DiGraph:
    """Optional dependency graph for later phases; empty when absent or malformed."""
    data = file_manager.load_optional_json(path or config.artifact_path("dependency_graph"), default={})
    return dependency_graph_from_dict(data)


def prerequisite_map(graph: nx.DiGraph) -> Dict[str, List[str]]:
    """Map each item id to the ids that must precede it."""
    return {node: list(graph.predecessors(node)) for node in graph.nodes}

