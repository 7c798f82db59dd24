"""
Phase 3: Deterministic Scoring

Combines three normalized components per item:
- prerequisite depth (Kahn layering, foundational items score highest)
- difficulty/relevance (complexity, difficulty enum, kind-specific importance)
- thematic cohesion (learning-path and technology group sizes near a target share)
"""

from collections import Counter, deque
from datetime import datetime
from typing import Dict, List, Any, Tuple

import networkx as nx
import numpy as np

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from .graph_builder import load_dependency_graph
from .metadata_extractor import load_metadata
from .records import DIFFICULTY_LEVELS, ItemScore, MetadataRecord


def compute_depths(graph: nx.DiGraph, item_ids: List[str]) -> Dict[str, int]:
    """Kahn layering; items caught in cycles never reach the queue and keep depth 0."""
    known = set(item_ids)
    adjacency: Dict[str, List[str]] = {item_id: [] for item_id in item_ids}
    in_degree: Dict[str, int] = {item_id: 0 for item_id in item_ids}

    for source, target in graph.edges():
        if source in known and target in known:
            adjacency[source].append(target)
            in_degree[target] += 1

    depth = {item_id: 0 for item_id in item_ids}
    queue = deque(item_id for item_id in item_ids if in_degree[item_id] == 0)

    while queue:
        current = queue.popleft()
        for successor in adjacency[current]:
            depth[successor] = max(depth[successor], depth[current] + 1)
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    return depth


def _unit(value: Any, low: int, high: int) -> float:
    """Normalize to [0, 1]; out-of-range authored values are clamped."""
    return float(np.clip((value - low) / float(high - low), 0.0, 1.0))


def difficulty_relevance(record: MetadataRecord) -> float:
    """Weighted sum over whichever difficulty fields the item carries, clamped to [0, 1]."""
    score = 0.0

    if record.complexity is not None:
        score += _unit(record.complexity, 1, 5) * 0.3

    difficulty = DIFFICULTY_LEVELS.get(str(record.difficulty).lower()) if record.difficulty else None
    if difficulty is not None:
        score += _unit(difficulty, 1, 3) * 0.3

    if record.kind == "question":
        level = DIFFICULTY_LEVELS.get(str(record.level).lower()) if record.level else None
        if level is not None:
            score += _unit(level, 1, 3) * 0.15
        if record.interview_frequency is not None:
            score += _unit(record.interview_frequency, 1, 5) * 0.1
    elif record.interview_relevance is not None:
        score += _unit(record.interview_relevance, 1, 5) * 0.15

    return float(np.clip(score, 0.0, 1.0))


class ScoreCalculator:
    """Computes per-item composite scores from metadata and the dependency graph."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def calculate(self) -> Dict[str, Any]:
        """Score every item and write ``scores.json`` sorted by composite score."""
        records = load_metadata(self.file_manager, self.config)
        graph = load_dependency_graph(self.file_manager, self.config)

        scores, max_depth = self.score_records(records, graph)

        output = {
            "scores": [score.to_dict() for score in scores],
            "metadata": {
                "totalItems": len(scores),
                "maxDepth": max_depth,
                "timestamp": datetime.now().isoformat(),
            }
        }
        output_path = self.config.artifact_path("scores")
        self.file_manager.save_json(output, output_path)

        return {"totalItems": len(scores), "maxDepth": max_depth, "outputPath": str(output_path)}

    def score_records(self, records: List[MetadataRecord],
                      graph: nx.DiGraph) -> Tuple[List[ItemScore], int]:
        if not records:
            return [], 0

        depths = compute_depths(graph, [r.id for r in records])
        max_depth = max(depths.values())

        depth_scores = np.array([
            1.0 - depths[r.id] / max_depth if max_depth > 0 else 1.0
            for r in records
        ])
        difficulty_scores = np.array([difficulty_relevance(r) for r in records])
        cohesion_scores = np.array(self.thematic_cohesion(records))

        weights = np.array([
            self.config.depth_weight,
            self.config.difficulty_weight,
            self.config.cohesion_weight,
        ])
        composite = np.column_stack([depth_scores, difficulty_scores, cohesion_scores]) @ weights

        scores = [
            ItemScore(
                id=record.id,
                index=record.index,
                depth=depths[record.id],
                prerequisite_depth=float(depth_scores[i]),
                difficulty_relevance=float(difficulty_scores[i]),
                thematic_cohesion=float(cohesion_scores[i]),
                composite_score=float(composite[i]),
            )
            for i, record in enumerate(records)
        ]
        scores.sort(key=lambda s: (-s.composite_score, s.index))

        self.logger.info(f"Scored {len(scores)} items (max prerequisite depth {max_depth})")
        return scores, max_depth

    def thematic_cohesion(self, records: List[MetadataRecord]) -> List[float]:
        total = len(records)
        path_sizes = Counter(r.learning_path for r in records if r.learning_path)
        tech_sizes = Counter(t for r in records for t in set(r.technology))

        def group_score(size: int) -> float:
            ratio = size / total
            optimal = self.config.optimal_group_ratio
            return max(0.0, 1.0 - abs(ratio - optimal) / optimal)

        cohesion = []
        for record in records:
            path_score = group_score(path_sizes[record.learning_path]) if record.learning_path else 0.0
            technologies = set(record.technology)
            tech_score = float(np.mean([group_score(tech_sizes[t]) for t in technologies])) if technologies else 0.0
            cohesion.append(0.6 * path_score + 0.4 * tech_score)
        return cohesion


def load_composite_scores(file_manager: FileManager, config: CurriculumConfig) -> Dict[str, float]:
    """Composite score by item id; empty when ``scores.json`` is unusable."""
    data = file_manager.load_optional_json(config.artifact_path("scores"), default={})
    entries = data.get("scores", []) if isinstance(data, dict) else []
    return {
        entry["id"]: float(entry.get("compositeScore", 0.0))
        for entry in entries
        if isinstance(entry, dict) and entry.get("id")
    }
