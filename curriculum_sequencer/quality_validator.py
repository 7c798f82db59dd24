"""
Curriculum Quality Validation

Scores a written curriculum after the fact:
1. Prerequisite ordering (violations against the dependency graph)
2. Placement of interleaved practice items
3. Complexity progression along the sequence
4. Duplicates, placeholders and kind distribution
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any

import numpy as np

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager, load_items_artifact
from .graph_builder import load_dependency_graph, prerequisite_map

logger = logging.getLogger(__name__)


@dataclass
class CurriculumQualityMetrics:
    """Quality metrics for one curriculum."""
    total_items: int
    unique_items: int
    duplicate_ratio: float
    fallback_items: int
    prerequisite_edges_checked: int
    prerequisite_violations: List[Dict[str, Any]]
    ordering_score: float
    related_adjacency: float
    complexity_progression: float
    kind_distribution: Dict[str, int] = field(default_factory=dict)
    overall_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalItems": self.total_items,
            "uniqueItems": self.unique_items,
            "duplicateRatio": round(self.duplicate_ratio, 4),
            "fallbackItems": self.fallback_items,
            "prerequisiteEdgesChecked": self.prerequisite_edges_checked,
            "prerequisiteViolations": self.prerequisite_violations,
            "orderingScore": round(self.ordering_score, 4),
            "relatedAdjacency": round(self.related_adjacency, 4),
            "complexityProgression": round(self.complexity_progression, 4),
            "kindDistribution": self.kind_distribution,
            "overallScore": round(self.overall_score, 4),
        }


def average_ranks(values: np.ndarray) -> np.ndarray:
    """Ranks with ties sharing their mean rank."""
    order = np.argsort(values, kind="mergesort")
    ranks = np.empty(len(values), dtype=float)
    ranks[order] = np.arange(len(values), dtype=float)
    _, inverse = np.unique(values, return_inverse=True)
    inverse = inverse.ravel()
    sums = np.bincount(inverse, weights=ranks)
    counts = np.bincount(inverse)
    return (sums / counts)[inverse]


def rank_correlation(x: List[float], y: List[float]) -> float:
    """Spearman correlation; 0.0 when either side is constant or too short."""
    if len(x) < 2:
        return 0.0
    rx = average_ranks(np.asarray(x, dtype=float))
    ry = average_ranks(np.asarray(y, dtype=float))
    if np.std(rx) == 0 or np.std(ry) == 0:
        return 0.0
    return float(np.corrcoef(rx, ry)[0, 1])


class CurriculumQualityValidator:
    """Evaluates ``curriculum.json`` and writes ``quality-report.json``."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def validate(self) -> Dict[str, Any]:
        items = load_items_artifact(self.file_manager, self.config.artifact_path("curriculum"))
        graph = load_dependency_graph(self.file_manager, self.config)
        metrics = self.evaluate(items, prerequisite_map(graph))

        output_path = self.config.artifact_path("quality_report")
        report = {"metrics": metrics.to_dict(), "timestamp": datetime.now().isoformat()}
        self.file_manager.save_json(report, output_path)

        if metrics.prerequisite_violations:
            self.logger.warning(f"{len(metrics.prerequisite_violations)} prerequisite ordering violations")
        self.logger.info(f"Quality validation completed. Overall score: {metrics.overall_score:.3f}")
        return {"overallScore": metrics.overall_score,
                "prerequisiteViolations": len(metrics.prerequisite_violations),
                "outputPath": str(output_path)}

    def evaluate(self, items: List[Dict[str, Any]],
                 prerequisites: Dict[str, List[str]]) -> CurriculumQualityMetrics:
        items = [item for item in items if isinstance(item, dict)]
        if not items:
            logger.warning("No items found in curriculum")
            return CurriculumQualityMetrics(0, 0, 0.0, 0, 0, [], 0.0, 0.0, 0.0)

        total = len(items)
        ids = [item.get("id") for item in items]
        unique = len(set(i for i in ids if i))
        duplicate_ratio = 1.0 - unique / total if unique else 0.0
        fallbacks = sum(1 for item in items if item.get("isFallback"))

        checked, violations = self._prerequisite_violations(items, prerequisites)
        ordering_score = 1.0 - len(violations) / checked if checked else 1.0
        related_adjacency = self._related_adjacency(items)

        complexities = [float(item.get("complexity") or 0) for item in items]
        progression = rank_correlation(list(range(total)), complexities)

        overall = float(np.mean([
            ordering_score,
            related_adjacency,
            (progression + 1.0) / 2.0,
            1.0 - duplicate_ratio,
            1.0 - fallbacks / total,
        ]))

        return CurriculumQualityMetrics(
            total_items=total,
            unique_items=unique,
            duplicate_ratio=duplicate_ratio,
            fallback_items=fallbacks,
            prerequisite_edges_checked=checked,
            prerequisite_violations=violations,
            ordering_score=ordering_score,
            related_adjacency=related_adjacency,
            complexity_progression=progression,
            kind_distribution=dict(Counter(item.get("type", "unknown") for item in items)),
            overall_score=overall,
        )

    @staticmethod
    def _prerequisite_violations(items: List[Dict[str, Any]],
                                 prerequisites: Dict[str, List[str]]):
        position: Dict[str, int] = {}
        for pos, item in enumerate(items):
            if item.get("id"):
                position.setdefault(item["id"], pos)

        checked = 0
        violations = []
        for item_id, pos in position.items():
            required = set(prerequisites.get(item_id, ()))
            required.update(items[pos].get("prerequisites") or [])
            for prereq in sorted(required):
                if prereq not in position or prereq == item_id:
                    continue
                checked += 1
                if position[prereq] > pos:
                    violations.append({"item": item_id, "itemPosition": pos,
                                       "prerequisite": prereq, "prerequisitePosition": position[prereq]})
        return checked, violations

    @staticmethod
    def _related_adjacency(items: List[Dict[str, Any]]) -> float:
        """Share of related items sitting in the run that follows a theory item."""
        related = [pos for pos, item in enumerate(items) if item.get("isRelatedItem")]
        if not related:
            return 1.0

        placed = 0
        for pos in related:
            j = pos - 1
            while j >= 0 and items[j].get("isRelatedItem"):
                j -= 1
            if j >= 0 and items[j].get("type") == "theory":
                placed += 1
        return placed / len(related)
