"""
Phase 7: Sequencing

Two passes over the aggregated order:
1. Optional model refinement: the model may only permute the existing
   indexes; anything else is rejected and the aggregated order is kept.
2. Rule-based ordering by module: prerequisites first, then the
   complexity / relevance / tag-count tie-break (or the refined order
   when the refinement was accepted).
"""

import heapq
from collections import Counter, OrderedDict, defaultdict, deque
from typing import Dict, List, Any, Optional, Tuple

import networkx as nx

from .aggregator import collect_prerequisites
from .analyzer import normalize_index
from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager, load_items_artifact
from .errors import LLMError
from .llm_client import LLMClient
from .metadata_extractor import load_optional_metadata
from .prompt_builder import PromptBuilder
from .records import AggregatedItem, MetadataRecord


def tie_break_key(item: AggregatedItem, record: Optional[MetadataRecord] = None) -> Tuple[int, int, int]:
    """Complexity ascending, relevance descending, tag count descending; missing values count as 0."""
    complexity = item.complexity
    if complexity is None and record is not None:
        complexity = record.complexity
    relevance = record.relevance if record is not None else None
    tags = item.tags or (record.tags if record is not None else [])
    return (complexity or 0, -(relevance or 0), -len(tags))


def validate_permutation(original: List[int], proposed: Any) -> Tuple[bool, List[str]]:
    """``proposed`` must hold exactly the indexes of ``original``, each as often."""
    if not isinstance(proposed, list):
        return False, [f"Expected a list of indexes, got {type(proposed).__name__}"]

    normalized = [normalize_index(value) for value in proposed]
    if any(value is None for value in normalized):
        return False, ["Refined order contains non-numeric indexes"]

    errors = []
    expected = Counter(original)
    received = Counter(normalized)
    missing = sorted((expected - received).elements())
    unknown = sorted((received - expected).elements())
    if missing:
        errors.append(f"Missing indexes: {missing[:20]}")
    if unknown:
        errors.append(f"Unknown or repeated indexes: {unknown[:20]}")
    return len(errors) == 0, errors


class SequenceRefiner:
    """Asks the model for a better permutation of the aggregated order."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger,
                 llm_client: Optional[LLMClient] = None,
                 prompt_builder: Optional[PromptBuilder] = None):
        self.config = config
        self.logger = logger
        self.llm_client = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder(config.max_prompt_tokens, config.token_encoding)

    def refine(self, items: List[AggregatedItem],
               metadata: Optional[Dict[str, MetadataRecord]] = None) -> Tuple[List[AggregatedItem], Dict[str, Any]]:
        """Return the refined order, or ``items`` unchanged with the reason it was kept."""
        if len(items) <= self.config.min_refine_items:
            return items, {"refined": False, "reason": f"{len(items)} items, refinement skipped"}
        if not self.config.refine_with_llm:
            return items, {"refined": False, "reason": "refinement disabled"}
        if self.llm_client is None or not self.llm_client.is_available():
            return items, {"refined": False, "reason": "LLM unavailable"}

        metadata = metadata or {}
        order = [item.index for item in items]
        records = [
            metadata.get(item.id) or MetadataRecord(id=item.id or "", kind="theory", index=item.index)
            for item in items
        ]
        prompt = self.prompt_builder.build_refinement_prompt(order, records)

        try:
            data = self.llm_client.generate_json(prompt, expected_type=None)
        except LLMError as e:
            self.logger.warning(f"Sequence refinement failed, keeping aggregated order: {e}")
            return items, {"refined": False, "reason": f"LLM error: {e}"}

        proposed = data.get("order") if isinstance(data, dict) else data
        valid, errors = validate_permutation(order, proposed)
        if not valid:
            self.logger.warning(f"Sequence refinement rejected: {'; '.join(errors)}")
            return items, {"refined": False, "reason": "; ".join(errors)}

        by_index: Dict[int, deque] = defaultdict(deque)
        for item in items:
            by_index[item.index].append(item)
        refined = [by_index[normalize_index(value)].popleft() for value in proposed]

        self.logger.info(f"Accepted refined order for {len(refined)} items")
        return refined, {"refined": True, "reason": "accepted"}


class RuleBasedOrderer:
    """Prerequisite-respecting order within and across modules."""

    def __init__(self, metadata: Dict[str, MetadataRecord], prerequisites: Dict[str, List[str]],
                 preserve_order: bool = False, logger: Optional[CurriculumLogger] = None):
        self.metadata = metadata
        self.prerequisites = prerequisites
        self.preserve_order = preserve_order
        self.logger = logger

    def sort_key(self, item: AggregatedItem, position: int) -> Tuple:
        if self.preserve_order:
            return (position,)
        return tie_break_key(item, self.metadata.get(item.id) if item.id else None) + (position,)

    def order(self, items: List[AggregatedItem]) -> Tuple[List[AggregatedItem], Dict[str, Any]]:
        modules: "OrderedDict[str, List[AggregatedItem]]" = OrderedDict()
        for item in items:
            modules.setdefault(item.module_id or "default", []).append(item)

        module_order, acyclic = self.order_modules(modules)
        if not acyclic:
            # Module blocks cannot respect every edge; order items across modules instead
            if self.logger:
                self.logger.warning("Module prerequisites form a cycle; interleaving modules at item level")
            rank = {module_id: i for i, module_id in enumerate(module_order)}
            members = [item for module_id in module_order for item in modules[module_id]]
            result, cycle_items = self.order_module(members, rank)
        else:
            result = []
            cycle_items = 0
            for module_id in module_order:
                ordered, leftovers = self.order_module(modules[module_id])
                result.extend(ordered)
                cycle_items += leftovers

        if cycle_items and self.logger:
            self.logger.warning(f"{cycle_items} items sit in prerequisite cycles; appended by complexity")
        return result, {"modules": len(modules), "cycleItems": cycle_items}

    def order_module(self, members: List[AggregatedItem],
                     module_rank: Optional[Dict[str, int]] = None) -> Tuple[List[AggregatedItem], int]:
        """Kahn's algorithm over prerequisite edges among ``members``.

        With ``module_rank`` the members span several modules and the ready
        set prefers earlier modules before the usual tie-break.
        """
        def key(pos: int) -> Tuple:
            base = self.sort_key(members[pos], pos)
            if module_rank is None:
                return base
            return (module_rank[members[pos].module_id or "default"],) + base

        graph = nx.DiGraph()
        graph.add_nodes_from(range(len(members)))
        position_of = {item.id: pos for pos, item in enumerate(members) if item.id is not None}
        for pos, item in enumerate(members):
            for prereq in self.prerequisites.get(item.id, ()) if item.id else ():
                source = position_of.get(prereq)
                if source is not None and source != pos:
                    graph.add_edge(source, pos)

        in_degree = dict(graph.in_degree())
        ready = [(key(pos), pos) for pos, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        ordered = []
        placed = set()
        while ready:
            _, pos = heapq.heappop(ready)
            ordered.append(members[pos])
            placed.add(pos)
            for successor in graph.successors(pos):
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, (key(successor), successor))

        leftovers = [pos for pos in range(len(members)) if pos not in placed]
        leftovers.sort(key=lambda pos: (members[pos].complexity or 0, pos))
        ordered.extend(members[pos] for pos in leftovers)
        return ordered, len(leftovers)

    def order_modules(self, modules: "OrderedDict[str, List[AggregatedItem]]") -> Tuple[List[str], bool]:
        """Module blocks in prerequisite order, ties by first appearance.

        The flag is False when cross-module edges form a cycle; the modules
        left over are then appended in appearance order.
        """
        rank = {module_id: i for i, module_id in enumerate(modules)}
        module_of = {item.id: module_id for module_id, members in modules.items()
                     for item in members if item.id is not None}

        graph = nx.DiGraph()
        graph.add_nodes_from(modules)
        for module_id, members in modules.items():
            for item in members:
                for prereq in self.prerequisites.get(item.id, ()) if item.id else ():
                    source = module_of.get(prereq)
                    if source is not None and source != module_id:
                        graph.add_edge(source, module_id)

        in_degree = dict(graph.in_degree())
        ready = [(rank[m], m) for m, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        ordered = []
        while ready:
            _, module_id = heapq.heappop(ready)
            ordered.append(module_id)
            for successor in graph.successors(module_id):
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, (rank[successor], successor))

        acyclic = len(ordered) == len(modules)
        if not acyclic:
            placed = set(ordered)
            ordered.extend(m for m in modules if m not in placed)
        return ordered, acyclic


class Sequencer:
    """Writes ``refined-items.json`` and ``ordered-items.json`` from the aggregated items."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger,
                 llm_client: Optional[LLMClient] = None):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

        if llm_client is None and config.use_llm and config.refine_with_llm:
            llm_client = LLMClient(config, logger)
        self.refiner = SequenceRefiner(config, logger, llm_client)

    def sequence(self) -> Dict[str, Any]:
        raw_items = load_items_artifact(self.file_manager, self.config.artifact_path("aggregated"))
        items = [AggregatedItem.from_dict(entry) for entry in raw_items if isinstance(entry, dict)]
        metadata = load_optional_metadata(self.file_manager, self.config)

        refined, refine_stats = self.refiner.refine(items, metadata)
        if not refine_stats["refined"]:
            self.logger.info(f"Keeping aggregated order: {refine_stats['reason']}")
        self.file_manager.save_json(
            {"items": [item.to_dict() for item in refined], "stats": refine_stats},
            self.config.artifact_path("refined"),
        )

        prerequisites = collect_prerequisites(self.file_manager, self.config, metadata)
        orderer = RuleBasedOrderer(metadata, prerequisites,
                                   preserve_order=refine_stats["refined"], logger=self.logger)
        ordered, order_stats = orderer.order(refined)

        output_path = self.config.artifact_path("ordered")
        self.file_manager.save_json(
            {"items": [item.to_dict() for item in ordered], "stats": order_stats}, output_path
        )

        self.logger.info(f"Sequenced {len(ordered)} items across {order_stats['modules']} modules")
        return {"totalItems": len(ordered), "refined": refine_stats["refined"],
                **order_stats, "outputPath": str(output_path)}
