"""
Record types carried between pipeline phases.

Every artifact is plain JSON on disk; these dataclasses are the in-memory
view of it. Optional fields default to ``None`` or an empty list so a
missing attribute in an artifact is an explicit, testable default rather
than a KeyError.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


CONTENT_KINDS = ("theory", "question", "task")

LEARNING_PATH_RANK = {
    "beginner": 1,
    "intermediate": 2,
    "advanced": 3,
    "expert": 4,
}

DIFFICULTY_LEVELS = {
    "easy": 1,
    "medium": 2,
    "hard": 3,
}


def to_int(value: Any) -> Optional[int]:
    """Best-effort integer coercion; ``None`` for anything non-numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def to_str_list(value: Any) -> List[str]:
    """Normalize a scalar-or-list field to a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value if v is not None and v != ""]
    return [str(value)]


@dataclass
class MetadataRecord:
    """Compact attributes of one content item, without its payload."""
    id: str
    kind: str
    title: str = ""
    tags: List[str] = field(default_factory=list)
    technology: List[str] = field(default_factory=list)
    complexity: Optional[int] = None
    learning_path: Optional[str] = None
    prerequisites: List[str] = field(default_factory=list)
    required_for: List[str] = field(default_factory=list)
    related_questions: List[str] = field(default_factory=list)
    related_tasks: List[str] = field(default_factory=list)
    interview_relevance: Optional[int] = None
    interview_frequency: Optional[int] = None
    difficulty: Optional[str] = None
    level: Optional[str] = None
    topic: Optional[str] = None
    question_type: Optional[str] = None
    analysis_points: List[str] = field(default_factory=list)
    key_concepts: List[str] = field(default_factory=list)
    evaluation_criteria: List[str] = field(default_factory=list)
    related_concepts: List[str] = field(default_factory=list)
    original_index: int = 0
    index: int = 0

    _KEYS = {
        "learning_path": "learningPath",
        "required_for": "requiredFor",
        "related_questions": "relatedQuestions",
        "related_tasks": "relatedTasks",
        "interview_relevance": "interviewRelevance",
        "interview_frequency": "interviewFrequency",
        "question_type": "questionType",
        "analysis_points": "analysisPoints",
        "key_concepts": "keyConcepts",
        "evaluation_criteria": "evaluationCriteria",
        "related_concepts": "relatedConcepts",
        "original_index": "originalIndex",
    }

    @property
    def relevance(self) -> Optional[int]:
        """Kind-dependent importance: questions carry frequency, others relevance."""
        if self.kind == "question":
            return self.interview_frequency
        return self.interview_relevance

    @property
    def primary_technology(self) -> Optional[str]:
        return self.technology[0] if self.technology else None

    @property
    def module_id(self) -> str:
        tech = self.primary_technology
        return tech.lower() if tech else "default"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "type": self.kind}
        for name in self.__dataclass_fields__:
            if name in ("id", "kind"):
                continue
            value = getattr(self, name)
            if value is None:
                continue
            if value == [] and name not in ("tags", "technology", "prerequisites"):
                continue
            data[self._KEYS.get(name, name)] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataRecord':
        def get(name: str, default: Any = None) -> Any:
            return data.get(cls._KEYS.get(name, name), default)

        return cls(
            id=str(data.get("id", "")),
            kind=str(data.get("type") or data.get("kind") or "theory"),
            title=str(data.get("title") or ""),
            tags=to_str_list(data.get("tags")),
            technology=to_str_list(data.get("technology")),
            complexity=to_int(data.get("complexity")),
            learning_path=get("learning_path"),
            prerequisites=to_str_list(data.get("prerequisites")),
            required_for=to_str_list(get("required_for")),
            related_questions=to_str_list(get("related_questions")),
            related_tasks=to_str_list(get("related_tasks")),
            interview_relevance=to_int(get("interview_relevance")),
            interview_frequency=to_int(get("interview_frequency")),
            difficulty=data.get("difficulty"),
            level=data.get("level"),
            topic=data.get("topic"),
            question_type=get("question_type"),
            analysis_points=to_str_list(get("analysis_points")),
            key_concepts=to_str_list(get("key_concepts")),
            evaluation_criteria=to_str_list(get("evaluation_criteria")),
            related_concepts=to_str_list(get("related_concepts")),
            original_index=to_int(get("original_index")) or 0,
            index=to_int(data.get("index")) or 0,
        )


@dataclass
class GraphEdge:
    """Directed dependency edge: ``source`` is learned before ``target``."""
    source: str
    target: str
    type: str = "prerequisite"

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "target": self.target, "type": self.type}


@dataclass
class SimilarityEdge:
    source: str
    target: str
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "target": self.target, "weight": round(self.weight, 4)}


@dataclass
class ItemScore:
    """Deterministic ranking components for one item, each in [0, 1]."""
    id: str
    index: int
    depth: int
    prerequisite_depth: float
    difficulty_relevance: float
    thematic_cohesion: float
    composite_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "index": self.index,
            "depth": self.depth,
            "prerequisiteDepth": round(self.prerequisite_depth, 6),
            "difficultyRelevance": round(self.difficulty_relevance, 6),
            "thematicCohesion": round(self.thematic_cohesion, 6),
            "compositeScore": round(self.composite_score, 6),
        }


@dataclass
class Chunk:
    """Contiguous slice of the metadata sequence, ``[start_index, end_index]`` inclusive."""
    chunk_id: str
    start_index: int
    end_index: int
    items: List[MetadataRecord]
    estimated_tokens: int = 0
    estimated_bytes: int = 0

    @property
    def item_count(self) -> int:
        return len(self.items)

    def summary(self) -> Dict[str, Any]:
        return {
            "chunkId": self.chunk_id,
            "startIndex": self.start_index,
            "endIndex": self.end_index,
            "itemCount": self.item_count,
            "estimatedTokens": self.estimated_tokens,
            "estimatedBytes": self.estimated_bytes,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["items"] = [item.to_dict() for item in self.items]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Chunk':
        return cls(
            chunk_id=data["chunkId"],
            start_index=int(data["startIndex"]),
            end_index=int(data["endIndex"]),
            items=[MetadataRecord.from_dict(item) for item in data.get("items", [])],
            estimated_tokens=int(data.get("estimatedTokens", 0)),
            estimated_bytes=int(data.get("estimatedBytes", 0)),
        )


@dataclass
class ClusterItem:
    index: int
    id: str
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "id": self.id, "reason": self.reason}


@dataclass
class ThematicCluster:
    """A thematic grouping with an internal learning order."""
    name: str
    description: str = ""
    items: List[ClusterItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ThematicCluster':
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            items=[
                ClusterItem(
                    index=to_int(item.get("index")),
                    id=str(item.get("id", "")),
                    reason=str(item.get("reason") or item.get("clusterPositionReason") or ""),
                )
                for item in data.get("items", [])
            ],
        )


@dataclass
class ProcessedChunkResult:
    chunk_id: str
    start_index: int
    end_index: int
    clusters: List[ThematicCluster]
    source: str = "llm"
    attempts: int = 1

    @property
    def item_count(self) -> int:
        return sum(len(cluster.items) for cluster in self.clusters)

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    def ordered_indexes(self) -> List[int]:
        return [item.index for cluster in self.clusters for item in cluster.items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunkId": self.chunk_id,
            "startIndex": self.start_index,
            "endIndex": self.end_index,
            "itemCount": self.item_count,
            "clusterCount": self.cluster_count,
            "source": self.source,
            "attempts": self.attempts,
            "clusters": [cluster.to_dict() for cluster in self.clusters],
        }


@dataclass
class AggregatedItem:
    """Mutable sequence entry carried through aggregation, sequencing and interleaving."""
    index: int
    id: Optional[str] = None
    module_id: Optional[str] = None
    complexity: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    is_related_item: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"index": self.index}
        if self.id is not None:
            data["id"] = self.id
        if self.module_id is not None:
            data["moduleId"] = self.module_id
        if self.complexity is not None:
            data["complexity"] = self.complexity
        data["tags"] = list(self.tags)
        if self.is_related_item is not None:
            data["isRelatedItem"] = self.is_related_item
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AggregatedItem':
        item_id = data.get("id")
        related = data.get("isRelatedItem")
        return cls(
            index=to_int(data.get("index")) or 0,
            id=str(item_id) if item_id not in (None, "") else None,
            module_id=data.get("moduleId"),
            complexity=to_int(data.get("complexity")),
            tags=to_str_list(data.get("tags")),
            is_related_item=bool(related) if related is not None else None,
        )


@dataclass
class CurriculumItem:
    """Final curriculum entry: sequence fields plus the full content payload."""
    index: int
    id: str
    type: str
    title: str
    content: Any
    description: str = ""
    module_id: Optional[str] = None
    complexity: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    prerequisites: List[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    is_related_item: bool = False
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "index": self.index,
            "id": self.id,
            "type": self.type,
            "moduleId": self.module_id,
            "complexity": self.complexity,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "tags": self.tags,
            "prerequisites": self.prerequisites,
            "isRelatedItem": self.is_related_item,
        }
        if self.parent_id:
            data["parentId"] = self.parent_id
        if self.is_fallback:
            data["isFallback"] = True
        return data
