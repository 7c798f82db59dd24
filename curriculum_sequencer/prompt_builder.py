"""
Prompt rendering for chunk clustering and sequence refinement.
"""

import json
import logging
from typing import Any, Dict, List, Sequence

from .records import Chunk, MetadataRecord
from .tokens import count_tokens

logger = logging.getLogger(__name__)

PROMPT_FIELDS = [
    "index", "id", "type", "title", "tags", "technology", "prerequisites",
    "complexity", "interviewRelevance", "interviewFrequency", "learningPath",
]

CLUSTERING_TEMPLATE = """You are an expert curriculum designer with deep knowledge of learning progressions.
You have {itemCount} content items (indexes {startIndex}-{endIndex}), each with these metadata fields: {metadataFields}.

Your task:
1. CLUSTERING: group the items into focused thematic clusters (for example "JavaScript Closures", "React Hooks", "CSS Grid").
2. SEQUENCING: within each cluster, order the items from absolute beginner to expert, respecting prerequisites.

Return ONLY a JSON object with this exact structure:
{{
  "clusters": [
    {{
      "name": "Specific cluster name",
      "description": "What the cluster covers and why it matters",
      "items": [
        {{"index": 123, "id": "item_id", "reason": "Why the item sits at this position"}}
      ]
    }}
  ]
}}

Rules:
- Every index from {startIndex} to {endIndex} must appear exactly once across all clusters.
- Do not invent indexes or ids; copy them from the items below.
- Every cluster needs a non-empty name and at least one item.
- Output valid JSON only, with no text before or after it.

Items:
{items}
"""

REFINEMENT_TEMPLATE = """You are an expert curriculum designer reviewing a learning sequence of {itemCount} items.
The current order is given as a list of item indexes, followed by compact item metadata.

Improve the order so that foundational material comes first, related topics stay together
and difficulty rises gradually. Keep every prerequisite before the items that need it.

Return ONLY a JSON array containing exactly the same indexes, each once, in the improved order.

Current order:
{order}

Items:
{items}
"""


def project_record(record: MetadataRecord, fields: Sequence[str] = PROMPT_FIELDS) -> Dict[str, Any]:
    """Reduce a metadata record to the fields the model needs for judgment."""
    data = record.to_dict()
    return {name: data[name] for name in fields if name in data}


class PromptBuilder:
    """Renders clustering and refinement requests."""

    def __init__(self, max_prompt_tokens: int = 1000000, token_encoding: str = "cl100k_base",
                 fields: Sequence[str] = PROMPT_FIELDS, template: str = CLUSTERING_TEMPLATE):
        self.max_prompt_tokens = max_prompt_tokens
        self.token_encoding = token_encoding
        self.fields = list(fields)
        self.template = template

    def build_clustering_prompt(self, chunk: Chunk) -> str:
        items = [project_record(record, self.fields) for record in chunk.items]
        prompt = self.template.format(
            itemCount=chunk.item_count,
            startIndex=chunk.start_index,
            endIndex=chunk.end_index,
            metadataFields=", ".join(self.fields),
            items=json.dumps(items, ensure_ascii=False, indent=1),
        )
        self._check_budget(prompt, chunk.chunk_id)
        return prompt

    def build_refinement_prompt(self, order: List[int], records: List[MetadataRecord]) -> str:
        items = [
            project_record(record, ("index", "id", "type", "title", "complexity", "learningPath"))
            for record in records
        ]
        prompt = REFINEMENT_TEMPLATE.format(
            itemCount=len(order),
            order=json.dumps(order),
            items=json.dumps(items, ensure_ascii=False),
        )
        self._check_budget(prompt, "refinement")
        return prompt

    def estimate_tokens(self, prompt: str) -> int:
        return count_tokens(prompt, self.token_encoding)

    def _check_budget(self, prompt: str, label: str) -> None:
        tokens = self.estimate_tokens(prompt)
        if tokens > self.max_prompt_tokens:
            logger.warning(
                f"Prompt for {label} is ~{tokens} tokens, above the {self.max_prompt_tokens} token budget"
            )
