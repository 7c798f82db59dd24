"""
Phase 4: Chunking

Partitions the metadata sequence into contiguous chunks, each submitted to
the model in one request. Two strategies:
- ``even``: a fixed number of chunks whose sizes differ by at most one item
- ``tokens``: running token estimate against a safety fraction of the payload limit
"""

import json
from typing import Dict, List, Any

from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from .errors import MalformedInputError
from .metadata_extractor import load_metadata
from .records import Chunk, MetadataRecord
from .tokens import count_tokens


class ChunkManager:
    """Creates and loads metadata chunks."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)

    def create_chunks(self) -> Dict[str, Any]:
        """Partition ``metadata.json`` and write every chunk plus ``chunks-summary.json``."""
        records = load_metadata(self.file_manager, self.config)
        chunks = self.partition(records)

        chunks_dir = self.config.artifact_path("chunks_dir")
        chunks_dir.mkdir(parents=True, exist_ok=True)
        for stale in chunks_dir.glob("chunk-*.json"):
            stale.unlink()

        entries = []
        for chunk in chunks:
            chunk_path = chunks_dir / f"{chunk.chunk_id}.json"
            self.file_manager.save_json(chunk.to_dict(), chunk_path)
            entries.append({**chunk.summary(), "path": f"{chunks_dir.name}/{chunk_path.name}"})

        summary = {
            "strategy": self.config.chunk_strategy,
            "totalChunks": len(chunks),
            "totalItems": len(records),
            "chunks": entries,
        }
        output_path = self.config.artifact_path("chunks_summary")
        self.file_manager.save_json(summary, output_path)

        self.logger.info(f"Created {len(chunks)} chunks from {len(records)} items")
        return {"totalChunks": len(chunks), "totalItems": len(records), "outputPath": str(output_path)}

    def partition(self, records: List[MetadataRecord]) -> List[Chunk]:
        if not records:
            return []
        if self.config.chunk_strategy == "even":
            count = min(self.config.target_chunk_count, self.config.max_chunk_count, len(records))
            return self.split_even(records, max(count, 1))
        budget = int(self.config.payload_token_limit * self.config.payload_safety_margin)
        return self.split_by_tokens(records, budget)

    def split_even(self, records: List[MetadataRecord], count: int) -> List[Chunk]:
        base, extra = divmod(len(records), count)
        chunks = []
        start = 0
        for n in range(count):
            size = base + (1 if n < extra else 0)
            chunks.append(self._make_chunk(len(chunks) + 1, records[start:start + size]))
            start += size
        return chunks

    def split_by_tokens(self, records: List[MetadataRecord], budget: int) -> List[Chunk]:
        """Greedy contiguous split; an item larger than the budget still gets its own chunk."""
        chunks: List[Chunk] = []
        current: List[MetadataRecord] = []
        current_tokens = 0

        for record in records:
            tokens = self._record_tokens(record)
            if tokens > budget:
                self.logger.warning(f"Item {record.id} alone exceeds the chunk token budget ({tokens} > {budget})")

            if current and (current_tokens + tokens > budget
                            or len(current) >= self.config.max_items_per_chunk):
                chunks.append(self._make_chunk(len(chunks) + 1, current))
                current, current_tokens = [], 0

            current.append(record)
            current_tokens += tokens

        if current:
            chunks.append(self._make_chunk(len(chunks) + 1, current))
        return chunks

    def _record_tokens(self, record: MetadataRecord) -> int:
        return count_tokens(json.dumps(record.to_dict(), ensure_ascii=False), self.config.token_encoding)

    def _make_chunk(self, number: int, items: List[MetadataRecord]) -> Chunk:
        payload = json.dumps([item.to_dict() for item in items], ensure_ascii=False)
        return Chunk(
            chunk_id=f"chunk-{number}",
            start_index=items[0].index,
            end_index=items[-1].index,
            items=list(items),
            estimated_tokens=count_tokens(payload, self.config.token_encoding),
            estimated_bytes=len(payload.encode("utf-8")),
        )

    def load_chunks(self) -> List[Chunk]:
        """Read every chunk listed in ``chunks-summary.json``."""
        summary = self.file_manager.load_json(self.config.artifact_path("chunks_summary"))
        if not isinstance(summary, dict) or not isinstance(summary.get("chunks"), list):
            raise MalformedInputError("chunks-summary.json does not list any chunks")

        chunks_dir = self.config.artifact_path("chunks_dir")
        return [
            Chunk.from_dict(self.file_manager.load_json(chunks_dir / f"{entry['chunkId']}.json"))
            for entry in summary["chunks"]
        ]
