"""
Phase 5: Thematic Clustering

Sends every chunk to the model, validates the reply and enforces the
completeness contract (the returned indexes are exactly the chunk's range).
A chunk that keeps failing is either clustered deterministically or
reported as failed, depending on ``fallback_on_chunk_failure``.
"""

from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Dict, List, Any, Optional, Tuple

from tqdm import tqdm

from .analyzer import ResponseAnalyzer
from .chunk_manager import ChunkManager
from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from .errors import ChunkProcessingError, LLMError, ResponseValidationError
from .llm_client import LLMClient
from .prompt_builder import PromptBuilder
from .records import (
    LEARNING_PATH_RANK, Chunk, ClusterItem, MetadataRecord, ProcessedChunkResult, ThematicCluster
)
from .score_calculator import load_composite_scores


def fallback_clusters(chunk: Chunk, scores: Optional[Dict[str, float]] = None) -> ProcessedChunkResult:
    """Deterministic clustering by primary technology, learning path, or ``general``."""
    scores = scores or {}
    groups: "OrderedDict[str, List[MetadataRecord]]" = OrderedDict()
    for record in chunk.items:
        key = record.primary_technology or record.learning_path or "general"
        groups.setdefault(key, []).append(record)

    clusters = []
    for name, members in groups.items():
        members = sorted(members, key=lambda r: (
            LEARNING_PATH_RANK.get(r.learning_path or "", 0),
            r.complexity or 0,
            -scores.get(r.id, 0.0),
            r.index,
        ))
        clusters.append(ThematicCluster(
            name=name,
            description=f"Items sharing '{name}', ordered by learning path and complexity",
            items=[ClusterItem(index=r.index, id=r.id, reason="deterministic ordering") for r in members],
        ))

    return ProcessedChunkResult(
        chunk_id=chunk.chunk_id,
        start_index=chunk.start_index,
        end_index=chunk.end_index,
        clusters=clusters,
        source="fallback",
        attempts=0,
    )


class AIClusteringService:
    """Runs clustering for every chunk and writes per-chunk results plus a summary."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger,
                 llm_client: Optional[LLMClient] = None):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)
        self.chunk_manager = ChunkManager(config, logger)
        self.prompt_builder = PromptBuilder(config.max_prompt_tokens, config.token_encoding)
        self.analyzer = ResponseAnalyzer()

        if llm_client is None and config.use_llm:
            llm_client = LLMClient(config, logger)
        self.llm_client = llm_client

    def llm_available(self) -> bool:
        return self.config.use_llm and self.llm_client is not None and self.llm_client.is_available()

    def process_chunk(self, chunk: Chunk) -> ProcessedChunkResult:
        """Cluster one chunk, regenerating the request on invalid or incomplete replies."""
        errors: List[str] = []
        attempts = self.config.completeness_retries

        for attempt in range(1, attempts + 1):
            prompt = self.prompt_builder.build_clustering_prompt(chunk)
            try:
                data = self.llm_client.generate_json(prompt, "object", use_cache=(attempt == 1))
            except LLMError as e:
                raise ChunkProcessingError(chunk.chunk_id, attempt, errors + [str(e)]) from e

            try:
                result = self.analyzer.parse_response(data, chunk, attempts=attempt)
            except ResponseValidationError as e:
                self.logger.warning(
                    f"{chunk.chunk_id}: attempt {attempt}/{attempts} rejected: {'; '.join(e.errors[:3])}"
                )
                errors.extend(e.errors)
                continue

            self.logger.info(
                f"{chunk.chunk_id}: {result.item_count} items in {result.cluster_count} clusters"
            )
            return result

        raise ChunkProcessingError(chunk.chunk_id, attempts, errors)

    def process_all(self) -> Dict[str, Any]:
        """Cluster every chunk listed in ``chunks-summary.json``."""
        chunks = self.chunk_manager.load_chunks()
        scores = load_composite_scores(self.file_manager, self.config)
        use_llm = self.llm_available()
        if not use_llm:
            self.logger.info("LLM unavailable or disabled; using deterministic clustering")

        results_dir = self.config.artifact_path("results_dir")
        results_dir.mkdir(parents=True, exist_ok=True)
        for stale in results_dir.glob("chunk-*.json"):
            stale.unlink()

        outcomes: Dict[str, Tuple[Optional[ProcessedChunkResult], str]] = {}
        if use_llm and self.config.max_workers > 1 and len(chunks) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = {
                    executor.submit(self._cluster_one, chunk, use_llm, scores): chunk.chunk_id
                    for chunk in chunks
                }
                with tqdm(total=len(chunks), desc="Clustering chunks") as pbar:
                    for future in as_completed(futures):
                        outcomes[futures[future]] = future.result()
                        pbar.update(1)
        else:
            for chunk in tqdm(chunks, desc="Clustering chunks", disable=not use_llm):
                outcomes[chunk.chunk_id] = self._cluster_one(chunk, use_llm, scores)

        entries = []
        failed = []
        for chunk in chunks:
            result, status = outcomes[chunk.chunk_id]
            entry = {"chunkId": chunk.chunk_id, "status": status,
                     "startIndex": chunk.start_index, "endIndex": chunk.end_index}
            if result is not None:
                result_path = results_dir / f"{chunk.chunk_id}.json"
                self.file_manager.save_json(result.to_dict(), result_path)
                entry.update({
                    "resultPath": f"{results_dir.name}/{result_path.name}",
                    "itemCount": result.item_count,
                    "clusterCount": result.cluster_count,
                })
            else:
                failed.append(chunk.chunk_id)
            entries.append(entry)

        summary = {
            "totalChunks": len(chunks),
            "processedChunks": sum(1 for e in entries if e["status"] != "failed"),
            "failedChunks": len(failed),
            "fallbackChunks": sum(1 for e in entries if e["status"] == "fallback"),
            "chunks": entries,
            "timestamp": datetime.now().isoformat(),
        }
        output_path = self.config.artifact_path("chunks_processed")
        self.file_manager.save_json(summary, output_path)

        if failed:
            raise ChunkProcessingError(failed[0], self.config.completeness_retries,
                                       [f"{len(failed)} chunk(s) failed: {failed}"])

        stats = {k: v for k, v in summary.items() if k not in ("chunks", "timestamp")}
        stats["outputPath"] = str(output_path)
        return stats

    def _cluster_one(self, chunk: Chunk, use_llm: bool,
                     scores: Dict[str, float]) -> Tuple[Optional[ProcessedChunkResult], str]:
        if not use_llm:
            return fallback_clusters(chunk, scores), "fallback"

        try:
            return self.process_chunk(chunk), "processed"
        except ChunkProcessingError as e:
            if self.config.fallback_on_chunk_failure:
                self.logger.warning(f"{e}; falling back to deterministic clustering")
                return fallback_clusters(chunk, scores), "fallback"
            self.logger.error(str(e))
            return None, "failed"
