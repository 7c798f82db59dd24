"""
Curriculum Pipeline Orchestrator

Runs the phases in order, in-process, each reading the previous phase's
artifact from the output directory:

1. Metadata extraction        6. Aggregation
2. Graph construction         7. Sequencing
3. Scoring                    8. Content interleaving
4. Chunking                   9. Curriculum writing
5. Thematic clustering       10. Quality validation

Features:
- Step selection (start/end/skip) and dry runs
- Required-input checks before each step, so a failed step writes nothing
- Execution and performance reports
- Artifact status inspection to find where a run can resume
"""

import argparse
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .aggregator import Aggregator
from .chunk_manager import ChunkManager
from .cli import add_common_arguments, config_from_args
from .clustering_service import AIClusteringService
from .content_interleaver import ContentInterleaver
from .curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager, create_performance_report
from .curriculum_writer import CurriculumWriter
from .errors import CurriculumError
from .graph_builder import GraphBuilder
from .llm_client import LLMClient
from .metadata_extractor import MetadataExtractor
from .quality_validator import CurriculumQualityValidator
from .score_calculator import ScoreCalculator
from .sequencer import Sequencer


@dataclass
class PipelineStep:
    """Represents a single step in the curriculum pipeline."""
    step_number: int
    name: str
    input_artifact: str
    output_artifact: str
    description: str
    runner: Callable[[], Dict[str, Any]]
    required: bool = True
    dependencies: List[int] = field(default_factory=list)


@dataclass
class ExecutionResult:
    """Results from executing a pipeline step."""
    step: PipelineStep
    success: bool
    execution_time: float
    output_created: bool
    stats: Dict[str, Any] = field(default_factory=dict)
    error_message: str = ""


class CurriculumPipeline:
    """Main orchestrator for the curriculum pipeline."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger,
                 llm_client: Optional[LLMClient] = None):
        self.config = config
        self.logger = logger
        self.file_manager = FileManager(logger)
        self._llm_client = llm_client

        self.steps = self._define_pipeline_steps()
        self.execution_results: List[ExecutionResult] = []
        self.pipeline_start_time: Optional[float] = None

    @property
    def llm_client(self) -> Optional[LLMClient]:
        """Shared client for the model-assisted steps, built on first use."""
        if self._llm_client is None and self.config.use_llm:
            self._llm_client = LLMClient(self.config, self.logger)
        return self._llm_client

    def _define_pipeline_steps(self) -> List[PipelineStep]:
        config, logger = self.config, self.logger
        return [
            PipelineStep(1, "Metadata Extraction", "database", "metadata",
                         "Flatten the content store into compact metadata records",
                         lambda: MetadataExtractor(config, logger).extract()),
            PipelineStep(2, "Graph Construction", "metadata", "graphs",
                         "Build the dependency graph and the similarity graph",
                         lambda: GraphBuilder(config, logger).build(), dependencies=[1]),
            PipelineStep(3, "Scoring", "metadata", "scores",
                         "Score items by prerequisite depth, difficulty and cohesion",
                         lambda: ScoreCalculator(config, logger).calculate(), dependencies=[1, 2]),
            PipelineStep(4, "Chunking", "metadata", "chunks_summary",
                         "Partition metadata into size-bounded chunks",
                         lambda: ChunkManager(config, logger).create_chunks(), dependencies=[1]),
            PipelineStep(5, "Thematic Clustering", "chunks_summary", "chunks_processed",
                         "Cluster and order each chunk with the model, validating completeness",
                         lambda: AIClusteringService(config, logger, self.llm_client).process_all(),
                         dependencies=[4]),
            PipelineStep(6, "Aggregation", "results_dir", "aggregated",
                         "Merge chunk results, deduplicate and resolve cross-chunk dependencies",
                         lambda: Aggregator(config, logger).aggregate(), dependencies=[5]),
            PipelineStep(7, "Sequencing", "aggregated", "ordered",
                         "Refine the order and enforce prerequisites within modules",
                         lambda: Sequencer(config, logger, self.llm_client).sequence(), dependencies=[6]),
            PipelineStep(8, "Content Interleaving", "ordered", "interleaved",
                         "Place related questions and tasks after their theory items",
                         lambda: ContentInterleaver(config, logger).interleave(), dependencies=[7]),
            PipelineStep(9, "Curriculum Writing", "interleaved", "curriculum",
                         "Resolve items against the content store and write the curriculum",
                         lambda: CurriculumWriter(config, logger).write(), dependencies=[8]),
            PipelineStep(10, "Quality Validation", "curriculum", "quality_report",
                         "Score prerequisite ordering, practice placement and progression",
                         lambda: CurriculumQualityValidator(config, logger).validate(),
                         required=False, dependencies=[9]),
        ]

    def _artifact_path(self, name: str) -> Path:
        if name == "database":
            return Path(self.config.database_path)
        return self.config.artifact_path(name)

    def validate_input(self, step: PipelineStep) -> bool:
        input_path = self._artifact_path(step.input_artifact)
        if not input_path.exists():
            self.logger.error(f"Input missing for Step {step.step_number}: {input_path}")
            return False
        return True

    def check_dependencies(self, step: PipelineStep) -> bool:
        """Dependencies run earlier in this invocation must have succeeded."""
        for dep_step_num in step.dependencies:
            dep_result = next(
                (r for r in self.execution_results if r.step.step_number == dep_step_num),
                None
            )
            if dep_result is not None and not dep_result.success:
                self.logger.error(f"Dependency Step {dep_step_num} failed")
                return False
        return True

    def execute_step(self, step: PipelineStep, dry_run: bool = False) -> ExecutionResult:
        self.logger.info(f"Starting Step {step.step_number}: {step.name}")
        self.logger.debug(f"Description: {step.description}")

        if not self.check_dependencies(step):
            return ExecutionResult(step, False, 0.0, False, error_message="Dependency check failed")

        if dry_run:
            self.logger.info(f"DRY RUN - Would run {step.name}: "
                             f"{self._artifact_path(step.input_artifact)} -> "
                             f"{self._artifact_path(step.output_artifact)}")
            return ExecutionResult(step, True, 0.0, False, error_message="Dry run - not executed")

        if not self.validate_input(step):
            return ExecutionResult(step, False, 0.0, False, error_message="Input file missing")

        start_time = time.time()
        self.logger.start_timer(step.name)
        try:
            stats = step.runner()
        except (CurriculumError, OSError, ValueError) as e:
            execution_time = time.time() - start_time
            self.logger.end_timer(step.name)
            self.logger.error(f"Step {step.step_number} failed: {e}")
            return ExecutionResult(step, False, execution_time,
                                   self._artifact_path(step.output_artifact).exists(),
                                   error_message=str(e))

        self.logger.end_timer(step.name)
        execution_time = time.time() - start_time
        return ExecutionResult(step, True, execution_time,
                               self._artifact_path(step.output_artifact).exists(), stats=stats)

    def run_pipeline(self, start_step: int = 1, end_step: int = 10,
                     skip_steps: Optional[List[int]] = None, dry_run: bool = False) -> bool:
        """Run the complete pipeline or a subset of steps."""
        skip_steps = skip_steps or []

        self.pipeline_start_time = time.time()
        self.logger.info("Starting Curriculum Pipeline")
        self.logger.info(f"Steps to execute: {start_step} to {end_step}")
        self.logger.info(f"Skipping steps: {skip_steps if skip_steps else 'None'}")
        self.logger.info(f"Output directory: {self.config.output_dir}")
        if dry_run:
            self.logger.info("DRY RUN MODE - No actual execution")

        steps_to_run = [
            step for step in self.steps
            if start_step <= step.step_number <= end_step
            and step.step_number not in skip_steps
        ]
        if not steps_to_run:
            self.logger.error("No steps to execute")
            return False

        overall_success = True
        for step in steps_to_run:
            result = self.execute_step(step, dry_run)
            self.execution_results.append(result)

            if result.success:
                self.logger.info(f"✓ Step {step.step_number} completed in {result.execution_time:.2f}s")
                continue

            self.logger.error(f"✗ Step {step.step_number} failed: {result.error_message}")
            overall_success = False
            if step.required:
                self.logger.error("Required step failed - stopping pipeline")
                break
            self.logger.warning("Optional step failed - continuing pipeline")

        self._generate_execution_report()
        if not dry_run:
            create_performance_report(self.logger.performance_data,
                                      self.config.artifact_path("performance_report"))
        return overall_success

    def _generate_execution_report(self) -> None:
        total_time = time.time() - self.pipeline_start_time if self.pipeline_start_time else 0
        successful = [r for r in self.execution_results if r.success]
        failed = [r for r in self.execution_results if not r.success]

        self.logger.info("=" * 60)
        self.logger.info("PIPELINE EXECUTION REPORT")
        self.logger.info("=" * 60)
        self.logger.info(f"Total execution time: {total_time:.2f}s")
        self.logger.info(f"Steps executed: {len(self.execution_results)}")
        self.logger.info(f"Successful steps: {len(successful)}")
        self.logger.info(f"Failed steps: {len(failed)}")

        for result in self.execution_results:
            status = "✓ SUCCESS" if result.success else "✗ FAILED"
            self.logger.info(f"  Step {result.step.step_number} {result.step.name}: "
                             f"{status} ({result.execution_time:.2f}s)")
            if not result.success:
                self.logger.info(f"    Error: {result.error_message}")
            elif result.output_created:
                self.logger.info(f"    Output: {self._artifact_path(result.step.output_artifact)}")

        self.logger.log_performance_summary()
        self.logger.info("=" * 60)

    def status(self) -> Dict[str, Any]:
        """Existence, size and embedded stats of every step's output artifact."""
        steps = []
        next_step = None
        for step in self.steps:
            path = self._artifact_path(step.output_artifact)
            entry: Dict[str, Any] = {
                "step": step.step_number,
                "name": step.name,
                "artifact": str(path),
                "exists": path.exists(),
            }
            if path.exists():
                entry["sizeBytes"] = path.stat().st_size
                entry["stats"] = self._artifact_stats(path)
            elif next_step is None:
                next_step = step.step_number
            steps.append(entry)

        return {"outputDir": self.config.output_dir, "steps": steps, "nextStep": next_step}

    def _artifact_stats(self, path: Path) -> Dict[str, Any]:
        data = self.file_manager.load_optional_json(path, default={})
        if not isinstance(data, dict):
            return {"items": len(data)} if isinstance(data, list) else {}
        if isinstance(data.get("stats"), dict):
            return data["stats"]
        if isinstance(data.get("metrics"), dict):
            return data["metrics"]
        return {k: v for k, v in data.items() if isinstance(v, (int, float, str, bool))}


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Curriculum Sequencing Pipeline")
    add_common_arguments(parser, llm=True)
    parser.add_argument("--start-step", type=int, default=1,
                        help="Starting step number (default: 1)")
    parser.add_argument("--end-step", type=int, default=10,
                        help="Ending step number (default: 10)")
    parser.add_argument("--skip-steps", nargs="+", type=int,
                        help="Steps to skip (e.g., --skip-steps 7 10)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would be executed without running")
    parser.add_argument("--status", action="store_true",
                        help="Report which artifacts exist and exit")

    args = parser.parse_args()
    config, logger = config_from_args(args, "curriculum_pipeline")
    pipeline = CurriculumPipeline(config, logger)

    if args.status:
        print(json.dumps(pipeline.status(), indent=2))
        return 0

    try:
        success = pipeline.run_pipeline(
            start_step=args.start_step,
            end_step=args.end_step,
            skip_steps=args.skip_steps or [],
            dry_run=args.dry_run
        )
        return 0 if success else 1

    except KeyboardInterrupt:
        logger.error("Pipeline interrupted by user")
        return 130


if __name__ == "__main__":
    exit(main())
