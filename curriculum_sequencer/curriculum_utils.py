"""
Shared utilities for the curriculum sequencing pipeline.

This module provides common functionality across all pipeline phases:
- Configuration management with JSON files and environment overrides
- Logging utilities with phase timers and performance summaries
- File I/O helpers with whole-file replace semantics
- Performance reporting
"""

import os
import json
import time
import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Any, Optional, Union
from dataclasses import dataclass, asdict, fields
from datetime import datetime

from .errors import InputMissingError, MalformedInputError


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Artifact names resolved against CurriculumConfig.output_dir
ARTIFACT_FILES = {
    "metadata": "metadata.json",
    "graphs": "graphs.json",
    "dependency_graph": "graphs-dependency.json",
    "similarity_graph": "graphs-similarity.json",
    "scores": "scores.json",
    "chunks_dir": "chunks",
    "chunks_summary": "chunks-summary.json",
    "results_dir": "results",
    "chunks_processed": "chunks-processed.json",
    "aggregated": "aggregated-items.json",
    "refined": "refined-items.json",
    "ordered": "ordered-items.json",
    "interleaved": "interleaved-items.json",
    "curriculum": "curriculum.json",
    "quality_report": "quality-report.json",
    "performance_report": "performance-report.json",
}


@dataclass
class CurriculumConfig:
    """Configuration settings for the curriculum sequencing pipeline."""

    # Locations
    database_path: str = "database.json"
    output_dir: str = "curriculum"

    # LLM Settings
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = ""
    use_llm: bool = True
    temperature: float = 0.2
    max_output_tokens: int = 8192
    max_retries: int = 3
    retry_delay: float = 1.0
    request_timeout: int = 120

    # Cache Settings
    cache_enabled: bool = True
    cache_directory: str = "cache"
    cache_ttl_hours: int = 24

    # Graph Settings
    similarity_threshold: float = 0.8
    max_similarity_edges: int = 10000
    max_similarity_group_size: int = 100

    # Scoring Settings
    depth_weight: float = 0.4
    difficulty_weight: float = 0.4
    cohesion_weight: float = 0.2
    optimal_group_ratio: float = 0.1

    # Chunking Settings
    chunk_strategy: str = "tokens"
    target_chunk_count: int = 8
    max_chunk_count: int = 10
    payload_token_limit: int = 32000
    payload_safety_margin: float = 0.8
    max_items_per_chunk: int = 1000
    max_prompt_tokens: int = 1000000
    token_encoding: str = "cl100k_base"  # empty: estimate 4 characters per token

    # Clustering Settings
    completeness_retries: int = 3
    max_workers: int = 1
    fallback_on_chunk_failure: bool = True

    # Aggregation and Sequencing Settings
    max_resolution_iterations: int = 100
    max_chunks: Optional[int] = None
    refine_with_llm: bool = True
    min_refine_items: int = 5

    log_level: str = "INFO"

    def __post_init__(self):
        if self.chunk_strategy not in ("tokens", "even"):
            raise ValueError(f"Unknown chunk strategy: {self.chunk_strategy}")

    def artifact_path(self, name: str) -> Path:
        """Resolve a named pipeline artifact inside the output directory."""
        if name not in ARTIFACT_FILES:
            raise KeyError(f"Unknown artifact: {name}")
        return Path(self.output_dir) / ARTIFACT_FILES[name]

    def llm_enabled(self) -> bool:
        """Whether LLM-assisted phases should attempt external calls."""
        return self.use_llm and bool(self.openai_api_key or os.getenv("OPENAI_API_KEY"))


class CurriculumLogger:
    """Named logger with phase timers and a performance summary."""

    def __init__(self, name: str, log_level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)

        self.performance_data: Dict[str, float] = {}
        self.start_times: Dict[str, float] = {}

    def start_timer(self, operation: str) -> None:
        self.start_times[operation] = time.time()
        self.logger.info(f"Starting {operation}")

    def end_timer(self, operation: str) -> float:
        """Stop the timer for an operation and record its duration."""
        started = self.start_times.pop(operation, None)
        if started is None:
            self.logger.warning(f"Timer for {operation} was not started")
            return 0.0

        duration = time.time() - started
        self.performance_data[operation] = duration
        self.logger.info(f"Completed {operation} in {duration:.2f}s")
        return duration

    def log_performance_summary(self) -> None:
        if not self.performance_data:
            return

        total_time = sum(self.performance_data.values())
        self.logger.info(f"Performance Summary (total {total_time:.2f}s):")
        for operation, duration in sorted(self.performance_data.items(),
                                          key=lambda x: x[1], reverse=True):
            share = (duration / total_time) * 100 if total_time > 0 else 0.0
            self.logger.info(f"  {operation}: {duration:.2f}s ({share:.1f}%)")

    def info(self, message: str) -> None:
        self.logger.info(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)


class FileManager:
    """JSON artifact I/O for pipeline phases."""

    def __init__(self, logger: Union[CurriculumLogger, logging.Logger]):
        self.logger = logger

    def load_json(self, file_path: Union[str, Path]) -> Any:
        """Load a required artifact, failing fast when absent or unparsable."""
        file_path = Path(file_path)

        if not file_path.exists():
            raise InputMissingError(f"Required file not found: {file_path}")

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedInputError(f"Invalid JSON in {file_path}: {e}") from e

    def load_optional_json(self, file_path: Union[str, Path], default: Any = None) -> Any:
        """Load an optional artifact, returning ``default`` when absent or unparsable."""
        file_path = Path(file_path)

        if not file_path.exists():
            self.logger.warning(f"Optional file not found, using defaults: {file_path}")
            return default

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.logger.warning(f"Ignoring malformed optional file {file_path}: {e}")
            return default

    def save_json(self, data: Any, file_path: Union[str, Path], indent: int = 2) -> Path:
        """Replace ``file_path`` with ``data`` in one step."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", dir=str(file_path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=indent, ensure_ascii=False)
            os.replace(tmp_name, file_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self.logger.info(f"Saved data to {file_path}")
        return file_path


def load_items_artifact(file_manager: FileManager, file_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read an item-sequence artifact stored as ``{items: [...]}`` or a bare list."""
    data = file_manager.load_json(file_path)
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        return data["items"]
    if isinstance(data, list):
        return data
    raise MalformedInputError(f"Expected an item list in {file_path}")


def _coerce_env_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def load_config(config_path: Optional[str] = None) -> CurriculumConfig:
    """Load configuration from an optional JSON file, then environment variables."""
    config = CurriculumConfig()
    known = {f.name for f in fields(CurriculumConfig)}

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
            for key, value in config_data.items():
                if key in known:
                    setattr(config, key, value)
        except (OSError, json.JSONDecodeError) as e:
            logging.getLogger(__name__).warning(f"Failed to load config file {config_path}: {e}")

    env_overrides = {
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_BASE_URL": "openai_base_url",
        "CURRICULUM_MODEL": "openai_model",
        "CURRICULUM_DATABASE": "database_path",
        "CURRICULUM_OUTPUT_DIR": "output_dir",
    }
    for env_name, attr in env_overrides.items():
        if os.getenv(env_name):
            setattr(config, attr, os.getenv(env_name))

    if os.getenv("CURRICULUM_USE_LLM") is not None:
        config.use_llm = _coerce_env_bool(os.getenv("CURRICULUM_USE_LLM"))

    config.__post_init__()
    return config


def save_config(config: CurriculumConfig, config_path: str) -> None:
    """Save configuration to file, leaving out the API key."""
    data = asdict(config)
    data["openai_api_key"] = ""

    parent = os.path.dirname(config_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def create_performance_report(performance_data: Dict[str, float],
                              output_path: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """Write per-phase durations to ``output_path``."""
    if not performance_data:
        return None

    report = {
        "timestamp": datetime.now().isoformat(),
        "total_duration": sum(performance_data.values()),
        "operations": performance_data,
        "metrics": {
            "fastest_operation": min(performance_data.items(), key=lambda x: x[1])[0],
            "slowest_operation": max(performance_data.items(), key=lambda x: x[1])[0],
            "average_duration": sum(performance_data.values()) / len(performance_data)
        }
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)

    return report
