"""
Command-line plumbing shared by the phase scripts and the pipeline runner.
"""

import argparse
from typing import Any, Callable, Dict, Tuple

from .curriculum_utils import CurriculumConfig, CurriculumLogger, load_config
from .errors import CurriculumError


def add_common_arguments(parser: argparse.ArgumentParser, llm: bool = False) -> argparse.ArgumentParser:
    parser.add_argument("--config", "-c", default=None,
                        help="JSON configuration file")
    parser.add_argument("--database", "-d", default=None,
                        help="Content store path (overrides config)")
    parser.add_argument("--output-dir", "-o", default=None,
                        help="Directory for pipeline artifacts (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    if llm:
        parser.add_argument("--no-llm", action="store_true",
                            help="Disable model calls and use deterministic fallbacks")
    return parser


def config_from_args(args: argparse.Namespace, logger_name: str) -> Tuple[CurriculumConfig, CurriculumLogger]:
    """Build the configuration and logger for a command-line run."""
    config = load_config(args.config)
    if args.database:
        config.database_path = args.database
    if args.output_dir:
        config.output_dir = args.output_dir
    if getattr(args, "no_llm", False):
        config.use_llm = False
    if args.verbose:
        config.log_level = "DEBUG"

    return config, CurriculumLogger(logger_name, config.log_level)


def run_phase(logger: CurriculumLogger, name: str, phase: Callable[[], Dict[str, Any]]) -> int:
    """Run one phase with timing; returns a process exit code."""
    try:
        logger.start_timer(name)
        stats = phase()
        logger.end_timer(name)
    except KeyboardInterrupt:
        logger.error(f"{name} interrupted by user")
        return 130
    except CurriculumError as e:
        logger.error(f"{name} failed: {e}")
        return 1

    for key, value in stats.items():
        logger.info(f"  {key}: {value}")
    return 0
