#!/usr/bin/env python3
"""
Step 10: Quality Validation

Scores the written curriculum and writes quality-report.json.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.quality_validator import CurriculumQualityValidator


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 10: Quality Validation")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step10_validate_quality")
    return run_phase(logger, "Step 10: Quality Validation", CurriculumQualityValidator(config, logger).validate)


if __name__ == "__main__":
    exit(main())
