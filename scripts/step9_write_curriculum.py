#!/usr/bin/env python3
"""
Step 9: Curriculum Writing

Resolves the sequence against the content store and writes
curriculum.json.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.curriculum_writer import CurriculumWriter


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 9: Curriculum Writing")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step9_write_curriculum")
    return run_phase(logger, "Step 9: Curriculum Writing", CurriculumWriter(config, logger).write)


if __name__ == "__main__":
    exit(main())
