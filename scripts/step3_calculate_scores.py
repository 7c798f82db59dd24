#!/usr/bin/env python3
"""
Step 3: Scoring

Computes prerequisite depth, difficulty/relevance and thematic cohesion
scores and writes scores.json sorted by composite score.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.score_calculator import ScoreCalculator


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 3: Scoring")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step3_calculate_scores")
    return run_phase(logger, "Step 3: Scoring", ScoreCalculator(config, logger).calculate)


if __name__ == "__main__":
    exit(main())
