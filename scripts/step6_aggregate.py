#!/usr/bin/env python3
"""
Step 6: Aggregation

Merges chunk results, removes duplicates and moves items after their
cross-chunk prerequisites.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.aggregator import Aggregator


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 6: Aggregation")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step6_aggregate")
    return run_phase(logger, "Step 6: Aggregation", Aggregator(config, logger).aggregate)


if __name__ == "__main__":
    exit(main())
