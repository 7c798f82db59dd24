#!/usr/bin/env python3
"""
Step 7: Sequencing

Optionally refines the aggregated order with the model, then orders
each module so prerequisites come first.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.sequencer import Sequencer


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 7: Sequencing")
    add_common_arguments(parser, llm=True)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step7_sequence")
    return run_phase(logger, "Step 7: Sequencing", Sequencer(config, logger).sequence)


if __name__ == "__main__":
    exit(main())
