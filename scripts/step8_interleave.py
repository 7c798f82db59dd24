#!/usr/bin/env python3
"""
Step 8: Content Interleaving

Places related questions and tasks directly after the theory item
they practice.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.content_interleaver import ContentInterleaver


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 8: Content Interleaving")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step8_interleave")
    return run_phase(logger, "Step 8: Content Interleaving", ContentInterleaver(config, logger).interleave)


if __name__ == "__main__":
    exit(main())
