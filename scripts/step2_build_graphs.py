#!/usr/bin/env python3
"""
Step 2: Graph Construction

Builds the prerequisite dependency graph and the tag/path similarity
graph from metadata.json.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.graph_builder import GraphBuilder


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 2: Graph Construction")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step2_build_graphs")
    return run_phase(logger, "Step 2: Graph Construction", GraphBuilder(config, logger).build)


if __name__ == "__main__":
    exit(main())
