#!/usr/bin/env python3
"""
Step 5: Thematic Clustering

Sends every chunk to the model for clustering and ordering, retrying
incomplete replies. Without a model (--no-llm or no API key) chunks are
clustered deterministically.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.clustering_service import AIClusteringService


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 5: Thematic Clustering")
    add_common_arguments(parser, llm=True)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step5_cluster_chunks")
    return run_phase(logger, "Step 5: Thematic Clustering", AIClusteringService(config, logger).process_all)


if __name__ == "__main__":
    exit(main())
