#!/usr/bin/env python3
"""
Step 4: Chunking

Partitions metadata into contiguous chunks that fit the model's
payload limit.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.chunk_manager import ChunkManager


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 4: Chunking")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step4_create_chunks")
    return run_phase(logger, "Step 4: Chunking", ChunkManager(config, logger).create_chunks)


if __name__ == "__main__":
    exit(main())
