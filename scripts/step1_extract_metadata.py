#!/usr/bin/env python3
"""
Step 1: Metadata Extraction

Reads the nested content store and writes metadata.json, one compact
record per relevant theory item, question and task.
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.cli import add_common_arguments, config_from_args, run_phase
from curriculum_sequencer.metadata_extractor import MetadataExtractor


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Step 1: Metadata Extraction")
    add_common_arguments(parser, llm=False)
    args = parser.parse_args()

    config, logger = config_from_args(args, "step1_extract_metadata")
    return run_phase(logger, "Step 1: Metadata Extraction", MetadataExtractor(config, logger).extract)


if __name__ == "__main__":
    exit(main())
