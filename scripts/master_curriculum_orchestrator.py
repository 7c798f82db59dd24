#!/usr/bin/env python3
"""
Master Curriculum Orchestrator

Runs Steps 1-10 of the curriculum pipeline in sequence, from the content
store to the quality report. Same options as the ``curriculum-pipeline``
command:

    python scripts/master_curriculum_orchestrator.py --database database.json
    python scripts/master_curriculum_orchestrator.py --start-step 5 --no-llm
    python scripts/master_curriculum_orchestrator.py --status
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from curriculum_sequencer.pipeline import main


if __name__ == "__main__":
    exit(main())
