#!/usr/bin/env python3
"""
AtaBank Console Entry Point

Starts the interactive banking shell against the local SQLite database.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from atabank.shell import main


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
