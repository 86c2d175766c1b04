#!/usr/bin/env python3
"""
qi - Main Entry Point

Runs scripts from cached git repositories by name.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from qi.cli import main

if __name__ == "__main__":
    main()
