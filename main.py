#!/usr/bin/env python3
"""
TagQuest
========
Entry point for running the CLI from a checkout without installing it.
"""
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tagquest.cli import main

if __name__ == '__main__':
    sys.exit(main())
