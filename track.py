#!/usr/bin/env python3
"""Entry point for the job application tracker CLI.

    python track.py add "Backend Engineer" posting.txt --url https://...
    python track.py list
    python track.py sync-export
"""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobtracker.cli import main

if __name__ == "__main__":
    sys.exit(main())
