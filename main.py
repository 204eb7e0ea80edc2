#!/usr/bin/env python3
"""PomoSmart — entry point.

Run with:
    python main.py serve
    python -m pomosmart serve
"""

import sys

from pomosmart.__main__ import main


if __name__ == "__main__":
    sys.exit(main())
