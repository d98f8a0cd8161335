#!/usr/bin/env python3
"""
main.py - Quick-start entry point.

    python main.py convert photo.jpg -s cga -o out.png

Or use the full CLI:

    python -m retroimg.cli --help
    python -m retroimg.cli compare photo.jpg
"""

from retroimg.cli import app

if __name__ == "__main__":
    app()
