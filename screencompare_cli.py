#!/usr/bin/env python3
"""
screencompare CLI Tool Entry Point
"""

from screencompare.cli import main

if __name__ == "__main__":
    main()
