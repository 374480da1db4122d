#!/usr/bin/env python3
"""
Main entry point for the K-pop profile scraper.

This script runs the CLI from a source checkout.
Usage: python run_scraper.py scrape [options]
"""

import sys
from pathlib import Path

# Add src directory to path so the package imports without installing
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

from kdapi.cli import main

if __name__ == "__main__":
    sys.exit(main())
