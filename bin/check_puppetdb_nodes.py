#!/usr/bin/env python3
"""Run the PuppetDB node check from a source checkout."""
import os
import sys

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from puppetcheck.cli import main

if __name__ == "__main__":
    sys.exit(main())
