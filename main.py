"""
KitBuilder Entry Point

Run with: python main.py
Or, once installed: kitbuilder
"""

import sys

from kitbuilder.main import main

if __name__ == "__main__":
    sys.exit(main())
