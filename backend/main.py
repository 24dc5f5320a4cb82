"""
tasklink - Main Entry Point

Run with: python main.py --device /dev/ttyUSB0 list
"""

import sys
from pathlib import Path

# Add backend to path for imports
backend_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))

from tasklink.cli import main


if __name__ == "__main__":
    sys.exit(main())
