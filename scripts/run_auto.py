#!/usr/bin/env python3
"""
Auto-trading launcher script.

Runs the scheduler with the paper.yaml configuration, so trades are
simulated up to gas estimation and never submitted.
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from trader.runner.pipeline import main


if __name__ == "__main__":
    try:
        sys.exit(
            asyncio.run(
                main(["--config", "configs/paper.yaml", "--profile", "paper", "auto"])
            )
        )
    except KeyboardInterrupt:
        print("\nAuto-trading stopped by user.")
        sys.exit(0)
