"""Path management for pwtest-cli.

Manages the ~/.pwtest/ directory structure.
"""

from pathlib import Path

# Base directory for all pwtest data
PWTEST_DIR = Path.home() / ".pwtest"

# Lock files guarding container creation, one per container name
LOCK_DIR = PWTEST_DIR / "locks"
