"""Allow `python -m pwtest_cli` (used when the CLI respawns itself)."""

from .main import main

main()
