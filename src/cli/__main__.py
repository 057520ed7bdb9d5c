# =============================================================================
# src/cli/__main__.py - Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m src.cli run
#
# Delegates to the scrape CLI (scrape.py), the only command-line tool.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.scrape import main

main()
