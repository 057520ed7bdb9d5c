"""CLI tools for animeHarvest.

- ``python -m src.cli.scrape run`` - scrape the next batch of episode pages.
- ``python -m src.cli.scrape status`` - cursor, item count, recent runs.
- ``python -m src.cli.scrape show-item ID`` - one item and its attempts.
- ``python -m src.cli.scrape set-cursor N`` - operator cursor override.

Heavy imports are deferred inside handlers so ``--help`` stays fast.
"""
