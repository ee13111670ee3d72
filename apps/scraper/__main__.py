"""
Scraper Module Entry Point

Allows execution via: python -m apps.scraper

Delegates to the scheduler for all execution modes (run once and scheduled).
"""

import asyncio

from apps.scraper.scheduler import main

if __name__ == "__main__":
    asyncio.run(main())
