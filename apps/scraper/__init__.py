"""
Scraper App - Resumable Wage Data Harvester

Responsibilities:
- Page through the UC annual wage search API for every location x year
- Bounded worker pool with a fixed per-worker delay between requests
- Durable progress ledger so interrupted runs resume without re-fetching
- Ledger reconciliation against snapshot files already on disk
- Optional Redis Pub/Sub event per written snapshot
- Run once, or re-run on a cron schedule via APScheduler

Output:
- <data_dir>/<Location>/wages_<year>.json
- <data_dir>/scrape_progress.json
- Redis event (optional): channel=files.wage_snapshots,
  payload={type, path, location, year, total_records, ts}
"""
