"""
Scheduler for periodic dataset refresh.

Uses APScheduler to re-download the IRS and OFAC datasets at the
configured interval, keeping the on-disk cache and manifest fresh for the
next process start.
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from redflags.config import config
from redflags.ingestion import DatasetStore


def refresh_job(store: DatasetStore) -> dict:
    """Refresh both datasets once and report the outcome."""
    from redflags.tools import refresh_data

    print(f"\n[{datetime.now()}] Starting scheduled refresh...")
    response = asyncio.run(refresh_data(store, "all"))

    if response.success:
        data = response.data
        for source in ("irs", "ofac"):
            refreshed = data.get(f"{source}_refreshed")
            error = data.get("errors", {}).get(source)
            status = "refreshed" if refreshed else f"kept cached copy ({error})"
            print(f"  {source}: {status}")
    else:
        print(f"  Refresh error: {response.error}")

    print(f"[{datetime.now()}] Refresh complete.\n")
    return response.to_dict()


def start_scheduler(
    foreground: bool = True,
    store: Optional[DatasetStore] = None,
    interval_hours: Optional[int] = None,
    run_now: bool = True,
):
    """
    Start the refresh scheduler.

    Args:
        foreground: If True, run in blocking mode. Otherwise, background.
        store: Store to refresh (defaults to one built from config)
        interval_hours: Override config.refresh_interval_hours
        run_now: Run one refresh before the first interval elapses

    Returns:
        The started BackgroundScheduler when foreground is False.
    """
    if foreground:
        scheduler = BlockingScheduler()
    else:
        scheduler = BackgroundScheduler()

    store = store or DatasetStore()
    interval_hours = interval_hours or config.refresh_interval_hours

    scheduler.add_job(
        refresh_job,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[store],
        id="refresh_job",
        name="Dataset refresh",
        max_instances=1,
        coalesce=True,
    )

    print(f"Scheduler started. Refresh interval: {interval_hours} hours")
    for job in scheduler.get_jobs():
        print(f"  - {job.name}: {job.trigger}")

    if run_now:
        print("\nRunning initial refresh...")
        refresh_job(store)

    if foreground:
        # Handle shutdown gracefully
        def shutdown(signum, frame):
            print("\nShutting down scheduler...")
            scheduler.shutdown(wait=False)
            sys.exit(0)

        signal.signal(signal.SIGINT, shutdown)
        signal.signal(signal.SIGTERM, shutdown)

        print("\nScheduler running. Press Ctrl+C to stop.")
        scheduler.start()
        return None

    scheduler.start()
    return scheduler
