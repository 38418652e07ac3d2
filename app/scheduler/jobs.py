"""
app/scheduler/jobs.py

APScheduler-based maintenance for the import API process.

Schedule
--------
  scrape_cache_prune  : every SCRAPE_CACHE_PRUNE_INTERVAL_SECONDS (default 5 min)
  rate_limit_sweep    : every minute
  stale_import_reclaim: every minute

Lifecycle
----------
Call ``build_scheduler(container)`` once to get a configured
``BackgroundScheduler``. Start it on app boot; shut it down gracefully on app
shutdown. The scheduler is wired into FastAPI via the ``lifespan`` context in
main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.container import ServiceContainer

logger = logging.getLogger(__name__)

RATE_LIMIT_SWEEP_INTERVAL_SECONDS = 60
STALE_RECLAIM_INTERVAL_SECONDS = 60


def run_cache_prune(container: ServiceContainer) -> int:
    """
    Drop expired scrape results so idle keys do not hold memory until evicted.
    """
    removed = container.scrape_cache.prune()
    if removed:
        logger.info("Scheduler: scrape_cache_prune removed=%d size=%d", removed, len(container.scrape_cache))
    return removed


def run_rate_limit_sweep(container: ServiceContainer) -> int:
    removed = container.scrape_rate_limiter.sweep() + container.import_rate_limiter.sweep()
    if removed:
        logger.debug("Scheduler: rate_limit_sweep removed=%d", removed)
    return removed


def run_stale_job_reclaim(container: ServiceContainer) -> int:
    """
    Fail PROCESSING jobs whose engine stopped writing heartbeats.
    """
    try:
        reclaimed = container.tracker.reclaim_stale(
            timeout_seconds=container.import_settings.stale_job_timeout_seconds,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: stale_import_reclaim failed: %s", exc)
        return 0
    return len(reclaimed)


def build_scheduler(container: ServiceContainer) -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_cache_prune,
        trigger="interval",
        seconds=container.cache_settings.prune_interval_seconds,
        args=[container],
        id="scrape_cache_prune",
        name="Scrape cache prune",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        run_rate_limit_sweep,
        trigger="interval",
        seconds=RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
        args=[container],
        id="rate_limit_sweep",
        name="Rate limit window sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        run_stale_job_reclaim,
        trigger="interval",
        seconds=STALE_RECLAIM_INTERVAL_SECONDS,
        args=[container],
        id="stale_import_reclaim",
        name="Stale import job reclaim",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    return scheduler
