"""Scheduled purging of expired generation cache entries"""

import logging
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autodocops.models.maintenance import PurgeResult
from autodocops.services.generation_cache import GenerationCache

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "cache_purge"


class CacheMaintenance:
    """Drops expired entries from a set of generation caches on an interval"""

    def __init__(self, caches: list[GenerationCache]):
        self.caches = caches
        self._scheduler: BackgroundScheduler | None = None

    def schedule(self, scheduler: BackgroundScheduler, interval_hours: int) -> None:
        """Add (or replace) the purge job; the first run is one interval from now"""
        scheduler.add_job(
            self.purge_once,
            trigger=IntervalTrigger(hours=interval_hours),
            id=PURGE_JOB_ID,
            name="Expired cache entry purge",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler = scheduler
        logger.info(f"Expired cache entries will be purged every {interval_hours}h")

    def unschedule(self) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(PURGE_JOB_ID)
        except JobLookupError:
            logger.warning(f"No {PURGE_JOB_ID} job to remove")
        else:
            logger.info("Cache purge job removed")
        self._scheduler = None

    def purge_once(self) -> PurgeResult:
        """
        Purge every cache once

        Runs on a scheduler thread, so failures come back in the result
        instead of propagating.
        """
        started = datetime.now()
        purged: dict[str, int] = {}
        error: str | None = None

        try:
            for cache in self.caches:
                removed = cache.purge_expired()
                purged[cache.namespace] = purged.get(cache.namespace, 0) + removed
        except Exception as e:
            logger.error(f"Cache purge failed: {e}", exc_info=True)
            error = str(e)

        finished = datetime.now()
        result = PurgeResult(
            success=error is None,
            purged=purged,
            start_time=started,
            end_time=finished,
            duration_seconds=(finished - started).total_seconds(),
            error=error,
        )
        if result.success:
            logger.info(f"Purged {result.total_purged} expired cache entries: {purged}")
        return result
