"""
Threshold resolver

Passing grades per schema, fetched from the settings store and kept for a
bounded time. Each refresh stores a fresh entry with its timestamp; there
is no locking, the worst case under concurrency is a redundant fetch.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from core.config import get_settings
from core.exceptions import UpstreamUnavailableError
from core.logging import get_logger
from d0_gateway.settings_store import SettingsStore

from .constants import DEFAULT_PASSING_GRADE
from .models import Thresholds

logger = get_logger(__name__, domain="d2")


@dataclass(frozen=True)
class _CacheEntry:
    thresholds: Thresholds
    fetched_at: float


class ThresholdResolver:
    """
    Per-schema time-cached thresholds

    Args:
        store: Settings store; None means defaults only
        ttl_seconds: Cache lifetime, from settings by default
        default_grade: Fallback grade for every level
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        store: Optional[SettingsStore] = None,
        ttl_seconds: Optional[float] = None,
        default_grade: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.store = store
        self.ttl_seconds = settings.threshold_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.default_grade = default_grade if default_grade is not None else settings.default_passing_grade
        self.clock = clock
        self._cache: Dict[str, _CacheEntry] = {}

    def defaults(self, warning: Optional[str] = None) -> Thresholds:
        grade = self.default_grade if self.default_grade is not None else DEFAULT_PASSING_GRADE
        return Thresholds(overall=grade, section=grade, category=grade, from_defaults=True, warning=warning)

    def invalidate(self, schema_id: Optional[str] = None) -> None:
        """Drop one schema's cached thresholds, or all of them"""
        if schema_id is None:
            self._cache.clear()
            logger.info("Threshold cache cleared")
        else:
            self._cache.pop(str(schema_id), None)
            logger.info(f"Threshold cache invalidated for schema {schema_id}")

    def cached(self, schema_id: str) -> Optional[Thresholds]:
        entry = self._cache.get(str(schema_id))
        if entry is None or self.clock() - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry.thresholds

    async def get_thresholds(self, schema_id: Optional[str]) -> Thresholds:
        """
        Thresholds for a schema

        Never raises: an unreachable store yields defaults, which are not
        cached so the next call retries the store.
        """
        if schema_id is None or self.store is None:
            return self.defaults()

        key = str(schema_id)
        hit = self.cached(key)
        if hit is not None:
            return hit

        try:
            overall, section_grades, category = await asyncio.gather(
                self.store.get_passing_grade(key),
                self.store.get_section_grades(key),
                self.store.get_category_grade(key),
            )
        except UpstreamUnavailableError as e:
            warning = f"Passing grades unavailable, using default {self.default_grade}: {e.message}"
            logger.warning(warning, extra={"schema_id": key})
            return self.defaults(warning=warning)

        thresholds = Thresholds(
            overall=overall if overall is not None else self.default_grade,
            section=self.default_grade,
            category=category if category is not None else self.default_grade,
            section_overrides=dict(section_grades or {}),
            from_defaults=overall is None and category is None and not section_grades,
        )
        self._cache[key] = _CacheEntry(thresholds=thresholds, fetched_at=self.clock())
        return thresholds

    def cached_schemas(self) -> List[str]:
        return list(self._cache)
