"""
Dashboard data source.

Builds budget snapshots from the cost ledger and memoizes them briefly so
repeated dashboard views do not re-aggregate the ledger.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from modguard.core.budget import BudgetSettings, BudgetSnapshot
from modguard.core.ttl_cache import TTLCache, now_millis
from modguard.storage.repository import CostRepository

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_TTL_SECONDS = 60
_SNAPSHOT_KEY = "snapshot"


def day_start(moment: datetime) -> datetime:
    """Midnight UTC of the day containing moment."""
    return moment.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def month_start(moment: datetime) -> datetime:
    """Midnight UTC on the first of the month containing moment."""
    return day_start(moment).replace(day=1)


class DashboardSource:
    """Supplies BudgetSnapshots for the dashboard.

    Ledger errors propagate to the caller.
    """

    def __init__(
        self,
        repository: CostRepository,
        settings: BudgetSettings,
        ttl_seconds: float = DEFAULT_DASHBOARD_TTL_SECONDS,
        clock: Callable[[], int] = now_millis
    ):
        self.repository = repository
        self.settings = settings
        self._clock = clock
        self._cache: TTLCache[str, BudgetSnapshot] = TTLCache(
            ttl_seconds, clock=clock, name="dashboard"
        )

    def snapshot(self) -> BudgetSnapshot:
        """Current snapshot, rebuilt from the ledger once the cached one expires."""
        return self._cache.get(_SNAPSHOT_KEY, self._build)

    def refresh(self) -> None:
        """Force the next snapshot() to read the ledger."""
        self._cache.reset()

    def _build(self, _key: str) -> BudgetSnapshot:
        now_ms = self._clock()
        now = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)

        snapshot = BudgetSnapshot(
            daily=self.repository.get_provider_costs(since=day_start(now)),
            monthly=self.repository.get_provider_costs(since=month_start(now)),
            settings=self.settings,
            last_updated_ms=now_ms
        )
        logger.debug(
            "Built budget snapshot: day %s, month %s",
            snapshot.daily.total, snapshot.monthly.total
        )
        return snapshot
