"""
Cached permission lookups for communities.

Resolves which users are approved contributors or moderators of a
community, memoizing each roster for a fixed window so moderation checks
do not hit the hosting platform's API on every event.

Lookups fail open: if the permission provider errors, the caller gets an
empty set and proceeds as if the user has no special standing.
"""

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Iterable, Optional, Protocol

from .ttl_cache import DEFAULT_TTL_SECONDS, CacheStats, TTLCache, now_millis

if TYPE_CHECKING:
    from modguard.config.loader import AppConfig

logger = logging.getLogger(__name__)

PermissionSet = FrozenSet[str]

SKIP_APPROVED = "approved"
SKIP_MODERATOR = "moderator"
SKIP_WHITELISTED = "whitelisted"


class PermissionProvider(Protocol):
    """Source of community membership rosters."""

    def list_approved_users(self, community: str) -> Iterable[str]:
        ...

    def list_moderators(self, community: str) -> Iterable[str]:
        ...


@dataclass(frozen=True)
class PermissionCacheStats:
    """Stats for both permission caches."""
    approved_users: CacheStats
    moderators: CacheStats


def normalize_usernames(usernames: Iterable[str]) -> PermissionSet:
    """Lowercase usernames into an immutable set."""
    return frozenset(name.lower() for name in usernames)


def _normalize_whitelist(usernames: Iterable[str]) -> PermissionSet:
    return normalize_usernames(name.strip() for name in usernames if name.strip())


class PermissionResolver:
    """Approved-user and moderator lookups backed by two TTL caches.

    The returned sets are frozen; the same object is shared by every
    caller within a TTL window.
    """

    def __init__(
        self,
        provider: PermissionProvider,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        failure_backoff_seconds: float = 0,
        clock: Callable[[], int] = now_millis,
        approved_cache: Optional[TTLCache[str, PermissionSet]] = None,
        moderator_cache: Optional[TTLCache[str, PermissionSet]] = None,
        whitelist: Iterable[str] = ()
    ):
        """Create a resolver.

        Args:
            provider: Permission provider queried on cache misses
            ttl_seconds: Lifetime of a fetched roster
            failure_backoff_seconds: After a failed fetch, skip the provider
                for this key until the backoff elapses. 0 retries every call.
            clock: Returns the current time in epoch milliseconds
            approved_cache: Cache to use for approved users
            moderator_cache: Cache to use for moderators
            whitelist: Usernames that always bypass moderation
        """
        if failure_backoff_seconds < 0:
            raise ValueError("failure_backoff_seconds must be >= 0")

        self.provider = provider
        self.whitelist = _normalize_whitelist(whitelist)
        self.failure_backoff_ms = int(failure_backoff_seconds * 1000)
        self._clock = clock
        self.approved_cache = approved_cache or TTLCache(
            ttl_seconds, clock=clock, name="approved-users"
        )
        self.moderator_cache = moderator_cache or TTLCache(
            ttl_seconds, clock=clock, name="moderators"
        )
        # (roster kind, community) -> time of last failed fetch
        self._failures: Dict[tuple, int] = {}
        self._failures_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        provider: PermissionProvider,
        config: "AppConfig",
        clock: Callable[[], int] = now_millis
    ) -> "PermissionResolver":
        """Create a resolver using the cache and whitelist settings of a loaded config."""
        return cls(
            provider,
            ttl_seconds=config.cache.permission_ttl_seconds,
            failure_backoff_seconds=config.cache.failure_backoff_seconds,
            clock=clock,
            whitelist=config.whitelist
        )

    def get_approved_users(self, community: str) -> PermissionSet:
        """Approved contributors of a community, lowercased."""
        return self._resolve(
            "approved users", community, self.approved_cache,
            self.provider.list_approved_users
        )

    def get_moderators(self, community: str) -> PermissionSet:
        """Moderators of a community, lowercased."""
        return self._resolve(
            "moderators", community, self.moderator_cache,
            self.provider.list_moderators
        )

    def is_approved(self, community: str, username: str) -> bool:
        return username.lower() in self.get_approved_users(community)

    def is_moderator(self, community: str, username: str) -> bool:
        return username.lower() in self.get_moderators(community)

    def should_skip_moderation(
        self,
        community: str,
        username: str,
        whitelist: Optional[Iterable[str]] = None
    ) -> Optional[str]:
        """Decide whether an author's content can bypass moderation.

        Checks approved users, then moderators, then the whitelist. A
        failed lookup counts as "not a member", so the content is
        moderated normally.

        Args:
            community: Community the content was posted in
            username: Author of the content
            whitelist: Usernames that always bypass moderation. Defaults to
                the resolver's own whitelist.

        Returns:
            The reason for skipping, or None if the content must be moderated
        """
        allowed = self.whitelist if whitelist is None else _normalize_whitelist(whitelist)
        if self.is_approved(community, username):
            reason = SKIP_APPROVED
        elif self.is_moderator(community, username):
            reason = SKIP_MODERATOR
        elif username.lower() in allowed:
            reason = SKIP_WHITELISTED
        else:
            return None

        logger.info("Skipping %s user %s in %s", reason, username, community)
        return reason

    def reset(self) -> None:
        """Clear both caches and any failure backoff state."""
        self.approved_cache.reset()
        self.moderator_cache.reset()
        with self._failures_lock:
            self._failures.clear()

    def stats(self) -> PermissionCacheStats:
        return PermissionCacheStats(
            approved_users=self.approved_cache.stats(),
            moderators=self.moderator_cache.stats()
        )

    def _resolve(
        self,
        kind: str,
        community: str,
        cache: TTLCache[str, PermissionSet],
        list_fn: Callable[[str], Iterable[str]]
    ) -> PermissionSet:
        failure_key = (kind, community)
        if self._in_backoff(failure_key):
            logger.debug("Backing off %s lookup for %s", kind, community)
            return frozenset()

        def fetch(name: str) -> PermissionSet:
            usernames = normalize_usernames(list_fn(name))
            logger.info("Fetched %d %s for %s", len(usernames), kind, name)
            return usernames

        try:
            result = cache.get(community, fetch)
        except Exception:
            logger.exception("Failed to fetch %s for %s", kind, community)
            if self.failure_backoff_ms > 0:
                with self._failures_lock:
                    self._failures[failure_key] = self._clock()
            return frozenset()

        if self.failure_backoff_ms > 0:
            with self._failures_lock:
                self._failures.pop(failure_key, None)
        return result

    def _in_backoff(self, failure_key: tuple) -> bool:
        if self.failure_backoff_ms <= 0:
            return False
        with self._failures_lock:
            failed_at = self._failures.get(failure_key)
        if failed_at is None:
            return False
        return self._clock() - failed_at < self.failure_backoff_ms
