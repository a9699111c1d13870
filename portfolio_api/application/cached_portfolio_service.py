import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from portfolio_api.domain.models import EPOCH, RepositoryRecord, SearchResult
from portfolio_api.domain.ports import PortfolioSource
from portfolio_api.infrastructure.memory_cache import MemoryCache, utc_now

logger = logging.getLogger(__name__)

PORTFOLIO_CACHE_KEY = "portfolio"
LAST_ACTIVITY_CACHE_KEY = "last-activity"
CACHE_TTL = timedelta(minutes=10)
PROBE_INTERVAL = timedelta(minutes=1)


class CachedPortfolioService(PortfolioSource):
    """
    Activity-gated cache in front of a PortfolioSource.

    The portfolio is served from memory until either its TTL expires or the
    staleness probe sees account activity newer than the last refresh. The
    probe itself (one events call to the inner source) runs at most
    once per probe interval. Search is never cached.

    The cache holds data for a single account; calls for any other account
    are passed straight through.
    """

    def __init__(
            self,
            inner: PortfolioSource,
            username: str,
            cache_ttl: timedelta = CACHE_TTL,
            probe_interval: timedelta = PROBE_INTERVAL,
            clock: Callable[[], datetime] = utc_now,
            cache: Optional[MemoryCache] = None,
    ):
        self.inner = inner
        self.username = username
        self.cache_ttl = cache_ttl
        self.probe_interval = probe_interval
        self._clock = clock
        self.cache = cache or MemoryCache(clock=clock)
        self._last_refresh = EPOCH
        self._refresh_lock = asyncio.Lock()

    @property
    def last_refresh(self) -> datetime:
        """Time of the last completed staleness check or data refresh; EPOCH after invalidation."""
        return self._last_refresh

    def _is_cached_account(self, account: Optional[str]) -> bool:
        return account is None or account == self.username

    async def compute_portfolio(self, account: Optional[str] = None) -> List[RepositoryRecord]:
        if not self._is_cached_account(account):
            logger.info(f"Portfolio for '{account}' is not cached. Fetching directly.")
            return await self.inner.compute_portfolio(account)

        await self._check_for_updates()

        entry = await self.cache.get(PORTFOLIO_CACHE_KEY)
        if entry is not None:
            logger.info(f"Returning cached portfolio ({len(entry.value)} repositories).")
            return entry.value

        logger.info("No cached portfolio. Fetching fresh data.")
        try:
            portfolio = await self.inner.compute_portfolio(self.username)
        except Exception as e:
            logger.error(f"Failed to refresh cached portfolio: {e}")
            raise

        await self.cache.set(PORTFOLIO_CACHE_KEY, portfolio, self.cache_ttl)
        async with self._refresh_lock:
            self._last_refresh = max(self._last_refresh, self._clock())
        logger.info(f"Portfolio cached ({len(portfolio)} repositories).")

        return portfolio

    async def search(
        self,
        repository_name: Optional[str] = None,
        language: Optional[str] = None,
        username: Optional[str] = None,
    ) -> SearchResult:
        logger.info("Running repository search in real time (not cached).")
        return await self.inner.search(repository_name, language, username)

    async def last_activity(self, account: Optional[str] = None) -> Optional[datetime]:
        if not self._is_cached_account(account):
            return await self.inner.last_activity(account)

        entry = await self.cache.get(LAST_ACTIVITY_CACHE_KEY)
        if entry is not None:
            logger.info(f"Returning cached last activity: {entry.value}.")
            return entry.value

        logger.info("No cached last activity. Fetching fresh data.")
        last_activity = await self.inner.last_activity(self.username)

        await self.cache.set(LAST_ACTIVITY_CACHE_KEY, last_activity, self.cache_ttl)
        logger.info(f"Last activity cached: {last_activity}.")

        return last_activity

    async def _check_for_updates(self) -> None:
        """
        Staleness probe. Asks the inner source for the account's latest
        activity and drops both cache entries when it is newer than the
        refresh clock. Never raises: on failure the existing cache and the
        refresh clock are kept as-is.
        """
        async with self._refresh_lock:
            if self._clock() - self._last_refresh < self.probe_interval:
                logger.debug("Skipping update check: last check was less than the probe interval ago.")
                return

            logger.info("Checking for new activity since the last refresh.")
            try:
                # Bypasses the cached entry, which would hide activity until its TTL expires
                last_activity = await self.inner.last_activity(self.username)
            except Exception as e:
                logger.warning(f"Update check failed: {e}. Keeping the existing cache.")
                return

            if last_activity is not None and last_activity > self._last_refresh:
                logger.info(
                    f"New activity at {last_activity} after last refresh at {self._last_refresh}. "
                    f"Invalidating cache."
                )
                await self.cache.remove(PORTFOLIO_CACHE_KEY, LAST_ACTIVITY_CACHE_KEY)
                # Reset so the next check is not rate-limited away
                self._last_refresh = EPOCH
                return

            if last_activity is None:
                logger.info("No activity found. Keeping the existing cache.")
            else:
                logger.info("No new activity since the last refresh. Keeping the existing cache.")

            await self.cache.set(LAST_ACTIVITY_CACHE_KEY, last_activity, self.cache_ttl)
            self._last_refresh = self._clock()
