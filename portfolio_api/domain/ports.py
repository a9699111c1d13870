from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from portfolio_api.domain.models import RepositoryRecord, SearchResult


class PortfolioSource(ABC):
    """
    Port shared by the aggregator and the cache that decorates it.
    The HTTP layer depends on this abstraction only.
    """

    @abstractmethod
    async def compute_portfolio(self, account: Optional[str] = None) -> List[RepositoryRecord]:
        """
        Returns one aggregate record per repository owned by the account.

        Args:
            account (Optional[str]): GitHub login; defaults to the configured user.
        """

    @abstractmethod
    async def search(
        self,
        repository_name: Optional[str] = None,
        language: Optional[str] = None,
        username: Optional[str] = None,
    ) -> SearchResult:
        """Searches repositories by name and/or primary language, optionally scoped to one user."""

    @abstractmethod
    async def last_activity(self, account: Optional[str] = None) -> Optional[datetime]:
        """Returns the timestamp of the account's most recent event, or None."""
