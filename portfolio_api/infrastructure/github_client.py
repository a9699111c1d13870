import aiohttp
import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from portfolio_api.domain.exceptions import (
    AuthorizationException,
    GitHubApiException,
    NotFoundException,
    RateLimitExceededException,
)

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
PER_PAGE = 100
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)
MAX_RETRIES = 3
RETRYABLE_STATUSES = {500, 502, 503, 504}

class GitHubRestClient:
    """
    Client for interacting with the GitHub REST API.
    Handles authentication, pagination, and translation of error responses
    into domain exceptions. Rate limits are surfaced, never waited out.
    """

    def __init__(self, token: Optional[str] = None, session: Optional[aiohttp.ClientSession] = None):
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "github-portfolio-api",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.api_url = API_URL
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    @staticmethod
    def _raise_for_status(response: aiohttp.ClientResponse) -> None:
        """Maps GitHub error statuses onto the domain exception taxonomy."""
        status = response.status
        if status < 400:
            return

        remaining = response.headers.get('X-RateLimit-Remaining')
        if status == 429 or (status == 403 and (remaining == "0" or 'Retry-After' in response.headers)):
            reset = response.headers.get('X-RateLimit-Reset')
            reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat() if reset else None
            raise RateLimitExceededException(reset_at=reset_at)

        if status == 401:
            raise AuthorizationException()
        if status == 404:
            raise NotFoundException(f"GitHub resource not found: {response.url}")
        raise GitHubApiException(status, response.reason or "Unexpected response")

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Tuple[Any, Optional[str]]:
        """
        Performs a single GET, retrying server errors and network failures.

        Returns:
            Tuple of (decoded JSON body, URL of the next page or None).
        """
        session = self._get_session()

        for attempt in range(MAX_RETRIES):
            try:
                async with session.get(url, params=params, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                    if response.status in RETRYABLE_STATUSES and attempt < MAX_RETRIES - 1:
                        sleep_time = (2 ** attempt) + random.uniform(0, 1)
                        logger.warning(
                            f"Server error ({response.status}) for {url}. "
                            f"Retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                        )
                        await asyncio.sleep(sleep_time)
                        continue

                    self._raise_for_status(response)
                    data = await response.json()

                    next_link = response.links.get('next')
                    next_url = str(next_link['url']) if next_link else None
                    return data, next_url

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt == MAX_RETRIES - 1:
                    raise GitHubApiException(503, f"Request to {url} failed: {e}") from e
                sleep_time = (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                    f"Retrying in {sleep_time:.1f}s..."
                )
                await asyncio.sleep(sleep_time)

        raise GitHubApiException(503, f"Failed to fetch {url} after {MAX_RETRIES} attempts.")

    async def _get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Follows Link rel="next" headers until every page has been collected."""
        url = f"{self.api_url}{path}"
        query = {"per_page": PER_PAGE, **(params or {})}
        items: List[Dict[str, Any]] = []

        while url:
            page, url = await self._request(url, query)
            items.extend(page or [])
            # The next link already carries the full query string
            query = None

        return items

    async def list_user_repositories(self, username: str) -> List[Dict[str, Any]]:
        return await self._get_all(f"/users/{username}/repos")

    async def list_pull_requests(self, owner: str, repo: str, state: str = "all") -> List[Dict[str, Any]]:
        return await self._get_all(f"/repos/{owner}/{repo}/pulls", {"state": state})

    async def get_languages(self, owner: str, repo: str) -> Dict[str, int]:
        data, _ = await self._request(f"{self.api_url}/repos/{owner}/{repo}/languages")
        return data or {}

    async def list_commits(self, owner: str, repo: str, since: datetime, per_page: int = 1) -> List[Dict[str, Any]]:
        """Returns a single page of commits authored after `since`, newest first."""
        params = {"since": since.isoformat(), "per_page": per_page}
        try:
            data, _ = await self._request(f"{self.api_url}/repos/{owner}/{repo}/commits", params)
        except GitHubApiException as e:
            # 409: the repository is empty
            if e.status == 409:
                return []
            raise
        return data or []

    async def search_repositories(self, query: str) -> Tuple[List[Dict[str, Any]], int]:
        """
        Runs GitHub's native repository search.

        Returns:
            Tuple of (items on the first page, total count reported by GitHub).
        """
        data, _ = await self._request(
            f"{self.api_url}/search/repositories",
            {"q": query, "per_page": PER_PAGE},
        )
        data = data or {}
        return data.get('items', []), data.get('total_count', 0)

    async def list_user_events(self, username: str, per_page: int = 1) -> List[Dict[str, Any]]:
        """Returns the most recent events performed by the user, newest first."""
        data, _ = await self._request(f"{self.api_url}/users/{username}/events", {"per_page": per_page})
        return data or []
