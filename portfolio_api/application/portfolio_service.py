import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from portfolio_api.domain.models import RepositoryRecord, SearchResult
from portfolio_api.domain.ports import PortfolioSource
from portfolio_api.infrastructure.acl import GitHubTranslator
from portfolio_api.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)

# Only the newest commit inside this window is looked up
COMMIT_LOOKBACK = timedelta(days=365)
# Repositories enriched concurrently within one pass
MAX_CONCURRENT_ENRICHMENTS = 5


class PortfolioService(PortfolioSource):
    """
    Aggregates a user's repositories with per-repository facts (pull requests,
    languages, last commit) fetched from GitHub.

    Stateless between calls. A failure while enriching one repository drops
    that repository from the result; a failure of the top-level listing,
    search or activity call propagates unchanged.
    """

    def __init__(
            self,
            github_client: GitHubRestClient,
            username: str,
            max_concurrency: int = MAX_CONCURRENT_ENRICHMENTS
    ):
        self.github_client = github_client
        self.username = username
        self.max_concurrency = max_concurrency

    async def compute_portfolio(self, account: Optional[str] = None) -> List[RepositoryRecord]:
        account = account or self.username
        logger.info(f"Fetching repositories for user '{account}'.")

        try:
            raw_repos = await self.github_client.list_user_repositories(account)
        except Exception as e:
            logger.error(f"Failed to list repositories for '{account}': {e}")
            raise

        logger.info(f"Received {len(raw_repos)} repositories. Fetching details...")
        since = datetime.now(timezone.utc) - COMMIT_LOOKBACK
        records = await self._enrich_all(raw_repos, lambda raw_repo: self._build_record(raw_repo, since))

        logger.info(f"Portfolio for '{account}' built with {len(records)}/{len(raw_repos)} repositories.")
        return records

    async def search(
        self,
        repository_name: Optional[str] = None,
        language: Optional[str] = None,
        username: Optional[str] = None,
    ) -> SearchResult:
        """
        Searches repositories in one of two modes.

        With a username, all of that user's repositories are listed and filtered
        here: case-insensitive substring on name, case-insensitive exact match on
        primary language. The total count is the filtered count.

        Without a username, GitHub's native search is queried and its reported
        total count is returned as-is, even though it may exceed the number of
        repositories actually returned.
        """
        logger.info(
            f"Searching repositories. Name: {repository_name or '-'}, "
            f"language: {language or '-'}, user: {username or '-'}."
        )

        try:
            if username:
                raw_repos = await self.github_client.list_user_repositories(username)
                matches = [r for r in raw_repos if self._matches(r, repository_name, language)]
                total_count = len(matches)
            else:
                query = self._build_search_query(repository_name, language)
                matches, total_count = await self.github_client.search_repositories(query)
        except Exception as e:
            logger.error(f"Repository search failed: {e}")
            raise

        records = await self._enrich_all(matches, self._build_search_record)
        logger.info(f"Search finished with {total_count} results ({len(records)} returned).")
        return SearchResult(total_count=total_count, repositories=records)

    async def last_activity(self, account: Optional[str] = None) -> Optional[datetime]:
        account = account or self.username
        logger.info(f"Fetching last activity for user '{account}'.")

        try:
            events = await self.github_client.list_user_events(account, per_page=1)
        except Exception as e:
            logger.error(f"Failed to fetch events for '{account}': {e}")
            raise

        if not events:
            logger.info(f"No activity found for '{account}'.")
            return None

        last_event_at = GitHubTranslator.parse_timestamp(events[0].get('created_at'))
        logger.info(f"Last activity for '{account}' at {last_event_at}.")
        return last_event_at

    @staticmethod
    def _matches(raw_repo: Dict[str, Any], repository_name: Optional[str], language: Optional[str]) -> bool:
        if repository_name and repository_name.casefold() not in (raw_repo.get('name') or '').casefold():
            return False
        if language:
            repo_language = raw_repo.get('language')
            if repo_language is None or repo_language.casefold() != language.casefold():
                return False
        return True

    @staticmethod
    def _build_search_query(repository_name: Optional[str], language: Optional[str]) -> str:
        query = ""
        if repository_name:
            query += f"{repository_name} "
        if language:
            query += f"language:{language} "
        return query.strip()

    async def _enrich_all(
        self,
        raw_repos: List[Dict[str, Any]],
        enrich: Callable[[Dict[str, Any]], Awaitable[RepositoryRecord]],
    ) -> List[RepositoryRecord]:
        """
        Enriches every repository concurrently and keeps the successes in listing order.
        Failed repositories are logged and skipped.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(raw_repo: Dict[str, Any]) -> RepositoryRecord:
            async with semaphore:
                return await enrich(raw_repo)

        results = await asyncio.gather(*(_bounded(r) for r in raw_repos), return_exceptions=True)

        records: List[RepositoryRecord] = []
        for raw_repo, result in zip(raw_repos, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Failed to fetch details for repository '{raw_repo.get('name')}': {result}. "
                    f"Skipping to the next repository."
                )
                continue
            if isinstance(result, BaseException):
                raise result
            records.append(result)

        return records

    async def _build_record(self, raw_repo: Dict[str, Any], since: datetime) -> RepositoryRecord:
        owner, name = self._coordinates(raw_repo)
        logger.debug(f"Fetching details for repository '{name}'.")

        pull_requests = await self.github_client.list_pull_requests(owner, name, state="all")
        languages = await self.github_client.get_languages(owner, name)
        commits = await self.github_client.list_commits(owner, name, since=since, per_page=1)

        return GitHubTranslator.to_domain(
            raw_repo,
            pull_requests=len(pull_requests),
            languages=languages,
            last_commit_date=GitHubTranslator.latest_commit_date(commits),
        )

    async def _build_search_record(self, raw_repo: Dict[str, Any]) -> RepositoryRecord:
        owner, name = self._coordinates(raw_repo)

        languages = await self.github_client.get_languages(owner, name)
        pull_requests = await self.github_client.list_pull_requests(owner, name, state="all")

        return GitHubTranslator.to_domain(raw_repo, pull_requests=len(pull_requests), languages=languages)

    @staticmethod
    def _coordinates(raw_repo: Dict[str, Any]):
        owner = (raw_repo.get('owner') or {}).get('login', '')
        return owner, raw_repo.get('name', '')
