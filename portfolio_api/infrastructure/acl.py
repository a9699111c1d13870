from datetime import datetime
from typing import Any, Dict, List, Optional
from portfolio_api.domain.models import EPOCH, RepositoryRecord

class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON responses into RepositoryRecord instances.
    """

    @staticmethod
    def parse_timestamp(raw_date: Optional[str]) -> Optional[datetime]:
        """Parses a GitHub ISO-8601 timestamp ('...Z') into an aware datetime."""
        if not raw_date:
            return None
        return datetime.fromisoformat(raw_date.replace("Z", "+00:00"))

    @staticmethod
    def latest_commit_date(raw_commits: List[Dict[str, Any]]) -> datetime:
        """
        Picks the newest author date out of a commit listing.

        Returns:
            datetime: The newest author date, or EPOCH when the listing has none.
        """
        dates = [
            GitHubTranslator.parse_timestamp(((commit.get('commit') or {}).get('author') or {}).get('date'))
            for commit in raw_commits
        ]
        dates = [d for d in dates if d is not None]
        return max(dates) if dates else EPOCH

    @staticmethod
    def to_domain(
        raw_repo: Dict[str, Any],
        pull_requests: int = 0,
        languages: Optional[Dict[str, int]] = None,
        last_commit_date: datetime = EPOCH,
    ) -> RepositoryRecord:
        """
        Merges a raw GitHub repository object with its supplementary facts.

        Args:
            raw_repo (Dict[str, Any]): The raw JSON repository from GitHub's REST response.
            pull_requests (int): Number of pull requests in all states.
            languages (Optional[Dict[str, int]]): Language name to byte count.
            last_commit_date (datetime): Author date of the newest commit.

        Returns:
            RepositoryRecord: The domain model instance representing the repository.
        """
        name = raw_repo.get('name')
        if not name:
            raise ValueError("name is required to build RepositoryRecord.")

        # GitHub sends explicit nulls for missing owners on some payloads
        owner_data = raw_repo.get('owner') or {}

        return RepositoryRecord(
            name=name,
            description=raw_repo.get('description'),
            url=raw_repo.get('html_url', ''),
            homepage=raw_repo.get('homepage') or None,
            stars=raw_repo.get('stargazers_count', 0),
            forks=raw_repo.get('forks_count', 0),
            open_issues=raw_repo.get('open_issues_count', 0),
            pull_requests=pull_requests,
            last_commit_date=last_commit_date,
            languages=dict(languages or {}),
            owner_login=owner_data.get('login', ''),
            owner_avatar_url=owner_data.get('avatar_url'),
        )
