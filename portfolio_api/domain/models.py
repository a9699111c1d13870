from datetime import datetime, timezone
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

# Sentinel for "no commit found" and for a reset refresh clock.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RepositoryRecord(BaseModel):
    """
    Immutable aggregate of one GitHub repository: base metadata merged with
    the supplementary facts fetched per repository.
    Re-created wholesale on every aggregation pass.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: str = Field(..., description="Name of the repository")
    description: Optional[str] = Field(None, description="Repository description")
    url: str = Field(..., description="Canonical HTML URL of the repository")
    homepage: Optional[str] = Field(None, description="Project homepage, if any")
    stars: int = Field(0, ge=0, description="Total number of stargazers")
    forks: int = Field(0, ge=0, description="Total number of forks")
    open_issues: int = Field(0, ge=0, description="Open issue count as reported by GitHub")
    pull_requests: int = Field(0, ge=0, description="Pull requests in all states")
    last_commit_date: datetime = Field(EPOCH, description="Author date of the newest commit within the lookback window")
    languages: Dict[str, int] = Field(default_factory=dict, description="Language name to byte count")
    owner_login: str = Field(..., description="Login name of the repository owner")
    owner_avatar_url: Optional[str] = Field(None, description="Avatar URL of the repository owner")


class SearchResult(BaseModel):
    """Result of a repository search, with the total count the search reported."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    total_count: int = Field(0, ge=0)
    repositories: List[RepositoryRecord] = Field(default_factory=list)
