import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from portfolio_api.domain.exceptions import (
    AuthorizationException,
    GitHubApiException,
    NotFoundException,
    RateLimitExceededException,
)
from portfolio_api.infrastructure.github_client import GitHubRestClient


def _response(status=200, body=None, headers=None, links=None):
    resp = AsyncMock()
    resp.status = status
    resp.reason = "Reason"
    resp.url = "https://api.github.com/test"
    resp.headers = headers or {}
    resp.links = links or {}
    resp.json = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _session(*responses):
    session = MagicMock()
    session.closed = False
    session.get = MagicMock(side_effect=list(responses))
    return session


class TestGitHubRestClientHeaders(unittest.TestCase):
    def test_headers_include_bearer_token(self) -> None:
        token = "test-token"
        client = GitHubRestClient(token=token)

        self.assertIsInstance(client.headers, dict)
        self.assertEqual(client.headers["Authorization"], f"Bearer {token}")

    def test_headers_without_token_are_unauthenticated(self) -> None:
        client = GitHubRestClient()

        self.assertNotIn("Authorization", client.headers)
        self.assertIn("User-Agent", client.headers)
        self.assertIn("Accept", client.headers)


class TestGitHubRestClientRequests(unittest.IsolatedAsyncioTestCase):
    async def test_listing_follows_next_links(self) -> None:
        next_url = "https://api.github.com/user/1/repos?per_page=100&page=2"
        session = _session(
            _response(body=[{"name": "one"}], links={"next": {"url": next_url}}),
            _response(body=[{"name": "two"}]),
        )
        client = GitHubRestClient(token="t", session=session)

        repos = await client.list_user_repositories("octocat")

        self.assertEqual([r["name"] for r in repos], ["one", "two"])
        first_call, second_call = session.get.call_args_list
        self.assertEqual(first_call.args[0], "https://api.github.com/users/octocat/repos")
        self.assertEqual(first_call.kwargs["params"], {"per_page": 100})
        self.assertEqual(second_call.args[0], next_url)
        self.assertIsNone(second_call.kwargs["params"])

    async def test_pull_requests_request_all_states(self) -> None:
        session = _session(_response(body=[{"number": 1}, {"number": 2}]))
        client = GitHubRestClient(session=session)

        pulls = await client.list_pull_requests("octocat", "example")

        self.assertEqual(len(pulls), 2)
        self.assertEqual(session.get.call_args.kwargs["params"]["state"], "all")

    async def test_exhausted_rate_limit_raises(self) -> None:
        session = _session(_response(
            status=403,
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        ))
        client = GitHubRestClient(session=session)

        with self.assertRaises(RateLimitExceededException) as ctx:
            await client.list_user_events("octocat")

        self.assertEqual(
            ctx.exception.reset_at,
            datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc).isoformat(),
        )

    async def test_429_raises_rate_limit(self) -> None:
        client = GitHubRestClient(session=_session(_response(status=429)))

        with self.assertRaises(RateLimitExceededException):
            await client.search_repositories("portfolio")

    async def test_401_raises_authorization(self) -> None:
        client = GitHubRestClient(token="bad", session=_session(_response(status=401)))

        with self.assertRaises(AuthorizationException):
            await client.list_user_repositories("octocat")

    async def test_404_raises_not_found(self) -> None:
        client = GitHubRestClient(session=_session(_response(status=404)))

        with self.assertRaises(NotFoundException):
            await client.get_languages("octocat", "missing")

    async def test_empty_repository_has_no_commits(self) -> None:
        client = GitHubRestClient(session=_session(_response(status=409)))

        commits = await client.list_commits("octocat", "empty", since=datetime(2024, 1, 1, tzinfo=timezone.utc))

        self.assertEqual(commits, [])

    async def test_server_errors_are_retried(self) -> None:
        session = _session(
            _response(status=502),
            _response(body={"Python": 10}),
        )
        client = GitHubRestClient(session=session)

        with patch("portfolio_api.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            languages = await client.get_languages("octocat", "example")

        mock_sleep.assert_awaited_once()
        self.assertEqual(languages, {"Python": 10})
        self.assertEqual(session.get.call_count, 2)

    async def test_persistent_server_error_raises(self) -> None:
        session = _session(_response(status=503), _response(status=503), _response(status=503))
        client = GitHubRestClient(session=session)

        with patch("portfolio_api.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock):
            with self.assertRaises(GitHubApiException) as ctx:
                await client.list_user_events("octocat")

        self.assertEqual(ctx.exception.status, 503)

    async def test_search_returns_items_and_reported_total(self) -> None:
        session = _session(_response(body={"total_count": 4200, "items": [{"name": "a"}]}))
        client = GitHubRestClient(session=session)

        items, total = await client.search_repositories("api language:Go")

        self.assertEqual(items, [{"name": "a"}])
        self.assertEqual(total, 4200)
        self.assertEqual(session.get.call_args.kwargs["params"]["q"], "api language:Go")
