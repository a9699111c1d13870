import logging
from typing import Optional

from aiohttp import web

from portfolio_api.domain.exceptions import AuthorizationException, RateLimitExceededException
from portfolio_api.domain.ports import PortfolioSource

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("portfolio_service", PortfolioSource)

RATE_LIMIT_MESSAGE = "GitHub API rate limit exceeded. Try again later."
AUTHORIZATION_MESSAGE = "GitHub API authorization failed. Check your token."

routes = web.RouteTableDef()


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _query_param(request: web.Request, name: str) -> Optional[str]:
    # Empty values count as absent
    return request.query.get(name) or None


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "*"
    return response


@routes.get("/api/github/portfolio")
async def get_portfolio(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        portfolio = await service.compute_portfolio()
    except RateLimitExceededException as e:
        logger.warning(f"GitHub rate limit exceeded while building portfolio: {e}")
        return _error(429, RATE_LIMIT_MESSAGE)
    except AuthorizationException as e:
        logger.error(f"GitHub authorization failed while building portfolio: {e}")
        return _error(401, AUTHORIZATION_MESSAGE)
    except Exception as e:
        logger.exception(f"Failed to get portfolio: {e}")
        return _error(500, f"Failed to get portfolio: {e}")

    logger.info(f"Returning portfolio with {len(portfolio)} repositories.")
    return web.json_response([record.model_dump(mode="json", by_alias=True) for record in portfolio])


@routes.get("/api/github/search")
async def search_repositories(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    repository_name = _query_param(request, "repositoryName")
    language = _query_param(request, "language")
    username = _query_param(request, "username")

    try:
        result = await service.search(repository_name, language, username)
    except RateLimitExceededException as e:
        logger.warning(f"GitHub rate limit exceeded while searching: {e}")
        return _error(429, RATE_LIMIT_MESSAGE)
    except Exception as e:
        logger.exception(f"Failed to search repositories: {e}")
        return _error(500, f"Failed to search repositories: {e}")

    logger.info(f"Returning {result.total_count} search results.")
    return web.json_response(result.model_dump(mode="json", by_alias=True))


@routes.get("/api/github/last-activity")
async def get_last_activity(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        last_activity = await service.last_activity()
    except RateLimitExceededException as e:
        logger.warning(f"GitHub rate limit exceeded while fetching last activity: {e}")
        return _error(429, RATE_LIMIT_MESSAGE)
    except Exception as e:
        logger.exception(f"Failed to get last activity: {e}")
        return _error(500, f"Failed to get last activity: {e}")

    return web.json_response(last_activity.isoformat() if last_activity else None)


def create_app(service: PortfolioSource) -> web.Application:
    """Builds the HTTP application around an already-wired portfolio source."""
    app = web.Application(middlewares=[cors_middleware])
    app[SERVICE_KEY] = service
    app.add_routes(routes)
    return app
