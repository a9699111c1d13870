import logging
import sys

from aiohttp import web
from pydantic import ValidationError

from portfolio_api.api.server import create_app
from portfolio_api.application.cached_portfolio_service import CachedPortfolioService
from portfolio_api.application.portfolio_service import PortfolioService
from portfolio_api.config import Settings
from portfolio_api.infrastructure.github_client import GitHubRestClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

def build_app(settings: Settings) -> web.Application:
    """Wires client, aggregator and cache into the HTTP application."""
    github_client = GitHubRestClient(token=settings.github_token)
    portfolio_service = PortfolioService(github_client=github_client, username=settings.github_username)

    # One cache instance for the whole process, shared by every request
    cached_service = CachedPortfolioService(
        inner=portfolio_service,
        username=settings.github_username,
        cache_ttl=settings.cache_ttl,
        probe_interval=settings.probe_interval,
    )

    app = create_app(cached_service)

    async def close_client(_: web.Application) -> None:
        await github_client.close()

    app.on_cleanup.append(close_client)
    return app

def run():
    try:
        settings = Settings.from_env()
    except ValidationError as e:
        logger.error(f"Invalid configuration (is GITHUB_USERNAME set, LOG_LEVEL a known level?): {e}")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level)
    logger.info(f"Serving GitHub portfolio for '{settings.github_username}' on {settings.host}:{settings.port}.")

    web.run_app(build_app(settings), host=settings.host, port=settings.port, print=None)

if __name__ == "__main__":
    run()
