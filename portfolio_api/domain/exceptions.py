from typing import Optional


class PortfolioException(Exception):
    """Base exception for all portfolio-related errors."""
    pass

class RateLimitExceededException(PortfolioException):
    """Raised when the GitHub REST rate limit is hit."""
    def __init__(self, reset_at: Optional[str] = None, message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        if reset_at:
            message = f"{message} Resets at: {reset_at}"
        super().__init__(message)

class AuthorizationException(PortfolioException):
    """Raised when GitHub rejects the configured credentials."""
    def __init__(self, message: str = "GitHub API authorization failed. Check your token."):
        super().__init__(message)

class NotFoundException(PortfolioException):
    """Raised when a requested GitHub resource does not exist."""
    pass

class GitHubApiException(PortfolioException):
    """Raised for any other unexpected GitHub API response."""
    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(f"GitHub API error ({status}): {message}")
