"""GitHub API access: client, pacing and error types."""

from .client import APIResponse, GitHubClient, GitHubClientFactory
from .rate_limiter import RateLimiter, RetryPolicy

__all__ = [
    'APIResponse',
    'GitHubClient',
    'GitHubClientFactory',
    'RateLimiter',
    'RetryPolicy',
]
