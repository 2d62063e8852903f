"""GitHub API exceptions."""

from typing import Optional


class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    # Transient errors are eligible for the client's bounded retry
    transient = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        """Initialize GitHub API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class GitHubAuthenticationError(GitHubAPIError):
    """Authentication error with GitHub API."""

    pass


class GitHubRateLimitError(GitHubAPIError):
    """Primary rate limit exceeded error."""

    transient = True

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry, as hinted by the service
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class GitHubAbuseDetectedError(GitHubRateLimitError):
    """Secondary (abuse detection) rate limit error. Never retried."""

    transient = False


class GitHubServerError(GitHubAPIError):
    """5xx response from GitHub."""

    transient = True


class GitHubNetworkError(GitHubAPIError):
    """Connection or timeout error talking to GitHub."""

    transient = True


class GitHubNotFoundError(GitHubAPIError):
    """Resource not found error."""

    pass


class GitHubConflictError(GitHubAPIError):
    """Resource already exists or request conflicts with current state."""

    pass


class GitHubPermissionError(GitHubAPIError):
    """Permission denied error."""

    pass
