"""GitHub API client implementation."""

import asyncio
import json
import time
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urljoin

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitHubInstanceConfig
from .exceptions import (
    GitHubAbuseDetectedError,
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubConflictError,
    GitHubNetworkError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
    GitHubServerError,
)
from .rate_limiter import RateLimiter, RetryPolicy

USER_AGENT = 'github-org-migrate/0.1.0'


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def _error_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict) and data.get('message'):
        message = data['message']
        errors = data.get('errors')
        if errors:
            details = '; '.join(
                e.get('message', str(e)) if isinstance(e, dict) else str(e)
                for e in errors
            )
            message = f'{message} ({details})'
        return message
    if data:
        return f'HTTP {status_code}: {data}'
    return f'HTTP {status_code}'


def _is_abuse_signal(message: str) -> bool:
    lowered = message.lower()
    return 'secondary rate limit' in lowered or 'abuse' in lowered


def _retry_after_hint(headers: Dict[str, str]) -> Optional[float]:
    """Seconds to wait as reported by the service, if it says."""
    normalized = {k.lower(): v for k, v in headers.items()}

    retry_after = normalized.get('retry-after')
    if retry_after is not None:
        try:
            return float(retry_after)
        except ValueError:
            pass

    reset = normalized.get('x-ratelimit-reset')
    if reset is not None and normalized.get('x-ratelimit-remaining') == '0':
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass

    return None


def raise_for_status(
    status_code: int, data: Any, headers: Dict[str, str]
) -> None:
    """Translate an HTTP error response into a typed exception.

    Args:
        status_code: HTTP status code
        data: Decoded response body
        headers: Response headers

    Raises:
        GitHubAPIError: For any status code >= 400
    """
    if status_code < 400:
        return

    message = _error_message(data, status_code)
    response_data = data if isinstance(data, dict) else None
    remaining = {k.lower(): v for k, v in headers.items()}.get('x-ratelimit-remaining')

    if status_code in (403, 429) and _is_abuse_signal(message):
        raise GitHubAbuseDetectedError(
            f'Abuse detection triggered: {message}',
            retry_after=_retry_after_hint(headers),
            status_code=status_code,
            response_data=response_data,
        )

    if status_code == 429 or (status_code == 403 and remaining == '0'):
        raise GitHubRateLimitError(
            f'Rate limit exceeded: {message}',
            retry_after=_retry_after_hint(headers),
            status_code=status_code,
            response_data=response_data,
        )

    if status_code == 401:
        raise GitHubAuthenticationError(
            'Authentication failed', status_code=status_code, response_data=response_data
        )

    if status_code == 403:
        raise GitHubPermissionError(
            f'Permission denied: {message}',
            status_code=status_code,
            response_data=response_data,
        )

    if status_code == 404:
        raise GitHubNotFoundError(
            'Resource not found', status_code=status_code, response_data=response_data
        )

    if status_code in (409, 422):
        raise GitHubConflictError(
            f'Conflict: {message}', status_code=status_code, response_data=response_data
        )

    if status_code >= 500:
        raise GitHubServerError(
            f'Server error: {message}',
            status_code=status_code,
            response_data=response_data,
        )

    raise GitHubAPIError(
        f'API request failed: {message}',
        status_code=status_code,
        response_data=response_data,
    )


class GitHubClient:
    """GitHub API client with pacing, bounded retry and pagination."""

    def __init__(
        self,
        config: GitHubInstanceConfig,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize GitHub client.

        Args:
            config: GitHub instance configuration
            rate_limiter: Shared request pacer (built from config if omitted)
            retry_policy: Retry decision (built from config if omitted)
        """
        if not config.token:
            raise GitHubAuthenticationError('No authentication token provided')

        self.config = config
        self.base_url = config.url.rstrip('/')
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit_per_second)
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retries, retry_after=config.retry_after
        )
        # Bounds in-flight requests across every concurrent caller
        self._semaphore = asyncio.Semaphore(config.max_concurrent_requests)

        self.session = requests.Session()
        self.session.headers.update(self._headers())

        logger.info(f'Initialized GitHub client for {config.url}')

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.config.token}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': self.config.api_version,
            'User-Agent': USER_AGENT,
        }

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Absolute URLs (pagination cursors) are returned unchanged.
        """
        if endpoint.startswith(('http://', 'https://')):
            return endpoint
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Convert a synchronous HTTP response to the standard format."""
        headers = dict(response.headers)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        raise_for_status(response.status_code, data, headers)

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Perform exactly one HTTP request.

        Args:
            method: HTTP method
            endpoint: API endpoint or absolute URL
            params: Query parameters
            data: Request body data

        Returns:
            API response

        Raises:
            GitHubAPIError: For any error response or network failure
        """
        url = self._build_url(endpoint)
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)

        async with aiohttp.ClientSession(
            headers=self._headers(), timeout=timeout
        ) as session:
            try:
                async with session.request(
                    method=method, url=url, params=params, json=data
                ) as response:
                    response_headers = dict(response.headers)
                    response_text = await response.text()

                    try:
                        response_data = (
                            json.loads(response_text) if response_text else None
                        )
                    except ValueError:
                        response_data = response_text

                    raise_for_status(response.status, response_data, response_headers)

                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f'Network error during {method} {endpoint}: {e}')
                raise GitHubNetworkError(f'Network error: {e}')

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make one logical API call under the retry policy.

        Transient failures and primary rate limits are retried while the
        policy allows it. Abuse detection fails immediately.

        Returns:
            API response

        Raises:
            GitHubAPIError: The last failure once retries are exhausted,
                or any non-transient failure
        """
        retry_count = 0

        while True:
            await self.rate_limiter.acquire()
            try:
                async with self._semaphore:
                    return await self._send(method, endpoint, params=params, data=data)

            except GitHubAbuseDetectedError:
                logger.warning(f'Abuse detected for request {method} {endpoint}')
                raise

            except GitHubRateLimitError as e:
                logger.warning(f'Request quota exhausted for request {method} {endpoint}')
                if not self.retry_policy.should_retry(retry_count, e.retry_after):
                    raise
                delay = self.retry_policy.delay(e.retry_after)

            except GitHubAPIError as e:
                if not e.transient:
                    raise
                logger.warning(f'Transient failure for request {method} {endpoint}: {e}')
                if not self.retry_policy.should_retry(retry_count, None):
                    raise
                delay = self.retry_policy.delay(None)

            retry_count += 1
            await asyncio.sleep(delay)

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self.request('GET', endpoint, params=params)

    async def post_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous POST request."""
        return await self.request('POST', endpoint, data=data)

    async def put_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous PUT request."""
        return await self.request('PUT', endpoint, data=data)

    async def patch_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous PATCH request."""
        return await self.request('PATCH', endpoint, data=data)

    async def delete_async(self, endpoint: str) -> APIResponse:
        """Make asynchronous DELETE request."""
        return await self.request('DELETE', endpoint)

    @staticmethod
    def _next_page(headers: Dict[str, str]) -> Optional[str]:
        """URL of the next page from the ``Link`` header, if any."""
        link = {k.lower(): v for k, v in headers.items()}.get('link')
        if not link:
            return None

        for entry in requests.utils.parse_header_links(link):
            if entry.get('rel') == 'next' and entry.get('url'):
                return entry['url']
        return None

    async def paginate(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Iterate over every item of a paginated endpoint.

        Follows the ``Link: rel="next"`` cursor until exhausted. Each call
        starts from the first page.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Yields:
            Items in the order the service returns them
        """
        query = dict(params or {})
        query['per_page'] = per_page

        url: Optional[str] = endpoint
        count = 0

        while url is not None:
            response = await self.request('GET', url, params=query)
            items = response.data or []

            for item in items:
                count += 1
                yield item

            url = self._next_page(response.headers)
            # The cursor URL already carries the query string
            query = None

        logger.debug(f'Retrieved {count} items from {endpoint}')

    async def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated endpoint as a list."""
        return [item async for item in self.paginate(endpoint, params, per_page)]

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make a synchronous GET request (pre-flight checks only).

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self._build_url(endpoint)
        self.rate_limiter.acquire_sync()

        try:
            response = self.session.get(
                url, params=params, timeout=self.config.timeout, **kwargs
            )
            return self._handle_response(response)
        except requests.RequestException as e:
            logger.error(f'Network error during GET request: {e}')
            raise GitHubNetworkError(f'Network error: {e}')

    def test_connection(self) -> bool:
        """Test connection and authentication against GitHub.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = self.get('/user')
            return response.success
        except GitHubAPIError as e:
            logger.error(f'Connection test failed: {e}')
            return False

    def get_rate_limit(self) -> Optional[Dict[str, Any]]:
        """Current core rate limit state, or None if unavailable."""
        try:
            response = self.get('/rate_limit')
            if response.success and response.data:
                return response.data.get('resources', {}).get('core')
        except GitHubAPIError as e:
            logger.warning(f'Could not retrieve rate limit status: {e}')

        return None

    def close(self):
        """Close the client session."""
        self.session.close()
        logger.info('GitHub client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class GitHubClientFactory:
    """Factory for creating GitHub API clients."""

    @staticmethod
    def create_client(config: GitHubInstanceConfig) -> GitHubClient:
        """Create GitHub client from configuration.

        Raises:
            GitHubAuthenticationError: If no token is configured
        """
        if not config.token:
            raise GitHubAuthenticationError('A GitHub token must be provided')

        return GitHubClient(config)
