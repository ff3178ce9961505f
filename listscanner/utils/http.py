"""
Wrapper around httpx for scanner sessions
"""

import logging
from typing import Dict, Any, Optional, Union
import httpx

logger = logging.getLogger(__name__)


class HttpSession:
    """Wrapper around httpx.AsyncClient with proxy and cookie jar management."""

    def __init__(self,
                 timeout: float = 15.0,
                 verify_ssl: bool = True,
                 follow_redirects: bool = True,
                 proxy: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize HTTP session.

        Args:
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            follow_redirects: Whether to follow HTTP redirects
            proxy: Forward proxy URL applied to every request
            headers: Default headers to include in requests
            transport: Optional transport override (used by tests)
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.follow_redirects = follow_redirects
        self.proxy = proxy
        self.default_headers = headers or {}
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the HTTP client."""
        if self._client is None:
            client_kwargs: Dict[str, Any] = {
                'timeout': self.timeout,
                'verify': self.verify_ssl,
                'follow_redirects': self.follow_redirects,
                'headers': self.default_headers,
            }
            if self.transport is not None:
                client_kwargs['transport'] = self.transport
            elif self.proxy:
                client_kwargs['proxy'] = self.proxy
            self._client = httpx.AsyncClient(**client_kwargs)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def cookies(self) -> httpx.Cookies:
        """Cookie jar accumulated by this session."""
        if not self._client:
            return httpx.Cookies()
        return self._client.cookies

    async def request(self,
                     method: str,
                     url: str,
                     headers: Optional[Dict[str, str]] = None,
                     content: Optional[Union[str, bytes]] = None,
                     params: Optional[Dict[str, str]] = None) -> httpx.Response:
        """
        Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Target URL
            headers: Request headers
            content: Raw request body
            params: URL parameters

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPError: If the request fails at the transport level
        """
        if not self._client:
            await self.start()

        merged_headers = {**self.default_headers}
        if headers:
            merged_headers.update(headers)

        logger.debug(f"Making {method} request to {url}")

        response = await self._client.request(
            method=method,
            url=url,
            headers=merged_headers,
            content=content,
            params=params
        )

        logger.debug(f"Response: {response.status_code} for {method} {url}")
        return response

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Make a GET request."""
        return await self.request('GET', url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        """Make a POST request."""
        return await self.request('POST', url, **kwargs)

