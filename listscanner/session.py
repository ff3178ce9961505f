import re
import logging
from typing import Optional, Tuple
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from .utils.http import HttpSession

logger = logging.getLogger(__name__)

# Client-side variable the portal page assigns the session token to
TOKEN_PATTERN = re.compile(r"var g_ck = '([a-zA-Z0-9]+)'")


class BootstrapError(Exception):
    """Raised when an anonymous session cannot be established for a host."""


class InvalidHost(BootstrapError):
    """Raised when a host address cannot be parsed into a base URL."""


class TokenNotFound(BootstrapError):
    """Raised when the landing page does not expose a session token."""


@dataclass(frozen=True)
class SessionCookie:
    """Cookie captured during the anonymous page load."""
    name: str
    value: str
    domain: str = ""
    path: str = "/"

    def __str__(self):
        return f"{self.name}={self.value}"


@dataclass(frozen=True)
class SessionCredential:
    """Token and cookies harvested for one host. Shared read-only by its probes."""
    host: str
    token: str
    cookies: Tuple[SessionCookie, ...] = ()

    @property
    def cookie_header(self) -> str:
        return "; ".join(str(cookie) for cookie in self.cookies)


def validate_host(host: str) -> str:
    """Return the normalized base URL for ``host`` or raise InvalidHost."""
    candidate = (host or "").strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidHost(f"Invalid host address: {host!r}")
    return candidate.rstrip("/")


def extract_token(body: str) -> str:
    """Pull the session token out of a landing page body."""
    match = TOKEN_PATTERN.search(body)
    if match is None:
        raise TokenNotFound("g_ck not found")
    return match.group(1)


def cookie_applies(cookie_domain: str, hostname: str) -> bool:
    """Whether a cookie stored for ``cookie_domain`` would be sent to ``hostname``."""
    domain = cookie_domain.lower().lstrip(".")
    host = hostname.lower()
    # cookiejar stores dotless request hosts with a ".local" suffix
    return host == domain or host.endswith("." + domain) or f"{host}.local" == domain


def collect_cookies(jar: httpx.Cookies, host: str) -> Tuple[SessionCookie, ...]:
    """
    Snapshot the cookies that apply to ``host`` in a stable (domain, path, name) order.

    Cookies picked up from other domains while following redirects are dropped.
    """
    hostname = urlparse(host).hostname or ""
    cookies = [
        SessionCookie(
            name=cookie.name,
            value=cookie.value or "",
            domain=cookie.domain,
            path=cookie.path
        )
        for cookie in jar.jar
        if cookie_applies(cookie.domain, hostname)
    ]
    return tuple(sorted(cookies, key=lambda c: (c.domain, c.path, c.name)))


class SessionBootstrapper:
    """Establishes anonymous sessions against target hosts."""

    def __init__(self,
                 proxy: Optional[str] = None,
                 timeout: float = 15.0,
                 verify_ssl: bool = True,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the bootstrapper.

        Args:
            proxy: Forward proxy URL for the landing page fetch
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            transport: Optional transport override (used by tests)
        """
        self.proxy = proxy
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.transport = transport

    def new_session(self) -> HttpSession:
        """Fresh HTTP session with its own cookie jar."""
        return HttpSession(
            timeout=self.timeout,
            verify_ssl=self.verify_ssl,
            follow_redirects=True,
            proxy=self.proxy,
            transport=self.transport
        )

    async def bootstrap(self, host: str) -> SessionCredential:
        """
        Load the host's landing page anonymously and harvest its credential.

        Every call uses a fresh client so cookie jars never leak between hosts.

        Args:
            host: Base URL of the target instance

        Returns:
            SessionCredential with the token and captured cookies

        Raises:
            InvalidHost: If the host address is malformed
            TokenNotFound: If the page does not carry a token
            BootstrapError: On any transport failure
        """
        base_url = validate_host(host)
        logger.info(f"Bootstrapping anonymous session for {base_url}")

        async with self.new_session() as session:
            try:
                response = await session.get(base_url)
            except httpx.InvalidURL as e:
                raise InvalidHost(f"Invalid host address {host!r}: {e}") from e
            except httpx.HTTPError as e:
                raise BootstrapError(f"Request to {base_url} failed: {e}") from e

            token = extract_token(response.text)
            cookies = collect_cookies(session.cookies, base_url)

        credential = SessionCredential(host=base_url, token=token, cookies=cookies)

        logger.info(f"X-UserToken: {credential.token}")
        logger.info(f"Cookie: {credential.cookie_header}")

        return credential
