"""
HTTP transport for homeserver requests.

Session continuity is carried by a ``sessionId`` cookie. Instead of an
implicit cookie jar, each request takes the SessionState it belongs to:
the current id is sent with the request and replaced whenever the
response sets a new one.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from ..errors import RequestFailed

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sessionId"
OCTET_STREAM = "application/octet-stream"


@dataclass
class SessionState:
    """The session token of one identity at one homeserver."""
    session_id: Optional[str] = None

    def take(self) -> Optional[str]:
        """Clear the session and return the previous id."""
        session_id, self.session_id = self.session_id, None
        return session_id


class Paths:
    """Homeserver endpoint paths."""

    @staticmethod
    def challenge() -> str:
        return "/mvp/challenge"

    @staticmethod
    def session(user_id: Optional[str] = None) -> str:
        if user_id is None:
            return "/mvp/session"
        return f"/mvp/session/{user_id}"

    @staticmethod
    def signup(user_id: str) -> str:
        return f"/mvp/users/{user_id}/pkarr"

    @staticmethod
    def repo(user_id: str, repo_name: str, path: Optional[str] = None) -> str:
        if path is None:
            return f"/mvp/users/{user_id}/repos/{repo_name}"
        return f"/mvp/users/{user_id}/repos/{repo_name}/{path.lstrip('/')}"


def join_url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + path


class HttpTransport:
    """
    Issues homeserver requests on a shared aiohttp session.

    Usage:
        async with HttpTransport() as transport:
            state = SessionState()
            body = await transport.request("GET", url, state)
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                cookie_jar=aiohttp.DummyCookieJar(),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        url: str,
        state: SessionState,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> bytes:
        """
        Send a request and return the response body.

        Args:
            method: HTTP method
            url: Absolute URL
            state: Session of the caller, updated from the response cookie
            headers: Extra request headers
            body: Raw request body

        Raises:
            RequestFailed: Transport error or an HTTP error status
        """
        request_headers = dict(headers or {})
        if state.session_id is not None:
            request_headers["Cookie"] = f"{SESSION_COOKIE}={state.session_id}"

        session = await self._get_session()
        try:
            async with session.request(method, url, headers=request_headers, data=body) as resp:
                cookie = resp.cookies.get(SESSION_COOKIE)
                if cookie is not None:
                    state.session_id = cookie.value
                payload = await resp.read()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{method} {url} failed: {e}")
            raise RequestFailed(f"Failed to send HTTP request: {e}") from e

        if status >= 400:
            message = payload.decode("utf-8", errors="replace")
            raise RequestFailed(f"{method} {url} returned {status}: {message}", status_code=status)

        logger.debug(f"{method} {url} -> {status}")
        return payload
