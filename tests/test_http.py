"""
Tests for the homeserver HTTP transport.
"""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from pubky.errors import RequestFailed
from pubky.network.http import SESSION_COOKIE, HttpTransport, Paths, SessionState, join_url


def make_app() -> web.Application:
    async def login(request: web.Request) -> web.Response:
        response = web.Response(text="ok")
        response.set_cookie(SESSION_COOKIE, request.match_info["session_id"])
        return response

    async def echo_cookie(request: web.Request) -> web.Response:
        return web.Response(text=request.cookies.get(SESSION_COOKIE, ""))

    async def fail(request: web.Request) -> web.Response:
        return web.Response(status=int(request.match_info["status"]), text="nope")

    app = web.Application()
    app.router.add_get("/login/{session_id}", login)
    app.router.add_get("/echo", echo_cookie)
    app.router.add_get("/fail/{status}", fail)
    return app


@pytest_asyncio.fixture
async def server():
    server = TestServer(make_app(), host="127.0.0.1")
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def transport():
    transport = HttpTransport(timeout=5.0)
    yield transport
    await transport.close()


class TestPaths:
    """Tests for homeserver paths."""

    def test_paths(self):
        assert Paths.challenge() == "/mvp/challenge"
        assert Paths.session() == "/mvp/session"
        assert Paths.session("alice") == "/mvp/session/alice"
        assert Paths.signup("alice") == "/mvp/users/alice/pkarr"
        assert Paths.repo("alice", "notes") == "/mvp/users/alice/repos/notes"
        assert Paths.repo("alice", "notes", "/a/b.txt") == "/mvp/users/alice/repos/notes/a/b.txt"

    def test_join_url(self):
        assert join_url("http://localhost:6287/", "/mvp/session") == "http://localhost:6287/mvp/session"


class TestSessionState:
    """Tests for per-identity session state."""

    def test_take(self):
        state = SessionState("abc")
        assert state.take() == "abc"
        assert state.session_id is None
        assert state.take() is None


class TestHttpTransport:
    """Tests for requests with explicit session state."""

    @pytest.mark.asyncio
    async def test_session_cookie_captured(self, server, transport):
        """Test a Set-Cookie response updates the caller's session."""
        state = SessionState()
        body = await transport.request("GET", str(server.make_url("/login/s1")), state)

        assert body == b"ok"
        assert state.session_id == "s1"

    @pytest.mark.asyncio
    async def test_session_cookie_sent(self, server, transport):
        state = SessionState("s2")
        assert await transport.request("GET", str(server.make_url("/echo")), state) == b"s2"

    @pytest.mark.asyncio
    async def test_sessions_isolated(self, server, transport):
        """Test two states on one transport never see each other's cookie."""
        alice, bob = SessionState(), SessionState()
        await transport.request("GET", str(server.make_url("/login/alice")), alice)

        assert await transport.request("GET", str(server.make_url("/echo")), bob) == b""
        assert bob.session_id is None
        assert await transport.request("GET", str(server.make_url("/echo")), alice) == b"alice"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 500])
    async def test_error_status(self, server, transport, status):
        with pytest.raises(RequestFailed) as exc_info:
            await transport.request("GET", str(server.make_url(f"/fail/{status}")), SessionState())
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_connection_error(self, transport):
        with pytest.raises(RequestFailed) as exc_info:
            await transport.request("GET", "http://127.0.0.1:1/mvp/session", SessionState())
        assert exc_info.value.status_code is None
