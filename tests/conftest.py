"""
Shared fixtures: an in-process homeserver, a relay, and clients wired to them.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from pubky.auth.challenge import Challenge, now
from pubky.auth.identity import public_key_from_z32
from pubky.client import Client
from pubky.config import Config
from pubky.dht.store import MemoryRecordStore
from pubky.errors import ChallengeError
from pubky.network.http import SESSION_COOKIE
from pubky.network.relay import RelayServer


@dataclass
class RunningServer:
    """An in-process server and the base URL clients reach it on."""
    url: str
    server: TestServer
    relay: Optional[RelayServer] = None


class StubHomeserver:
    """
    Minimal homeserver speaking the challenge-response protocol.

    Attributes tests can tweak:
        challenge_ttl: Seconds until issued challenges expire
        challenge_length: Truncate issued challenges to this many bytes
        session_body: Raw body returned by GET /mvp/session instead of the user id
    """

    def __init__(self):
        self.challenge_ttl = 60
        self.challenge_length = None
        self.session_body = None
        self.challenges = []
        self.users = set()
        self.sessions = {}  # session id -> user id
        self.repos = {}  # (user id, repo) -> {path: bytes}

        self.app = web.Application()
        self.app.router.add_get("/mvp/challenge", self.handle_challenge)
        self.app.router.add_put("/mvp/users/{user_id}/pkarr", self.handle_signup)
        self.app.router.add_get("/mvp/session", self.handle_get_session)
        self.app.router.add_put("/mvp/session/{user_id}", self.handle_login)
        self.app.router.add_delete("/mvp/session/{user_id}", self.handle_logout)
        self.app.router.add_put("/mvp/users/{user_id}/repos/{repo}", self.handle_create_repo)
        self.app.router.add_put("/mvp/users/{user_id}/repos/{repo}/{path:.+}", self.handle_put)
        self.app.router.add_get("/mvp/users/{user_id}/repos/{repo}/{path:.+}", self.handle_get)
        self.app.router.add_delete("/mvp/users/{user_id}/repos/{repo}/{path:.+}", self.handle_delete)

    async def handle_challenge(self, request: web.Request) -> web.Response:
        challenge = Challenge.create(now() + self.challenge_ttl)
        self.challenges.append(challenge)
        body = challenge.serialize()
        if self.challenge_length is not None:
            body = body[:self.challenge_length]
        return web.Response(body=body, content_type="application/octet-stream")

    def _verify(self, user_id: str, signature: bytes) -> None:
        public_key = public_key_from_z32(user_id)
        for challenge in list(self.challenges):
            try:
                challenge.verify(signature, public_key)
            except ChallengeError:
                continue
            self.challenges.remove(challenge)
            return
        raise web.HTTPUnauthorized(text="Invalid challenge signature")

    def _open_session(self, user_id: str) -> web.Response:
        session_id = secrets.token_hex(16)
        self.sessions[session_id] = user_id
        response = web.Response(status=200)
        response.set_cookie(SESSION_COOKIE, session_id)
        return response

    def _session_user(self, request: web.Request) -> str:
        user_id = self.sessions.get(request.cookies.get(SESSION_COOKIE))
        if user_id is None:
            raise web.HTTPUnauthorized(text="No session")
        return user_id

    def _require_owner(self, request: web.Request) -> str:
        user_id = request.match_info["user_id"]
        if self._session_user(request) != user_id:
            raise web.HTTPForbidden(text="Session belongs to another user")
        return user_id

    async def handle_signup(self, request: web.Request) -> web.Response:
        user_id = request.match_info["user_id"]
        self._verify(user_id, await request.read())
        self.users.add(user_id)
        return self._open_session(user_id)

    async def handle_login(self, request: web.Request) -> web.Response:
        user_id = request.match_info["user_id"]
        if user_id not in self.users:
            raise web.HTTPNotFound(text="Unknown user")
        self._verify(user_id, await request.read())
        return self._open_session(user_id)

    async def handle_logout(self, request: web.Request) -> web.Response:
        self._require_owner(request)
        del self.sessions[request.cookies[SESSION_COOKIE]]
        return web.Response(status=200)

    async def handle_get_session(self, request: web.Request) -> web.Response:
        user_id = self._session_user(request)
        if self.session_body is not None:
            return web.Response(body=self.session_body)
        return web.Response(text=user_id)

    async def handle_create_repo(self, request: web.Request) -> web.Response:
        user_id = self._require_owner(request)
        self.repos.setdefault((user_id, request.match_info["repo"]), {})
        return web.Response(status=200)

    def _repo(self, request: web.Request, user_id: str) -> dict:
        repo = self.repos.get((user_id, request.match_info["repo"]))
        if repo is None:
            raise web.HTTPNotFound(text="Unknown repository")
        return repo

    async def handle_put(self, request: web.Request) -> web.Response:
        user_id = self._require_owner(request)
        self._repo(request, user_id)[request.match_info["path"]] = await request.read()
        return web.Response(status=200)

    async def handle_get(self, request: web.Request) -> web.Response:
        repo = self._repo(request, request.match_info["user_id"])
        data = repo.get(request.match_info["path"])
        if data is None:
            raise web.HTTPNotFound(text="Not found")
        return web.Response(body=data, content_type="application/octet-stream")

    async def handle_delete(self, request: web.Request) -> web.Response:
        user_id = self._require_owner(request)
        if self._repo(request, user_id).pop(request.match_info["path"], None) is None:
            raise web.HTTPNotFound(text="Not found")
        return web.Response(status=200)


@pytest.fixture
def seed():
    return bytes(range(32))


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def stub_homeserver():
    return StubHomeserver()


@pytest_asyncio.fixture
async def homeserver(stub_homeserver):
    """Running stub homeserver, reachable as http://localhost:<port>."""
    server = TestServer(stub_homeserver.app, host="localhost")
    await server.start_server()
    yield RunningServer(f"http://localhost:{server.port}", server)
    await server.close()


@pytest_asyncio.fixture
async def relay():
    """Running relay backed by an in-memory record store."""
    relay_server = RelayServer()
    server = TestServer(relay_server.app, host="127.0.0.1")
    await server.start_server()
    yield RunningServer(f"http://127.0.0.1:{server.port}", server, relay_server)
    await server.close()


@pytest.fixture
def config(tmp_path):
    return Config(data_dir=tmp_path, relay_url=None, request_timeout=5.0)


@pytest_asyncio.fixture
async def client(config, store):
    client = Client(config, store=store)
    yield client
    await client.close()
