"""
Pubky client.

Entry point for applications: signs identities up and in at their
homeservers, keeps one Auth per signed-in user id, resolves and
publishes homeserver records, and performs repository CRUD calls with
the matching session.

Example:
    >>> async with Client() as client:
    ...     user_id = await client.signup(seed, "https://homeserver.example")
    ...     await client.put(user_id, "notes", "todo.txt", b"buy milk")
"""

import logging
from typing import Dict, Optional

from .auth.identity import KeyPair, generate_seed
from .auth.session import Auth
from .config import Config, get_config
from .dht.cache import TTLCache
from .dht.resolver import Resolver
from .dht.store import RecordStore
from .errors import (
    AuthError,
    FailedToCreateRepository,
    FailedToDeleteData,
    FailedToLogin,
    FailedToLogout,
    FailedToPublishHomeserver,
    FailedToRetrieveData,
    FailedToRetrieveSessionInfo,
    FailedToSignup,
    FailedToStoreData,
    RequestFailed,
    UserNotSignedUp,
)
from .network.http import OCTET_STREAM, HttpTransport, Paths, join_url

logger = logging.getLogger(__name__)


class Client:
    """
    Client for the pubky network.

    Args:
        config: Configuration (defaults to the global config)
        resolver: Resolver to share between identities; built from the
            config when not given
        store: Record store for the default resolver when no relay is
            configured
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        resolver: Optional[Resolver] = None,
        store: Optional[RecordStore] = None,
    ):
        self.config = config or get_config()
        self.transport = HttpTransport(timeout=self.config.request_timeout)
        self.resolver = resolver or Resolver(
            store=store,
            relay=self.config.relay_url,
            cache=TTLCache(max_entries=self.config.cache_max_entries),
            timeout=self.config.request_timeout,
        )
        self.sessions: Dict[str, Auth] = {}

    async def close(self) -> None:
        await self.transport.close()
        await self.resolver.close()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _new_auth(self, homeserver_url: Optional[str]) -> Auth:
        return Auth(
            self.resolver,
            self.transport,
            homeserver_url or self.config.homeserver_url,
        )

    def _auth(self, user_id: str) -> Auth:
        auth = self.sessions.get(user_id)
        if auth is None:
            raise UserNotSignedUp(user_id)
        return auth

    # Auth

    async def signup(
        self,
        seed: Optional[bytes] = None,
        homeserver_url: Optional[str] = None,
        publish: bool = True,
    ) -> str:
        """
        Sign up a (random if no seed) identity. Returns the user id.

        If the account was created but publishing the homeserver record
        failed, the session is still registered before FailedToSignup is
        raised, so the user can retry ``publish`` or log out.
        """
        seed = seed if seed is not None else generate_seed()
        auth = self._new_auth(homeserver_url)
        try:
            user_id = await auth.signup(seed, publish=publish)
        except FailedToPublishHomeserver as e:
            if auth.user_id is not None:
                self.sessions[auth.user_id] = auth
            raise FailedToSignup(str(e)) from e
        except AuthError as e:
            raise FailedToSignup(str(e)) from e

        self.sessions[user_id] = auth
        return user_id

    async def login(self, seed: Optional[bytes] = None, homeserver_url: Optional[str] = None) -> str:
        """Log in an identity. Returns the user id."""
        seed = seed if seed is not None else generate_seed()
        auth = self._new_auth(homeserver_url)
        try:
            user_id = await auth.login(seed)
        except AuthError as e:
            raise FailedToLogin(str(e)) from e

        self.sessions[user_id] = auth
        return user_id

    async def logout(self, user_id: str) -> str:
        """Log out a user. Returns the session id that was active."""
        auth = self._auth(user_id)
        try:
            return await auth.logout(user_id)
        except AuthError as e:
            raise FailedToLogout(str(e)) from e

    async def session(self, user_id: str) -> str:
        auth = self._auth(user_id)
        try:
            return await auth.session()
        except AuthError as e:
            raise FailedToRetrieveSessionInfo(str(e)) from e

    # Resolution

    async def resolve(self, public_key: str) -> str:
        """Resolve any user's homeserver URL."""
        return await self.resolver.resolve_homeserver(public_key)

    async def publish(self, keypair: KeyPair, homeserver_url: str) -> None:
        await self.resolver.publish(keypair, homeserver_url)

    # Repositories

    def _repo_url(self, auth: Auth, user_id: str, repo_name: str, path: Optional[str] = None) -> str:
        if auth.homeserver_url is None:
            raise UserNotSignedUp(user_id)
        return join_url(auth.homeserver_url, Paths.repo(user_id, repo_name, path))

    async def create(self, user_id: str, repo_name: str) -> None:
        """Create a repository for a user."""
        auth = self._auth(user_id)
        url = self._repo_url(auth, user_id, repo_name)
        try:
            await self.transport.request("PUT", url, auth.state)
        except RequestFailed as e:
            raise FailedToCreateRepository(str(e)) from e

    async def put(self, user_id: str, repo_name: str, path: str, payload: bytes) -> str:
        """Store data in a user's repository. Returns its URL."""
        auth = self._auth(user_id)
        url = self._repo_url(auth, user_id, repo_name, path)
        try:
            await self.transport.request(
                "PUT", url, auth.state,
                headers={"Content-Type": OCTET_STREAM},
                body=payload,
            )
        except RequestFailed as e:
            raise FailedToStoreData(str(e)) from e
        return url

    async def get(self, user_id: str, repo_name: str, path: str) -> bytes:
        auth = self._auth(user_id)
        url = self._repo_url(auth, user_id, repo_name, path)
        try:
            return await self.transport.request("GET", url, auth.state)
        except RequestFailed as e:
            raise FailedToRetrieveData(str(e)) from e

    async def delete(self, user_id: str, repo_name: str, path: str) -> None:
        auth = self._auth(user_id)
        url = self._repo_url(auth, user_id, repo_name, path)
        try:
            await self.transport.request("DELETE", url, auth.state)
        except RequestFailed as e:
            raise FailedToDeleteData(str(e)) from e
