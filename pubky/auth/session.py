"""
Challenge-response authentication with a homeserver.

An Auth instance represents one identity at one homeserver. It owns the
homeserver URL and the session token; the token is refreshed in place by
every response that sets a new session cookie.

Flow (signup / login):
1. Resolve the homeserver for the public key (unless already known)
2. GET /mvp/challenge and decode the 40-byte challenge
3. Sign the challenge's derived signable bytes
4. PUT the raw signature to the signup or session path
5. Signup only: republish the identity -> homeserver record
"""

import logging
from enum import Enum
from typing import Optional

from ..dht.resolver import Resolver, url_to_record
from ..errors import (
    DHTError,
    ExpiredChallenge,
    FailedToGetChallenge,
    FailedToPublishHomeserver,
    FailedToResolveHomeserver,
    FailedToRetrieveSession,
    FailedToSendUserSignature,
    InvalidChallenge,
    InvalidSeed,
    InvalidSignatureLength,
    LogoutFailed,
    NoHomeserver,
    NoSession,
    RequestFailed,
)
from ..network.http import OCTET_STREAM, HttpTransport, Paths, SessionState, join_url
from .challenge import Challenge
from .identity import SIGNATURE_LENGTH, KeyPair

logger = logging.getLogger(__name__)


class SigType(Enum):
    """Where a root signature is sent."""
    SIGNUP = "signup"
    LOGIN = "login"


class Auth:
    """
    Authentication state for one identity.

    Args:
        resolver: Resolver used to locate and publish the homeserver
        transport: HTTP transport for homeserver requests
        homeserver_url: Known homeserver URL, resolved on demand if None
    """

    def __init__(
        self,
        resolver: Resolver,
        transport: HttpTransport,
        homeserver_url: Optional[str] = None,
    ):
        self.resolver = resolver
        self.transport = transport
        self.homeserver_url = homeserver_url.rstrip("/") if homeserver_url else None
        self.state = SessionState()
        self.user_id: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.state.session_id

    @property
    def is_authenticated(self) -> bool:
        return self.homeserver_url is not None and self.state.session_id is not None

    async def signup(self, seed: bytes, relay: Optional[str] = None, publish: bool = True) -> str:
        """
        Create an account at the homeserver.

        Args:
            seed: 32-byte seed of the user's key pair
            relay: Relay to use for resolution and publishing
            publish: Republish the identity -> homeserver record afterwards

        Returns:
            The user id (z-base-32 public key)

        Raises:
            InvalidSeed: The seed is not 32 bytes
            FailedToPublishHomeserver: The homeserver URL cannot be published
                (checked before anything is sent) or publishing failed
        """
        if publish and self.homeserver_url is not None:
            self._check_publishable(self.homeserver_url)

        with self._keypair(seed) as keypair:
            user_id = await self._send_user_root_signature(SigType.SIGNUP, keypair, relay)

            if self.homeserver_url is None:
                await self._resolve_homeserver(keypair.to_z32(), relay)

            if publish:
                try:
                    await self.resolver.publish(keypair, self.homeserver_url, relay)
                except DHTError as e:
                    logger.error(f"Failed to publish homeserver for {user_id}: {e}")
                    raise FailedToPublishHomeserver(str(e)) from e

        logger.info(f"Signed up {user_id} at {self.homeserver_url}")
        return user_id

    async def login(self, seed: bytes, relay: Optional[str] = None) -> str:
        """Log in to the homeserver. Returns the user id."""
        with self._keypair(seed) as keypair:
            user_id = await self._send_user_root_signature(SigType.LOGIN, keypair, relay)

        logger.info(f"Logged in {user_id} at {self.homeserver_url}")
        return user_id

    async def logout(self, user_id: str) -> str:
        """
        End the session at the homeserver.

        Returns:
            The session id that was active
        """
        homeserver_url = self._require_homeserver()
        if self.state.session_id is None:
            raise NoSession()

        url = join_url(homeserver_url, Paths.session(user_id))
        try:
            await self.transport.request("DELETE", url, self.state)
        except RequestFailed as e:
            raise LogoutFailed(str(e)) from e

        session_id = self.state.take()
        logger.info(f"Logged out {user_id}")
        return session_id

    async def session(self) -> str:
        """Get the current session description from the homeserver."""
        homeserver_url = self._require_homeserver()
        if self.state.session_id is None:
            raise NoSession()

        url = join_url(homeserver_url, Paths.session())
        try:
            body = await self.transport.request("GET", url, self.state)
            return body.decode("utf-8")
        except (RequestFailed, UnicodeDecodeError) as e:
            raise FailedToRetrieveSession(str(e)) from e

    @staticmethod
    def _keypair(seed: bytes) -> KeyPair:
        try:
            return KeyPair.from_seed(seed)
        except ValueError as e:
            raise InvalidSeed(str(e)) from e

    @staticmethod
    def _check_publishable(homeserver_url: str) -> None:
        try:
            url_to_record(homeserver_url)
        except DHTError as e:
            raise FailedToPublishHomeserver(str(e)) from e

    def _require_homeserver(self) -> str:
        if self.homeserver_url is None:
            raise NoHomeserver()
        return self.homeserver_url

    async def _resolve_homeserver(self, public_key: str, relay: Optional[str] = None) -> str:
        try:
            self.homeserver_url = await self.resolver.resolve_homeserver(public_key, relay)
        except DHTError as e:
            logger.error(f"Failed to resolve homeserver for {public_key}: {e}")
            raise FailedToResolveHomeserver(str(e)) from e
        return self.homeserver_url

    async def _send_user_root_signature(
        self,
        sig_type: SigType,
        keypair: KeyPair,
        relay: Optional[str] = None,
    ) -> str:
        user_id = keypair.to_z32()
        if self.homeserver_url is None:
            await self._resolve_homeserver(user_id, relay)

        challenge = await self._get_challenge(user_id, relay)
        if challenge.expired():
            raise ExpiredChallenge(f"Challenge expired at {challenge.expires_at}")

        signature = challenge.sign(keypair)
        if len(signature) != SIGNATURE_LENGTH:
            raise InvalidSignatureLength(f"Invalid signature length: {len(signature)}")

        if sig_type is SigType.SIGNUP:
            path = Paths.signup(user_id)
        else:
            path = Paths.session(user_id)

        try:
            await self.transport.request(
                "PUT",
                join_url(self.homeserver_url, path),
                self.state,
                headers={"Content-Type": OCTET_STREAM},
                body=signature,
            )
        except RequestFailed as e:
            logger.error(f"Failed to send {sig_type.value} signature for {user_id}: {e}")
            raise FailedToSendUserSignature(str(e)) from e

        self.user_id = user_id
        return user_id

    async def _get_challenge(self, public_key: str, relay: Optional[str] = None) -> Challenge:
        if self.homeserver_url is None:
            await self._resolve_homeserver(public_key, relay)

        url = join_url(self.homeserver_url, Paths.challenge())
        try:
            body = await self.transport.request("GET", url, self.state)
            return Challenge.deserialize(body)
        except (RequestFailed, InvalidChallenge) as e:
            raise FailedToGetChallenge(str(e)) from e
