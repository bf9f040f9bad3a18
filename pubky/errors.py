"""
Exception types for the pubky client.

Every failure is raised as a subclass of PubkyError. Errors that wrap a
lower layer (a DHT lookup inside signup, an HTTP failure inside logout)
are raised with ``from`` so the original error stays on ``__cause__``.
"""

from typing import Optional


class PubkyError(Exception):
    """Base exception for all pubky client errors."""
    pass


# DHT / record errors

class DHTError(PubkyError):
    """Record store lookup, publish or parse failure."""
    pass


class EntryNotFound(DHTError):
    """No signed record is published under the public key."""

    def __init__(self, public_key: str):
        super().__init__(f"DHT entry not found: {public_key}")
        self.public_key = public_key


class EntryNotPublished(DHTError):
    """The record store refused or failed to store a signed record."""
    pass


class NoRecordsFound(DHTError):
    """The signed record has no usable _pubky / @ entry."""

    def __init__(self, message: str = "No matching records found"):
        super().__init__(message)


class FailedToParseDnsRecordAsUrl(DHTError):
    """A record value does not form a valid homeserver URL."""
    pass


class FailedToResolveHomeserverUrl(DHTError):
    """The record store could not be queried."""
    pass


class InvalidSignedRecord(DHTError):
    """A signed record is malformed or its signature does not verify."""
    pass


class NoRecordStore(DHTError):
    """Neither a relay nor a record store is configured."""

    def __init__(self, message: str = "No relay or record store configured"):
        super().__init__(message)


# HTTP errors

class HTTPError(PubkyError):
    """HTTP exchange with a homeserver or relay failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestFailed(HTTPError):
    """The request could not be sent or the server answered with an error status."""
    pass


# Challenge errors

class ChallengeError(PubkyError):
    """Challenge decoding or verification failure."""
    pass


class ChallengeExpired(ChallengeError):
    """The challenge expiry time has passed."""

    def __init__(self, message: str = "Expired challenge"):
        super().__init__(message)


class InvalidChallengeSignature(ChallengeError):
    """The signature does not match the challenge for this public key."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class InvalidChallenge(ChallengeError):
    """Challenge bytes have the wrong length or layout."""
    pass


# Auth errors

class AuthError(PubkyError):
    """Signup, login, logout or session failure."""
    pass


class NoHomeserver(AuthError):
    """No homeserver URL is known for this identity."""

    def __init__(self, message: str = "No homeserver known"):
        super().__init__(message)


class NoSession(AuthError):
    """There is no active session with the homeserver."""

    def __init__(self, message: str = "Not authenticated with homeserver"):
        super().__init__(message)


class InvalidSeed(AuthError):
    """The seed is not a 32-byte Ed25519 secret key."""
    pass


class FailedToResolveHomeserver(AuthError):
    pass


class FailedToPublishHomeserver(AuthError):
    pass


class FailedToSendUserSignature(AuthError):
    pass


class FailedToGetChallenge(AuthError):
    pass


class ExpiredChallenge(AuthError):
    """The homeserver handed out a challenge that had already expired."""
    pass


class InvalidSignatureLength(AuthError):
    pass


class FailedToRetrieveSession(AuthError):
    pass


class LogoutFailed(AuthError):
    pass


# Client errors

class ClientError(PubkyError):
    """Failure in the multi-identity client facade."""
    pass


class UserNotSignedUp(ClientError):
    """The client holds no session for this user id."""

    def __init__(self, user_id: str):
        super().__init__(f"User not signed up: {user_id}")
        self.user_id = user_id


class FailedToSignup(ClientError):
    pass


class FailedToLogin(ClientError):
    pass


class FailedToLogout(ClientError):
    pass


class FailedToRetrieveSessionInfo(ClientError):
    pass


class FailedToCreateRepository(ClientError):
    pass


class FailedToStoreData(ClientError):
    pass


class FailedToRetrieveData(ClientError):
    pass


class FailedToDeleteData(ClientError):
    pass
