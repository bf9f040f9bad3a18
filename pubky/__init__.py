"""
Pubky - client for the pubky decentralized identity network

Users are identified by Ed25519 public keys. Their homeserver is found
through signed records on the DHT (or a pkarr relay), and sessions are
opened with a challenge-response signature.

Example:
    >>> from pubky import Client
    >>> async with Client() as client:
    ...     user_id = await client.signup(seed)
    ...     homeserver = await client.resolve(user_id)
"""

__version__ = "0.1.0"

from .client import Client
from .config import Config, get_config
from .auth.identity import KeyPair
from .auth.challenge import Challenge
from .auth.session import Auth, SigType
from .dht.resolver import Resolver

__all__ = [
    "__version__",
    "Client",
    "Config",
    "get_config",
    "KeyPair",
    "Challenge",
    "Auth",
    "SigType",
    "Resolver",
]
