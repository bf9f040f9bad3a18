"""
Network transports for pubky.

This module provides:
- HTTP transport for homeserver requests with explicit session state

The pkarr relay client and server live in ``pubky.network.relay``.
"""

from .http import HttpTransport, Paths, SessionState

__all__ = [
    "HttpTransport",
    "Paths",
    "SessionState",
]
