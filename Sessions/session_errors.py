"""
SESSION ERRORS
==============
Exception taxonomy for the encrypted session subsystem.
"""

# FLOW:
# - Setup problems raise SessionConfigError before the middleware exists.
# - Per-request load problems raise SessionDecodeError / SessionAuthError / SessionStoreError.
# - Route code asking for a session that was never attached gets MissingSessionError.
# HOW:
# - Everything derives from SessionError so callers can mask them in one place.

from __future__ import annotations


class SessionError(Exception):
    """Base class for session failures."""


class SessionConfigError(SessionError):
    """Invalid or incomplete session configuration (e.g. no secret key)."""


class SessionDecodeError(SessionError):
    """Session payload is malformed: bad base64, truncated box, corrupt msgpack, unknown type."""


class SessionAuthError(SessionError):
    """No configured key authenticates the session payload."""


class SessionSerializationError(SessionError):
    """Session data holds a value the serializer cannot encode."""


class SessionStoreError(SessionError):
    """Backing store failed to load, save or destroy a session."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id


class SessionNotFound(SessionStoreError):
    """Backing store has no entry for the session id."""


class MissingSessionError(SessionError, LookupError):
    """No session was attached to the request."""
