"""
FEATURE: ENCRYPTED SESSIONS
"""

# FLOW:
# - Re-export session middleware, settings, stores and accessors.
# WHY:
# - Provides single import point for session features.
# HOW:
# - Re-exports the public names of the Sessions modules.

from Sessions.error_handling import register_error_handlers
from Sessions.session import Session, SessionCookie
from Sessions.session_config import SessionSettings, load_session_settings
from Sessions.session_context import attach_session, get_session, require_session
from Sessions.session_errors import (
    MissingSessionError,
    SessionAuthError,
    SessionConfigError,
    SessionDecodeError,
    SessionError,
    SessionNotFound,
    SessionSerializationError,
    SessionStoreError,
)
from Sessions.session_middleware import EncryptedSessionMiddleware
from Sessions.session_serializer import SessionSerializer, TypeRegistry, default_registry
from Sessions.session_store import MemoryStore, SessionStore, generate_session_id

__all__ = [
    "EncryptedSessionMiddleware",
    "SessionSettings",
    "load_session_settings",
    "Session",
    "SessionCookie",
    "SessionStore",
    "MemoryStore",
    "generate_session_id",
    "SessionSerializer",
    "TypeRegistry",
    "default_registry",
    "attach_session",
    "get_session",
    "require_session",
    "register_error_handlers",
    "SessionError",
    "SessionConfigError",
    "SessionDecodeError",
    "SessionAuthError",
    "SessionSerializationError",
    "SessionStoreError",
    "SessionNotFound",
    "MissingSessionError",
]
