"""
SESSION CONTEXT
===============
Attach the request's Session to the ASGI scope and fetch it back.
"""

# FLOW:
# - The middleware calls attach_session() once per request.
# - Routes call get_session(request) or depend on require_session.
# HOW:
# - The Session lives in scope["session"], so request.session also works.

from __future__ import annotations

from typing import Any, MutableMapping

from starlette.requests import HTTPConnection, Request

from Sessions.session import Session
from Sessions.session_errors import MissingSessionError


SCOPE_KEY = "session"


def _scope_of(target: HTTPConnection | MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    if isinstance(target, HTTPConnection):
        return target.scope
    return target


def attach_session(target: HTTPConnection | MutableMapping[str, Any], session: Session) -> None:
    _scope_of(target)[SCOPE_KEY] = session


def get_session(target: HTTPConnection | MutableMapping[str, Any]) -> Session:
    session = _scope_of(target).get(SCOPE_KEY)
    if not isinstance(session, Session):
        raise MissingSessionError("no session attached to this request; is EncryptedSessionMiddleware installed?")
    return session


def require_session(request: Request) -> Session:
    """FastAPI dependency: Depends(require_session)."""
    return get_session(request)
