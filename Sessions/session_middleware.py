"""
SESSION MIDDLEWARE
==================
Loads, exposes and persists encrypted sessions around every HTTP request.

FLOW:
- Resolve the session cookie (or start a new session).
- Load state from the cookie itself, or from the Store by session id.
- Attach the Session to scope["session"] and run the wrapped app.
- When the app starts its response, save the session once if it is dirty
  and attach the Set-Cookie header before anything is sent.

WHY:
- A rejected or tampered session must never reach route code.

HOW:
- Cookie mode: cookie value = base64url(nonce || secretbox(msgpack(data))).
- Store mode: cookie value = random session id, Store holds the same blob.
- Load failures answer 500 with a generic body; save failures are only logged.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from Sessions.session import Session, SessionCookie
from Sessions.session_config import SessionSettings
from Sessions.session_context import attach_session
from Sessions.session_errors import (
    SessionAuthError,
    SessionDecodeError,
    SessionError,
    SessionNotFound,
    SessionStoreError,
)
from Sessions.session_logging import get_session_logger, redact_session_id
from Sessions.session_metrics import increment_session_event
from Sessions.session_serializer import SessionSerializer
from Sessions.session_store import generate_session_id, is_valid_session_id


# Browsers commonly cap name + value + attributes around 4096 bytes.
MAX_COOKIE_SIZE = 4096


class EncryptedSessionMiddleware(BaseHTTPMiddleware):
    """
    Encrypted session middleware with optional external store.

    - Encrypts session data with XSalsa20-Poly1305 under the first secret key
    - Accepts data encrypted under any configured key (rotation)
    - Sets HttpOnly always, Secure for https requests or https_only
    - Saves only sessions that were modified during the request
    """

    def __init__(self, app, settings: SessionSettings):
        super().__init__(app)
        self.settings = settings
        self.keys = settings.keys
        self.store = settings.store
        settings.registry.freeze()
        self.serializer = SessionSerializer(settings.registry)
        self.logger = get_session_logger("middleware")

    async def dispatch(self, request: Request, call_next):
        stale_cookie = False
        try:
            session = await self.load_session(request)
        except SessionAuthError:
            increment_session_event("auth_failed")
            self.logger.warning(
                "session authentication failed for every configured key path=%s", request.url.path
            )
            if self.settings.decode_failure_policy != "reset":
                return self._error_response()
            session, stale_cookie = self._start_session(request), True
        except SessionDecodeError as exc:
            increment_session_event("decode_failed")
            self.logger.warning("malformed session payload path=%s error=%s", request.url.path, exc)
            if self.settings.decode_failure_policy != "reset":
                return self._error_response()
            session, stale_cookie = self._start_session(request), True
        except SessionStoreError as exc:
            increment_session_event("store_failed")
            self.logger.error(
                "failed loading session id=%s: %s",
                redact_session_id(exc.session_id),
                exc,
                exc_info=True,
            )
            return self._error_response()

        attach_session(request, session)
        response = await call_next(request)
        await self.save_session(response, session, stale_cookie=stale_cookie)
        return response

    def _is_secure(self, request: Request) -> bool:
        if self.settings.https_only:
            return True
        scheme = request.url.scheme
        if self.settings.trust_forwarded_proto:
            forwarded = request.headers.get("x-forwarded-proto")
            if forwarded:
                scheme = forwarded.split(",")[0].strip().lower()
        return scheme in {"https", "wss"}

    def _new_session(self, request: Request) -> Session:
        settings = self.settings
        cookie = SessionCookie(
            name=settings.cookie_name,
            domain=settings.domain,
            path=settings.path,
            max_age=settings.max_age_seconds or None,
            secure=self._is_secure(request),
            http_only=True,
            same_site=settings.same_site,
        )
        return Session(cookie, self.keys, self.serializer)

    def _start_session(self, request: Request) -> Session:
        session = self._new_session(request)
        session.is_new = True
        if self.store is not None:
            session.cookie.value = generate_session_id()
        increment_session_event("created")
        return session

    async def _call_store(self, operation: str, call: Awaitable[Any], session_id: str) -> Any:
        timeout = self.settings.store_timeout_seconds
        try:
            if timeout is not None:
                return await asyncio.wait_for(call, timeout)
            return await call
        except SessionStoreError:
            raise
        except asyncio.TimeoutError as exc:
            raise SessionStoreError(f"session store {operation} timed out", session_id=session_id) from exc
        except Exception as exc:
            raise SessionStoreError(f"session store {operation} failed", session_id=session_id) from exc

    async def load_session(self, request: Request) -> Session:
        """Build the request's Session from its cookie, or start a new one."""
        value = request.cookies.get(self.settings.cookie_name)
        if not value:
            return self._start_session(request)

        if self.store is None:
            session = self._new_session(request)
            session.cookie.value = value
            session.decode(value)
            increment_session_event("loaded")
            return session

        if not is_valid_session_id(value):
            self.logger.info("ignoring malformed session id %s", redact_session_id(value))
            return self._start_session(request)

        try:
            blob = await self._call_store("load", self.store.load(value), value)
        except SessionNotFound:
            # Unknown ids are never adopted, the client gets a fresh one.
            self.logger.info("session %s not found in store", redact_session_id(value))
            return self._start_session(request)

        session = self._new_session(request)
        session.cookie.value = value
        try:
            session.decode(blob)
        except (SessionAuthError, SessionDecodeError):
            if self.settings.decode_failure_policy == "reset":
                await self._discard_entry(value)
            raise
        increment_session_event("loaded")
        return session

    async def _discard_entry(self, session_id: str) -> None:
        """Best-effort removal of a stored blob that can no longer be read."""
        try:
            await self._call_store("destroy", self.store.destroy(session_id), session_id)
        except SessionStoreError as exc:
            self.logger.error(
                "failed removing unreadable session id=%s: %s", redact_session_id(session_id), exc
            )

    async def save_session(self, response: Response, session: Session, stale_cookie: bool = False) -> None:
        """Persist a dirty session and set its cookie. Failures are logged, never raised."""
        if not session.dirty and not stale_cookie:
            return
        try:
            await self._persist(response, session, stale_cookie)
        except SessionError as exc:
            increment_session_event("save_failed")
            self.logger.error(
                "failed saving session id=%s: %s",
                redact_session_id(session.cookie.value if self.store is not None else None),
                exc,
                exc_info=True,
            )

    async def _persist(self, response: Response, session: Session, stale_cookie: bool) -> None:
        cookie = session.cookie

        if session.destroyed:
            if self.store is not None:
                await self._call_store("destroy", self.store.destroy(cookie.value), cookie.value)
            cookie.value = ""
            self._write_cookie(response, cookie)
            increment_session_event("destroyed")
            return

        if session.regenerate_requested and self.store is not None:
            previous = cookie.value
            cookie.value = generate_session_id()
            if not session.is_new:
                await self._call_store("destroy", self.store.destroy(previous), previous)
            increment_session_event("regenerated")

        blob = session.encode()
        if not blob:
            if session.is_new and not stale_cookie:
                return
            # The client still holds state that no longer exists.
            if self.store is not None and not stale_cookie:
                await self._call_store("destroy", self.store.destroy(cookie.value), cookie.value)
            session.destroy()
            cookie.value = ""
            self._write_cookie(response, cookie)
            increment_session_event("destroyed")
            return

        if self.store is not None:
            await self._call_store("save", self.store.save(cookie.value, blob), cookie.value)
        else:
            cookie.value = blob.decode("ascii")
            size = len(cookie.name) + len(cookie.value)
            if size > MAX_COOKIE_SIZE:
                self.logger.warning(
                    "session cookie is %d bytes, browsers may drop cookies over %d bytes", size, MAX_COOKIE_SIZE
                )

        self._write_cookie(response, cookie)
        increment_session_event("saved")

    def _write_cookie(self, response: Response, cookie: SessionCookie) -> None:
        response.set_cookie(
            cookie.name,
            cookie.value,
            max_age=cookie.max_age,
            expires=cookie.expires,
            path=cookie.path,
            domain=cookie.domain,
            secure=cookie.secure,
            httponly=cookie.http_only,
            samesite=cookie.same_site,
        )

    def _error_response(self) -> Response:
        return JSONResponse({"detail": "An error occurred"}, status_code=500)
