"""
SESSION STORES
==============
Contract for external session backends plus an in-process implementation.
"""

# FLOW:
# - The middleware calls load/save/destroy with the id carried in the cookie.
# - Stores only ever see encrypted session blobs.
# HOW:
# - SessionStore is a Protocol; anything with the three async methods qualifies.
# - MemoryStore keeps blobs in a dict for development and tests.

from __future__ import annotations

import logging
import re
import secrets
from typing import Dict, Protocol, runtime_checkable

from Sessions.session_errors import SessionNotFound


# https://owasp.org/www-community/vulnerabilities/Insufficient_Session-ID_Length
ID_SIZE = 32

_ID_PATTERN = re.compile(rf"^[0-9a-f]{{{ID_SIZE * 2}}}$")

logger = logging.getLogger("security.session.store")


@runtime_checkable
class SessionStore(Protocol):
    async def load(self, session_id: str) -> bytes:
        """Return the stored blob or raise SessionNotFound / SessionStoreError."""
        ...

    async def save(self, session_id: str, data: bytes) -> None:
        ...

    async def destroy(self, session_id: str) -> None:
        ...


def generate_session_id() -> str:
    return secrets.token_hex(ID_SIZE)


def is_valid_session_id(value: str | None) -> bool:
    return bool(value) and _ID_PATTERN.match(value) is not None


class MemoryStore:
    """Dict-backed store. Process-local, so only for a single worker."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    async def load(self, session_id: str) -> bytes:
        try:
            return self._data[session_id]
        except KeyError:
            raise SessionNotFound("session not found", session_id=session_id) from None

    async def save(self, session_id: str, data: bytes) -> None:
        self._data[session_id] = bytes(data)
        logger.debug("stored %d bytes", len(data))

    async def destroy(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._data

    def __len__(self) -> int:
        return len(self._data)
