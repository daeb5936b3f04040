"""
SESSION
=======
Per-request session object: cookie identity, key-value data and a dirty flag.

FLOW:
- The middleware builds one Session per request and decodes incoming state into it.
- Route code reads and mutates it through request.session / get_session().
- The middleware encodes and persists it once, only if it is dirty.

HOW:
- encode() = msgpack serialize -> secretbox encrypt (current key) -> base64url.
- decode() reverses it, trying every configured key.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Sequence

from Sessions.session_crypto import decode_token, decrypt_bytes, encode_token, encrypt_bytes
from Sessions.session_errors import SessionConfigError
from Sessions.session_serializer import SessionSerializer


DESTROYED_MAX_AGE = -1


@dataclass
class SessionCookie:
    """Attributes of the session cookie sent back to the browser."""

    name: str
    value: str = ""
    domain: Optional[str] = None
    path: str = "/"
    max_age: Optional[int] = None
    expires: Optional[datetime] = None
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"


class Session(MutableMapping):
    """
    Encrypted session state for a single request.

    Any call that can change persisted state (set, delete, destroy,
    regenerate and the mapping mutators) marks the session dirty. Reads never do.
    """

    def __init__(
        self,
        cookie: SessionCookie,
        keys: Sequence[bytes] = (),
        serializer: Optional[SessionSerializer] = None,
    ):
        self.cookie = cookie
        self.secret_keys = list(keys)
        self.serializer = serializer or SessionSerializer()
        self.is_new = False
        self._data: Dict[str, Any] = {}
        self._dirty = False
        self._regenerate = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def destroyed(self) -> bool:
        return self.cookie.max_age == DESTROYED_MAX_AGE

    @property
    def regenerate_requested(self) -> bool:
        return self._regenerate

    def set(self, key: str, value: Any) -> None:
        self._dirty = True
        self._data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def delete(self, key: str) -> None:
        self._dirty = True
        self._data.pop(key, None)

    def destroy(self) -> None:
        """Drop all data and expire the cookie. Store cleanup happens at save time."""
        self.cookie.max_age = DESTROYED_MAX_AGE
        self.cookie.expires = datetime.now(timezone.utc)
        self._data = {}
        self._dirty = True

    def regenerate(self) -> None:
        """Ask for a fresh session id on save, e.g. right after login."""
        self._regenerate = True
        self._dirty = True

    def encode(self) -> bytes:
        if not self._data:
            return b""
        if not self.secret_keys:
            raise SessionConfigError("at least one encryption key is required")

        box = encrypt_bytes(self.serializer.serialize(self._data), self.secret_keys[0])
        return encode_token(box).encode("ascii")

    def decode(self, raw: bytes | str) -> None:
        if not raw:
            return
        if not self.secret_keys:
            raise SessionConfigError("at least one encryption key is required")

        plaintext = decrypt_bytes(decode_token(raw), self.secret_keys)
        self._data = self.serializer.deserialize(plaintext)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    # Mapping protocol, so request.session["key"] works like Starlette's sessions.

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        if key not in self._data:
            raise KeyError(key)
        self.delete(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"<Session name={self.cookie.name!r} keys={sorted(self._data)!r} dirty={self._dirty}>"
