"""
SESSION SERIALIZATION
=====================
msgpack encoding of session maps with a registry for custom value types.

FLOW:
- Types are registered once at startup under stable integer codes.
- serialize() packs the session map; registered values travel as msgpack ext types.
- deserialize() unpacks and rebuilds registered values from their codes.

HOW:
- Ext payloads are themselves msgpack, so registered values may nest.
- Codes 1..15 hold the built-ins from default_registry(); apps use 16..127.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
from uuid import UUID

import msgpack

from Sessions.session_errors import (
    SessionConfigError,
    SessionDecodeError,
    SessionSerializationError,
)


MIN_CODE = 0
MAX_CODE = 127
FIRST_APP_CODE = 16


@dataclass(frozen=True)
class RegisteredType:
    code: int
    cls: type
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


def _default_encode(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return dict(vars(obj))


def _default_decoder(cls: type) -> Callable[[Any], Any]:
    if hasattr(cls, "model_validate"):
        return cls.model_validate

    def _decode(payload: Any) -> Any:
        return cls(**payload)

    return _decode


class TypeRegistry:
    """Maps msgpack ext codes to Python types for session values."""

    def __init__(self):
        self._by_code: Dict[int, RegisteredType] = {}
        self._by_type: Dict[type, RegisteredType] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(
        self,
        code: int,
        cls: type,
        encode: Optional[Callable[[Any], Any]] = None,
        decode: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """
        Register cls under code.

        encode turns an instance into msgpack-native data; decode rebuilds it.
        Defaults handle dataclasses, pydantic models and plain classes whose
        constructor accepts their attributes as keywords.
        """
        if self._frozen:
            raise SessionConfigError("type registry is frozen; register types before serving requests")
        if not MIN_CODE <= code <= MAX_CODE:
            raise SessionConfigError(f"type code must be between {MIN_CODE} and {MAX_CODE}, got {code}")
        if code in self._by_code:
            raise SessionConfigError(f"type code {code} already registered for {self._by_code[code].cls.__name__}")
        if cls in self._by_type:
            raise SessionConfigError(f"{cls.__name__} already registered")

        entry = RegisteredType(
            code=code,
            cls=cls,
            encode=encode or _default_encode,
            decode=decode or _default_decoder(cls),
        )
        self._by_code[code] = entry
        self._by_type[cls] = entry

    def for_value(self, value: Any) -> Optional[RegisteredType]:
        for cls in type(value).__mro__:
            entry = self._by_type.get(cls)
            if entry is not None:
                return entry
        return None

    def for_code(self, code: int) -> Optional[RegisteredType]:
        return self._by_code.get(code)

    def __contains__(self, cls: type) -> bool:
        return cls in self._by_type

    def __len__(self) -> int:
        return len(self._by_code)


def default_registry() -> TypeRegistry:
    """Registry preloaded with the standard library types sessions commonly hold."""
    registry = TypeRegistry()
    registry.register(1, datetime, lambda v: v.isoformat(), datetime.fromisoformat)
    registry.register(2, date, lambda v: v.isoformat(), date.fromisoformat)
    registry.register(3, Decimal, str, Decimal)
    registry.register(4, UUID, str, UUID)
    registry.register(5, set, list, set)
    registry.register(6, frozenset, list, frozenset)
    return registry


class SessionSerializer:
    """Converts session maps to and from msgpack bytes."""

    def __init__(self, registry: Optional[TypeRegistry] = None):
        self.registry = registry if registry is not None else default_registry()

    def _pack(self, value: Any) -> bytes:
        return msgpack.packb(value, default=self._default, use_bin_type=True)

    def _default(self, obj: Any) -> msgpack.ExtType:
        entry = self.registry.for_value(obj)
        if entry is None:
            raise TypeError(f"unregistered session value type: {type(obj).__name__}")
        try:
            payload = entry.encode(obj)
        except Exception as exc:
            raise SessionSerializationError(f"failed encoding {entry.cls.__name__} for the session") from exc
        return msgpack.ExtType(entry.code, self._pack(payload))

    def _unpack(self, raw: bytes) -> Any:
        return msgpack.unpackb(raw, ext_hook=self._ext_hook, raw=False, strict_map_key=False)

    def _ext_hook(self, code: int, payload: bytes) -> Any:
        entry = self.registry.for_code(code)
        if entry is None:
            raise SessionDecodeError(f"unknown session value type code: {code}")
        try:
            return entry.decode(self._unpack(payload))
        except SessionDecodeError:
            raise
        except Exception as exc:
            raise SessionDecodeError(f"failed rebuilding {entry.cls.__name__} from session data") from exc

    def serialize(self, data: Dict[str, Any]) -> bytes:
        try:
            return self._pack(dict(data))
        except SessionSerializationError:
            raise
        except Exception as exc:
            raise SessionSerializationError(f"failed encoding session data: {exc}") from exc

    def deserialize(self, raw: bytes) -> Dict[str, Any]:
        try:
            data = self._unpack(raw)
        except SessionDecodeError:
            raise
        except (ValueError, TypeError, msgpack.exceptions.UnpackException) as exc:
            raise SessionDecodeError("failed decoding session data") from exc

        if not isinstance(data, dict):
            raise SessionDecodeError("session data is not a map")
        if not all(isinstance(key, str) for key in data):
            raise SessionDecodeError("session data keys must be strings")
        return data
