"""
SESSION CONFIG
==============
Explicit, validated settings for the session middleware.

FLOW:
- Build SessionSettings directly, or load_session_settings() from the environment.
- Settings are validated on construction; a missing secret key fails here.
- The middleware receives one settings object and never mutates it.

HOW:
- Initialization order: keys, then store, then type registry.
- Env files follow APP_ENV (.env.production / .env.localhost) via python-dotenv.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

import dotenv

from Sessions.session_crypto import derive_key
from Sessions.session_errors import SessionConfigError
from Sessions.session_logging import get_session_logger
from Sessions.session_serializer import TypeRegistry, default_registry
from Sessions.session_store import SessionStore


DEFAULT_COOKIE_NAME = "hs"
DEFAULT_MAX_AGE = 86400  # 1 day
SAME_SITE_VALUES = {"lax", "strict", "none"}
DECODE_FAILURE_POLICIES = {"reject", "reset"}

logger = get_session_logger("config")


@dataclass(frozen=True)
class SessionSettings:
    """
    Session middleware configuration.

    secret_keys: ordered secrets, first one encrypts, all of them decrypt.
        Keep retired secrets at the end until their sessions expire.
    cookie_name / domain / path / max_age_seconds / same_site: cookie attributes.
        max_age_seconds=0 issues browser-session cookies.
    https_only: always mark the cookie Secure. Otherwise it is Secure only
        for https requests (X-Forwarded-Proto counts when trust_forwarded_proto).
    store: optional SessionStore; when set the cookie only carries a session id.
    store_timeout_seconds: upper bound for each store call.
    registry: types allowed in session values beyond msgpack natives.
    decode_failure_policy: "reject" answers undecodable sessions with a 500,
        "reset" continues with an empty session that replaces the bad cookie.
    """

    secret_keys: Tuple[str | bytes, ...]
    cookie_name: str = DEFAULT_COOKIE_NAME
    domain: Optional[str] = None
    path: str = "/"
    max_age_seconds: int = DEFAULT_MAX_AGE
    https_only: bool = False
    same_site: str = "lax"
    trust_forwarded_proto: bool = False
    store: Optional[SessionStore] = None
    store_timeout_seconds: Optional[float] = None
    registry: TypeRegistry = field(default_factory=default_registry)
    decode_failure_policy: str = "reject"

    def __post_init__(self):
        keys = self.secret_keys
        if isinstance(keys, (str, bytes)):
            keys = (keys,)
        keys = tuple(keys or ())
        if not keys:
            raise SessionConfigError("session: at least one secret key is required")
        # Order is significant: secret_keys[0] encrypts.
        if any(not k for k in keys):
            raise SessionConfigError("session: secret keys must not be empty")
        object.__setattr__(self, "secret_keys", keys)

        if not self.cookie_name:
            raise SessionConfigError("session: cookie name must not be empty")
        if self.max_age_seconds < 0:
            raise SessionConfigError("session: max age must be zero or positive")
        same_site = (self.same_site or "").lower()
        if same_site not in SAME_SITE_VALUES:
            raise SessionConfigError(f"session: unsupported same_site value {self.same_site!r}")
        object.__setattr__(self, "same_site", same_site)
        if same_site == "none" and not self.https_only:
            logger.warning("SameSite=None cookies are rejected by browsers unless they are Secure")
        if self.store is not None and not isinstance(self.store, SessionStore):
            raise SessionConfigError("session: store must implement load, save and destroy")
        if self.store_timeout_seconds is not None and self.store_timeout_seconds <= 0:
            raise SessionConfigError("session: store timeout must be positive")
        if self.decode_failure_policy not in DECODE_FAILURE_POLICIES:
            raise SessionConfigError(f"session: unknown decode failure policy {self.decode_failure_policy!r}")

    @property
    def keys(self) -> Tuple[bytes, ...]:
        return tuple(derive_key(k) for k in self.secret_keys)


TRUE_VALUES = {"1", "true", "yes", "on"}


def get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUE_VALUES


def get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %d", name, raw, default)
        return default


def get_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, ignoring it", name, raw)
        return None


def get_secret_keys() -> Tuple[str, ...]:
    """SESSION_SECRET_KEYS in order, or SESSION_SECRET_KEY alone. Blank entries are kept so validation sees them."""
    raw = os.getenv("SESSION_SECRET_KEYS", "")
    if raw.strip():
        return tuple(item.strip() for item in raw.split(","))
    single = os.getenv("SESSION_SECRET_KEY", "").strip()
    return (single,) if single else ()


def _env_name() -> str:
    env = os.getenv("APP_ENV", "").strip().lower()
    if env in {"prod", "production"}:
        return ".env.production"
    return ".env.localhost"


def _env_path() -> str:
    root = os.path.dirname(os.path.dirname(__file__))
    return os.path.join(root, _env_name())


def load_session_settings(
    store: Optional[SessionStore] = None,
    registry: Optional[TypeRegistry] = None,
) -> SessionSettings:
    """Build SessionSettings from SESSION_* environment variables."""
    env_path = _env_path()
    dotenv.load_dotenv(env_path)
    logger.debug("session env file: %s", env_path)

    settings = SessionSettings(
        secret_keys=get_secret_keys(),
        cookie_name=os.getenv("SESSION_COOKIE_NAME", DEFAULT_COOKIE_NAME),
        domain=os.getenv("SESSION_COOKIE_DOMAIN") or None,
        path=os.getenv("SESSION_COOKIE_PATH", "/"),
        max_age_seconds=get_int("SESSION_MAX_AGE", DEFAULT_MAX_AGE),
        https_only=get_bool("SESSION_HTTPS_ONLY", False),
        same_site=os.getenv("SESSION_SAME_SITE", "lax"),
        trust_forwarded_proto=get_bool("SESSION_TRUST_FORWARDED_PROTO", False),
        store=store,
        store_timeout_seconds=get_float("SESSION_STORE_TIMEOUT"),
        registry=registry if registry is not None else default_registry(),
        decode_failure_policy=os.getenv("SESSION_DECODE_FAILURE_POLICY", "reject").strip().lower(),
    )

    logger.info(
        "session settings loaded: cookie=%s keys=%d store=%s",
        settings.cookie_name,
        len(settings.secret_keys),
        type(store).__name__ if store is not None else "cookie",
    )
    return settings
