import logging

import pytest
from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse, StreamingResponse
from httpx import ASGITransport, AsyncClient

from Sessions.error_handling import register_error_handlers
from Sessions.session import Session
from Sessions.session_config import SessionSettings
from Sessions.session_context import require_session
from Sessions.session_middleware import EncryptedSessionMiddleware
from Sessions.session_store import MemoryStore


BASE_URL = "http://testserver"


class RecordingStore(MemoryStore):
    """MemoryStore that remembers which operations ran."""

    def __init__(self):
        super().__init__()
        self.calls = []

    async def load(self, session_id):
        self.calls.append(("load", session_id))
        return await super().load(session_id)

    async def save(self, session_id, data):
        self.calls.append(("save", session_id))
        await super().save(session_id, data)

    async def destroy(self, session_id):
        self.calls.append(("destroy", session_id))
        await super().destroy(session_id)

    def ops(self):
        return [op for op, _ in self.calls]


def build_app(settings: SessionSettings, hits: list | None = None) -> FastAPI:
    """Small app exercising the session from route code."""
    app = FastAPI()
    register_error_handlers(app)
    app.add_middleware(EncryptedSessionMiddleware, settings=settings)
    seen = hits if hits is not None else []

    @app.get("/set")
    async def set_value(key: str, value: str, session: Session = Depends(require_session)):
        seen.append("set")
        session.set(key, value)
        return PlainTextResponse(f"Hello {session.get(key)}!")

    @app.get("/get")
    async def get_value(key: str, session: Session = Depends(require_session)):
        seen.append("get")
        return {"value": session.get(key)}

    @app.get("/delete")
    async def delete_value(key: str, session: Session = Depends(require_session)):
        session.delete(key)
        return {"deleted": key}

    @app.get("/destroy")
    async def destroy(session: Session = Depends(require_session)):
        session.destroy()
        return {"destroyed": True}

    @app.get("/regenerate")
    async def regenerate(session: Session = Depends(require_session)):
        session.regenerate()
        session["user"] = "camilo"
        return {"regenerated": True}

    @app.get("/noop")
    async def noop():
        seen.append("noop")
        return {"ok": True}

    @app.get("/stream")
    async def stream(session: Session = Depends(require_session)):
        session["streamed"] = "yes"

        async def body():
            for chunk in ("one", "two", "three"):
                yield chunk

        return StreamingResponse(body(), media_type="text/plain")

    return app


def client_for(app, base_url: str = BASE_URL) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url=base_url)


def set_cookie_headers(response):
    return response.headers.get_list("set-cookie")


@pytest.fixture
def settings():
    return SessionSettings(secret_keys=("secret", "old1", "old2", "old3"))


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def store_settings(store):
    return SessionSettings(secret_keys=("secret",), store=store)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.INFO)


@pytest.fixture(autouse=True)
def _no_session_log_file(monkeypatch):
    monkeypatch.delenv("SESSION_LOG_FILE", raising=False)
