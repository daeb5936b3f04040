"""
Demo application wiring the encrypted session middleware.

Run with: uvicorn --factory app.main:create_app
Configuration comes from SESSION_* variables (see Sessions/session_config.py).
"""

from __future__ import annotations

import os
from typing import Optional

from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel

from Sessions.feature_sessions import (
    EncryptedSessionMiddleware,
    MemoryStore,
    Session,
    SessionSettings,
    load_session_settings,
    register_error_handlers,
    require_session,
)


class LoginRequest(BaseModel):
    user: str


def create_app(settings: Optional[SessionSettings] = None) -> FastAPI:
    if settings is None:
        store = MemoryStore() if os.getenv("SESSION_STORE", "cookie").lower() == "memory" else None
        settings = load_session_settings(store=store)

    app = FastAPI(title="sealed-sessions demo")
    register_error_handlers(app)
    app.add_middleware(EncryptedSessionMiddleware, settings=settings)

    @app.get("/")
    async def index(session: Session = Depends(require_session)):
        visits = session.get("visits", 0) + 1
        session["visits"] = visits
        return {"visits": visits}

    @app.post("/login")
    async def login(payload: LoginRequest, session: Session = Depends(require_session)):
        session.regenerate()
        session["user"] = payload.user
        return {"user": payload.user}

    @app.get("/me")
    async def me(request: Request):
        return {"user": request.session.get("user")}

    @app.post("/logout")
    async def logout(session: Session = Depends(require_session)):
        session.destroy()
        return {"status": "logged out"}

    return app

