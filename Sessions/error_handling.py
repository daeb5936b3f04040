"""
SESSION ERROR HANDLING
======================
Return generic error messages for session failures raised inside routes.
"""

# FLOW:
# - register_error_handlers(app) once at startup.
# HOW:
# - Session errors escaping route code become a generic 500 and are logged.

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from Sessions.session_errors import MissingSessionError, SessionError
from Sessions.session_logging import get_session_logger


logger = get_session_logger("errors")


def register_error_handlers(app) -> None:
    @app.exception_handler(MissingSessionError)
    async def missing_session_handler(request: Request, exc: MissingSessionError):
        logger.error("route %s asked for a session but none was attached", request.url.path)
        return JSONResponse({"detail": "An error occurred"}, status_code=500)

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError):
        logger.error("session error in route %s: %s", request.url.path, exc)
        return JSONResponse({"detail": "An error occurred"}, status_code=500)
