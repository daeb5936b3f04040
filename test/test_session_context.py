import pytest
from fastapi import Depends, FastAPI

from conftest import client_for
from Sessions.error_handling import register_error_handlers
from Sessions.session import Session, SessionCookie
from Sessions.session_context import attach_session, get_session, require_session
from Sessions.session_errors import MissingSessionError


def test_get_without_attach_is_an_explicit_miss():
    with pytest.raises(MissingSessionError) as excinfo:
        get_session({"type": "http"})
    assert isinstance(excinfo.value, LookupError)


def test_attached_session_is_returned_by_reference():
    scope = {"type": "http"}
    session = Session(SessionCookie(name="hs"))

    attach_session(scope, session)
    get_session(scope)["blah"] = "camilo"

    assert get_session(scope) is session
    assert session.get("blah") == "camilo"


def test_foreign_scope_values_are_not_sessions():
    with pytest.raises(MissingSessionError):
        get_session({"type": "http", "session": {"blah": "camilo"}})


@pytest.mark.asyncio
async def test_route_without_middleware_gets_generic_error():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/needs-session")
    async def needs_session(session: Session = Depends(require_session)):
        return {"blah": session.get("blah")}

    async with client_for(app) as client:
        response = await client.get("/needs-session")

    assert response.status_code == 500
    assert response.json() == {"detail": "An error occurred"}
