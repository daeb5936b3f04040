from datetime import datetime, timezone

import pytest

from Sessions.session import DESTROYED_MAX_AGE, Session, SessionCookie
from Sessions.session_crypto import decode_token, decrypt_bytes, derive_key
from Sessions.session_errors import SessionAuthError, SessionConfigError, SessionDecodeError
from Sessions.session_serializer import SessionSerializer


KEYS = [derive_key("secret"), derive_key("old1")]


def new_session(keys=KEYS):
    return Session(SessionCookie(name="hs"), keys)


def test_set_then_get_returns_value_and_marks_dirty():
    session = new_session()
    session.set("blah", "camilo")

    assert session.get("blah") == "camilo"
    assert session.dirty


def test_get_never_marks_dirty():
    session = new_session()
    assert session.get("missing") is None
    assert session.get("missing", "fallback") == "fallback"
    assert not session.dirty


def test_delete_then_get_is_absent():
    session = new_session()
    session.set("blah", "camilo")
    session.delete("blah")
    assert session.get("blah") is None
    assert "blah" not in session


def test_delete_marks_dirty_even_for_missing_keys():
    session = new_session()
    session.delete("never-set")
    assert session.dirty


def test_destroy_clears_data_and_expires_cookie():
    session = new_session()
    session.set("blah", "camilo")
    before = datetime.now(timezone.utc)

    session.destroy()

    assert len(session) == 0
    assert session.cookie.max_age == DESTROYED_MAX_AGE
    assert session.destroyed
    assert before <= session.cookie.expires <= datetime.now(timezone.utc)
    assert session.dirty


def test_destroy_is_idempotent():
    session = new_session()
    session.destroy()
    session.destroy()
    assert session.destroyed
    assert session.encode() == b""


def test_empty_session_encodes_to_nothing():
    session = new_session()
    assert session.encode() == b""
    session.set("a", 1)
    session.delete("a")
    assert session.encode() == b""


def test_encode_requires_a_key():
    session = new_session(keys=[])
    session.set("a", 1)
    with pytest.raises(SessionConfigError):
        session.encode()


def test_encode_uses_first_key_only():
    session = new_session()
    session.set("blah", "camilo")
    box = decode_token(session.encode())

    plaintext = decrypt_bytes(box, [KEYS[0]])
    assert SessionSerializer().deserialize(plaintext) == {"blah": "camilo"}
    with pytest.raises(SessionAuthError):
        decrypt_bytes(box, [KEYS[1]])


def test_decode_restores_saved_data():
    writer = new_session()
    writer.set("blah", "camilo")
    writer.set("count", 2)

    reader = new_session()
    reader.decode(writer.encode())

    assert reader.to_dict() == {"blah": "camilo", "count": 2}
    assert not reader.dirty


def test_decode_accepts_data_from_a_retired_key():
    writer = new_session(keys=[KEYS[1]])
    writer.set("blah", "camilo")

    reader = new_session(keys=KEYS)
    reader.decode(writer.encode().decode("ascii"))
    assert reader["blah"] == "camilo"


def test_decode_of_empty_input_is_a_noop():
    session = new_session()
    session.decode(b"")
    session.decode("")
    assert session.to_dict() == {}


def test_decode_surfaces_distinct_failures():
    writer = new_session(keys=[derive_key("someone-else")])
    writer.set("blah", "camilo")

    with pytest.raises(SessionAuthError):
        new_session().decode(writer.encode())
    with pytest.raises(SessionDecodeError):
        new_session().decode(b"%%%")


def test_mapping_protocol_follows_dirty_rules():
    session = new_session()
    session["a"] = 1
    session.update({"b": 2})

    assert dict(session) == {"a": 1, "b": 2}
    assert len(session) == 2
    assert session.pop("a") == 1
    with pytest.raises(KeyError):
        del session["missing"]
    assert session.dirty


def test_session_unpacks_like_a_dict():
    session = new_session()
    session["blah"] = "camilo"
    session["count"] = 2

    assert sorted(session.keys()) == ["blah", "count"]
    assert {**session} == {"blah": "camilo", "count": 2}
    assert dict(session.items()) == session.to_dict()


def test_regenerate_marks_dirty():
    session = new_session()
    session.regenerate()
    assert session.regenerate_requested
    assert session.dirty
