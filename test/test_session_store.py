import pytest

from Sessions.session_errors import SessionNotFound, SessionStoreError
from Sessions.session_store import ID_SIZE, MemoryStore, SessionStore, generate_session_id, is_valid_session_id


def test_generated_ids_are_long_and_unique():
    ids = {generate_session_id() for _ in range(100)}
    assert len(ids) == 100
    for session_id in ids:
        assert len(session_id) == ID_SIZE * 2
        assert is_valid_session_id(session_id)


@pytest.mark.parametrize("value", [None, "", "abc", "Z" * 64, generate_session_id() + "0", "../../etc/passwd"])
def test_invalid_session_ids(value):
    assert not is_valid_session_id(value)


def test_memory_store_satisfies_contract():
    assert isinstance(MemoryStore(), SessionStore)
    assert not isinstance(object(), SessionStore)


@pytest.mark.asyncio
async def test_memory_store_lifecycle():
    store = MemoryStore()
    session_id = generate_session_id()

    await store.save(session_id, b"blob")
    assert await store.load(session_id) == b"blob"
    assert session_id in store

    await store.destroy(session_id)
    assert len(store) == 0
    with pytest.raises(SessionNotFound) as excinfo:
        await store.load(session_id)
    assert isinstance(excinfo.value, SessionStoreError)
    assert excinfo.value.session_id == session_id


@pytest.mark.asyncio
async def test_memory_store_destroy_of_unknown_id_is_quiet():
    await MemoryStore().destroy(generate_session_id())
