import pytest

from app.services.session_manager import SessionLimitError, SessionManager


@pytest.fixture()
def manager():
    registry = SessionManager(ttl_seconds=60, max_open=2)
    yield registry
    registry.clear()


def test_open_and_close(manager):
    session = manager.open()

    assert manager.get(session.id) is session

    manager.close(session.id)
    assert manager.get(session.id) is None


def test_open_sessions_are_capped(manager):
    manager.open()
    manager.open()

    with pytest.raises(SessionLimitError):
        manager.open()
    assert len(manager.sessions) == 2


def test_closing_frees_a_slot(manager):
    first = manager.open()
    manager.open()

    manager.close(first.id)

    assert manager.open() is not None


def test_expired_sessions_are_pruned_before_the_cap_applies(manager):
    stale = manager.open()
    manager.open()
    stale.created_at -= 61

    fresh = manager.open()

    assert manager.get(stale.id) is None
    assert manager.get(fresh.id) is fresh
    assert len(manager.sessions) == 2
