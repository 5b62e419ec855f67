"""Tests for the session storage abstraction layer."""
import os
from unittest.mock import patch

from mismatched.models.session import GameSession
from mismatched.services.session_store import SessionStore
from mismatched.storage import create_backend
from mismatched.storage.memory import InMemorySessionBackend


def _make_session(session_id: str = "s1", user_id: str = "user-1") -> GameSession:
    return GameSession(session_id=session_id, user_id=user_id, started_at=1000.0, source_ip="1.2.3.4")


class TestInMemorySessionBackend:
    """Tests for InMemorySessionBackend."""

    def setup_method(self):
        self.backend = InMemorySessionBackend()

    def test_get_nonexistent(self):
        assert self.backend.get("nonexistent") is None

    def test_put_and_get(self):
        session = _make_session()
        self.backend.put(session)
        assert self.backend.get("s1") is session

    def test_put_overwrites(self):
        self.backend.put(_make_session(user_id="a"))
        self.backend.put(_make_session(user_id="b"))
        assert self.backend.get("s1").user_id == "b"
        assert self.backend.count() == 1

    def test_delete(self):
        self.backend.put(_make_session())
        assert self.backend.delete("s1") is True
        assert self.backend.delete("s1") is False
        assert self.backend.get("s1") is None

    def test_exists(self):
        assert self.backend.exists("s1") is False
        self.backend.put(_make_session())
        assert self.backend.exists("s1") is True

    def test_values_is_a_snapshot(self):
        self.backend.put(_make_session("s1"))
        self.backend.put(_make_session("s2"))

        snapshot = self.backend.values()
        self.backend.delete("s1")

        assert {s.session_id for s in snapshot} == {"s1", "s2"}
        assert self.backend.count() == 1


class TestCreateBackend:

    @patch.dict(os.environ, {}, clear=True)
    def test_default_is_memory(self):
        assert isinstance(create_backend(), InMemorySessionBackend)

    @patch.dict(os.environ, {"SESSION_STORE_BACKEND": "redis"})
    def test_unknown_backend_falls_back_to_memory(self, caplog):
        backend = create_backend()
        assert isinstance(backend, InMemorySessionBackend)
        assert "SESSION_STORE_BACKEND=redis" in caplog.text


class TestSessionStoreWithBackend:
    """SessionStore delegates storage to its backend."""

    def test_default_backend_is_in_memory(self):
        store = SessionStore()
        assert isinstance(store._backend, InMemorySessionBackend)

    def test_custom_backend(self, clock):
        custom = InMemorySessionBackend()
        store = SessionStore(backend=custom, clock=clock)

        session = store.create("user-1", "1.2.3.4")

        assert store._backend is custom
        assert custom.get(session.session_id) == session

    def test_restore_does_not_overwrite_existing(self, clock):
        custom = InMemorySessionBackend()
        store = SessionStore(backend=custom, clock=clock)
        session = store.create("user-1", "1.2.3.4")
        replacement = GameSession(
            session_id=session.session_id, user_id="other", started_at=clock(), source_ip="x"
        )

        store.restore(replacement)

        assert custom.get(session.session_id).user_id == "user-1"
