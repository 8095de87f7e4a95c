"""Tests for the session registry and its authentication state."""

import pytest

from tallyboard.board.sessions import AuthState, SessionRegistry


@pytest.fixture
def registry():
    return SessionRegistry()


class TestRegistry:
    def test_register_starts_unauthenticated(self, registry):
        conn = object()
        session = registry.register(conn)
        assert session.connection is conn
        assert session.state is AuthState.UNAUTHENTICATED
        assert session.authenticated is False
        assert registry.count() == 1

    def test_session_ids_are_unique(self, registry):
        ids = {registry.register(object()).session_id for _ in range(20)}
        assert len(ids) == 20

    def test_one_session_per_connection(self, registry):
        conn = object()
        first = registry.register(conn)
        second = registry.register(conn)
        assert first is second
        assert registry.count() == 1

    def test_deregister_is_idempotent(self, registry):
        conn = object()
        session = registry.register(conn)
        assert registry.deregister(conn) is session
        assert registry.deregister(conn) is None
        assert registry.count() == 0
        assert conn not in registry

    def test_all_in_registration_order(self, registry):
        conns = [object() for _ in range(3)]
        for conn in conns:
            registry.register(conn)
        assert [s.connection for s in registry.all()] == conns


class TestAuthentication:
    def test_set_authenticated(self, registry):
        conn = object()
        registry.register(conn)
        registry.set_authenticated(conn)
        assert registry.is_authenticated(conn) is True
        assert registry.get(conn).state is AuthState.AUTHENTICATED

    def test_unknown_connection(self, registry):
        conn = object()
        registry.set_authenticated(conn)
        assert registry.is_authenticated(conn) is False
        assert registry.count() == 0

    def test_authenticated_count(self, registry):
        conns = [object() for _ in range(4)]
        for conn in conns:
            registry.register(conn)
        registry.set_authenticated(conns[0])
        registry.set_authenticated(conns[2])
        registry.set_authenticated(conns[2])
        assert registry.count() == 4
        assert registry.authenticated_count() == 2

        registry.deregister(conns[0])
        assert registry.authenticated_count() == 1

    def test_reconnect_starts_unauthenticated(self, registry):
        old = object()
        registry.register(old)
        registry.set_authenticated(old)
        registry.deregister(old)

        new = object()
        registry.register(new)
        assert registry.is_authenticated(new) is False
        assert registry.authenticated_count() == 0
