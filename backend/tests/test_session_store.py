"""
Crowslist Backend — Session Store Unit Tests
==============================================

What:  Token issuance, lookup, expiry (fixed and rolling), and destruction
       for InMemorySessionStore.
How:   A controllable clock stands in for datetime.now, so expiry is
       exercised without sleeping.
"""

from datetime import timedelta
from unittest.mock import MagicMock

from crowslist.services.session_store import InMemorySessionStore
from tests.conftest import FakeClock


class TestSessionLifecycle:

    def setup_method(self):
        self.clock = FakeClock()
        self.store = InMemorySessionStore(ttl=timedelta(hours=24), clock=self.clock)

    def test_create_binds_user(self):
        session = self.store.create(7, "alice@asu.edu")
        found = self.store.get(session.token)
        assert found is not None
        assert found.user_id == 7
        assert found.user_email == "alice@asu.edu"
        assert found.expires_at == self.clock.now + timedelta(hours=24)

    def test_tokens_are_unique_and_opaque(self):
        tokens = {self.store.create(1, "a@asu.edu").token for _ in range(50)}
        assert len(tokens) == 50
        for token in tokens:
            assert len(token) >= 43
            assert "a@asu.edu" not in token

    def test_unknown_and_missing_tokens(self):
        assert self.store.get("nope") is None
        assert self.store.get(None) is None
        assert self.store.get("") is None

    def test_destroy(self):
        session = self.store.create(1, "a@asu.edu")
        self.store.destroy(session.token)
        assert self.store.get(session.token) is None
        assert len(self.store) == 0

    def test_destroy_unknown_token_is_noop(self):
        self.store.create(1, "a@asu.edu")
        self.store.destroy("not-a-token")
        self.store.destroy(None)
        assert len(self.store) == 1

    def test_sessions_are_independent(self):
        a = self.store.create(1, "a@asu.edu")
        b = self.store.create(2, "b@asu.edu")
        self.store.destroy(a.token)
        assert self.store.get(b.token).user_id == 2


class TestSessionExpiry:

    def setup_method(self):
        self.clock = FakeClock()

    def test_fixed_expiry(self):
        store = InMemorySessionStore(ttl=timedelta(hours=24), clock=self.clock)
        session = store.create(1, "a@asu.edu")

        self.clock.advance(hours=23, minutes=59)
        assert store.get(session.token) is not None

        self.clock.advance(minutes=1)
        assert store.get(session.token) is None
        # Evicted on read
        assert len(store) == 0

    def test_fixed_expiry_not_extended_by_reads(self):
        store = InMemorySessionStore(ttl=timedelta(hours=1), clock=self.clock)
        session = store.create(1, "a@asu.edu")
        for _ in range(3):
            self.clock.advance(minutes=20)
            store.get(session.token)
        self.clock.advance(minutes=1)
        assert store.get(session.token) is None

    def test_rolling_expiry_extends_on_read(self):
        store = InMemorySessionStore(ttl=timedelta(hours=1), rolling=True, clock=self.clock)
        session = store.create(1, "a@asu.edu")
        for _ in range(5):
            self.clock.advance(minutes=50)
            assert store.get(session.token) is not None

        self.clock.advance(hours=1)
        assert store.get(session.token) is None

    def test_touch_extends_fixed_session(self):
        store = InMemorySessionStore(ttl=timedelta(hours=1), clock=self.clock)
        session = store.create(1, "a@asu.edu")
        self.clock.advance(minutes=50)
        store.touch(session.token)
        self.clock.advance(minutes=50)
        assert store.get(session.token) is not None

    def test_touch_does_not_revive_expired_session(self):
        store = InMemorySessionStore(ttl=timedelta(hours=1), clock=self.clock)
        session = store.create(1, "a@asu.edu")
        self.clock.advance(hours=2)
        assert store.touch(session.token) is None

    def test_purge_expired(self):
        store = InMemorySessionStore(ttl=timedelta(hours=1), clock=self.clock)
        store.create(1, "a@asu.edu")
        self.clock.advance(minutes=30)
        fresh = store.create(2, "b@asu.edu")
        self.clock.advance(minutes=45)

        assert store.purge_expired() == 1
        assert len(store) == 1
        assert store.get(fresh.token).user_id == 2


class TestRollingRefresh:

    def test_rolling_get_refreshes_through_touch(self):
        clock = FakeClock()
        store = InMemorySessionStore(ttl=timedelta(hours=1), rolling=True, clock=clock)
        session = store.create(1, "a@asu.edu")
        store.touch = MagicMock(wraps=store.touch)

        clock.advance(minutes=30)
        assert store.get(session.token) is session

        store.touch.assert_called_once_with(session.token)
        assert session.expires_at == clock.now + timedelta(hours=1)

    def test_fixed_get_never_touches(self):
        store = InMemorySessionStore(ttl=timedelta(hours=1), clock=FakeClock())
        session = store.create(1, "a@asu.edu")
        store.touch = MagicMock(wraps=store.touch)

        store.get(session.token)

        store.touch.assert_not_called()
