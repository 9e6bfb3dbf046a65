import pytest

from ebandeja.errors import RateLimitedError, UnauthenticatedError
from ebandeja.services.auth import AuthStore

from conftest import PASSWORD, FakeClock

EIGHT_HOURS = 8 * 60 * 60
FIFTEEN_MINUTES = 15 * 60


@pytest.fixture
def store(clock):
    return AuthStore(password=PASSWORD, clock=clock)


def fail_login(store, ip="10.0.0.1", times=1):
    for _ in range(times):
        with pytest.raises(UnauthenticatedError):
            store.login(ip, "incorrecta")


def test_login_returns_token_and_creates_session(store):
    token = store.login("10.0.0.1", PASSWORD)
    assert len(token) == 64
    assert store.is_authenticated(token) is True


def test_tokens_are_unique(store):
    assert store.login("10.0.0.1", PASSWORD) != store.login("10.0.0.1", PASSWORD)


def test_missing_or_unknown_token_is_unauthenticated(store):
    assert store.is_authenticated(None) is False
    assert store.is_authenticated("") is False
    assert store.is_authenticated("no-existe") is False


def test_empty_configured_password_never_authenticates(clock):
    store = AuthStore(password="", clock=clock)
    with pytest.raises(UnauthenticatedError):
        store.login("10.0.0.1", "")


def test_four_failures_do_not_rate_limit(store):
    fail_login(store, times=4)
    assert store.is_rate_limited("10.0.0.1") is False
    # el quinto intento todavia se evalua (y falla con 401, no 429)
    fail_login(store)


def test_sixth_attempt_after_five_failures_is_rate_limited(store):
    fail_login(store, times=5)
    with pytest.raises(RateLimitedError) as exc_info:
        store.login("10.0.0.1", PASSWORD)
    assert exc_info.value.retry_after == FIFTEEN_MINUTES


def test_retry_after_counts_down(store, clock):
    fail_login(store, times=5)
    clock.advance(600.5)
    with pytest.raises(RateLimitedError) as exc_info:
        store.login("10.0.0.1", PASSWORD)
    assert exc_info.value.retry_after == 300


def test_rate_limit_is_per_address(store):
    fail_login(store, ip="10.0.0.1", times=5)
    assert store.login("10.0.0.2", PASSWORD)


def test_window_expiry_resets_the_counter(store, clock):
    fail_login(store, times=5)
    clock.advance(FIFTEEN_MINUTES)
    assert store.is_rate_limited("10.0.0.1") is False
    fail_login(store)
    assert store.failed_logins["10.0.0.1"].count == 1


def test_successful_login_clears_failed_attempts(store):
    fail_login(store, times=4)
    store.login("10.0.0.1", PASSWORD)
    assert "10.0.0.1" not in store.failed_logins
    fail_login(store)
    assert store.failed_logins["10.0.0.1"].count == 1


def test_session_expires_after_eight_hours_without_access(store, clock):
    token = store.login("10.0.0.1", PASSWORD)
    clock.advance(EIGHT_HOURS - 1)
    assert store.is_authenticated(token) is True

    clock.advance(EIGHT_HOURS + 1)
    assert store.is_authenticated(token) is False


def test_each_access_slides_the_expiry():
    clock = FakeClock()
    store = AuthStore(password=PASSWORD, clock=clock)
    token = store.login("10.0.0.1", PASSWORD)

    for _ in range(3):
        clock.advance(EIGHT_HOURS - 60)
        assert store.is_authenticated(token) is True

    clock.advance(EIGHT_HOURS + 60)
    assert store.is_authenticated(token) is False


def test_expired_sessions_are_purged(store, clock):
    old = store.login("10.0.0.1", PASSWORD)
    clock.advance(EIGHT_HOURS + 1)
    fresh = store.login("10.0.0.1", PASSWORD)

    store.purge_expired_sessions()
    assert old not in store.sessions
    assert fresh in store.sessions


def test_destroy_session_is_idempotent(store):
    token = store.login("10.0.0.1", PASSWORD)
    store.destroy_session(token)
    store.destroy_session(token)
    store.destroy_session(None)
    assert store.is_authenticated(token) is False
