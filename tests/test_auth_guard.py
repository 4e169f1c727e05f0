import pytest

from auth import AuthenticatedAccount, authenticate
from cookies import ACCESS_COOKIE
from errors import TokenExpired, Unauthenticated
from tokens import TokenService


def test_missing_cookie_is_unauthenticated(clock) -> None:
    service = TokenService("access-secret", "refresh-secret", clock=clock)

    with pytest.raises(Unauthenticated) as exc:
        authenticate({}, service)

    assert exc.value.payload() == {
        "message": "No token provided",
        "code": "UNAUTHENTICATED",
    }


def test_valid_access_cookie_yields_account(clock) -> None:
    service = TokenService("access-secret", "refresh-secret", clock=clock)
    pair = service.issue(11)

    identity = authenticate({ACCESS_COOKIE: pair.access_token}, service)

    assert identity == AuthenticatedAccount(account_id=11)


def test_expired_access_cookie_asks_for_refresh_and_cookie_cleanup(clock) -> None:
    service = TokenService("access-secret", "refresh-secret", clock=clock)
    pair = service.issue(11)
    clock.advance(16 * 60)

    with pytest.raises(TokenExpired) as exc:
        authenticate({ACCESS_COOKIE: pair.access_token}, service)

    assert exc.value.code == "TOKEN_EXPIRED"
    assert exc.value.status_code == 401
    assert exc.value.clear_cookies == (ACCESS_COOKIE,)


def test_refresh_token_in_access_cookie_is_rejected(clock) -> None:
    service = TokenService("access-secret", "refresh-secret", clock=clock)
    pair = service.issue(11)

    with pytest.raises(TokenExpired):
        authenticate({ACCESS_COOKIE: pair.refresh_token}, service)
