from datetime import timedelta

import pytest

from config import Settings
from errors import ConfigurationError, TokenInvalid
from tokens import TokenService


def _service(clock) -> TokenService:
    return TokenService("access-secret", "refresh-secret", clock=clock)


def test_issued_pair_verifies_with_matching_keys(clock) -> None:
    service = _service(clock)
    pair = service.issue(42)

    assert service.verify_access(pair.access_token) == 42
    assert service.verify_refresh(pair.refresh_token) == 42


def test_access_and_refresh_keys_do_not_cross_verify(clock) -> None:
    service = _service(clock)
    pair = service.issue(7)

    with pytest.raises(TokenInvalid):
        service.verify_access(pair.refresh_token)
    with pytest.raises(TokenInvalid):
        service.verify_refresh(pair.access_token)


def test_access_token_expires_after_fifteen_minutes(clock) -> None:
    service = _service(clock)
    pair = service.issue(1)

    clock.advance(timedelta(minutes=15).total_seconds())
    assert service.verify_access(pair.access_token) == 1

    clock.advance(timedelta(minutes=1).total_seconds())
    with pytest.raises(TokenInvalid):
        service.verify_access(pair.access_token)
    assert service.verify_refresh(pair.refresh_token) == 1


def test_refresh_token_expires_after_seven_days(clock) -> None:
    service = _service(clock)
    pair = service.issue(1)

    clock.advance(timedelta(days=7, seconds=1).total_seconds())
    with pytest.raises(TokenInvalid):
        service.verify_refresh(pair.refresh_token)


def test_tampered_and_garbage_tokens_are_rejected(clock) -> None:
    service = _service(clock)
    token = service.issue(3).access_token
    tampered = ("x" if token[0] != "x" else "y") + token[1:]

    for candidate in (tampered, "not-a-token", ""):
        with pytest.raises(TokenInvalid):
            service.verify_access(candidate)


def test_token_signed_with_other_secret_is_rejected(clock) -> None:
    forged = TokenService("other-access", "other-refresh", clock=clock).issue(3)

    with pytest.raises(TokenInvalid):
        _service(clock).verify_access(forged.access_token)


def test_pairs_issued_in_the_same_second_differ(clock) -> None:
    service = _service(clock)

    first = service.issue(9)
    second = service.issue(9)

    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token


def test_missing_or_shared_secrets_are_configuration_errors() -> None:
    with pytest.raises(ConfigurationError):
        TokenService("", "refresh-secret")
    with pytest.raises(ConfigurationError):
        TokenService("same", "same")

    settings = Settings(
        database_url="sqlite://",
        access_token_secret="access",
        refresh_token_secret=None,
        environment="development",
        client_url="http://localhost:3000",
        bcrypt_rounds=4,
    )
    with pytest.raises(ConfigurationError):
        TokenService.from_settings(settings)
