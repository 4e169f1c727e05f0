from dataclasses import dataclass
from typing import Mapping

from fastapi import Depends, Request

from cookies import ACCESS_COOKIE
from errors import TokenExpired, TokenInvalid, Unauthenticated
from tokens import TokenService


@dataclass(frozen=True)
class AuthenticatedAccount:
    account_id: int


def authenticate(
    cookies: Mapping[str, str], token_service: TokenService
) -> AuthenticatedAccount:
    """Resolve the caller from the access-token cookie or reject the request.

    A missing cookie is ``Unauthenticated``; a cookie that fails
    verification is ``TokenExpired`` so clients know to try a refresh. The
    latter carries the access cookie in ``clear_cookies`` and the error
    handler expires it on the way out.
    """
    token = cookies.get(ACCESS_COOKIE)
    if not token:
        raise Unauthenticated("No token provided")
    try:
        account_id = token_service.verify_access(token)
    except TokenInvalid as exc:
        raise TokenExpired("Invalid or expired token") from exc
    return AuthenticatedAccount(account_id=account_id)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def require_account(
    request: Request, token_service: TokenService = Depends(get_token_service)
) -> AuthenticatedAccount:
    return authenticate(request.cookies, token_service)
