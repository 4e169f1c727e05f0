from fastapi import Response

from config import Settings
from tokens import ACCESS_TOKEN_TTL, REFRESH_TOKEN_TTL, TokenPair

ACCESS_COOKIE = "token"
REFRESH_COOKIE = "refreshToken"
REFRESH_COOKIE_PATH = "/api/auth/refresh-token"

# (samesite, path) per cookie; deletion must repeat the path it was set with.
_COOKIE_SCOPE = {
    ACCESS_COOKIE: ("lax", "/"),
    REFRESH_COOKIE: ("strict", REFRESH_COOKIE_PATH),
}


def set_auth_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        pair.access_token,
        max_age=int(ACCESS_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=int(REFRESH_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path=REFRESH_COOKIE_PATH,
    )


def clear_cookie(response: Response, name: str, settings: Settings) -> None:
    samesite, path = _COOKIE_SCOPE[name]
    response.delete_cookie(
        name,
        path=path,
        httponly=True,
        secure=settings.is_production,
        samesite=samesite,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in _COOKIE_SCOPE:
        clear_cookie(response, name, settings)
