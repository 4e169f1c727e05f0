import secrets
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from itsdangerous import BadSignature, URLSafeSerializer

from config import Settings
from errors import ConfigurationError, TokenInvalid

ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)

_ACCESS_SALT = "access-token"
_REFRESH_SALT = "refresh-token"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """Issues and verifies signed, self-expiring bearer tokens.

    The service keeps no per-token state. A token is valid when its
    signature checks out under the matching key and the embedded ``exp``
    is not in the past; revocation is the session store's job.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        *,
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not access_secret or not refresh_secret:
            raise ConfigurationError("Token signing secrets not configured")
        if access_secret == refresh_secret:
            raise ConfigurationError(
                "Access and refresh token secrets must be different"
            )
        self._access = URLSafeSerializer(access_secret, salt=_ACCESS_SALT)
        self._refresh = URLSafeSerializer(refresh_secret, salt=_REFRESH_SALT)
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            settings.access_token_secret or "",
            settings.refresh_token_secret or "",
        )

    def issue(self, account_id: int) -> TokenPair:
        return TokenPair(
            access_token=self._sign(self._access, account_id, self.access_ttl),
            refresh_token=self._sign(self._refresh, account_id, self.refresh_ttl),
        )

    def verify_access(self, token: str) -> int:
        return self._verify(self._access, token)

    def verify_refresh(self, token: str) -> int:
        return self._verify(self._refresh, token)

    def _sign(
        self, serializer: URLSafeSerializer, account_id: int, ttl: timedelta
    ) -> str:
        issued_at = int(self._clock())
        payload = {
            "sub": account_id,
            "exp": issued_at + int(ttl.total_seconds()),
            # Keeps two tokens minted in the same second distinct.
            "jti": secrets.token_hex(8),
        }
        return serializer.dumps(payload)

    def _verify(self, serializer: URLSafeSerializer, token: str) -> int:
        try:
            data = serializer.loads(token)
        except BadSignature as exc:
            raise TokenInvalid("Bad token signature") from exc

        if not isinstance(data, dict):
            raise TokenInvalid("Malformed token payload")
        account_id = data.get("sub")
        expiry = data.get("exp")
        if not isinstance(account_id, int) or isinstance(account_id, bool):
            raise TokenInvalid("Malformed token subject")
        if not isinstance(expiry, int) or isinstance(expiry, bool):
            raise TokenInvalid("Malformed token expiry")

        if self._clock() > expiry:
            raise TokenInvalid("Token expired")
        return account_id
