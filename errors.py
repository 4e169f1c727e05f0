"""Error taxonomy shared by the services and the HTTP layer.

Every error a caller can see derives from ``ExpenseAppError`` and carries
the HTTP-analogous status, an optional machine-readable code and, for
validation failures, one detail per offending field.
"""

from typing import Optional, Sequence


class ExpenseAppError(Exception):
    status_code = 500
    code: Optional[str] = None

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def payload(self) -> dict[str, object]:
        body: dict[str, object] = {"message": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(ExpenseAppError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        details: Sequence[dict[str, str]],
        message: str = "Validation failed",
    ) -> None:
        super().__init__(message)
        self.details = [dict(item) for item in details]

    def payload(self) -> dict[str, object]:
        body = super().payload()
        body["details"] = self.details
        return body


class IdentityError(ExpenseAppError):
    status_code = 401
    # Cookie names the response must expire alongside the error.
    clear_cookies: tuple[str, ...] = ()


class Unauthenticated(IdentityError):
    code = "UNAUTHENTICATED"


class TokenExpired(IdentityError):
    code = "TOKEN_EXPIRED"
    clear_cookies = ("token",)


class InvalidRefreshToken(IdentityError):
    code = "INVALID_REFRESH_TOKEN"
    clear_cookies = ("refreshToken",)


class AlreadyExists(ExpenseAppError):
    status_code = 400
    code = "ALREADY_EXISTS"


class InvalidCredentials(ExpenseAppError):
    status_code = 400
    code = "INVALID_CREDENTIALS"


class NotFound(ExpenseAppError):
    status_code = 404
    code = "NOT_FOUND"


class InternalError(ExpenseAppError):
    status_code = 500
    code = "INTERNAL_ERROR"


class ConfigurationError(RuntimeError):
    """Raised while starting up; never mapped to a response."""


class TokenInvalid(ValueError):
    pass
