import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import (
    AlreadyExists,
    InvalidCredentials,
    InvalidRefreshToken,
    TokenInvalid,
    Unauthenticated,
)
from models import Account
from passwords import hash_password, verify_password
from schemas import RegisterIn
from tokens import TokenPair, TokenService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


@lru_cache
def _unknown_account_hash() -> str:
    # Checked when no account matches, so both login failures pay for bcrypt.
    return hash_password("unknown-account-placeholder")


class SessionStore:
    """Account registration plus the single-active-refresh-token lifecycle.

    Each account holds at most one live refresh token in
    ``Account.refresh_token``. Login overwrites it, refresh swaps it for a
    new one and logout clears it; any token that no longer matches the
    stored value is dead even while its signature and expiry still verify.
    """

    def __init__(self, session: Session, tokens: TokenService) -> None:
        self.session = session
        self.tokens = tokens

    def _by_email(self, email: str) -> Optional[Account]:
        return self.session.scalar(select(Account).where(Account.email == email))

    def register(self, data: RegisterIn) -> tuple[Account, TokenPair]:
        if self._by_email(data.email) is not None:
            raise AlreadyExists("Email already registered")

        account = Account(
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
        )
        self.session.add(account)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same email.
            self.session.rollback()
            raise AlreadyExists("Email already registered") from exc

        pair = self.tokens.issue(account.id)
        account.refresh_token = pair.refresh_token
        self.session.commit()
        self.session.refresh(account)
        logger.info(f"register: account_id={account.id}")
        return account, pair

    def login(self, email: str, password: str) -> tuple[Account, TokenPair]:
        account = self._by_email(email)
        if account is None:
            verify_password(password, _unknown_account_hash())
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)
        if not verify_password(password, account.password_hash):
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)

        pair = self.tokens.issue(account.id)
        # Replaces whatever session was active before.
        account.refresh_token = pair.refresh_token
        self.session.commit()
        logger.info(f"login: account_id={account.id}")
        return account, pair

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        if not refresh_token:
            raise Unauthenticated("Refresh token required")
        try:
            account_id = self.tokens.verify_refresh(refresh_token)
        except TokenInvalid as exc:
            logger.info(f"refresh_rejected: reason={exc}")
            raise InvalidRefreshToken("Invalid refresh token") from exc

        pair = self.tokens.issue(account_id)
        result = self.session.execute(
            update(Account)
            .where(Account.id == account_id, Account.refresh_token == refresh_token)
            .values(refresh_token=pair.refresh_token, updated_at=datetime.utcnow())
        )
        if result.rowcount != 1:
            self.session.rollback()
            logger.info(f"refresh_rejected: account_id={account_id} reason=not_active")
            raise InvalidRefreshToken("Invalid refresh token")

        self.session.commit()
        logger.info(f"refresh: account_id={account_id}")
        return pair

    def logout(self, refresh_token: Optional[str]) -> None:
        if not refresh_token:
            return
        self.session.execute(
            update(Account)
            .where(Account.refresh_token == refresh_token)
            .values(refresh_token=None, updated_at=datetime.utcnow())
        )
        self.session.commit()
