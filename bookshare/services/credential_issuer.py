"""
Activation codes and session credentials.

Activation codes are short numeric strings mailed at registration. They are
valid for a fixed window, can be consumed once, and each new code supersedes
the user's earlier ones. Session credentials are signed JWTs carrying the
user id as subject plus display claims; they are never stored and are checked
purely by signature and expiry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
import logging
import secrets
import string

from jose import JWTError, jwt

from bookshare.core.config import get_settings
from bookshare.core.mailer import dispatch_email, render_template
from bookshare.db.models import User
from bookshare.domain.errors import (
    ActivationCodeAlreadyConsumedError,
    ActivationCodeExpiredError,
    ActivationCodeNotFoundError,
    InvalidSessionCredentialError,
    SessionCredentialExpiredError,
)
from bookshare.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

_RESERVED_CLAIMS = {"sub", "iat", "exp"}
_MAX_CODE_ATTEMPTS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC.
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


def generate_activation_code(length: int) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


@dataclass
class ActivationResult:
    user_id: int
    activated_at: datetime


@dataclass
class SessionPrincipal:
    """Identity and claims recovered from a verified session credential."""

    identity: int
    claims: dict[str, Any]
    expires_at: datetime


@dataclass
class CredentialIssuer:
    """Mints and checks activation codes and signed session credentials."""

    clock: Callable[[], datetime] = field(default=_utcnow)

    def __post_init__(self):
        self.settings = get_settings()
        self.repository = SQLRepository()

    def _now(self) -> datetime:
        return _as_utc(self.clock())

    # -------------------------------------- activation codes --------------------------------------
    def _store_new_code(self, user: User, now: datetime) -> str:
        length = self.settings.activation_code_length
        expires_at = now + timedelta(seconds=self.settings.activation_ttl_seconds)
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = generate_activation_code(length)
            if self.repository.activation_code_exists(code):
                continue
            # A concurrent issuer may still take the code between the check and the insert.
            if self.repository.create_activation_token(user.id, code, now, expires_at) is not None:
                return code
        raise RuntimeError("Could not generate an unused activation code")

    def _send_activation_email(self, user: User, code: str) -> None:
        context = {
            "username": user.full_name,
            "activation_code": code,
            "confirmation_url": self.settings.activation_url,
            "ttl_minutes": max(1, self.settings.activation_ttl_seconds // 60),
        }
        dispatch_email(
            "Account activation",
            user.email,
            render_template("activate_account.html", **context),
            render_template("activate_account.txt", **context),
        )

    def issue_activation_code(self, user: User) -> str:
        code = self._store_new_code(user, self._now())
        logger.info("Activation code issued for user %s", user.id)
        self._send_activation_email(user, code)
        return code

    def validate_activation(self, code: str) -> ActivationResult:
        value = (code or "").strip()
        if not value:
            raise ActivationCodeNotFoundError()
        entity = self.repository.get_activation_token(value)
        if not entity:
            raise ActivationCodeNotFoundError()
        if entity.validated_at is not None:
            raise ActivationCodeAlreadyConsumedError()
        if entity.superseded_at is not None:
            raise ActivationCodeExpiredError(code_reissued=False)

        now = self._now()
        if now > _as_utc(entity.expires_at):
            # Only the caller that claims the expired token sends a fresh code.
            if not self.repository.claim_expired_token(entity.id, now):
                raise ActivationCodeExpiredError(code_reissued=False)
            user = self.repository.get_user(entity.user_id)
            if not user:
                raise ActivationCodeNotFoundError()
            logger.info("Activation code for user %s expired; sending a new one", user.id)
            self.issue_activation_code(user)
            raise ActivationCodeExpiredError(code_reissued=True)

        if not self.repository.consume_activation_token(entity.id, now):
            raise ActivationCodeAlreadyConsumedError()
        logger.info("User %s activated", entity.user_id)
        return ActivationResult(user_id=entity.user_id, activated_at=now)

    # -------------------------------------- session credentials --------------------------------------
    def issue_session_credential(self, identity: int, claims: dict[str, Any] | None = None) -> str:
        now = self._now()
        expires_at = now + timedelta(seconds=max(60, self.settings.session_ttl_seconds))
        payload = {k: v for k, v in (claims or {}).items() if k not in _RESERVED_CLAIMS}
        payload.update(
            sub=str(identity),
            iat=int(now.timestamp()),
            exp=int(expires_at.timestamp()),
        )
        return jwt.encode(payload, self.settings.secret_key, algorithm=self.settings.jwt_algorithm)

    def verify_session_credential(self, token: str) -> SessionPrincipal:
        if not token:
            raise InvalidSessionCredentialError()
        try:
            # Expiry is checked below against the issuer's clock, the same one that stamped it.
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.jwt_algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidSessionCredentialError() from exc
        try:
            identity = int(payload["sub"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidSessionCredentialError() from exc
        if self._now() >= expires_at:
            raise SessionCredentialExpiredError()
        claims = {k: v for k, v in payload.items() if k not in _RESERVED_CLAIMS}
        return SessionPrincipal(identity=identity, claims=claims, expires_at=expires_at)
