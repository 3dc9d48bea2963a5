"""
Registration, activation and authentication use cases.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from bookshare.core.config import get_settings
from bookshare.core.security import hash_password, needs_rehash, verify_password
from bookshare.domain.errors import (
    AccountDisabledError,
    AccountLockedError,
    BadCredentialsError,
    EmailAlreadyRegisteredError,
)
from bookshare.repositories.sql_repository import SQLRepository
from bookshare.services.credential_issuer import ActivationResult, CredentialIssuer

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "USER"


@dataclass
class RegisterResult:
    user_id: int
    email: str


@dataclass
class LoginSuccess:
    user_id: int
    email: str
    token: str


@dataclass
class AuthService:
    """Handles registration, activation, resend and login flows."""

    issuer: CredentialIssuer = field(default_factory=CredentialIssuer)

    def __post_init__(self):
        self.settings = get_settings()
        self.repository = SQLRepository()

    # -------------------------------------- registration --------------------------------------
    def register(self, first_name: str, last_name: str, email: str, password: str) -> RegisterResult:
        raw_email = (email or "").strip().lower()
        if self.repository.get_user_by_email(raw_email):
            raise EmailAlreadyRegisteredError()
        user = self.repository.create_user(
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            email=raw_email,
            password_hash=hash_password(password),
            roles=[DEFAULT_ROLE],
            enabled=False,
            locked=False,
        )
        logger.info("Registered user %s; activation pending", user.id)
        self.issuer.issue_activation_code(user)
        return RegisterResult(user_id=user.id, email=user.email)

    def activate(self, code: str) -> ActivationResult:
        return self.issuer.validate_activation(code)

    def resend_activation(self, email: str) -> bool:
        user = self.repository.get_user_by_email(email)
        if not user or user.enabled:
            return False
        self.issuer.issue_activation_code(user)
        return True

    # -------------------------------------- login --------------------------------------
    def authenticate(self, email: str, password: str) -> LoginSuccess:
        raw_email = (email or "").strip()
        if not raw_email:
            raise BadCredentialsError()
        user = self.repository.get_user_by_email(raw_email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("Failed login for %s", raw_email)
            raise BadCredentialsError()
        if user.locked:
            raise AccountLockedError()
        if not user.enabled:
            raise AccountDisabledError()
        if needs_rehash(user.password_hash):
            self.repository.update_user_password(user.id, hash_password(password))

        token = self.issuer.issue_session_credential(
            user.id,
            {"full_name": user.full_name, "email": user.email},
        )
        return LoginSuccess(user_id=user.id, email=user.email, token=token)
