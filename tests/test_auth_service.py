from __future__ import annotations

import pytest

from bookshare.domain.errors import (
    AccountDisabledError,
    AccountLockedError,
    BadCredentialsError,
    EmailAlreadyRegisteredError,
)
from bookshare.repositories.sql_repository import SQLRepository
from bookshare.services.auth_service import AuthService
from bookshare.services.credential_issuer import CredentialIssuer

PASSWORD = "correct horse battery"


@pytest.fixture()
def service(db_env, outbox, clock):
    return AuthService(issuer=CredentialIssuer(clock=clock))


def _register(service: AuthService, email: str = "Reader@Example.com"):
    return service.register("Ada", "Reader", email, PASSWORD)


def test_register_creates_disabled_user_and_mails_code(service, outbox):
    result = _register(service)

    assert result.email == "reader@example.com"
    assert not hasattr(result, "token")
    user = SQLRepository().get_user(result.user_id)
    assert user.enabled is False
    assert user.locked is False
    assert user.roles == ["USER"]
    assert user.password_hash != PASSWORD
    assert len(outbox.codes_for("reader@example.com")) == 1
    assert "Ada Reader" in outbox.messages[0]["html"]


def test_register_rejects_duplicate_email(service):
    _register(service)
    with pytest.raises(EmailAlreadyRegisteredError):
        _register(service, email="READER@example.com")


def test_activation_allows_login(service, outbox):
    result = _register(service)
    service.activate(outbox.last_code(result.email))

    login = service.authenticate("reader@example.com", PASSWORD)

    principal = service.issuer.verify_session_credential(login.token)
    assert principal.identity == result.user_id
    assert principal.claims["full_name"] == "Ada Reader"
    assert principal.claims["email"] == "reader@example.com"


def test_authenticate_unknown_email_or_wrong_password(service, outbox):
    result = _register(service)
    service.activate(outbox.last_code(result.email))

    with pytest.raises(BadCredentialsError):
        service.authenticate("nobody@example.com", PASSWORD)
    with pytest.raises(BadCredentialsError):
        service.authenticate("reader@example.com", "wrong password")
    with pytest.raises(BadCredentialsError):
        service.authenticate("", PASSWORD)


def test_authenticate_before_activation_is_disabled(service):
    _register(service)
    with pytest.raises(AccountDisabledError):
        service.authenticate("reader@example.com", PASSWORD)


def test_locked_account_is_rejected_before_disabled(service):
    result = _register(service)
    SQLRepository().set_user_locked(result.user_id, True)

    with pytest.raises(AccountLockedError):
        service.authenticate("reader@example.com", PASSWORD)


def test_locked_check_only_after_password(service):
    result = _register(service)
    SQLRepository().set_user_locked(result.user_id, True)

    with pytest.raises(BadCredentialsError):
        service.authenticate("reader@example.com", "wrong password")


def test_resend_activation_supersedes_previous_code(service, outbox):
    result = _register(service)
    first = outbox.last_code(result.email)

    assert service.resend_activation("reader@example.com") is True
    second = outbox.last_code(result.email)
    assert SQLRepository().count_activation_tokens(result.user_id) == 2

    service.activate(second)
    assert SQLRepository().get_user(result.user_id).enabled is True
    assert first in outbox.codes_for(result.email)


def test_resend_activation_is_silent_for_unknown_or_active(service, outbox):
    assert service.resend_activation("ghost@example.com") is False

    result = _register(service)
    service.activate(outbox.last_code(result.email))
    assert service.resend_activation(result.email) is False
    assert len(outbox.messages) == 1
