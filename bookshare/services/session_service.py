"""Bearer credential gate for protected routes."""
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bookshare.domain.errors import UnauthorizedError
from bookshare.services.credential_issuer import CredentialIssuer, SessionPrincipal

bearer_scheme = HTTPBearer(auto_error=False)


def get_credential_issuer(request: Request) -> CredentialIssuer:
    issuer = getattr(getattr(request.app, "state", None), "credential_issuer", None)
    if not issuer:
        raise RuntimeError("CredentialIssuer not configured")
    return issuer


def current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    issuer: CredentialIssuer = Depends(get_credential_issuer),
) -> SessionPrincipal:
    """Return the verified principal or fail with Unauthorized / invalid / expired."""
    if credentials is None or (credentials.scheme or "").lower() != "bearer" or not credentials.credentials:
        raise UnauthorizedError()
    return issuer.verify_session_credential(credentials.credentials)


def current_user_id(principal: SessionPrincipal = Depends(current_principal)) -> int:
    return principal.identity
