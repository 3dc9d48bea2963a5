from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from bookshare.core.rate_limiter import rate_limit_ip
from bookshare.schemas import (
    ERROR_RESPONSES,
    ActivationResponse,
    AuthenticationRequest,
    AuthenticationResponse,
    MessageResponse,
    RegistrationRequest,
    ResendActivationRequest,
)
from bookshare.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"], responses=ERROR_RESPONSES)


def _get_auth_service(request: Request) -> AuthService:
    svc = getattr(getattr(request.app, "state", None), "auth_service", None)
    if not svc:
        raise RuntimeError("AuthService not configured")
    return svc


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def register(payload: RegistrationRequest, request: Request, svc: AuthService = Depends(_get_auth_service)):
    rate_limit_ip(request, "auth:register", limit=10, window_seconds=300)
    svc.register(payload.first_name, payload.last_name, payload.email, payload.password)
    return {"message": "Registration accepted. Check your email for the activation code."}


@router.get("/activate-account", response_model=ActivationResponse)
def activate_account(token: str, request: Request, svc: AuthService = Depends(_get_auth_service)):
    rate_limit_ip(request, "auth:activate", limit=20, window_seconds=300)
    result = svc.activate(token)
    return {"activated": True, "user_id": result.user_id}


@router.post("/resend-activation", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def resend_activation(payload: ResendActivationRequest, request: Request, svc: AuthService = Depends(_get_auth_service)):
    rate_limit_ip(request, "auth:resend", limit=5, window_seconds=300)
    svc.resend_activation(payload.email)
    return {"message": "If the account exists and is not active yet, a new code has been sent."}


@router.post("/authenticate", response_model=AuthenticationResponse)
def authenticate(payload: AuthenticationRequest, request: Request, svc: AuthService = Depends(_get_auth_service)):
    rate_limit_ip(request, "auth:login", limit=10, window_seconds=60)
    result = svc.authenticate(payload.email, payload.password)
    return {"token": result.token}
