"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ephemeral_service.application.context import AppContext
from ephemeral_service.application.dto.principal import Principal
from ephemeral_service.application.ports.auth import TokenVerifier
from ephemeral_service.application.ports.recipients import RecipientDirectory
from ephemeral_service.config import settings
from ephemeral_service.infrastructure.auth.hs256_verifier import HS256Verifier
from ephemeral_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from ephemeral_service.services.sweeper import ExpirySweeper

_bearer_scheme = HTTPBearer()


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def get_sweeper(request: Request) -> ExpirySweeper:
    return request.app.state.sweeper


def get_directory(request: Request) -> RecipientDirectory:
    return request.app.state.directory


ContextDep = Annotated[AppContext, Depends(get_context)]
SweeperDep = Annotated[ExpirySweeper, Depends(get_sweeper)]
DirectoryDep = Annotated[RecipientDirectory, Depends(get_directory)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, settings.JWT_AUDIENCE)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_admin(principal: CurrentPrincipal) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]
