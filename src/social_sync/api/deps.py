"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from social_sync.application.dto.principal import Principal
from social_sync.application.ports.auth import TokenVerifier
from social_sync.application.ports.store import DocumentStore
from social_sync.config import settings
from social_sync.infrastructure.auth.hs256_verifier import HS256Verifier
from social_sync.infrastructure.auth.jwks_verifier import JWKSVerifier
from social_sync.infrastructure.firestore.client import create_document_store

_bearer_scheme = HTTPBearer()

_store: DocumentStore | None = None


def get_store() -> DocumentStore:
    global _store  # noqa: PLW0603
    if _store is None:
        _store = create_document_store(settings)
    return _store


StoreDep = Annotated[DocumentStore, Depends(get_store)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.FIREBASE_PROJECT_ID, "FIREBASE_PROJECT_ID must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(
            settings.JWKS_URL,
            audience=settings.FIREBASE_PROJECT_ID,
            issuer=settings.firebase_issuer,
        )
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
