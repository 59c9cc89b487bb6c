from __future__ import annotations

import logging

import jwt
from jwt import PyJWKClient

from ephemeral_service.application.dto.principal import Principal
from ephemeral_service.infrastructure.auth.hs256_verifier import principal_from_claims

logger = logging.getLogger(__name__)


class JWKSVerifier:
    """Verify identity-provider ID tokens against a remote JWKS endpoint."""

    def __init__(self, jwks_url: str, audience: str | None = None) -> None:
        self._jwks_url = jwks_url
        self._audience = audience
        self._jwk_client = PyJWKClient(jwks_url)

    async def verify(self, token: str) -> Principal:
        signing_key = self._jwk_client.get_signing_key_from_jwt(token)
        payload = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256", "ES256"],
            audience=self._audience,
            options={"verify_aud": self._audience is not None},
        )
        return principal_from_claims(payload)
