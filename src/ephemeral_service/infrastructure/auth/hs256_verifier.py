from __future__ import annotations

import jwt

from ephemeral_service.application.dto.principal import Principal


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        return principal_from_claims(payload)


def principal_from_claims(payload: dict) -> Principal:
    user_id = str(payload.get("user_id") or payload["sub"])
    roles = payload.get("roles") or []
    if payload.get("admin") is True and "admin" not in roles:
        roles = [*roles, "admin"]
    return Principal(user_id=user_id, roles=list(roles))
