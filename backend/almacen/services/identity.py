from __future__ import annotations

from dataclasses import dataclass

from almacen.core.security import decode_access_token


@dataclass(frozen=True)
class Principal:
    subject: str
    email: str
    verified: bool
    token_version: int = 0


def resolve_principal(token: str) -> Principal | None:
    """Map a bearer token to the authenticated principal, or None if invalid."""
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        return None
    return Principal(
        subject=str(claims["sub"]),
        email=str(claims.get("email", "")),
        verified=True,
        token_version=int(claims.get("ver", 0)),
    )
