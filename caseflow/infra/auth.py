from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))
JWT_ISSUER = os.getenv("JWT_ISSUER", "caseflow")
JWT_LEEWAY_SEC = int(os.getenv("JWT_LEEWAY_SEC", "30"))


def create_access_token(
    *,
    user_id: str,
    permissions: list[str] | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Mint a bearer token whose ``sub`` is the actor id used for ownership checks."""
    if not user_id.strip():
        raise ValueError("user_id must not be blank")
    issued_at = datetime.now(UTC)
    lifetime = timedelta(minutes=expires_minutes or JWT_EXPIRES_MIN)
    claims: dict[str, Any] = {
        "sub": user_id,
        "iss": JWT_ISSUER,
        "permissions": sorted(set(permissions or [])),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(
        token,
        JWT_SECRET,
        algorithms=[JWT_ALGORITHM],
        issuer=JWT_ISSUER,
        leeway=JWT_LEEWAY_SEC,
        options={"require": ["sub", "exp"]},
    )
    subject = decoded.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise ValueError("token carries no actor id")
    return decoded
