from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import jwt
from jwt import InvalidTokenError

DEFAULT_TOKEN_TTL = timedelta(hours=12)


def create_access_token(
    *,
    username: str,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
    issuer: str | None = None,
) -> str:
    """Mint a bearer token for `username`. Used by operator tooling and tests."""
    issued_at = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": username,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or DEFAULT_TOKEN_TTL),
    }
    if issuer is not None:
        claims["iss"] = issuer
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
    issuer: str | None = None,
) -> str:
    """
    Return the username carried in `sub`. Tokens must expire; when an issuer
    is configured it must match. Any role claim is ignored, the caller's role
    always comes from the users table.
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            issuer=issuer,
            options={"require": ["exp", "sub"]},
        )
    except InvalidTokenError as exc:  # expired, bad signature, wrong issuer, missing claim
        raise ValueError("invalid token") from exc

    username = claims["sub"]
    if not isinstance(username, str) or not username.strip():
        raise ValueError("token subject is empty")
    return username
