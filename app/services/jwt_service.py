"""
Access tokens for the case API (PyJWT, HS256).

In production tokens come from the identity provider and only need to be
verified here; ``generate_access_token`` exists for the seed script, local
development and the test suite.

Claims:
    sub         UserProfile.user_id (required)
    role        "admin" | "client" (informational)
    company_id  client's company (informational, omitted for admins)
    iat / exp   issued at / expiry (JWT_ACCESS_EXPIRES seconds, default 900)
    jti         unique token id
    iss / aud   checked only when JWT_ISSUER / JWT_AUDIENCE are configured

Role and company are re-read from the user profile on every request
(``app.auth.resolve_caller_identity``), so a stale claim never grants access.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
DEFAULT_ACCESS_EXPIRES = 900
REQUIRED_CLAIMS = ("sub", "exp", "iat")


def _secret() -> str:
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def generate_access_token(user_id: str, role: str, company_id: int | None = None) -> str:
    """Sign an access token for *user_id*."""
    cfg = current_app.config
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=cfg.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)),
        "jti": uuid.uuid4().hex,
    }
    if company_id is not None:
        payload["company_id"] = company_id
    if cfg.get("JWT_ISSUER"):
        payload["iss"] = cfg["JWT_ISSUER"]
    if cfg.get("JWT_AUDIENCE"):
        payload["aud"] = cfg["JWT_AUDIENCE"]
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify *token* and return its claims.

    Raises:
        jwt.ExpiredSignatureError: token is past ``exp`` (beyond JWT_LEEWAY seconds)
        jwt.InvalidTokenError: bad signature, missing claim, wrong issuer/audience
    """
    cfg = current_app.config
    return jwt.decode(
        token,
        _secret(),
        algorithms=[ALGORITHM],
        issuer=cfg.get("JWT_ISSUER") or None,
        audience=cfg.get("JWT_AUDIENCE") or None,
        leeway=cfg.get("JWT_LEEWAY", 0),
        options={"require": list(REQUIRED_CLAIMS)},
    )
