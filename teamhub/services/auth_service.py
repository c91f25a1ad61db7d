"""
Bearer token verification for sockets and HTTP routes.

Tokens are issued by the external auth service as HS256 JWTs:

    {
        "user": {"id": "...", "role": "single|team|global", "teamId": "...", "globalId": "..."},
        "name": "Display Name",
        "exp": 1700000000
    }

Verification is a pure function of the token and the configured secret:
no sessions, no refresh, no retry. Callers reject the connection attempt
outright on any failure.
"""

from typing import Any, Dict, Optional

from fastapi import Header, HTTPException, status
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from teamhub.core.config import settings
from teamhub.core.errors import (
    AuthenticationFailure,
    ExpiredCredential,
    InvalidCredential,
    NotYetValid,
)
from teamhub.core.logging import get_logger
from teamhub.models.models import TokenIdentity

logger = get_logger(__name__)

ROLES = ("single", "team", "global")


def verify_token(
    token: Any,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> TokenIdentity:
    """
    Decode and verify a bearer token.

    Returns:
        TokenIdentity with user id, role, team id (team role) and global id
        (global role)

    Raises:
        InvalidCredential: malformed token, bad signature, missing claims
        ExpiredCredential: "exp" is in the past
        NotYetValid: "nbf" is in the future
    """
    if not isinstance(token, str) or not token.strip():
        raise InvalidCredential("No token provided")

    try:
        claims = jwt.decode(
            token.strip(),
            secret or settings.JWT_SECRET,
            algorithms=[algorithm or settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise ExpiredCredential()
    except JWTClaimsError as e:
        if "not yet valid" in str(e):
            raise NotYetValid()
        raise InvalidCredential(str(e))
    except JWTError as e:
        raise InvalidCredential(str(e))

    return _identity_from_claims(claims)


def _identity_from_claims(claims: Dict[str, Any]) -> TokenIdentity:
    user = claims.get("user")
    if not isinstance(user, dict) or not user.get("id"):
        raise InvalidCredential("Token has no user claim")

    role = user.get("role", "single")
    if role not in ROLES:
        raise InvalidCredential(f"Unknown role: {role}")

    team_id = user.get("teamId") if role == "team" else None
    global_id = None
    if role == "global":
        global_id = user.get("globalId") or settings.GLOBAL_ID

    return TokenIdentity(
        user_id=str(user["id"]),
        role=role,
        team_id=str(team_id) if team_id else None,
        global_id=global_id,
        name=claims.get("name") or user.get("name"),
    )


async def get_current_user(auth_token: Optional[str] = Header(default=None, alias="auth-token")) -> TokenIdentity:
    """
    Resolve the caller of an HTTP route from its "auth-token" header.
    Use as dependency for protected endpoints.
    """
    if not auth_token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Access denied: No token provided.")

    try:
        return verify_token(auth_token)
    except AuthenticationFailure as e:
        logger.warning("HTTP auth rejected: %s", e.reason)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, f"Access denied: {e.reason}")
