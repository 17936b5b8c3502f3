"""Signed session tokens.

Login hands out an HS256 JWT naming the account id and kind; booking routes
verify it and compare the claimed identity with the ids in the request.
"""
from __future__ import annotations
import os
from datetime import datetime, timedelta, timezone
from dotenv import load_dotenv
from jose import JWTError, jwt
from pydantic import ValidationError as ClaimsError
from .errors import Forbidden, SessionError
from .models import Account, AccountKind, SessionClaims

load_dotenv()

_SECRET = os.getenv("SESSION_SECRET", "change-me")
_ALGORITHM = "HS256"
_TTL = timedelta(minutes=int(os.getenv("SESSION_TTL_MINUTES", "720")))


def issue_session(account: Account, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(account.id),
        "kind": account.kind.value,
        "name": account.name,
        "iat": now,
        "exp": now + (_TTL if expires_delta is None else expires_delta),
    }
    return jwt.encode(claims, _SECRET, algorithm=_ALGORITHM)


def decode_session(token: str | None) -> SessionClaims:
    if not token:
        raise SessionError("Missing session token")
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
        return SessionClaims(**payload)
    except (JWTError, ClaimsError):
        raise SessionError("Invalid or expired session") from None


def require_identity(claims: SessionClaims, kind: AccountKind, account_id) -> None:
    """Raise Forbidden unless the session belongs to ``kind`` account ``account_id``."""
    if claims.kind is not kind or claims.sub != str(account_id):
        raise Forbidden("Session does not grant access to this resource")
