"""Reviewer session authentication.

Sessions are HS256 JWTs issued by the sign-in front end and sent as
``Authorization: Bearer <token>``. The ``email`` claim is the reviewer
identity recorded on validation records.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from certreview.config import settings

SESSION_HEADER = APIKeyHeader(name="Authorization", auto_error=False)


@dataclass(frozen=True)
class Reviewer:
    email: str
    name: str | None = None


def issue_session_token(
    email: str, name: str | None = None, expires_in: timedelta = timedelta(hours=8)
) -> str:
    """Sign a session token (seed script and tests)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": email,
        "email": email,
        "name": name,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


async def get_current_reviewer(
    auth_header: str | None = Depends(SESSION_HEADER),
) -> Reviewer:
    """Extract the reviewer from the session token."""
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    token = auth_header[7:].strip()
    try:
        claims = jwt.decode(
            token, settings.session_secret, algorithms=[settings.session_algorithm]
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        )
    email = claims.get("email")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return Reviewer(email=email, name=claims.get("name"))


# Type alias for dependency injection
ReviewerDep = Annotated[Reviewer, Depends(get_current_reviewer)]
