"""Security utilities for authentication and authorization.

Identity tokens are issued by the identity provider and carry the subject id,
optional display name and email, and an optional role claim. The backend only
verifies them and turns them into a Principal.
"""

from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from core.config import settings


class Principal(BaseModel):
    """Authenticated caller as seen by activity operations."""

    subject_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    token_identifier: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE

    @property
    def display_name(self) -> str:
        """Name shown for this caller: name, then email, then token identifier, then subject."""
        return self.name or self.email or self.token_identifier or self.subject_id


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate an identity token.

    Returns:
        The decoded payload or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.TOKEN_ISSUER,
            audience=settings.TOKEN_AUDIENCE,
        )
    except JWTError:
        return None


def principal_from_token(token: str) -> Principal | None:
    """Build a Principal from a bearer token, or None if it is not valid."""
    payload = decode_token(token)
    if payload is None or not payload.get("sub"):
        return None

    return Principal(
        subject_id=str(payload["sub"]),
        name=payload.get("name"),
        email=payload.get("email"),
        token_identifier=f"{payload.get('iss')}|{payload['sub']}",
        role=payload.get("role"),
    )
