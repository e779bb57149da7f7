"""Pydantic schemas for the authenticated identity."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.auth.permissions import UserRole, is_admin


class AuthenticatedUser(BaseModel):
    """Identity extracted from a validated access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str = ""
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        """Whether the user holds the elevated privilege."""
        return is_admin(self.role)

    @classmethod
    def from_token_payload(cls, payload: dict[str, Any]) -> "AuthenticatedUser":
        """Build the identity from decoded JWT claims.

        Unknown roles fall back to USER.
        """
        try:
            role = UserRole(payload.get("role", UserRole.USER.value))
        except ValueError:
            role = UserRole.USER
        return cls(id=payload["sub"], email=payload.get("email", ""), role=role)
