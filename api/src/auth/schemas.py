"""Pydantic schemas for authentication.

The identity provider owns user accounts; LearnHub only sees the
identity asserted by a validated access token.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.auth.permissions import Capability, UserRole, capabilities_for


class UserResponse(BaseModel):
    """Authenticated identity extracted from the access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str | None = None
    role: UserRole
    issued_at: datetime | None = None

    def can(self, capability: Capability) -> bool:
        """Whether this identity holds the given capability."""
        return capability in capabilities_for(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
