from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from schoolportal.core.db import MongoModel, UtcDatetime
from schoolportal.utils import now


class UserRole(StrEnum):
    TEACHER = "teacher"
    STUDENT = "student"
    GUARDIAN = "guardian"


class User(MongoModel):
    """User domain model with credentials.

    Indexed on username - unique, email - unique.
    """

    username: str
    email: str
    password_hash: str  # bcrypt hash
    role: UserRole
    full_name: str
    is_active: bool = True
    created_at: UtcDatetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="Account role")
    full_name: str = Field(..., description="Display name")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, username=user.username, email=user.email, role=user.role, full_name=user.full_name)


class UserSummary(BaseModel):
    """Public profile fields shown on the device that displayed a QR code."""

    username: str
    full_name: str
    role: UserRole

    @classmethod
    def from_domain(cls, user: User) -> "UserSummary":
        return cls(username=user.username, full_name=user.full_name, role=user.role)


class UserStats(BaseModel):
    total_points: int = Field(0, description="Sum of points over all awarded badges")
