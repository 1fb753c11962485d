"""Session management models."""

from typing import NewType
from uuid import UUID

from pydantic import BaseModel, Field

from schoolportal.core.db import MongoModel, UtcDatetime
from schoolportal.core.modules.user.models import UserRole, UserStats, UserView

AuthToken = NewType("AuthToken", str)


class Session(MongoModel):
    """Authenticated session of one client.

    Indexed on auth_token - unique, user_id, last_activity (TTL = idle timeout).
    last_activity only moves forward while the session is alive.
    """

    auth_token: str
    user_id: UUID
    username: str
    role: UserRole
    display_name: str
    started_at: UtcDatetime
    last_activity: UtcDatetime


class SessionView(BaseModel):
    """Newly started session handed to the client."""

    token: str = Field(..., description="Session token for subsequent requests")
    user: UserView = Field(..., description="Authenticated identity")


class SessionCheck(BaseModel):
    """Result of checking a session reference."""

    authenticated: bool
    message: str | None = None
    user: UserView | None = None
    stats: UserStats | None = None
