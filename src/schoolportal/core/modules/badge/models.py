"""Badge catalog and per-user badge ledger."""

from enum import StrEnum
from uuid import UUID, uuid5

from pydantic import Field

from schoolportal.core.db import MongoModel, UtcDatetime
from schoolportal.utils import now

# Namespace for ids of automatically granted first-time badges
FIRST_TIME_GRANT_NAMESPACE = UUID("5f1d2a0c-8b4e-4c71-9a36-2f6e0d7b9c13")


class BadgeCategory(StrEnum):
    WELCOME = "welcome"
    ASSIGNMENT = "assignment"
    ATTENDANCE = "attendance"
    COMMUNICATION = "communication"
    ACHIEVEMENT = "achievement"


class GrantResult(StrEnum):
    """Outcome of an idempotent first-time grant."""

    GRANTED = "granted"
    ALREADY_GRANTED = "already_granted"
    NO_BADGE = "no_badge"  # Catalog has no active badge in the category


class Badge(MongoModel):
    """Badge definition. Indexed on category."""

    name: str
    description: str = ""
    icon_class: str = "badge-default"
    points: int = 0
    category: BadgeCategory = BadgeCategory.ACHIEVEMENT
    is_active: bool = True
    created_at: UtcDatetime = Field(default_factory=now)


class UserBadge(MongoModel):
    """A badge held by a user.

    Indexed on (user_id, badge_id) - unique, (user_id, category).
    """

    user_id: UUID
    badge_id: UUID
    category: BadgeCategory
    awarded_by: UUID | None = None
    awarded_at: UtcDatetime = Field(default_factory=now)
    notes: str | None = None


def first_time_grant_id(user_id: UUID, category: BadgeCategory) -> UUID:
    """Deterministic ledger id for the single first-time grant of a category.

    Two concurrent grants for the same pair collide on the primary key.
    """
    return uuid5(FIRST_TIME_GRANT_NAMESPACE, f"{user_id}/{category}")


DEFAULT_BADGES: list[Badge] = [
    Badge(
        name="Welcome Badge",
        description="Awarded for joining the Learning Management System",
        icon_class="badge-welcome",
        points=10,
        category=BadgeCategory.WELCOME,
    ),
    Badge(
        name="First Assignment",
        description="Completed your first assignment successfully",
        icon_class="badge-assignment",
        points=25,
        category=BadgeCategory.ASSIGNMENT,
    ),
    Badge(
        name="Perfect Attendance",
        description="No missed classes this month",
        icon_class="badge-attendance",
        points=50,
        category=BadgeCategory.ATTENDANCE,
    ),
    Badge(
        name="Voice Communicator",
        description="Sent your first voice message",
        icon_class="badge-voice",
        points=15,
        category=BadgeCategory.COMMUNICATION,
    ),
    Badge(
        name="Helpful Student",
        description="Helped a classmate with their studies",
        icon_class="badge-helpful",
        points=30,
    ),
    Badge(
        name="Quick Learner",
        description="Completed 5 assignments ahead of schedule",
        icon_class="badge-quick",
        points=40,
    ),
    Badge(
        name="Study Streak",
        description="Logged in and studied for 7 consecutive days",
        icon_class="badge-streak",
        points=35,
    ),
]
