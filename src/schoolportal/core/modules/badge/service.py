from typing import Any
from uuid import UUID, uuid4

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from schoolportal.core.core import Service
from schoolportal.core.modules.badge.models import (
    DEFAULT_BADGES,
    Badge,
    BadgeCategory,
    GrantResult,
    UserBadge,
    first_time_grant_id,
)
from schoolportal.utils import now

logger = structlog.get_logger(__name__)


class BadgeService(Service):
    """Badge catalog with in-memory cache, plus the per-user badge ledger."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("badges")
        self._user_badges = database.get_collection("user_badges")
        self._badges: dict[UUID, Badge] = {}

    def get_badge(self, badge_id: UUID) -> Badge | None:
        return self._badges.get(badge_id)

    def find_active_badge(self, category: BadgeCategory) -> Badge | None:
        """Oldest active catalog badge in the category."""
        candidates = [b for b in self._badges.values() if b.category == category and b.is_active]
        return min(candidates, key=lambda b: b.created_at, default=None)

    async def has_category(self, user_id: UUID, category: BadgeCategory) -> bool:
        """Check whether the user already holds any badge in the category."""
        return await self._user_badges.find_one({"user_id": user_id, "category": category}) is not None

    async def grant_once(self, user_id: UUID, category: BadgeCategory, note: str) -> GrantResult:
        """Record the first-time badge of a category, at most once per user.

        The insert is the only write; a concurrent duplicate is rejected by the
        primary key and reported as already granted.
        """
        badge = self.find_active_badge(category)
        if badge is None:
            logger.warning("badge_category_empty", category=category)
            return GrantResult.NO_BADGE

        record = UserBadge(
            id=first_time_grant_id(user_id, category),
            user_id=user_id,
            badge_id=badge.id,
            category=category,
            notes=note,
        )
        try:
            await self._user_badges.insert_one(record.to_mongo())
        except DuplicateKeyError:
            logger.info("first_time_reward_conflict", user_id=str(user_id), category=category)
            return GrantResult.ALREADY_GRANTED

        logger.info("badge_awarded", user_id=str(user_id), badge_id=str(badge.id), category=category)
        return GrantResult.GRANTED

    async def get_user_badges(self, user_id: UUID) -> list[UserBadge]:
        return await UserBadge.list_cursor(self._user_badges.find({"user_id": user_id}))

    async def get_total_points(self, user_id: UUID) -> int:
        """Sum of catalog points over the user's badges."""
        total = 0
        for user_badge in await self.get_user_badges(user_id):
            badge = self.get_badge(user_badge.badge_id)
            if badge is not None:
                total += badge.points
        return total

    async def ensure_default_catalog(self) -> None:
        """Seed the catalog when it is empty.

        Badges are inserted one by one against the unique name index, so
        concurrent starts add each default badge exactly once.
        """
        if await self._collection.count_documents({}) > 0:
            return
        created_at = now()
        seeded = 0
        for badge in DEFAULT_BADGES:
            try:
                await self._collection.insert_one(badge.model_copy(update={"id": uuid4(), "created_at": created_at}).to_mongo())
            except DuplicateKeyError:
                continue
            seeded += 1
        if seeded:
            logger.info("badge_catalog_seeded", badge_count=seeded)

    async def update_catalog_cache(self) -> None:
        """Reload the catalog cache from database."""
        badges = await Badge.list_cursor(self._collection.find())
        self._badges = {badge.id: badge for badge in badges}

    async def on_start(self) -> None:
        """Create indexes, seed and cache the catalog."""
        await self._collection.create_index([("category", 1)])
        await self._collection.create_index([("name", 1)], unique=True)
        await self._user_badges.create_index([("user_id", 1), ("badge_id", 1)], unique=True)
        await self._user_badges.create_index([("user_id", 1), ("category", 1)])
        await self.ensure_default_catalog()
        await self.update_catalog_cache()
        logger.debug("badge_service_started", badge_count=len(self._badges))
