"""Tests for the badge catalog and ledger."""

import asyncio
from uuid import uuid4

from schoolportal.core.modules.badge.models import (
    DEFAULT_BADGES,
    BadgeCategory,
    GrantResult,
    first_time_grant_id,
)


class TestFirstTimeGrantId:
    """Tests for deterministic ledger ids."""

    def test_same_pair_same_id(self):
        """Test that the id depends only on user and category."""
        user_id = uuid4()
        assert first_time_grant_id(user_id, BadgeCategory.WELCOME) == first_time_grant_id(user_id, BadgeCategory.WELCOME)

    def test_different_category_different_id(self):
        """Test that categories of one user do not collide."""
        user_id = uuid4()
        assert first_time_grant_id(user_id, BadgeCategory.WELCOME) != first_time_grant_id(
            user_id, BadgeCategory.COMMUNICATION
        )

    def test_different_user_different_id(self):
        """Test that users do not collide within a category."""
        assert first_time_grant_id(uuid4(), BadgeCategory.WELCOME) != first_time_grant_id(uuid4(), BadgeCategory.WELCOME)


class TestCatalog:
    """Tests for catalog seeding and lookup."""

    async def test_default_catalog_seeded(self, core):
        """Test that an empty catalog is seeded on startup."""
        assert len(core.services.badge._badges) == len(DEFAULT_BADGES)

    async def test_seeding_is_not_repeated(self, core):
        """Test that restarting does not duplicate the catalog."""
        await core.services.badge.on_start()
        assert len(core.services.badge._badges) == len(DEFAULT_BADGES)

    async def test_concurrent_seeding_adds_each_badge_once(self, core):
        """Test that two instances seeding an empty catalog at once do not duplicate badges."""
        badge = core.services.badge
        await badge._collection.delete_many({})

        await asyncio.gather(badge.ensure_default_catalog(), badge.ensure_default_catalog())

        assert await badge._collection.count_documents({}) == len(DEFAULT_BADGES)
        await badge.update_catalog_cache()
        assert sorted(b.name for b in badge._badges.values()) == sorted(b.name for b in DEFAULT_BADGES)

    async def test_find_active_badge(self, core):
        """Test that the welcome category resolves to the welcome badge."""
        badge = core.services.badge.find_active_badge(BadgeCategory.WELCOME)
        assert badge is not None
        assert badge.name == "Welcome Badge"
        assert badge.points == 10

    async def test_find_active_badge_skips_inactive(self, core):
        """Test that inactive badges are never selected."""
        badge = core.services.badge.find_active_badge(BadgeCategory.WELCOME)
        core.services.badge._badges[badge.id] = badge.model_copy(update={"is_active": False})
        assert core.services.badge.find_active_badge(BadgeCategory.WELCOME) is None


class TestGrantOnce:
    """Tests for idempotent first-time grants."""

    async def test_first_grant_recorded(self, core):
        """Test that the first grant writes one ledger entry."""
        user_id = uuid4()
        assert await core.services.badge.grant_once(user_id, BadgeCategory.WELCOME, "note") == GrantResult.GRANTED

        user_badges = await core.services.badge.get_user_badges(user_id)
        assert len(user_badges) == 1
        assert user_badges[0].category == BadgeCategory.WELCOME
        assert user_badges[0].notes == "note"
        assert user_badges[0].id == first_time_grant_id(user_id, BadgeCategory.WELCOME)

    async def test_second_grant_rejected_by_key(self, core):
        """Test that a repeated grant hits the unique key and reports already granted."""
        user_id = uuid4()
        await core.services.badge.grant_once(user_id, BadgeCategory.WELCOME, "note")
        assert await core.services.badge.grant_once(user_id, BadgeCategory.WELCOME, "note") == GrantResult.ALREADY_GRANTED
        assert len(await core.services.badge.get_user_badges(user_id)) == 1

    async def test_no_active_badge(self, core):
        """Test that a category without an active badge grants nothing."""
        for badge in list(core.services.badge._badges.values()):
            if badge.category == BadgeCategory.COMMUNICATION:
                core.services.badge._badges[badge.id] = badge.model_copy(update={"is_active": False})

        user_id = uuid4()
        assert await core.services.badge.grant_once(user_id, BadgeCategory.COMMUNICATION, "note") == GrantResult.NO_BADGE
        assert await core.services.badge.get_user_badges(user_id) == []

    async def test_total_points(self, core):
        """Test that points add up over categories."""
        user_id = uuid4()
        assert await core.services.badge.get_total_points(user_id) == 0
        await core.services.badge.grant_once(user_id, BadgeCategory.WELCOME, "note")
        await core.services.badge.grant_once(user_id, BadgeCategory.COMMUNICATION, "note")
        assert await core.services.badge.get_total_points(user_id) == 25

    async def test_has_category(self, core):
        """Test category lookup in the ledger."""
        user_id = uuid4()
        assert await core.services.badge.has_category(user_id, BadgeCategory.WELCOME) is False
        await core.services.badge.grant_once(user_id, BadgeCategory.WELCOME, "note")
        assert await core.services.badge.has_category(user_id, BadgeCategory.WELCOME) is True
        assert await core.services.badge.has_category(user_id, BadgeCategory.COMMUNICATION) is False
