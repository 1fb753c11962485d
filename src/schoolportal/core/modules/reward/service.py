from uuid import UUID

import structlog

from schoolportal.core.core import Service
from schoolportal.core.modules.badge.models import BadgeCategory, GrantResult

logger = structlog.get_logger(__name__)

WELCOME_NOTE = "Automatically awarded on first login"
COMMUNICATION_NOTE = "Automatically awarded for first voice message"


class RewardService(Service):
    """Fires one-time rewards for first-time events.

    Reward failures of any kind are logged and never propagate into the triggering flow.
    """

    async def fire_if_first(self, user_id: UUID, category: BadgeCategory, note: str) -> bool:
        """Grant the category's first-time badge unless the user already has one.

        Returns True only when this call recorded the reward.
        """
        badges = self.core.services.badge
        try:
            if await badges.has_category(user_id, category):
                return False
            result = await badges.grant_once(user_id, category, note)
        except Exception:
            logger.exception("first_time_reward_failed", user_id=str(user_id), category=category)
            return False
        return result == GrantResult.GRANTED

    async def on_login(self, user_id: UUID) -> bool:
        return await self.fire_if_first(user_id, BadgeCategory.WELCOME, WELCOME_NOTE)

    async def on_message_sent(self, user_id: UUID) -> bool:
        return await self.fire_if_first(user_id, BadgeCategory.COMMUNICATION, COMMUNICATION_NOTE)
