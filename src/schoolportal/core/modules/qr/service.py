import math
import secrets
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from schoolportal.core.core import Service
from schoolportal.core.modules.qr.models import QrStatus, QrToken, QrTokenState
from schoolportal.errors import AlreadyUsedError, ExpiredError, InternalError, NotFoundError
from schoolportal.utils import now, token_prefix

logger = structlog.get_logger(__name__)

TOKEN_BYTES = 32  # 256 bits of entropy


class QrService(Service):
    """Issues, reports on and redeems single-use QR login tokens."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("qr_tokens")

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.core.config.qr_token_ttl_seconds)

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self.core.config.qr_token_retention_seconds)

    async def on_start(self) -> None:
        """Create indexes and reclaim stale tokens."""
        await self._collection.create_index([("token", 1)], unique=True)
        # TTL monitor reclaims rows only after the retention window so expired and used tokens keep their status
        await self._collection.create_index(
            [("expires_at", 1)], expireAfterSeconds=self.core.config.qr_token_retention_seconds
        )
        await self._collection.create_index([("expires_at", 1), ("is_used", 1)])
        await self.delete_expired_tokens()

    async def generate(self, origin_ip: str = "unknown", origin_agent: str = "unknown") -> QrToken:
        """Mint and store a new unused token.

        A token collision raises InternalError instead of overwriting the
        existing row; callers may retry.
        """
        created_at = now()
        qr_token = QrToken(
            token=secrets.token_hex(TOKEN_BYTES),
            created_at=created_at,
            expires_at=created_at + self.ttl,
            origin_ip=origin_ip,
            origin_agent=origin_agent,
        )
        try:
            await self._collection.insert_one(qr_token.to_mongo())
        except DuplicateKeyError as e:
            logger.error("qr_token_collision", token=token_prefix(qr_token.token))
            raise InternalError("Failed to generate QR token") from e

        logger.info("qr_token_generated", token=token_prefix(qr_token.token), origin_ip=origin_ip)
        return qr_token

    async def get_token(self, token: str) -> QrToken | None:
        return QrToken.from_mongo(await self._collection.find_one({"token": token}))

    async def get_status(self, token: str) -> QrTokenState:
        """Classify a token without modifying it.

        A used token reports USED even at or after its expiry.
        """
        qr_token = await self.get_token(token)
        if qr_token is None:
            return QrTokenState(QrStatus.NOT_FOUND)
        if qr_token.is_used:
            return QrTokenState(QrStatus.USED, qr_token)

        current = now()
        if current >= qr_token.expires_at:
            return QrTokenState(QrStatus.EXPIRED, qr_token)

        remaining = math.floor((qr_token.expires_at - current).total_seconds())
        return QrTokenState(QrStatus.WAITING, qr_token, max(remaining, 0))

    async def redeem(self, token: str, user_id: UUID) -> QrToken:
        """Bind an unused, unexpired token to a user in one conditional write.

        The precondition is evaluated by the database at write time, so of
        any number of concurrent callers at most one succeeds. Failures are
        classified from a fresh read as NotFoundError, AlreadyUsedError or
        ExpiredError.
        """
        used_at = now()
        document = await self._collection.find_one_and_update(
            {"token": token, "is_used": False, "expires_at": {"$gt": used_at}},
            {"$set": {"is_used": True, "bound_user_id": user_id, "used_at": used_at}},
            return_document=ReturnDocument.AFTER,
        )
        redeemed = QrToken.from_mongo(document)
        if redeemed is None:
            raise await self._classify_redeem_failure(token)

        logger.info("qr_token_redeemed", token=token_prefix(token), user_id=str(user_id))
        return redeemed

    async def _classify_redeem_failure(self, token: str) -> Exception:
        qr_token = await self.get_token(token)
        if qr_token is None:
            return NotFoundError("Invalid QR code")
        if qr_token.is_used:
            return AlreadyUsedError()
        return ExpiredError()

    async def delete_expired_tokens(self, before: datetime | None = None) -> int:
        """Delete tokens that expired before the cutoff. Safe to run at any time.

        The default cutoff is now minus the retention window, so a recently
        expired or used token still reports its own status when polled.
        """
        cutoff = before or now() - self.retention
        result = await self._collection.delete_many({"expires_at": {"$lt": cutoff}})
        if result.deleted_count:
            logger.info("qr_tokens_swept", deleted=result.deleted_count)
        return result.deleted_count
