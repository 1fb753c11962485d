import secrets
from datetime import timedelta
from typing import Any

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from schoolportal.core.core import Service
from schoolportal.core.modules.session.models import AuthToken, Session
from schoolportal.core.modules.user.models import User
from schoolportal.errors import AuthenticationError, NotFoundError, SessionExpiredError
from schoolportal.utils import now, token_prefix

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Service for managing user sessions with a sliding idle timeout.

    Sessions live only in the database so every service instance sees the
    same state. Expiry is detected lazily on the next access.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")

    @property
    def idle_timeout(self) -> timedelta:
        return timedelta(seconds=self.core.config.session_idle_timeout_seconds)

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("auth_token", 1)], unique=True)
        await self._collection.create_index([("user_id", 1)])
        # Reclaims space only; expiry itself is enforced in validate_session
        await self._collection.create_index(
            [("last_activity", 1)], expireAfterSeconds=self.core.config.session_idle_timeout_seconds
        )

    async def create_session(self, user: User) -> Session:
        """Start a session under a freshly generated token."""
        started_at = now()
        session = Session(
            auth_token=secrets.token_urlsafe(32),
            user_id=user.id,
            username=user.username,
            role=user.role,
            display_name=user.full_name,
            started_at=started_at,
            last_activity=started_at,
        )
        await self._collection.insert_one(session.to_mongo())
        logger.debug("session_created", user_id=str(user.id), token=token_prefix(session.auth_token))
        return session

    async def validate_session(self, auth_token: AuthToken) -> Session:
        """Return the live session and slide its idle window forward.

        Raises SessionExpiredError when the idle timeout has elapsed (the
        session is deleted) and AuthenticationError when it does not exist.
        """
        current = now()
        document = await self._collection.find_one_and_update(
            {"auth_token": auth_token, "last_activity": {"$gte": current - self.idle_timeout}},
            {"$max": {"last_activity": current}},
            return_document=ReturnDocument.AFTER,
        )
        session = Session.from_mongo(document)
        if session is not None:
            return session

        if await self._collection.find_one({"auth_token": auth_token}) is None:
            raise AuthenticationError("Invalid or expired session")

        await self._collection.delete_one({"auth_token": auth_token})
        logger.info("session_idle_expired", token=token_prefix(auth_token))
        raise SessionExpiredError

    async def get_authenticated_user(self, auth_token: AuthToken) -> User:
        """Validate the session and resolve its user, which must still be active."""
        session = await self.validate_session(auth_token)
        try:
            user = await self.core.services.user.get_user(session.user_id)
        except NotFoundError:
            user = None
        if user is None or not user.is_active:
            await self.invalidate_session(auth_token)
            raise AuthenticationError("Invalid or expired session")
        return user

    async def is_auth_token_valid(self, auth_token: AuthToken) -> bool:
        try:
            await self.validate_session(auth_token)
        except AuthenticationError:
            return False
        return True

    async def invalidate_session(self, auth_token: AuthToken) -> bool:
        """Remove a session. Returns whether one existed."""
        result = await self._collection.delete_one({"auth_token": auth_token})
        return result.deleted_count > 0
