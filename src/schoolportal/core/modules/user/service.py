from typing import Any
from uuid import UUID

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from schoolportal.core.core import Service
from schoolportal.core.modules.user.models import User, UserRole
from schoolportal.core.modules.user.validators import validate_password
from schoolportal.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class UserService(Service):
    """Directory of user accounts, read straight from the database."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")

    async def get_user(self, user_id: UUID) -> User:
        """Get user by ID."""
        user = User.from_mongo(await self._collection.find_one({"_id": user_id}))
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return user

    async def find_active_by_identity(self, identity: str) -> User | None:
        """Resolve a username or email to an active account."""
        query = {"$or": [{"username": identity}, {"email": identity}], "is_active": True}
        return User.from_mongo(await self._collection.find_one(query))

    async def verify_credential(self, identity: str, password: str) -> User | None:
        """Return the active account if the password matches its stored hash."""
        user = await self.find_active_by_identity(identity)
        if user is None:
            return None
        if not bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8")):
            return None
        return user

    async def has_username(self, username: str) -> bool:
        return await self._collection.find_one({"username": username}) is not None

    async def create_user(
        self, username: str, email: str, password: str, role: UserRole, full_name: str | None = None
    ) -> User:
        """Create user with hashed password."""
        validate_password(password)
        if await self._collection.find_one({"$or": [{"username": username}, {"email": email}]}) is not None:
            raise ValidationError(f"User '{username}' or email '{email}' already exists")

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user = User(username=username, email=email, password_hash=password_hash, role=role, full_name=full_name or username)
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            raise ValidationError(f"User '{username}' or email '{email}' already exists") from e
        logger.info("user_created", user_id=str(user.id), username=username, role=role)
        return user

    async def set_active(self, user_id: UUID, is_active: bool) -> None:
        result = await self._collection.update_one({"_id": user_id}, {"$set": {"is_active": is_active}})
        if result.matched_count == 0:
            raise NotFoundError(f"User '{user_id}' not found")

    async def ensure_admin_user_exists(self) -> None:
        """Create the configured teacher-role admin if it does not exist."""
        config = self.core.config
        if config.admin_password is None or await self.has_username(config.admin_username):
            return
        await self.create_user(
            config.admin_username,
            f"{config.admin_username}@localhost",
            config.admin_password,
            UserRole.TEACHER,
            full_name="Administrator",
        )

    async def on_start(self) -> None:
        """Initialize indexes and admin user."""
        await self._collection.create_index([("username", 1)], unique=True)
        await self._collection.create_index([("email", 1)], unique=True)
        await self._collection.create_index([("role", 1)])
        await self.ensure_admin_user_exists()
        logger.debug("user_service_started")
