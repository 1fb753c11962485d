from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from pymongo import AsyncMongoClient

from schoolportal.config import Config
from schoolportal.core.core import Core
from schoolportal.core.modules.qr.models import STATUS_MESSAGES, GeneratedQrToken, QrStatus, QrStatusView
from schoolportal.core.modules.session.models import AuthToken, SessionCheck, SessionView
from schoolportal.core.modules.user.models import User, UserRole, UserStats, UserSummary, UserView
from schoolportal.errors import AuthenticationError, NotFoundError, ValidationError
from schoolportal.utils import token_prefix

logger = structlog.get_logger(__name__)


class App:
    """Facade for all application operations, validates permissions before delegating to Core."""

    def __init__(self, config: Config, mongo_client: AsyncMongoClient[dict[str, Any]] | None = None) -> None:
        self._core = Core(config, mongo_client)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def is_auth_token_valid(self, auth_token: AuthToken) -> bool:
        """Check if authentication token is valid."""
        return await self._core.services.session.is_auth_token_valid(auth_token)

    async def generate_qr(self, origin_ip: str = "unknown", origin_agent: str = "unknown") -> GeneratedQrToken:
        """Issue a QR login token for display on the requesting device."""
        qr_token = await self._core.services.qr.generate(origin_ip, origin_agent)
        return GeneratedQrToken.from_domain(qr_token)

    async def get_qr_status(self, token: str) -> QrStatusView:
        """Report the status of a QR token for the polling device."""
        token = _require(token, "Token is required")
        state = await self._core.services.qr.get_status(token)

        user = None
        if state.status == QrStatus.USED and state.token is not None and state.token.bound_user_id is not None:
            try:
                user = UserSummary.from_domain(await self._core.services.user.get_user(state.token.bound_user_id))
            except NotFoundError:
                logger.warning("qr_bound_user_missing", token=token_prefix(token))

        return QrStatusView(
            status=state.status,
            message=STATUS_MESSAGES[state.status],
            remaining_seconds=state.remaining_seconds,
            user=user,
        )

    async def verify_qr(self, auth_token: AuthToken, token: str, identity: str) -> SessionView:
        """Redeem a QR token from an authenticated device and sign the identity in."""
        token = _require(token, "Token and username are required")
        identity = _require(identity, "Token and username are required")

        caller = await self._core.services.access.ensure_authenticated(auth_token)
        self._core.services.access.ensure_can_sign_in_as(caller, identity)

        # Resolve the identity before touching the token so a lookup failure leaves it redeemable
        user = await self._core.services.user.find_active_by_identity(identity)
        if user is None:
            raise AuthenticationError("User not found or inactive")

        await self._core.services.qr.redeem(token, user.id)
        view = await self._start_session(user)
        logger.info("qr_login_success", user_id=str(user.id), username=user.username, role=user.role)
        return view

    async def login(self, identity: str, password: str, previous_token: AuthToken | None = None) -> SessionView:
        """Authenticate with username or email and password, and start a fresh session."""
        identity = _require(identity, "Username and password are required")
        if not password:
            raise ValidationError("Username and password are required")

        user = await self._core.services.user.verify_credential(identity, password)
        if user is None:
            logger.info("login_failed", username=identity)
            raise AuthenticationError("Invalid username or password")

        if previous_token:
            await self._core.services.session.invalidate_session(previous_token)

        view = await self._start_session(user)
        logger.info("regular_login_success", user_id=str(user.id), username=user.username, role=user.role)
        return view

    async def logout(self, auth_token: AuthToken | None) -> None:
        """Destroy the session if there is one. Always succeeds."""
        if auth_token and await self._core.services.session.invalidate_session(auth_token):
            logger.info("logout", token=token_prefix(auth_token))

    async def check_session(self, auth_token: AuthToken | None) -> SessionCheck:
        """Report whether the session is live, refreshing it if so."""
        if not auth_token:
            return SessionCheck(authenticated=False, message="Not authenticated")
        try:
            user = await self._core.services.access.ensure_authenticated(auth_token)
        except AuthenticationError:
            return SessionCheck(authenticated=False, message="Not authenticated")

        total_points = await self._core.services.badge.get_total_points(user.id)
        return SessionCheck(authenticated=True, user=UserView.from_domain(user), stats=UserStats(total_points=total_points))

    async def create_user(
        self, auth_token: AuthToken, username: str, email: str, password: str, role: UserRole, full_name: str
    ) -> UserView:
        """Create a new user (teachers only)."""
        await self._core.services.access.ensure_teacher(auth_token)
        user = await self._core.services.user.create_user(
            _require(username, "Username is required"), _require(email, "Email is required"), password, role, full_name
        )
        return UserView.from_domain(user)

    async def notify_message_sent(self, auth_token: AuthToken) -> bool:
        """Record an outbound message by the current user; grants the first-message reward once."""
        user = await self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.reward.on_message_sent(user.id)

    async def _start_session(self, user: User) -> SessionView:
        session = await self._core.services.session.create_session(user)
        await self._core.services.reward.on_login(user.id)
        return SessionView(token=session.auth_token, user=UserView.from_domain(user))


def _require(value: str, message: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(message)
    return value
