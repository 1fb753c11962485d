from schoolportal.core.core import Service
from schoolportal.core.modules.session.models import AuthToken
from schoolportal.core.modules.user.models import User, UserRole
from schoolportal.errors import AccessDeniedError


class AccessService(Service):
    async def ensure_authenticated(self, auth_token: AuthToken) -> User:
        """Ensure the user is authenticated."""
        return await self.core.services.session.get_authenticated_user(auth_token)

    async def ensure_teacher(self, auth_token: AuthToken) -> User:
        """Ensure the authenticated user has the teacher role, raise AccessDeniedError if not."""
        user = await self.core.services.session.get_authenticated_user(auth_token)
        if user.role != UserRole.TEACHER:
            raise AccessDeniedError("Teacher privileges required")
        return user

    def ensure_can_sign_in_as(self, caller: User, identity: str) -> None:
        """Only teachers may confirm a QR login on behalf of another account."""
        if identity in (caller.username, caller.email):
            return
        if caller.role != UserRole.TEACHER:
            raise AccessDeniedError("Cannot sign in on behalf of another user")
