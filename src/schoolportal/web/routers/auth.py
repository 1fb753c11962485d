from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from schoolportal.core.modules.session.models import SessionCheck, SessionView
from schoolportal.web.deps import AUTH_COOKIE_NAME, AppDep, OptionalAuthTokenDep
from schoolportal.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """Authentication request."""

    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1, description="Password for authentication")


def set_session_cookie(response: Response, token: str) -> None:
    """Set the session cookie for browser-based clients."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=False,  # Set to True in production with HTTPS
    )


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description="Authenticate with username (or email) and password. Any session presented with the request is replaced.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        400: {"model": ErrorResponse, "description": "Missing username or password"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, previous_token: OptionalAuthTokenDep, response: Response) -> SessionView:
    session = await app.login(login_data.username, login_data.password, previous_token)
    set_session_cookie(response, session.token)
    return session


@router.post(
    "/auth/logout",
    summary="End session",
    description="Invalidate the current session. Succeeds even when no session is active.",
    operation_id="logout",
    status_code=204,
    responses={204: {"description": "Logged out"}},
)
async def logout(app: AppDep, auth_token: OptionalAuthTokenDep, response: Response) -> None:
    await app.logout(auth_token)
    response.delete_cookie(AUTH_COOKIE_NAME)


@router.get(
    "/auth/session",
    summary="Check session",
    description="Report whether the presented session is still valid. A valid check refreshes the idle timeout.",
    operation_id="checkSession",
    responses={200: {"description": "Session status"}},
)
async def check_session(app: AppDep, auth_token: OptionalAuthTokenDep) -> SessionCheck:
    return await app.check_session(auth_token)
