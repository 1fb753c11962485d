from fastapi import APIRouter
from pydantic import BaseModel, Field

from schoolportal.core.modules.user.models import UserRole, UserView
from schoolportal.web.deps import AppDep, AuthTokenDep
from schoolportal.web.openapi import ErrorResponse

router = APIRouter(tags=["users"])


class CreateUserRequest(BaseModel):
    """Request to create a new user."""

    username: str = Field(..., min_length=1, description="Username for the new user")
    email: str = Field(..., min_length=3, description="Email address, usable in place of the username")
    password: str = Field(..., min_length=1, description="Password for the new user")
    role: UserRole = Field(UserRole.STUDENT, description="Portal role")
    full_name: str = Field("", description="Display name")


@router.post(
    "/users",
    summary="Create new user",
    description="Create a new user account. Only accessible by teachers.",
    operation_id="createUser",
    responses={
        201: {"description": "User created successfully"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Teacher privileges required"},
        400: {"model": ErrorResponse, "description": "Invalid request"},
    },
    status_code=201,
)
async def create_user(create_data: CreateUserRequest, app: AppDep, auth_token: AuthTokenDep) -> UserView:
    return await app.create_user(
        auth_token,
        create_data.username,
        create_data.email,
        create_data.password,
        create_data.role,
        create_data.full_name,
    )
