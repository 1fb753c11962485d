from typing import Annotated

from fastapi import APIRouter, Header, Query, Request
from pydantic import BaseModel, Field

from schoolportal.core.modules.qr.models import GeneratedQrToken, QrStatusView
from schoolportal.core.modules.session.models import SessionView
from schoolportal.web.deps import AppDep, AuthTokenDep
from schoolportal.web.openapi import ErrorResponse

router = APIRouter(tags=["qr"])


class VerifyQrRequest(BaseModel):
    """Redemption of a scanned QR code."""

    token: str = Field(..., description="Token read from the QR code")
    username: str = Field(..., description="Username or email to sign in")


@router.post(
    "/auth/qr",
    summary="Generate QR login token",
    description="Issue a short-lived single-use token to display as a QR code.",
    operation_id="generateQr",
    responses={200: {"description": "Token issued"}},
)
async def generate_qr(
    request: Request, app: AppDep, user_agent: Annotated[str | None, Header()] = None
) -> GeneratedQrToken:
    origin_ip = request.client.host if request.client else "unknown"
    return await app.generate_qr(origin_ip, user_agent or "unknown")


@router.get(
    "/auth/qr/status",
    summary="Poll QR token status",
    description="Return waiting, used, expired or not_found for a QR token.",
    operation_id="getQrStatus",
    responses={
        200: {"description": "Token status"},
        400: {"model": ErrorResponse, "description": "Missing token"},
    },
)
async def get_qr_status(app: AppDep, token: Annotated[str, Query(description="Token to check")] = "") -> QrStatusView:
    return await app.get_qr_status(token)


@router.post(
    "/auth/qr/verify",
    summary="Redeem QR login token",
    description="Redeem a scanned QR token from an authenticated device and start a session for the given user. The new session is returned in the body only; cookies of the calling device are left untouched.",
    operation_id="verifyQr",
    responses={
        200: {"description": "Token redeemed, session started"},
        400: {"model": ErrorResponse, "description": "Missing token or username"},
        401: {"model": ErrorResponse, "description": "Not authenticated, or user not found or inactive"},
        403: {"model": ErrorResponse, "description": "Signing in another user requires the teacher role"},
        404: {"model": ErrorResponse, "description": "Unknown token"},
        409: {"model": ErrorResponse, "description": "Token already used"},
        410: {"model": ErrorResponse, "description": "Token expired"},
    },
)
async def verify_qr(verify_data: VerifyQrRequest, app: AppDep, auth_token: AuthTokenDep) -> SessionView:
    # The new session belongs to the redeemed identity; the scanning device keeps its own cookie
    return await app.verify_qr(auth_token, verify_data.token, verify_data.username)
