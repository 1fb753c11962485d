"""QR login token models."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from schoolportal.core.db import MongoModel, UtcDatetime
from schoolportal.core.modules.user.models import UserSummary


class QrToken(MongoModel):
    """Single-use cross-device login token.

    Indexed on token - unique, expires_at (TTL = retention), (expires_at, is_used).
    Once is_used is set, bound_user_id and used_at are set too.
    """

    token: str
    created_at: UtcDatetime
    expires_at: UtcDatetime
    bound_user_id: UUID | None = None
    is_used: bool = False
    used_at: UtcDatetime | None = None
    origin_ip: str = "unknown"
    origin_agent: str = "unknown"


class QrStatus(StrEnum):
    WAITING = "waiting"
    USED = "used"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


STATUS_MESSAGES = {
    QrStatus.WAITING: "Waiting for authentication",
    QrStatus.USED: "QR code has been used",
    QrStatus.EXPIRED: "QR code has expired",
    QrStatus.NOT_FOUND: "Token not found",
}


@dataclass(frozen=True)
class QrTokenState:
    """Status of a token as seen at one instant."""

    status: QrStatus
    token: QrToken | None = None
    remaining_seconds: int | None = None


class GeneratedQrToken(BaseModel):
    """Freshly issued token for display as a QR code."""

    token: str = Field(..., description="Opaque single-use token to encode in the QR code")
    expires_at: datetime = Field(..., description="Expiry timestamp (UTC)")
    ttl_seconds: int = Field(..., description="Token lifetime in seconds")

    @classmethod
    def from_domain(cls, qr_token: QrToken) -> "GeneratedQrToken":
        ttl = int((qr_token.expires_at - qr_token.created_at).total_seconds())
        return cls(token=qr_token.token, expires_at=qr_token.expires_at, ttl_seconds=ttl)


class QrStatusView(BaseModel):
    """Polling response for a QR token."""

    status: QrStatus = Field(..., description="Current token status")
    message: str = Field(..., description="Human-readable status")
    remaining_seconds: int | None = Field(None, description="Seconds until expiry, only while waiting")
    user: UserSummary | None = Field(None, description="Identity that redeemed the token, only when used")
