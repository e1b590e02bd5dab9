"""Session credential consumed by the realtime connection."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, field_validator


class Credential(BaseModel):
    """Opaque session token issued by the authentication collaborator.

    Parameters
    ----------
    token : str
        Bearer token sent in the Socket.IO ``auth`` payload.
    expires_at : datetime or None
        Absolute expiry. ``None`` means the token does not expire on the
        client side (the backend may still reject it).
    user_id : str or None
        Authenticated user id, used as the notification feed key.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    token: str
    expires_at: datetime | None = None
    user_id: str | None = None

    @field_validator("token")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("token must be non-empty")
        return value

    @field_validator("expires_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def expired_at(self, now: datetime) -> bool:
        """Whether the token is expired at *now*."""
        return self.expires_at is not None and now >= self.expires_at

    @property
    def is_expired(self) -> bool:
        """Whether the token has passed its expiry."""
        return self.expired_at(datetime.now(UTC))
