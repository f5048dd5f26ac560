"""
Session Models

A session is the token pair issued by the auth backend plus the user it
belongs to. It is persisted to local storage so a restart does not sign
the user out.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """The signed-in user, as reported by the auth backend."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    @property
    def initials(self) -> str:
        letters = [part[0] for part in (self.first_name, self.last_name) if part]
        return "".join(letters).upper() or self.email[:1].upper()

    @classmethod
    def from_auth_user(cls, user: dict[str, Any]) -> "UserProfile":
        """Build from a GoTrue user object (names live in user_metadata)."""
        metadata = user.get("user_metadata") or {}
        return cls(
            id=str(user["id"]),
            email=user.get("email") or "",
            first_name=metadata.get("first_name") or "",
            last_name=metadata.get("last_name") or "",
        )


class Session(BaseModel):
    """
    An authenticated session.

    expires_at is when the access token stops working; persist_until is
    how long the blob may be restored from local storage.
    """

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: datetime
    user: UserProfile
    persist_until: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def refresh_due_at(self, margin: timedelta) -> datetime:
        """When the silent refresh should fire."""
        return self.expires_at - margin

    @classmethod
    def from_auth_response(
        cls,
        data: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> "Session":
        """
        Build from a GoTrue token response.

        GoTrue sends both expires_at (epoch seconds) and expires_in; the
        absolute value wins when present.
        """
        now = now or datetime.now(timezone.utc)
        if data.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
        else:
            expires_at = now + timedelta(seconds=int(data.get("expires_in") or 3600))

        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=expires_at,
            user=UserProfile.from_auth_user(data.get("user") or {}),
        )
