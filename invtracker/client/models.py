from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserProfile(BaseModel):
    """User record as returned by the backend's lookup-or-create endpoint."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int
    steam_id: str = Field(alias="steamId")
    username: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
    avatar_medium_url: Optional[str] = Field(default=None, alias="avatarMediumUrl")
    avatar_full_url: Optional[str] = Field(default=None, alias="avatarFullUrl")
    profile_url: Optional[str] = Field(default=None, alias="profileUrl")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    last_login_at: Optional[datetime] = Field(default=None, alias="lastLoginAt")

    @field_validator("steam_id", mode="before")
    @classmethod
    def _steam_id_str(cls, v: Any) -> str:
        # Some serializers emit the 64-bit id as a JSON number.
        return str(v).strip() if v is not None else ""

    @property
    def label(self) -> str:
        return self.display_name or self.username or f"User_{self.steam_id[-6:]}"
