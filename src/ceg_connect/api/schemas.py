"""Request bodies accepted by the API.

Field names are camelCase on the wire to match the mobile client.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Auth ─────────────────────────────────────────────────


class SendOTPRequest(CamelModel):
    email: str | None = None


class VerifyOTPRequest(CamelModel):
    email: str | None = None
    otp: str | int | None = None


# ── Communities ──────────────────────────────────────────


class CommunityCreate(CamelModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None


class PostCreate(CamelModel):
    text: str | None = None
    images: list[str] = Field(default_factory=list)


# ── Groups ───────────────────────────────────────────────


class GroupCreate(CamelModel):
    name: str | None = None
    description: str | None = None
    is_private: bool = False


class MessageCreate(CamelModel):
    text: str | None = None
    type: str = "text"
    file_url: str | None = None
    file_name: str | None = None


# ── Users ────────────────────────────────────────────────


class ProfileUpdate(CamelModel):
    name: str | None = None
    reg_no: str | None = None
    department: str | None = None
    year: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")


class BookmarkCreate(CamelModel):
    post_id: str | None = None
    community_id: str | None = None
    post_type: str | None = None
