from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RoleName = Literal["member", "admin", "site_admin"]
ParticipationStatus = Literal["participating", "not_participating"]
ScheduleAnswer = Literal["available", "maybe", "unavailable"]


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserPublic(BaseModel):
    """Public fields attached to authored content."""

    id: int
    name: str | None = None
    email: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserFull(UserPublic):
    """Full user profile (for the user themselves or site admins)."""

    role: RoleName
    email_notifications: bool = True
    email_verified: bool = False
    created_at: datetime


class UserUpdate(BaseModel):
    """Site-admin update of another user's role or notification flag."""

    role: RoleName | None = None
    email_notifications: bool | None = None


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    email_notifications: bool | None = None


# ============================================================================
# AUTH SCHEMAS
# ============================================================================


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)


class RegisterResponse(BaseModel):
    message: str
    user_id: int
    email: str


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str


class OAuthTokens(BaseModel):
    token: str
    refresh_token: str | None = None
    user_id: int
    role: RoleName
    expires_at: datetime


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class MeResponse(BaseModel):
    user: UserFull


class VerifyEmailResponse(BaseModel):
    message: str
    verified: bool


class ResendVerificationRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8, max_length=128)


# ============================================================================
# ENGAGEMENT SCHEMAS
# ============================================================================


class Like(BaseModel):
    id: int
    item_id: int
    user_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ParticipationRequest(BaseModel):
    status: ParticipationStatus


class Participation(BaseModel):
    id: int
    item_id: int
    user_id: int
    status: ParticipationStatus
    created_at: datetime
    updated_at: datetime | None = None
    user: UserPublic | None = None

    model_config = ConfigDict(from_attributes=True)


class CommentCreate(BaseModel):
    content: str = Field(..., max_length=5000)


class Comment(BaseModel):
    id: int
    item_id: int
    user_id: int
    content: str
    created_at: datetime
    user: UserPublic

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# CONTENT SCHEMAS
# ============================================================================


class PostCreate(BaseModel):
    title: str = Field(..., max_length=200)
    content: str
    youtube_urls: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)


class PostUpdate(BaseModel):
    """Post edit. Report linkage fields are deliberately absent."""

    title: str | None = Field(None, max_length=200)
    content: str | None = None
    youtube_urls: list[str] | None = None
    images: list[str] | None = None


class Post(BaseModel):
    id: int
    title: str
    content: str
    youtube_urls: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    user_id: int
    event_id: int | None = None
    activity_schedule_id: int | None = None
    created_at: datetime
    updated_at: datetime | None = None
    author: UserPublic
    likes: list[Like] = Field(default_factory=list)
    participants: list[Participation] = Field(default_factory=list)
    comment_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class PostDetail(Post):
    comments: list[Comment] = Field(default_factory=list)


class ReportCreate(BaseModel):
    title: str = Field(..., max_length=200)
    content: str
    youtube_urls: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)


class EventCreate(BaseModel):
    title: str = Field(..., max_length=200)
    content: str
    date: datetime | None = None


class EventUpdate(BaseModel):
    title: str | None = Field(None, max_length=200)
    content: str | None = None
    date: datetime | None = None


class Event(BaseModel):
    id: int
    title: str
    content: str
    date: datetime | None = None
    user_id: int
    created_at: datetime
    updated_at: datetime | None = None
    author: UserPublic
    participants: list[Participation] = Field(default_factory=list)
    comment_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class EventDetail(Event):
    comments: list[Comment] = Field(default_factory=list)


class ActivityScheduleCreate(BaseModel):
    title: str = Field(..., max_length=200)
    content: str
    date: datetime
    location: str | None = Field(None, max_length=200)


class ActivityScheduleUpdate(BaseModel):
    title: str | None = Field(None, max_length=200)
    content: str | None = None
    date: datetime | None = None
    location: str | None = Field(None, max_length=200)


class ActivitySchedule(BaseModel):
    id: int
    title: str
    content: str
    date: datetime
    location: str | None = None
    user_id: int
    created_at: datetime
    updated_at: datetime | None = None
    author: UserPublic
    participants: list[Participation] = Field(default_factory=list)
    comment_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class ActivityScheduleDetail(ActivitySchedule):
    comments: list[Comment] = Field(default_factory=list)


# ============================================================================
# DATE POLLS, CHAT, TEMPLATES, UPLOADS
# ============================================================================


class ScheduleCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: str | None = None
    dates: list[datetime] = Field(..., min_length=1)


class ScheduleResponseUpsert(BaseModel):
    status: ScheduleAnswer
    comment: str | None = Field(None, max_length=1000)


class ScheduleResponse(BaseModel):
    id: int
    schedule_date_id: int
    user_id: int
    status: ScheduleAnswer
    comment: str | None = None
    user: UserPublic

    model_config = ConfigDict(from_attributes=True)


class ScheduleDate(BaseModel):
    id: int
    date: datetime
    responses: list[ScheduleResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class Schedule(BaseModel):
    id: int
    title: str
    description: str | None = None
    created_at: datetime
    dates: list[ScheduleDate] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ChatMessageCreate(BaseModel):
    content: str = Field(..., max_length=2000)


class ChatMessage(BaseModel):
    id: int
    user_id: int
    content: str
    created_at: datetime
    user: UserPublic

    model_config = ConfigDict(from_attributes=True)


class Template(BaseModel):
    id: str
    name: str
    content: str
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class TemplateUpdate(BaseModel):
    content: str


class UploadResponse(BaseModel):
    url: str
    size: int
    mime_type: str
