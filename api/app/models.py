from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base

ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"
ROLE_SITE_ADMIN = "site_admin"
ROLES = (ROLE_MEMBER, ROLE_ADMIN, ROLE_SITE_ADMIN)

PARTICIPATING = "participating"
NOT_PARTICIPATING = "not_participating"
PARTICIPATION_STATUSES = (PARTICIPATING, NOT_PARTICIPATING)


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """Club member account with authentication and profile information."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_key = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )  # UUID carried in access tokens
    name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    email_verified = Column(Boolean, nullable=False, default=False, index=True)
    avatar_url = Column(String(500), nullable=True)

    # member < admin < site_admin
    role = Column(String(20), nullable=False, default=ROLE_MEMBER, index=True)
    email_notifications = Column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships (deleting a user removes everything it owns or engaged with)
    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")
    events = relationship("Event", back_populates="author", cascade="all, delete-orphan")
    activity_schedules = relationship(
        "ActivitySchedule", back_populates="author", cascade="all, delete-orphan"
    )
    post_likes = relationship("PostLike", back_populates="user", cascade="all, delete-orphan")
    post_participations = relationship(
        "PostParticipant", back_populates="user", cascade="all, delete-orphan"
    )
    event_participations = relationship(
        "EventParticipant", back_populates="user", cascade="all, delete-orphan"
    )
    activity_participations = relationship(
        "ActivityParticipant", back_populates="user", cascade="all, delete-orphan"
    )
    comments = relationship("Comment", back_populates="user", cascade="all, delete-orphan")
    event_comments = relationship(
        "EventComment", back_populates="user", cascade="all, delete-orphan"
    )
    activity_comments = relationship(
        "ActivityComment", back_populates="user", cascade="all, delete-orphan"
    )
    schedule_responses = relationship(
        "ScheduleResponse", back_populates="user", cascade="all, delete-orphan"
    )
    messages = relationship("Message", back_populates="user", cascade="all, delete-orphan")
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )
    auth_identities = relationship(
        "AuthIdentity", back_populates="user", cascade="all, delete-orphan"
    )
    email_verification_tokens = relationship(
        "EmailVerificationToken", back_populates="user", cascade="all, delete-orphan"
    )
    password_reset_tokens = relationship(
        "PasswordResetToken", back_populates="user", cascade="all, delete-orphan"
    )


class RefreshToken(Base):
    """Refresh token for JWT authentication."""

    __tablename__ = "refresh_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = Column(String(255), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    user = relationship("User", back_populates="refresh_tokens")


class AuthIdentity(Base):
    """Authentication identity for a user (password or Google OAuth)."""

    __tablename__ = "auth_identities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    provider = Column(String(50), nullable=False, index=True)  # "password", "google"
    provider_user_id = Column(
        String(255), nullable=False, index=True
    )  # Lowercased email for password, subject id for OAuth

    # Hashed password for the password provider, null for OAuth
    secret_hash = Column(String(255), nullable=True)

    email = Column(String(255), nullable=True, index=True)
    provider_metadata = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    user = relationship("User", back_populates="auth_identities")

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_user_id", name="uq_auth_identity_provider_user"
        ),
        Index("ix_auth_identities_user_provider", user_id, provider),
    )


class EmailVerificationToken(Base):
    """Email verification token for verifying user email addresses."""

    __tablename__ = "email_verification_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    user = relationship("User", back_populates="email_verification_tokens")


class PasswordResetToken(Base):
    """Password reset token for resetting user passwords."""

    __tablename__ = "password_reset_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = Column(String(255), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    user = relationship("User", back_populates="password_reset_tokens")


# ============================================================================
# CONTENT ITEMS
# ============================================================================


class Post(Base):
    """Activity report post, optionally generated from an event or activity schedule."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    youtube_urls = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)

    # Report linkage: set once at creation, never changed afterwards
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    activity_schedule_id = Column(
        Integer,
        ForeignKey("activity_schedules.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    author = relationship("User", back_populates="posts")
    likes = relationship("PostLike", back_populates="post", cascade="all, delete-orphan")
    participants = relationship(
        "PostParticipant", back_populates="post", cascade="all, delete-orphan"
    )
    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
    )
    event = relationship("Event", back_populates="reports")
    activity_schedule = relationship("ActivitySchedule", back_populates="reports")

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    __table_args__ = (
        CheckConstraint(
            "event_id IS NULL OR activity_schedule_id IS NULL",
            name="ck_posts_single_report_source",
        ),
        Index("ix_posts_user_created", user_id, created_at.desc()),
    )


class Event(Base):
    """Club event that members register participation for."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    date = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    author = relationship("User", back_populates="events")
    participants = relationship(
        "EventParticipant", back_populates="event", cascade="all, delete-orphan"
    )
    comments = relationship(
        "EventComment",
        back_populates="event",
        cascade="all, delete-orphan",
    )
    reports = relationship("Post", back_populates="event", passive_deletes="all")

    @property
    def comment_count(self) -> int:
        return len(self.comments)


class ActivitySchedule(Base):
    """Scheduled club activity (rehearsal, session, live) with a fixed date."""

    __tablename__ = "activity_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    location = Column(String(200), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    author = relationship("User", back_populates="activity_schedules")
    participants = relationship(
        "ActivityParticipant", back_populates="activity_schedule", cascade="all, delete-orphan"
    )
    comments = relationship(
        "ActivityComment",
        back_populates="activity_schedule",
        cascade="all, delete-orphan",
    )
    reports = relationship("Post", back_populates="activity_schedule", passive_deletes="all")

    @property
    def comment_count(self) -> int:
        return len(self.comments)


# ============================================================================
# ENGAGEMENT LEDGER
# ============================================================================


class PostLike(Base):
    """Like on a post. The row's existence is the signal."""

    __tablename__ = "post_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    post = relationship("Post", back_populates="likes")
    user = relationship("User", back_populates="post_likes")

    @property
    def item_id(self) -> int:
        return self.post_id

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),)


class PostParticipant(Base):
    """Participation status of a member on a post."""

    __tablename__ = "post_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=PARTICIPATING)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    post = relationship("Post", back_populates="participants")
    user = relationship("User", back_populates="post_participations")

    @property
    def item_id(self) -> int:
        return self.post_id

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_participants_post_user"),
    )


class EventParticipant(Base):
    """Participation status of a member on an event."""

    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=PARTICIPATING)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    event = relationship("Event", back_populates="participants")
    user = relationship("User", back_populates="event_participations")

    @property
    def item_id(self) -> int:
        return self.event_id

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
    )


class ActivityParticipant(Base):
    """Participation status of a member on an activity schedule."""

    __tablename__ = "activity_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_schedule_id = Column(
        Integer,
        ForeignKey("activity_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=PARTICIPATING)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    activity_schedule = relationship("ActivitySchedule", back_populates="participants")
    user = relationship("User", back_populates="activity_participations")

    @property
    def item_id(self) -> int:
        return self.activity_schedule_id

    __table_args__ = (
        UniqueConstraint(
            "activity_schedule_id", "user_id", name="uq_activity_participants_schedule_user"
        ),
    )


class Comment(Base):
    """Comment on a post. Append-only."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    post = relationship("Post", back_populates="comments")
    user = relationship("User", back_populates="comments")

    @property
    def item_id(self) -> int:
        return self.post_id

    __table_args__ = (Index("ix_comments_post_created", post_id, created_at),)


class EventComment(Base):
    """Comment on an event. Append-only."""

    __tablename__ = "event_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    event = relationship("Event", back_populates="comments")
    user = relationship("User", back_populates="event_comments")

    @property
    def item_id(self) -> int:
        return self.event_id


class ActivityComment(Base):
    """Comment on an activity schedule. Append-only."""

    __tablename__ = "activity_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_schedule_id = Column(
        Integer,
        ForeignKey("activity_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    activity_schedule = relationship("ActivitySchedule", back_populates="comments")
    user = relationship("User", back_populates="activity_comments")

    @property
    def item_id(self) -> int:
        return self.activity_schedule_id


# ============================================================================
# DATE POLLS, CHAT, TEMPLATES
# ============================================================================


class Schedule(Base):
    """Date poll: admins propose candidate dates, members answer per date."""

    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    dates = relationship(
        "ScheduleDate",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduleDate.date",
    )


class ScheduleDate(Base):
    """Candidate date of a date poll."""

    __tablename__ = "schedule_dates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    schedule_id = Column(
        Integer, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(DateTime(timezone=True), nullable=False)

    schedule = relationship("Schedule", back_populates="dates")
    responses = relationship(
        "ScheduleResponse", back_populates="schedule_date", cascade="all, delete-orphan"
    )


class ScheduleResponse(Base):
    """A member's availability answer for one candidate date."""

    __tablename__ = "schedule_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    schedule_date_id = Column(
        Integer, ForeignKey("schedule_dates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False)  # available, maybe, unavailable
    comment = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    schedule_date = relationship("ScheduleDate", back_populates="responses")
    user = relationship("User", back_populates="schedule_responses")

    __table_args__ = (
        UniqueConstraint("schedule_date_id", "user_id", name="uq_schedule_responses_date_user"),
    )


class Message(Base):
    """Chat room message."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    user = relationship("User", back_populates="messages")


class Template(Base):
    """Editable text template (activity report skeleton)."""

    __tablename__ = "templates"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)

    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
