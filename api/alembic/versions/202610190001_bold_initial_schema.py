"""BOLD initial schema

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


def _user_fk() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def _index(table: str, *columns: str, unique: bool = False) -> None:
    op.create_index(f"ix_{table}_{'_'.join(columns)}", table, list(columns), unique=unique)


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_key", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
    )
    _index("users", "id")
    _index("users", "user_key", unique=True)
    _index("users", "email", unique=True)
    _index("users", "email_verified")
    _index("users", "role")
    _index("users", "email_notifications")
    _index("users", "created_at")

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _user_fk(),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    _index("refresh_tokens", "id")
    _index("refresh_tokens", "user_id")
    _index("refresh_tokens", "token_hash", unique=True)
    _index("refresh_tokens", "expires_at")
    _index("refresh_tokens", "revoked")
    _index("refresh_tokens", "created_at")

    op.create_table(
        "auth_identities",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _user_fk(),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("secret_hash", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("provider_metadata", sa.JSON(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("provider", "provider_user_id", name="uq_auth_identity_provider_user"),
    )
    _index("auth_identities", "id")
    _index("auth_identities", "user_id")
    _index("auth_identities", "provider")
    _index("auth_identities", "provider_user_id")
    _index("auth_identities", "email")
    _index("auth_identities", "created_at")
    op.create_index("ix_auth_identities_user_provider", "auth_identities", ["user_id", "provider"])

    for table, extra in (
        ("email_verification_tokens", [sa.Column("email", sa.String(255), nullable=False)]),
        ("password_reset_tokens", []),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
            _user_fk(),
            sa.Column("token_hash", sa.String(255), nullable=False),
            *extra,
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
        )
        _index(table, "id")
        _index(table, "user_id")
        _index(table, "token_hash", unique=True)
        _index(table, "expires_at")
        _index(table, "created_at")

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    for column in ("id", "user_id", "date", "created_at"):
        _index("events", column)

    op.create_table(
        "activity_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(200), nullable=True),
        _created_at(),
        _updated_at(),
    )
    for column in ("id", "user_id", "date", "created_at"):
        _index("activity_schedules", column)

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("youtube_urls", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column(
            "activity_schedule_id",
            sa.Integer(),
            sa.ForeignKey("activity_schedules.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "event_id IS NULL OR activity_schedule_id IS NULL",
            name="ck_posts_single_report_source",
        ),
    )
    for column in ("id", "user_id", "event_id", "activity_schedule_id", "created_at"):
        _index("posts", column)
    op.create_index("ix_posts_user_created", "posts", ["user_id", sa.text("created_at DESC")])

    # ------------------------------------------------------------------
    # Engagement ledger
    # ------------------------------------------------------------------
    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        _created_at(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )
    for column in ("post_id", "user_id", "created_at"):
        _index("post_likes", column)

    participant_tables = (
        ("post_participants", "post_id", "posts", "uq_post_participants_post_user"),
        ("event_participants", "event_id", "events", "uq_event_participants_event_user"),
        (
            "activity_participants",
            "activity_schedule_id",
            "activity_schedules",
            "uq_activity_participants_schedule_user",
        ),
    )
    for table, item_fk, parent, unique_name in participant_tables:
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(item_fk, sa.Integer(), sa.ForeignKey(f"{parent}.id", ondelete="CASCADE"), nullable=False),
            _user_fk(),
            sa.Column("status", sa.String(20), nullable=False, server_default="participating"),
            _created_at(),
            _updated_at(),
            sa.UniqueConstraint(item_fk, "user_id", name=unique_name),
        )
        for column in (item_fk, "user_id", "created_at"):
            _index(table, column)

    comment_tables = (
        ("comments", "post_id", "posts"),
        ("event_comments", "event_id", "events"),
        ("activity_comments", "activity_schedule_id", "activity_schedules"),
    )
    for table, item_fk, parent in comment_tables:
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(item_fk, sa.Integer(), sa.ForeignKey(f"{parent}.id", ondelete="CASCADE"), nullable=False),
            _user_fk(),
            sa.Column("content", sa.Text(), nullable=False),
            _created_at(),
        )
        for column in (item_fk, "user_id", "created_at"):
            _index(table, column)
    op.create_index("ix_comments_post_created", "comments", ["post_id", "created_at"])

    # ------------------------------------------------------------------
    # Date polls, chat, templates
    # ------------------------------------------------------------------
    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    _index("schedules", "id")
    _index("schedules", "created_at")

    op.create_table(
        "schedule_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "schedule_id",
            sa.Integer(),
            sa.ForeignKey("schedules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
    )
    _index("schedule_dates", "schedule_id")

    op.create_table(
        "schedule_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "schedule_date_id",
            sa.Integer(),
            sa.ForeignKey("schedule_dates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk(),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("schedule_date_id", "user_id", name="uq_schedule_responses_date_user"),
    )
    for column in ("schedule_date_id", "user_id", "created_at"):
        _index("schedule_responses", column)

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    _index("messages", "user_id")
    _index("messages", "created_at")

    op.create_table(
        "templates",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    for table in (
        "templates",
        "messages",
        "schedule_responses",
        "schedule_dates",
        "schedules",
        "activity_comments",
        "event_comments",
        "comments",
        "activity_participants",
        "event_participants",
        "post_participants",
        "post_likes",
        "posts",
        "activity_schedules",
        "events",
        "password_reset_tokens",
        "email_verification_tokens",
        "auth_identities",
        "refresh_tokens",
        "users",
    ):
        op.drop_table(table)
