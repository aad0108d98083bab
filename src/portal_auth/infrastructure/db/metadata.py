"""SQLAlchemy metadata definitions for the credential-core tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("email", sa.Text(), nullable=False),
    sa.Column("phone", sa.Text(), nullable=True),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'ACTIVE'")),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.UniqueConstraint("email", name="uq_users_email"),
    sa.CheckConstraint(
        "status IN ('ACTIVE', 'PENDING', 'SUSPENDED')",
        name="ck_users_status",
    ),
)
sa.Index("ix_users_phone", users.c.phone)

roles = sa.Table(
    "roles",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.UniqueConstraint("name", name="uq_roles_name"),
)

permissions = sa.Table(
    "permissions",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("code", sa.Text(), nullable=False),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.UniqueConstraint("code", name="uq_permissions_code"),
)

user_roles = sa.Table(
    "user_roles",
    metadata,
    sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), primary_key=True),
    sa.Column("role_id", sa.Uuid(), sa.ForeignKey("roles.id"), primary_key=True),
)

role_permissions = sa.Table(
    "role_permissions",
    metadata,
    sa.Column("role_id", sa.Uuid(), sa.ForeignKey("roles.id"), primary_key=True),
    sa.Column("permission_id", sa.Uuid(), sa.ForeignKey("permissions.id"), primary_key=True),
)

refresh_tokens = sa.Table(
    "refresh_tokens",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("token_hash", sa.Text(), nullable=False),
    sa.Column(
        "issued_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_token_hash"),
)
sa.Index("ix_refresh_tokens_user_id", refresh_tokens.c.user_id)
sa.Index("ix_refresh_tokens_expires_at", refresh_tokens.c.expires_at)

otp_verifications = sa.Table(
    "otp_verifications",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("target", sa.Text(), nullable=False),
    sa.Column("channel", sa.Text(), nullable=False),
    sa.Column("purpose", sa.Text(), nullable=False),
    sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("code_hash", sa.Text(), nullable=False),
    sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint("channel IN ('email', 'phone')", name="ck_otp_verifications_channel"),
    sa.CheckConstraint(
        "purpose IN ('EMAIL_VERIFICATION', 'PHONE_VERIFICATION', 'PASSWORD_RESET')",
        name="ck_otp_verifications_purpose",
    ),
)
sa.Index(
    "ix_otp_verifications_target_purpose",
    otp_verifications.c.target,
    otp_verifications.c.purpose,
)
sa.Index("ix_otp_verifications_expires_at", otp_verifications.c.expires_at)

app_settings = sa.Table(
    "app_settings",
    metadata,
    sa.Column("key", sa.Text(), primary_key=True, nullable=False),
    sa.Column("value", sa.Text(), nullable=False),
    sa.Column("category", sa.Text(), nullable=False, server_default=sa.text("'general'")),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)

audit_events = sa.Table(
    "audit_events",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("actor_user_id", sa.Uuid(), nullable=True),
    sa.Column("event_type", sa.Text(), nullable=False),
    sa.Column("ip_address", sa.Text(), nullable=True),
    sa.Column("user_agent", sa.Text(), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    sa.Column(
        "occurred_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)
sa.Index(
    "ix_audit_events_actor_user_id_occurred_at",
    audit_events.c.actor_user_id,
    audit_events.c.occurred_at,
)
sa.Index(
    "ix_audit_events_event_type_occurred_at",
    audit_events.c.event_type,
    audit_events.c.occurred_at,
)
