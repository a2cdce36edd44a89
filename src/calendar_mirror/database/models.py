"""Database models for calendar mirror.

Google Calendar is the system of record for events, so only two tables are
kept locally: the user's OAuth state and their push-notification channels.

## Security Notes

- OAuth tokens are encrypted at rest using Fernet symmetric encryption
- The encryption key is derived from the application secret
- PostgreSQL should be configured with SSL and disk encryption

## Schema Overview

```
users
└── webhooks (1:N)
```
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""


class User(Base):
    """User account model.

    Users are created on their first Google login and looked up by email on
    later logins. Token columns hold ciphertext, see `auth.tokens`.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # OAuth state (encrypted)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    token_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Incremental sync cursor for the user's calendar
    sync_token: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    webhooks: Mapped[list["Webhook"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Webhook(Base):
    """A Google Calendar push-notification channel.

    Google identifies the channel by `channel_id` (chosen by us) and the watched
    resource by `resource_id` (chosen by Google). Both are needed to stop it.
    """

    __tablename__ = "webhooks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    channel_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    expiration: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="webhooks")

    __table_args__ = (
        Index("ix_webhooks_user", "user_id"),
        Index("ix_webhooks_expiration", "expiration"),
    )

    def __repr__(self) -> str:
        return f"<Webhook {self.channel_id}>"
