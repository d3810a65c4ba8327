from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Use JSONB on Postgres while keeping SQLite usable for local runs and tests.
JsonType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER primary keys.
BigIntPk = BigInteger().with_variant(Integer(), "sqlite")


def _utc_now() -> datetime:
    # Populate timestamps client-side so freshly flushed rows need no refresh.
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Account(Base):
    __tablename__ = "users"

    # Identity-provider user id; restores issue a new one for the same email.
    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String)
    # Persist RBAC role as a simple string (admin or technician).
    role: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, server_default=func.now()
    )

    def snapshot(self) -> dict[str, Any]:
        # Full row snapshot stored in history entries and used for restores.
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ApiKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True
    )
    # Keep a short prefix for operator display without exposing the secret.
    key_prefix: Mapped[str] = mapped_column(String)
    # Store only the hashed key to avoid plaintext credentials at rest.
    key_hash: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, server_default=func.now()
    )


class UserActionHistory(Base):
    __tablename__ = "user_action_history"
    __table_args__ = (
        Index("ix_user_action_history_action_timestamp", "action_type", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    action_type: Mapped[str] = mapped_column(String)
    performed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    performed_by_email: Mapped[str | None] = mapped_column(String, nullable=True)
    target_user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    target_user_email: Mapped[str | None] = mapped_column(String, nullable=True)
    # Delete entries keep the full account snapshot here so the account can be restored.
    previous_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    new_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, server_default=func.now(), index=True
    )
