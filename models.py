from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class Theme(str, Enum):
    light = "light"
    dark = "dark"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class AccountRecord(Base, TimestampMixin):
    """One persisted account: the JSON blob of ``schemas.UserAccount``."""

    __tablename__ = "account_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)


class ActiveSession(Base, TimestampMixin):
    __tablename__ = "active_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    account_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("account_records.id", ondelete="SET NULL")
    )

    __table_args__ = (CheckConstraint("id = 1", name="ck_active_session_singleton"),)
