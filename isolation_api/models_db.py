"""SQLAlchemy ORM models."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Index
from isolation_api.database import Base


def _now():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False, default="")
    subscription_tier = Column(String, nullable=False, default="free")
    calculations_used = Column(Integer, nullable=False, default=0)
    stripe_customer_id = Column(String, nullable=True)
    stripe_subscription_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)


class Payment(Base):
    """One row per completed Stripe checkout session."""
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    session_id = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    currency = Column(String, nullable=False, default="usd")
    created_at = Column(DateTime, nullable=False, default=_now)

    __table_args__ = (
        Index("ix_payments_user_id", "user_id"),
    )
