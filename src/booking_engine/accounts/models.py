"""
SQLAlchemy model for the business account that owns resources, agents and leads.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.shared.database import Base


class BusinessAccount(Base):
    """Tenant record, including its WhatsApp Business credential."""

    __tablename__ = "business_accounts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    whatsapp_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    whatsapp_phone_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    whatsapp_access_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<BusinessAccount(id={self.id}, name={self.name})>"
