from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from db import Base


class Registration(Base):
    """Attendee registration submitted through the public form."""

    __tablename__ = "registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    kit_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    whatsapp_number: Mapped[str] = mapped_column(String(64), nullable=False)
    car_number_plate: Mapped[str] = mapped_column(String(64), default="N/A", nullable=False)
    house: Mapped[str] = mapped_column(String(128), nullable=False)
    profession: Mapped[str] = mapped_column(String(255), nullable=False)
    postal_address: Mapped[str] = mapped_column(Text, default="", nullable=False)
    attend_gala: Mapped[str] = mapped_column(String(32), nullable=False)  # Yes/No/Maybe
    morale: Mapped[str] = mapped_column(String(255), nullable=False)
    excited_for_gala: Mapped[str] = mapped_column(String(255), nullable=False)
    photo_url: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_registrations_created_at", "created_at"),
    )

    @property
    def is_attending(self) -> bool:
        return self.attend_gala == "Yes"


class AppSetting(Base):
    """Key/value storage for runtime switches such as ``registration_open``."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    actor: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    object_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    object_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_audit_log_created_at", "created_at"),
    )
