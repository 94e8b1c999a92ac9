from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_billing.db.base import Base, IDMixin, TimestampMixin


class Client(IDMixin, TimestampMixin, Base):
    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="Active", nullable=False)

    # Flat per-service price table. Zero or NULL means the service is not billable.
    poster_design_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    video_editing_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    ai_video_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    document_editing_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    other_work_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Recurring plan, consumed by the monthly plan job.
    plan: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    plan_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    facebook_ads: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    facebook_ads_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    google_ads: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    google_ads_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    projects: Mapped[List["Project"]] = relationship(back_populates="client")
    invoices: Mapped[List["Invoice"]] = relationship(back_populates="client")
    payments: Mapped[List["Payment"]] = relationship(back_populates="client")
