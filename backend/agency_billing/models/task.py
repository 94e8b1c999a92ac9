from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_billing.db.base import Base, IDMixin, TimestampMixin
from agency_billing.models.enums import TaskStatus


class Task(IDMixin, TimestampMixin, Base):
    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status"),
        default=TaskStatus.TODO,
        nullable=False,
        index=True,
    )
    service_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id"), nullable=True, index=True)
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey("projects.id"), nullable=True, index=True)
    # Set exactly once, when the task is consumed into an invoice.
    invoice_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    client: Mapped[Optional["Client"]] = relationship()
    project: Mapped[Optional["Project"]] = relationship(back_populates="tasks")
    invoice: Mapped[Optional["Invoice"]] = relationship(back_populates="tasks")

    @property
    def effective_client(self) -> Optional["Client"]:
        if self.client is not None:
            return self.client
        if self.project is not None:
            return self.project.client
        return None
