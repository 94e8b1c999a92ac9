"""Import all models so SQLAlchemy metadata is fully registered."""

from agency_billing.db.base import Base

from agency_billing.models.client import Client
from agency_billing.models.enums import InvoiceStatus, Role, ServiceType, TaskStatus
from agency_billing.models.invoice import Invoice, InvoiceAuditLog, InvoiceItem
from agency_billing.models.payment import Payment, PaymentAllocation
from agency_billing.models.project import Project
from agency_billing.models.task import Task

__all__ = [
    "Base",
    "Client",
    "Invoice",
    "InvoiceAuditLog",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentAllocation",
    "Project",
    "Role",
    "ServiceType",
    "Task",
    "TaskStatus",
]
