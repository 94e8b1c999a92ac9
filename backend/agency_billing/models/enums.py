from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    EMPLOYEE = "EMPLOYEE"
    CLIENT = "CLIENT"


class TaskStatus(StrEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"
    # Terminal billing exclusion set by the discount allocator, not a workflow step.
    DISCOUNTED = "DISCOUNTED"


class InvoiceStatus(StrEnum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class ServiceType(StrEnum):
    POSTER_DESIGN = "Poster Design"
    VIDEO_EDITING = "Video Editing"
    AI_VIDEO = "AI Video"
    DOCUMENT_EDITING = "Document Editing"
    OTHER_WORK = "Other Work"
