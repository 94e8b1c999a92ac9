from __future__ import annotations


class BillingError(Exception):
    """Base exception for billing operations."""


class BillingValidationError(BillingError):
    """The request was malformed; nothing was written."""


class NotFoundError(BillingError):
    """A referenced client, invoice or task does not exist."""


class BusinessRuleError(BillingError):
    """The request was well-formed but billing rules refuse it."""


class InvoiceNumberConflict(BillingError):
    """Another transaction took the invoice number first."""
