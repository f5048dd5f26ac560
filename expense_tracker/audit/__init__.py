"""Audit logging package."""

from expense_tracker.audit.logger import (
    AuthAuditLogger,
    configure_logging,
    lookup_public_ip,
)

__all__ = ["AuthAuditLogger", "configure_logging", "lookup_public_ip"]
