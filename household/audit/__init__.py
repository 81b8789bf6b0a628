"""Audit logging package."""

from household.audit.logger import AuditLogger, get_logger

__all__ = ["AuditLogger", "get_logger"]
