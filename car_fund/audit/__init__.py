"""Audit logging package."""

from car_fund.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
