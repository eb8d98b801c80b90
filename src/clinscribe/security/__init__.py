"""
Security module for clinscribe.

Audit trail for encounter processing.
"""

from .audit_logger import AuditLogger

__all__ = ["AuditLogger"]
