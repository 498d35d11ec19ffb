"""
Audit logging infrastructure for host assignment decisions.
"""

from lucky_host.infrastructure.audit.audit_logger import AuditLogger, audit_logger

__all__ = ["AuditLogger", "audit_logger"]
