"""Audit trail: models, storage, logger, and CLI for quote and security events."""

from quote_engine.audit.cli import build_parser
from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditAction, AuditContext, AuditEntry
from quote_engine.audit.store import (
    close_audit_db,
    init_audit_db,
    insert_audit_entry,
    query_audit_trail,
)

__all__ = [
    "AuditAction",
    "AuditContext",
    "AuditEntry",
    "AuditLogger",
    "build_parser",
    "close_audit_db",
    "init_audit_db",
    "insert_audit_entry",
    "query_audit_trail",
]
