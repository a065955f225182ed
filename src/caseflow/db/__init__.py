"""
Database module for Caseflow.
"""

from caseflow.db.orm import AuditLog, Base, LegalCaseRecord

__all__ = [
    "Base",
    "LegalCaseRecord",
    "AuditLog",
]
