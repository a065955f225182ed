"""
API route modules.
"""

from caseflow.api.routes.case_types import router as case_types_router
from caseflow.api.routes.legal_cases import router as legal_cases_router

__all__ = [
    "case_types_router",
    "legal_cases_router",
]
