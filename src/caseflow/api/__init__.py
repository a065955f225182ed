"""
API module for Caseflow.

Provides REST API routes for:
- Legal case management and workflow transitions
- Case type step tables
"""
