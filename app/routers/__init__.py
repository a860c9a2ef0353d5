"""
NDIS Compliance Platform - Routers Package

FastAPI route handlers.

Routers:
- audit_report: Audit scoring and PDF report compilation
"""

from app.routers import audit_report

__all__ = ["audit_report"]
