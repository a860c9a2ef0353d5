"""
NDIS Compliance Platform - Services Package

Business logic services.
"""

from app.services.audit_scoring import ScoreSummary, calculate_scores
from app.services.ndis_standards import calculate_standard_scores, get_ndis_standard
from app.services.audit_checklists import (
    PARTICIPANT_FEEDBACK_CHECKLIST,
    SAFETY_ITEMS_CHECKLIST,
    SITE_VISIT_DOCUMENT_CHECKLIST,
    initialize_checklist,
)
from app.services.audit_report_pdf_service import AuditReportPDFService, plan_sections
from app.services.finding_workflow_service import FindingWorkflowService

__all__ = [
    "ScoreSummary",
    "calculate_scores",
    "calculate_standard_scores",
    "get_ndis_standard",
    "PARTICIPANT_FEEDBACK_CHECKLIST",
    "SAFETY_ITEMS_CHECKLIST",
    "SITE_VISIT_DOCUMENT_CHECKLIST",
    "initialize_checklist",
    "AuditReportPDFService",
    "plan_sections",
    "FindingWorkflowService",
]
