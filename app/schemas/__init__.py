"""
NDIS Compliance Platform - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.audit import (
    # Enums
    IndicatorRating,
    FindingSeverity,
    FindingStatus,
    FindingActivityType,
    EvidenceType,
    EvidenceRequestStatus,
    AuditPurpose,
    AuditMethodology,
    InterviewType,
    InterviewMethod,
    RegistrationGroupStatus,
    WitnessedStatus,
    # Records
    ChecklistItem,
    UserRef,
    IndicatorResponse,
    FindingActivity,
    EvidenceItem,
    EvidenceRequest,
    Finding,
    AuditInterview,
    AuditSiteVisit,
    AuditSite,
    RegistrationGroupItem,
    ConclusionEndorsements,
    ConclusionData,
    Company,
    Audit,
    ReportData,
)
