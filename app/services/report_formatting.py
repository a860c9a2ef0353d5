"""
NDIS Compliance Platform - Report Formatting Helpers

Palette, enum display tables and small text/date helpers shared by the
audit report compiler.

Every lookup table keyed by an enum is checked against the enum when this
module is imported, so adding a member without a colour or label fails at
startup instead of rendering a blank cell.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Dict, Mapping, Optional, Type, TypeVar, Union

from reportlab.lib import colors

from app.schemas.audit import (
    AuditMethodology,
    AuditPurpose,
    EvidenceRequestStatus,
    EvidenceType,
    FindingActivityType,
    FindingSeverity,
    FindingStatus,
    IndicatorRating,
    InterviewMethod,
    InterviewType,
    RegistrationGroupStatus,
    WitnessedStatus,
)
from app.services.audit_scoring import ScoreBand


E = TypeVar("E", bound=Enum)
V = TypeVar("V")


# =============================================================================
# PALETTE
# =============================================================================

class Palette:
    """Fixed report colours."""
    PRIMARY = colors.HexColor("#1e3a5f")
    SECONDARY = colors.HexColor("#2563eb")
    SUCCESS = colors.HexColor("#16a34a")
    WARNING = colors.HexColor("#ca8a04")
    DANGER = colors.HexColor("#dc2626")
    MUTED = colors.HexColor("#6b7280")
    LIGHT = colors.HexColor("#f3f4f6")
    WHITE = colors.HexColor("#ffffff")
    BLACK = colors.HexColor("#111827")
    EMERALD = colors.HexColor("#10b981")
    ORANGE = colors.HexColor("#f97316")


def ensure_exhaustive(enum_cls: Type[E], table: Mapping[E, V], name: str) -> Dict[E, V]:
    """Fail loudly when a lookup table does not cover every enum member."""
    missing = [member.value for member in enum_cls if member not in table]
    if missing:
        raise RuntimeError(f"{name} is missing entries for {enum_cls.__name__}: {', '.join(missing)}")
    return dict(table)


# =============================================================================
# COLOUR TABLES
# =============================================================================

RATING_COLORS = ensure_exhaustive(IndicatorRating, {
    IndicatorRating.CONFORMITY_BEST_PRACTICE: Palette.EMERALD,
    IndicatorRating.CONFORMITY: Palette.SUCCESS,
    IndicatorRating.MINOR_NC: Palette.ORANGE,
    IndicatorRating.MAJOR_NC: Palette.DANGER,
}, "RATING_COLORS")

SEVERITY_COLORS = ensure_exhaustive(FindingSeverity, {
    FindingSeverity.MINOR_NC: Palette.ORANGE,
    FindingSeverity.MAJOR_NC: Palette.DANGER,
}, "SEVERITY_COLORS")

EVIDENCE_STATUS_COLORS = ensure_exhaustive(EvidenceRequestStatus, {
    EvidenceRequestStatus.REQUESTED: Palette.WARNING,
    EvidenceRequestStatus.SUBMITTED: Palette.SECONDARY,
    EvidenceRequestStatus.UNDER_REVIEW: Palette.WARNING,
    EvidenceRequestStatus.ACCEPTED: Palette.SUCCESS,
    EvidenceRequestStatus.REJECTED: Palette.DANGER,
}, "EVIDENCE_STATUS_COLORS")

REGISTRATION_STATUS_COLORS = ensure_exhaustive(RegistrationGroupStatus, {
    RegistrationGroupStatus.KEEP: Palette.SUCCESS,
    RegistrationGroupStatus.ADD: Palette.SECONDARY,
    RegistrationGroupStatus.REMOVE: Palette.DANGER,
}, "REGISTRATION_STATUS_COLORS")

WITNESSED_COLORS = ensure_exhaustive(WitnessedStatus, {
    WitnessedStatus.YES: Palette.SUCCESS,
    WitnessedStatus.NO: Palette.DANGER,
    WitnessedStatus.NA: Palette.MUTED,
}, "WITNESSED_COLORS")

SCORE_BAND_COLORS = ensure_exhaustive(ScoreBand, {
    ScoreBand.GOOD: Palette.SUCCESS,
    ScoreBand.FAIR: Palette.WARNING,
    ScoreBand.POOR: Palette.DANGER,
}, "SCORE_BAND_COLORS")


# =============================================================================
# LABEL TABLES
# =============================================================================

RATING_LABELS = ensure_exhaustive(IndicatorRating, {
    IndicatorRating.CONFORMITY_BEST_PRACTICE: "Best Practice",
    IndicatorRating.CONFORMITY: "Conformity",
    IndicatorRating.MINOR_NC: "Minor Non-Conformance",
    IndicatorRating.MAJOR_NC: "Major Non-Conformance",
}, "RATING_LABELS")

SEVERITY_LABELS = ensure_exhaustive(FindingSeverity, {
    FindingSeverity.MINOR_NC: "Minor Non-Conformance",
    FindingSeverity.MAJOR_NC: "Major Non-Conformance",
}, "SEVERITY_LABELS")

FINDING_STATUS_LABELS = ensure_exhaustive(FindingStatus, {
    FindingStatus.OPEN: "Open",
    FindingStatus.UNDER_REVIEW: "Under Review",
    FindingStatus.CLOSED: "Closed",
}, "FINDING_STATUS_LABELS")

ACTIVITY_LABELS = ensure_exhaustive(FindingActivityType, {
    FindingActivityType.CREATED: "Finding Created",
    FindingActivityType.STATUS_CHANGED: "Status Changed",
    FindingActivityType.OWNER_ASSIGNED: "Owner Assigned",
    FindingActivityType.DUE_DATE_SET: "Due Date Set",
    FindingActivityType.COMMENT_ADDED: "Comment Added",
    FindingActivityType.EVIDENCE_REQUESTED: "Evidence Requested",
    FindingActivityType.EVIDENCE_SUBMITTED: "Evidence Submitted",
    FindingActivityType.EVIDENCE_REVIEWED: "Evidence Reviewed",
    FindingActivityType.CLOSURE_INITIATED: "Closure Initiated",
    FindingActivityType.CLOSED: "Finding Closed",
    FindingActivityType.REOPENED: "Finding Reopened",
}, "ACTIVITY_LABELS")

EVIDENCE_TYPE_LABELS = ensure_exhaustive(EvidenceType, {
    EvidenceType.CLIENT_PROFILE: "Client Profile / Intake Record",
    EvidenceType.NDIS_PLAN: "NDIS Plan",
    EvidenceType.SERVICE_AGREEMENT: "Service Agreement",
    EvidenceType.CONSENT_FORM: "Consent Form",
    EvidenceType.GUARDIAN_DOCUMENTATION: "Guardian / Nominee Documentation",
    EvidenceType.CARE_PLAN: "Care / Support Plan",
    EvidenceType.BSP: "Behaviour Support Plan (BSP)",
    EvidenceType.MMP: "Mealtime Management Plan (MMP)",
    EvidenceType.HEALTH_PLAN: "Health Management Plan",
    EvidenceType.COMMUNICATION_PLAN: "Communication Plan",
    EvidenceType.RISK_ASSESSMENT: "Risk Assessment",
    EvidenceType.EMERGENCY_PLAN: "Emergency / Evacuation Plan",
    EvidenceType.ROSTER: "Roster / Shift Allocation",
    EvidenceType.SHIFT_NOTES: "Shift Notes / Case Notes",
    EvidenceType.DAILY_LOG: "Daily Support Log",
    EvidenceType.PROGRESS_NOTES: "Progress Notes",
    EvidenceType.ACTIVITY_RECORD: "Activity / Community Access Record",
    EvidenceType.QUALIFICATION: "Qualification / Credential",
    EvidenceType.WWCC: "WWCC / Police Check / NDIS Screening",
    EvidenceType.TRAINING_RECORD: "Training Record / Certificate",
    EvidenceType.SUPERVISION_RECORD: "Supervision Record",
    EvidenceType.MEDICATION_PLAN: "Medication Management Plan",
    EvidenceType.MAR: "Medication Administration Record (MAR)",
    EvidenceType.PRN_LOG: "PRN Protocol / Usage Log",
    EvidenceType.INCIDENT_REPORT: "Incident Report",
    EvidenceType.COMPLAINT_RECORD: "Complaint Record",
    EvidenceType.RP_RECORD: "Restrictive Practice Record",
    EvidenceType.SERVICE_BOOKING: "Service Booking / Funding Allocation",
    EvidenceType.INVOICE_CLAIM: "Invoice / Claim Record",
    EvidenceType.POLICY: "Policy Document",
    EvidenceType.PROCEDURE: "Procedure Document",
    EvidenceType.REVIEW_RECORD: "Review / Monitoring Record",
    EvidenceType.OTHER: "Other Document",
}, "EVIDENCE_TYPE_LABELS")

EVIDENCE_STATUS_LABELS = ensure_exhaustive(EvidenceRequestStatus, {
    EvidenceRequestStatus.REQUESTED: "Requested",
    EvidenceRequestStatus.SUBMITTED: "Submitted",
    EvidenceRequestStatus.UNDER_REVIEW: "Under Review",
    EvidenceRequestStatus.ACCEPTED: "Accepted",
    EvidenceRequestStatus.REJECTED: "Rejected",
}, "EVIDENCE_STATUS_LABELS")

AUDIT_PURPOSE_LABELS = ensure_exhaustive(AuditPurpose, {
    AuditPurpose.INITIAL_CERTIFICATION: "Initial Certification",
    AuditPurpose.RECERTIFICATION: "Recertification",
    AuditPurpose.SURVEILLANCE: "Surveillance Audit",
    AuditPurpose.SCOPE_EXTENSION: "Scope Extension",
    AuditPurpose.TRANSFER_AUDIT: "Transfer Audit",
    AuditPurpose.SPECIAL_AUDIT: "Special Audit",
}, "AUDIT_PURPOSE_LABELS")

METHODOLOGY_LABELS = ensure_exhaustive(AuditMethodology, {
    AuditMethodology.ONSITE: "On-site",
    AuditMethodology.REMOTE: "Remote",
    AuditMethodology.HYBRID: "Hybrid (On-site & Remote)",
}, "METHODOLOGY_LABELS")

INTERVIEW_TYPE_LABELS = ensure_exhaustive(InterviewType, {
    InterviewType.PARTICIPANT: "Participant",
    InterviewType.STAFF: "Staff",
    InterviewType.STAKEHOLDER: "Stakeholder",
}, "INTERVIEW_TYPE_LABELS")

INTERVIEW_METHOD_LABELS = ensure_exhaustive(InterviewMethod, {
    InterviewMethod.FACE_TO_FACE: "Face-to-Face",
    InterviewMethod.PHONE: "Phone",
    InterviewMethod.VIDEO: "Video Conference",
    InterviewMethod.FOCUS_GROUP: "Focus Group",
}, "INTERVIEW_METHOD_LABELS")

REGISTRATION_STATUS_LABELS = ensure_exhaustive(RegistrationGroupStatus, {
    RegistrationGroupStatus.KEEP: "Keep",
    RegistrationGroupStatus.ADD: "Add",
    RegistrationGroupStatus.REMOVE: "Remove",
}, "REGISTRATION_STATUS_LABELS")

WITNESSED_LABELS = ensure_exhaustive(WitnessedStatus, {
    WitnessedStatus.YES: "Yes",
    WitnessedStatus.NO: "No",
    WitnessedStatus.NA: "N/A",
}, "WITNESSED_LABELS")


# =============================================================================
# TEXT HELPERS
# =============================================================================

URL_PATTERN = re.compile(r"https?://\S+")

# What is left of "See <link>" style comments once the link is removed
LEAD_IN_PATTERN = re.compile(r"(?:see|see attached|see link|refer|refer to|ref|link|links|attached)?", re.IGNORECASE)

EVIDENCE_PLACEHOLDER = "Evidence attached"

DATE_FORMAT = "%d %b %Y"
DATETIME_FORMAT = "%d %b %Y %H:%M"
LONG_DATE_FORMAT = "%d %B %Y"


def clean_comment(text: Optional[str]) -> str:
    """
    Strip embedded URLs from a free-text comment.

    A comment that was nothing but links, or a lead-in such as "See" followed
    by links, collapses to "Evidence attached". Comments without links are
    only trimmed.
    """
    if not text:
        return ""
    stripped = URL_PATTERN.sub("", text)
    if stripped == text:
        return text.strip()
    cleaned = re.sub(r"\s{2,}", " ", stripped).strip()
    if LEAD_IN_PATTERN.fullmatch(cleaned.strip(" :;,.-()[]")):
        return EVIDENCE_PLACEHOLDER
    return cleaned


def truncate(text: Optional[str], limit: int) -> str:
    if not text:
        return ""
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def parse_date(value: Union[datetime, date, str, None]) -> Optional[Union[datetime, date]]:
    """Interpret a date-like value; None when it cannot be read."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def safe_format_date(
    value: Union[datetime, date, str, None],
    fmt: str = DATE_FORMAT,
    fallback: str = "Not set",
) -> str:
    """Format a date for display, degrading to ``fallback`` when missing or malformed."""
    parsed = parse_date(value)
    if parsed is None:
        return fallback
    return parsed.strftime(fmt)


def _label(table: Mapping[E, str], value: Union[E, str, None], enum_cls: Type[E]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return table[enum_cls(value)]
    except ValueError:
        return str(value)


def format_audit_purpose(purpose: Union[AuditPurpose, str, None]) -> str:
    return _label(AUDIT_PURPOSE_LABELS, purpose, AuditPurpose) or "Not specified"


def format_methodology(methodology: Union[AuditMethodology, str, None]) -> str:
    return _label(METHODOLOGY_LABELS, methodology, AuditMethodology) or "Not specified"


def format_interview_type(interview_type: Union[InterviewType, str]) -> str:
    return _label(INTERVIEW_TYPE_LABELS, interview_type, InterviewType) or ""


def format_interview_method(method: Union[InterviewMethod, str]) -> str:
    return _label(INTERVIEW_METHOD_LABELS, method, InterviewMethod) or ""


def format_evidence_type(evidence_type: Union[EvidenceType, str]) -> str:
    return _label(EVIDENCE_TYPE_LABELS, evidence_type, EvidenceType) or ""


def format_activity_type(activity_type: Union[FindingActivityType, str]) -> str:
    return _label(ACTIVITY_LABELS, activity_type, FindingActivityType) or ""


def format_site_address(address: Optional[str], city: Optional[str] = None,
                        state: Optional[str] = None, postcode: Optional[str] = None) -> str:
    """Single-line site address; empty string when no street address is recorded."""
    if not address:
        return ""
    line = address
    if city:
        line += f", {city}"
    if state:
        line += f" {state}"
    if postcode:
        line += f" {postcode}"
    return line
