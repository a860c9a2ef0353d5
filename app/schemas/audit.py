"""
NDIS Compliance Platform - Audit Schemas

Pydantic schemas for the audit snapshot consumed by the scoring engine,
the report compiler and the finding workflow.
"""

from datetime import date, datetime
from typing import Optional, List, Union
from enum import Enum

from pydantic import BaseModel, Field, field_validator


# Dates arrive from the data layer either parsed or as raw strings.
# Raw strings are kept as-is and only interpreted when rendered.
DateLike = Union[datetime, date, str]


# =============================================================================
# ENUMS
# =============================================================================

class IndicatorRating(str, Enum):
    """Auditor rating for a single indicator."""
    CONFORMITY_BEST_PRACTICE = "CONFORMITY_BEST_PRACTICE"
    CONFORMITY = "CONFORMITY"
    MINOR_NC = "MINOR_NC"
    MAJOR_NC = "MAJOR_NC"


class FindingSeverity(str, Enum):
    """Severity of a recorded non-conformance."""
    MINOR_NC = "MINOR_NC"
    MAJOR_NC = "MAJOR_NC"


class FindingStatus(str, Enum):
    """Corrective action status of a finding."""
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    CLOSED = "CLOSED"


class FindingActivityType(str, Enum):
    """Timeline entry kinds for a finding."""
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    OWNER_ASSIGNED = "OWNER_ASSIGNED"
    DUE_DATE_SET = "DUE_DATE_SET"
    COMMENT_ADDED = "COMMENT_ADDED"
    EVIDENCE_REQUESTED = "EVIDENCE_REQUESTED"
    EVIDENCE_SUBMITTED = "EVIDENCE_SUBMITTED"
    EVIDENCE_REVIEWED = "EVIDENCE_REVIEWED"
    CLOSURE_INITIATED = "CLOSURE_INITIATED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"


class EvidenceType(str, Enum):
    """Document categories an auditor can request as evidence."""
    CLIENT_PROFILE = "CLIENT_PROFILE"
    NDIS_PLAN = "NDIS_PLAN"
    SERVICE_AGREEMENT = "SERVICE_AGREEMENT"
    CONSENT_FORM = "CONSENT_FORM"
    GUARDIAN_DOCUMENTATION = "GUARDIAN_DOCUMENTATION"
    CARE_PLAN = "CARE_PLAN"
    BSP = "BSP"
    MMP = "MMP"
    HEALTH_PLAN = "HEALTH_PLAN"
    COMMUNICATION_PLAN = "COMMUNICATION_PLAN"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    EMERGENCY_PLAN = "EMERGENCY_PLAN"
    ROSTER = "ROSTER"
    SHIFT_NOTES = "SHIFT_NOTES"
    DAILY_LOG = "DAILY_LOG"
    PROGRESS_NOTES = "PROGRESS_NOTES"
    ACTIVITY_RECORD = "ACTIVITY_RECORD"
    QUALIFICATION = "QUALIFICATION"
    WWCC = "WWCC"
    TRAINING_RECORD = "TRAINING_RECORD"
    SUPERVISION_RECORD = "SUPERVISION_RECORD"
    MEDICATION_PLAN = "MEDICATION_PLAN"
    MAR = "MAR"
    PRN_LOG = "PRN_LOG"
    INCIDENT_REPORT = "INCIDENT_REPORT"
    COMPLAINT_RECORD = "COMPLAINT_RECORD"
    RP_RECORD = "RP_RECORD"
    SERVICE_BOOKING = "SERVICE_BOOKING"
    INVOICE_CLAIM = "INVOICE_CLAIM"
    POLICY = "POLICY"
    PROCEDURE = "PROCEDURE"
    REVIEW_RECORD = "REVIEW_RECORD"
    OTHER = "OTHER"


class EvidenceRequestStatus(str, Enum):
    """Lifecycle status of an evidence request."""
    REQUESTED = "REQUESTED"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class AuditPurpose(str, Enum):
    """Why the audit is being conducted."""
    INITIAL_CERTIFICATION = "INITIAL_CERTIFICATION"
    RECERTIFICATION = "RECERTIFICATION"
    SURVEILLANCE = "SURVEILLANCE"
    SCOPE_EXTENSION = "SCOPE_EXTENSION"
    TRANSFER_AUDIT = "TRANSFER_AUDIT"
    SPECIAL_AUDIT = "SPECIAL_AUDIT"


class AuditMethodology(str, Enum):
    """How the audit is delivered."""
    ONSITE = "ONSITE"
    REMOTE = "REMOTE"
    HYBRID = "HYBRID"


class InterviewType(str, Enum):
    """Who was interviewed."""
    PARTICIPANT = "PARTICIPANT"
    STAFF = "STAFF"
    STAKEHOLDER = "STAKEHOLDER"


class InterviewMethod(str, Enum):
    """How the interview was conducted."""
    FACE_TO_FACE = "FACE_TO_FACE"
    PHONE = "PHONE"
    VIDEO = "VIDEO"
    FOCUS_GROUP = "FOCUS_GROUP"


class RegistrationGroupStatus(str, Enum):
    """Auditor recommendation for a registration group line item."""
    KEEP = "KEEP"
    ADD = "ADD"
    REMOVE = "REMOVE"


class WitnessedStatus(str, Enum):
    """Whether delivery of a registration group was witnessed."""
    YES = "YES"
    NO = "NO"
    NA = "NA"


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class AuditBaseSchema(BaseModel):
    """Base schema for records read from the data layer."""

    class Config:
        from_attributes = True


class ChecklistItem(AuditBaseSchema):
    """A single tick-box line on an interview or site visit checklist."""
    item: str
    checked: bool = False
    partial: bool = False


class UserRef(AuditBaseSchema):
    """Minimal user reference attached to timeline entries."""
    full_name: str


# =============================================================================
# INDICATOR RESPONSES
# =============================================================================

class IndicatorResponse(AuditBaseSchema):
    """An auditor's rating of one template indicator."""
    template_indicator_id: str
    indicator_text: str = ""
    rating: IndicatorRating
    comment: Optional[str] = None
    score_points: Optional[int] = None


# =============================================================================
# FINDINGS & EVIDENCE
# =============================================================================

class FindingActivity(AuditBaseSchema):
    """Immutable timeline entry for a finding."""
    activity_type: FindingActivityType
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    comment: Optional[str] = None
    performed_by_user: Optional[UserRef] = None
    created_at: Union[datetime, str] = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True
        frozen = True


class EvidenceItem(AuditBaseSchema):
    """A file submitted against an evidence request."""
    id: Optional[str] = None
    file_name: Optional[str] = None
    note: Optional[str] = None
    uploaded_at: Optional[DateLike] = None


class EvidenceRequest(AuditBaseSchema):
    """A request for supporting documents, optionally shared via public link."""
    id: Optional[str] = None
    evidence_type: EvidenceType
    request_note: str
    status: EvidenceRequestStatus = EvidenceRequestStatus.REQUESTED
    public_token: Optional[str] = None
    due_date: Optional[DateLike] = None
    review_note: Optional[str] = None
    items: List[EvidenceItem] = Field(default_factory=list)


class Finding(AuditBaseSchema):
    """A recorded non-conformance requiring corrective action."""
    id: Optional[str] = None
    template_indicator_id: Optional[str] = None
    finding_text: str
    severity: FindingSeverity
    status: FindingStatus = FindingStatus.OPEN
    owner_name: Optional[str] = None
    due_date: Optional[DateLike] = None
    closure_note: Optional[str] = None
    activities: List[FindingActivity] = Field(default_factory=list)
    evidence_requests: List[EvidenceRequest] = Field(default_factory=list)
    closure_evidence: List[str] = Field(default_factory=list)


# =============================================================================
# INTERVIEWS, SITE VISITS, SITES
# =============================================================================

class AuditInterview(AuditBaseSchema):
    """Interview conducted during the audit."""
    interview_type: InterviewType
    interview_method: Optional[InterviewMethod] = None
    interviewee_name: Optional[str] = None
    interviewee_role: Optional[str] = None
    site_location: Optional[str] = None
    interview_date: Optional[DateLike] = None
    feedback_positive: Optional[str] = None
    feedback_concerns: Optional[str] = None
    feedback_checklist: List[ChecklistItem] = Field(default_factory=list)


class AuditSiteVisit(AuditBaseSchema):
    """Site visit carried out during the audit."""
    site_name: str
    site_address: Optional[str] = None
    visit_date: Optional[DateLike] = None
    participants_at_site: Optional[int] = None
    files_reviewed_count: Optional[int] = None
    observations_positive: Optional[str] = None
    observations_concerns: Optional[str] = None
    safety_items_checked: List[ChecklistItem] = Field(default_factory=list)
    documents_checked: List[ChecklistItem] = Field(default_factory=list)


class AuditSite(AuditBaseSchema):
    """A provider site in scope for the audit."""
    site_name: str
    is_primary_site: bool = False
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None


# =============================================================================
# REGISTRATION GROUPS & CONCLUSION
# =============================================================================

class RegistrationGroupItem(AuditBaseSchema):
    """Witnessing record for one in-scope registration group line item."""
    item_code: str
    item_label: str
    recommended: bool = False
    status: RegistrationGroupStatus = RegistrationGroupStatus.KEEP
    witnessed: WitnessedStatus = WitnessedStatus.NA


class ConclusionEndorsements(AuditBaseSchema):
    """Lead auditor endorsements recorded at sign-off."""
    certification_recommended: bool = False
    scope_confirmed: bool = False
    findings_communicated: bool = False


class ConclusionData(AuditBaseSchema):
    """Conclusion and sign-off block of the audit report."""
    conclusion_text: Optional[str] = None
    reviewers_note: Optional[str] = None
    endorsements: ConclusionEndorsements = Field(default_factory=ConclusionEndorsements)
    follow_up_required: bool = False
    lead_auditor_name: Optional[str] = None
    lead_auditor_signature: Optional[str] = None
    signature_date: Optional[DateLike] = None


# =============================================================================
# AUDIT, COMPANY, REPORT DATA
# =============================================================================

class Company(AuditBaseSchema):
    """Tenant organisation that owns the audit."""
    legal_name: str
    abn: Optional[str] = None
    ndis_registration_number: Optional[str] = None
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[str] = None
    timezone: str = "Australia/Melbourne"


class Audit(AuditBaseSchema):
    """Top-level audit aggregate."""
    id: Optional[str] = None
    title: str
    audit_type: Optional[str] = None
    audit_purpose: Optional[AuditPurpose] = None
    methodology: Optional[AuditMethodology] = None
    service_context: Optional[str] = None
    service_context_label: Optional[str] = None
    scope_time_from: Optional[DateLike] = None
    scope_time_to: Optional[DateLike] = None
    status: Optional[str] = None
    entity_name: Optional[str] = None
    entity_abn: Optional[str] = None
    entity_address: Optional[str] = None
    external_auditor_org: Optional[str] = None
    external_auditor_name: Optional[str] = None
    external_auditor_email: Optional[str] = None
    description: Optional[str] = None
    executive_summary: Optional[str] = None
    scope_locked: bool = False
    registration_groups_witnessing: List[RegistrationGroupItem] = Field(default_factory=list)
    conclusion_data: Optional[ConclusionData] = None


class ReportData(AuditBaseSchema):
    """Fully materialised snapshot handed to the report compiler."""
    audit: Audit
    company: Company
    interviews: List[AuditInterview]
    site_visits: List[AuditSiteVisit]
    indicator_responses: List[IndicatorResponse]
    findings: List[Finding]
    sites: List[AuditSite]

    @field_validator("indicator_responses")
    @classmethod
    def one_response_per_indicator(cls, responses: List[IndicatorResponse]) -> List[IndicatorResponse]:
        seen = set()
        for response in responses:
            if response.template_indicator_id in seen:
                raise ValueError(
                    f"Duplicate response for indicator {response.template_indicator_id}"
                )
            seen.add(response.template_indicator_id)
        return responses
