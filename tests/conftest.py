"""
NDIS Compliance Platform - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import date, datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.schemas.audit import (
    Audit,
    AuditInterview,
    AuditSite,
    AuditSiteVisit,
    ChecklistItem,
    Company,
    ConclusionData,
    ConclusionEndorsements,
    EvidenceItem,
    EvidenceRequest,
    Finding,
    FindingActivity,
    IndicatorResponse,
    RegistrationGroupItem,
    ReportData,
    UserRef,
)
from main import app


@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create a test client against the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ===========================================
# BUILDERS
# ===========================================

def make_response(indicator_id: str, rating: str, text: str = "", comment: str = None) -> IndicatorResponse:
    """Build a single indicator response."""
    return IndicatorResponse(
        template_indicator_id=indicator_id,
        indicator_text=text,
        rating=rating,
        comment=comment,
    )


def make_report_data(**overrides) -> ReportData:
    """Minimal report data; keyword arguments replace top-level fields."""
    values = {
        "audit": Audit(id="audit-1", title="Annual Certification Audit"),
        "company": Company(legal_name="Sunrise Support Services Pty Ltd"),
        "interviews": [],
        "site_visits": [],
        "indicator_responses": [],
        "findings": [],
        "sites": [],
    }
    values.update(overrides)
    return ReportData(**values)


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest.fixture
def response_factory():
    """Factory for indicator responses."""
    return make_response


@pytest.fixture
def report_data_factory():
    """Factory for report data with overridable top-level fields."""
    return make_report_data


@pytest.fixture
def indicator_responses():
    """Responses covering every rating and several practice standards."""
    return [
        make_response("ind-001", "CONFORMITY_BEST_PRACTICE", "Police check records are current for all staff"),
        make_response("ind-002", "CONFORMITY", "Staff training register is maintained"),
        make_response("ind-003", "MINOR_NC", "Incident register records all reportable incidents",
                      comment="Two incidents from March were not entered. See https://example.com/log.pdf"),
        make_response("ind-004", "MAJOR_NC", "Medication administration records are complete",
                      comment="PRN usage was not recorded for two participants"),
        make_response("ind-005", "CONFORMITY", "Complaints are acknowledged within five days"),
        make_response("ind-006", "CONFORMITY", "Office layout is suitable"),
    ]


@pytest.fixture
def minimal_report_data() -> ReportData:
    """Report data with only the mandatory audit and company details."""
    return make_report_data()


@pytest.fixture
def full_report_data(indicator_responses) -> ReportData:
    """Report data that exercises every optional section."""
    auditor = UserRef(full_name="Jordan Lee")
    finding = Finding(
        id="finding-1",
        template_indicator_id="ind-004",
        finding_text="Indicator: Medication administration records are complete. "
                     "Auditor comment: PRN usage was not recorded for two participants.",
        severity="MAJOR_NC",
        status="UNDER_REVIEW",
        owner_name="Sam Nguyen",
        due_date=date(2026, 3, 31),
        activities=[
            FindingActivity(activity_type="CREATED", new_value="MAJOR_NC", performed_by_user=auditor,
                            created_at=datetime(2026, 2, 10, 9, 30)),
            FindingActivity(activity_type="STATUS_CHANGED", previous_value="OPEN", new_value="UNDER_REVIEW",
                            comment="Provider is updating the MAR template",
                            created_at="2026-02-12T14:00:00Z"),
        ],
        evidence_requests=[
            EvidenceRequest(
                id="request-1",
                evidence_type="MAR",
                request_note="Please upload the revised MAR for February",
                status="SUBMITTED",
                items=[EvidenceItem(id="file-1", file_name="mar_february.pdf")],
            ),
        ],
    )
    audit = Audit(
        id="audit-2",
        title="Recertification Audit 2026",
        audit_type="EXTERNAL",
        audit_purpose="RECERTIFICATION",
        methodology="HYBRID",
        service_context="SIL",
        service_context_label="Supported Independent Living",
        scope_time_from=date(2026, 1, 1),
        scope_time_to="2026-06-30",
        status="IN_PROGRESS",
        entity_name="Sunrise Support Services",
        entity_abn="12 345 678 901",
        entity_address="10 Harbour Street, Geelong VIC 3220",
        external_auditor_org="Assured Certification Pty Ltd",
        external_auditor_name="Jordan Lee",
        external_auditor_email="jordan.lee@example.com",
        description="Recertification against the core module.",
        executive_summary="The provider demonstrated a mature approach to person-centred supports.",
        registration_groups_witnessing=[
            RegistrationGroupItem(item_code="0115", item_label="Daily Tasks/Shared Living",
                                  recommended=True, status="KEEP", witnessed="YES"),
            RegistrationGroupItem(item_code="0136", item_label="Group/Centre Activities",
                                  recommended=False, status="REMOVE", witnessed="NA"),
            RegistrationGroupItem(item_code="0104", item_label="High Intensity Daily Personal Activities",
                                  recommended=True, status="ADD", witnessed="NO"),
        ],
        conclusion_data=ConclusionData(
            conclusion_text="Certification is recommended subject to closure of the major finding.",
            reviewers_note="Reviewed by the technical reviewer.",
            endorsements=ConclusionEndorsements(certification_recommended=True, scope_confirmed=True),
            follow_up_required=True,
            lead_auditor_name="Jordan Lee",
            lead_auditor_signature="Jordan Lee",
            signature_date="2026-07-02",
        ),
    )
    return ReportData(
        audit=audit,
        company=Company(legal_name="Sunrise Support Services Pty Ltd", abn="12 345 678 901",
                        ndis_registration_number="4050012345"),
        interviews=[
            AuditInterview(
                interview_type="PARTICIPANT",
                interview_method="FACE_TO_FACE",
                interviewee_name="Participant A",
                site_location="Harbour Street",
                interview_date=date(2026, 2, 9),
                feedback_positive="Feels safe and supported",
                feedback_checklist=[
                    ChecklistItem(item="Participants received Welcome pack", checked=True),
                    ChecklistItem(item="Complaints explained/supported", partial=True),
                    ChecklistItem(item="Emergency and Disaster planning"),
                ],
            ),
            AuditInterview(
                interview_type="STAFF",
                interview_method="PHONE",
                interviewee_name="Support Worker B",
                interviewee_role="Support Worker",
                feedback_concerns="Unsure of the incident escalation path",
            ),
        ],
        site_visits=[
            AuditSiteVisit(
                site_name="Harbour Street House",
                site_address="10 Harbour Street, Geelong VIC 3220",
                visit_date="2026-02-09T10:00:00Z",
                participants_at_site=4,
                files_reviewed_count=6,
                observations_positive="Clean and well maintained",
                observations_concerns="Fire blanket missing in kitchen",
                safety_items_checked=[
                    ChecklistItem(item="Fire extinguisher present and in date", checked=True),
                    ChecklistItem(item="Smoke detectors present and operational"),
                ],
                documents_checked=[ChecklistItem(item="Service Agreement / Tenancy Agreement", checked=True)],
            ),
        ],
        indicator_responses=indicator_responses,
        findings=[finding],
        sites=[
            AuditSite(site_name="Harbour Street House", is_primary_site=True, address="10 Harbour Street",
                      city="Geelong", state="VIC", postcode="3220"),
            AuditSite(site_name="Bay Road Office"),
        ],
    )
