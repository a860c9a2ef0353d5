"""
NDIS Compliance Platform - Finding Workflow Tests

Unit tests for finding lifecycle rules and evidence requests.
"""

from datetime import date, datetime

import pytest

from app.schemas.audit import (
    EvidenceItem,
    EvidenceRequestStatus,
    Finding,
    FindingActivityType,
    FindingSeverity,
    FindingStatus,
)
from app.services.finding_workflow_service import (
    DEFAULT_ACCEPTANCE_NOTE,
    FindingWorkflowService,
    generate_public_token,
)
from app.utils.error_handling import (
    BusinessRuleException,
    ConflictException,
    ErrorCode,
    InvalidStateTransitionException,
    MinimumLengthException,
    NotFoundException,
    ValidationException,
)


FIXED_NOW = datetime(2026, 2, 10, 9, 0)


@pytest.fixture
def workflow():
    return FindingWorkflowService(clock=lambda: FIXED_NOW)


@pytest.fixture
def finding():
    return Finding(
        id="finding-1",
        finding_text="Indicator: Supervision records. Auditor comment: None sighted for Q1.",
        severity=FindingSeverity.MINOR_NC,
    )


def _activity_types(finding):
    return [activity.activity_type for activity in finding.activities]


def _request_under_review(workflow, finding):
    request = workflow.request_evidence(finding, "SUPERVISION_RECORD", "Upload Q1 supervision records")
    workflow.submit_evidence(request, [EvidenceItem(file_name="q1.pdf")], finding=finding)
    workflow.start_evidence_review(request)
    return request


class TestResponseComments:
    """Comment rules for indicator ratings."""

    @pytest.mark.parametrize("rating", ["MINOR_NC", "MAJOR_NC"])
    def test_non_conformance_needs_comment(self, workflow, rating):
        with pytest.raises(MinimumLengthException) as exc_info:
            workflow.validate_response_comment(rating, "too short")

        assert exc_info.value.code == ErrorCode.COMMENT_TOO_SHORT
        assert exc_info.value.field == "comment"
        assert exc_info.value.status_code == 422

    def test_whitespace_does_not_count(self, workflow):
        with pytest.raises(MinimumLengthException):
            workflow.validate_response_comment("MAJOR_NC", "   short    ")

    def test_non_conformance_comment_trimmed(self, workflow):
        assert workflow.validate_response_comment("MINOR_NC", "  Ten chars!  ") == "Ten chars!"

    def test_conformity_comment_optional(self, workflow):
        assert workflow.validate_response_comment("CONFORMITY", None) is None
        assert workflow.validate_response_comment("CONFORMITY_BEST_PRACTICE", " ok ") == "ok"


class TestCreateFinding:
    """Raising findings from indicator responses."""

    def test_minor_nc_raises_open_finding(self, workflow, response_factory):
        response = response_factory("ind-9", "MINOR_NC", "Supervision records are maintained",
                                    comment="No records for the last quarter")

        finding = workflow.create_finding_from_response(response, performed_by="Jordan Lee")

        assert finding.status == FindingStatus.OPEN
        assert finding.severity == FindingSeverity.MINOR_NC
        assert finding.template_indicator_id == "ind-9"
        assert finding.finding_text == (
            "Indicator: Supervision records are maintained. "
            "Auditor comment: No records for the last quarter."
        )
        assert _activity_types(finding) == [FindingActivityType.CREATED]
        assert finding.activities[0].new_value == "MINOR_NC"
        assert finding.activities[0].performed_by_user.full_name == "Jordan Lee"
        assert finding.activities[0].created_at == FIXED_NOW

    def test_major_nc_severity(self, workflow, response_factory):
        response = response_factory("ind-10", "MAJOR_NC", "Police checks", comment="Three workers unchecked")

        assert workflow.create_finding_from_response(response).severity == FindingSeverity.MAJOR_NC

    def test_conforming_response_raises_nothing(self, workflow, response_factory):
        response = response_factory("ind-11", "CONFORMITY", "Police checks")

        assert workflow.create_finding_from_response(response) is None

    def test_short_comment_rejected(self, workflow, response_factory):
        response = response_factory("ind-12", "MAJOR_NC", "Police checks", comment="Missing")

        with pytest.raises(MinimumLengthException):
            workflow.create_finding_from_response(response)


class TestFindingDetails:
    """Owner, due date and comments."""

    def test_assign_owner(self, workflow, finding):
        workflow.assign_owner(finding, "Sam Nguyen", performed_by="Jordan Lee")

        assert finding.owner_name == "Sam Nguyen"
        activity = finding.activities[-1]
        assert activity.activity_type == FindingActivityType.OWNER_ASSIGNED
        assert activity.previous_value is None
        assert activity.new_value == "Sam Nguyen"

    def test_blank_owner_rejected(self, workflow, finding):
        with pytest.raises(ValidationException) as exc_info:
            workflow.assign_owner(finding, "   ")

        assert exc_info.value.code == ErrorCode.MISSING_FIELD

    def test_set_due_date(self, workflow, finding):
        workflow.set_due_date(finding, date(2026, 3, 31))

        assert finding.due_date == date(2026, 3, 31)
        assert finding.activities[-1].new_value == "2026-03-31"

    def test_add_comment(self, workflow, finding):
        workflow.add_comment(finding, "  Provider has engaged a consultant  ")

        assert finding.activities[-1].activity_type == FindingActivityType.COMMENT_ADDED
        assert finding.activities[-1].comment == "Provider has engaged a consultant"

    def test_empty_comment_rejected(self, workflow, finding):
        with pytest.raises(ValidationException):
            workflow.add_comment(finding, "")


class TestStatusChanges:
    """Open and under-review transitions."""

    def test_open_to_under_review_and_back(self, workflow, finding):
        workflow.change_status(finding, "UNDER_REVIEW")
        workflow.change_status(finding, FindingStatus.OPEN, comment="More work needed")

        assert finding.status == FindingStatus.OPEN
        assert [(a.previous_value, a.new_value) for a in finding.activities] == [
            ("OPEN", "UNDER_REVIEW"),
            ("UNDER_REVIEW", "OPEN"),
        ]

    def test_close_via_change_status_rejected(self, workflow, finding):
        with pytest.raises(InvalidStateTransitionException) as exc_info:
            workflow.change_status(finding, "CLOSED")

        assert exc_info.value.code == ErrorCode.INVALID_STATE_TRANSITION
        assert exc_info.value.details["current_status"] == "OPEN"
        assert exc_info.value.details["target_status"] == "CLOSED"

    def test_same_status_rejected(self, workflow, finding):
        with pytest.raises(InvalidStateTransitionException):
            workflow.change_status(finding, "OPEN")

    def test_closed_finding_cannot_change_status(self, workflow, finding):
        workflow.close_finding(finding, "Training completed and verified")

        with pytest.raises(InvalidStateTransitionException):
            workflow.change_status(finding, "UNDER_REVIEW")


class TestCloseAndReopen:
    """Closure notes and reopening."""

    def test_close_finding(self, workflow, finding):
        workflow.close_finding(finding, "  Supervision records now complete  ", performed_by="Jordan Lee",
                               evidence_ids=["file-1", "file-2", "file-1"])

        assert finding.status == FindingStatus.CLOSED
        assert finding.closure_note == "Supervision records now complete"
        assert finding.closure_evidence == ["file-1", "file-2"]
        assert _activity_types(finding) == [FindingActivityType.CLOSURE_INITIATED, FindingActivityType.CLOSED]
        assert finding.activities[-1].previous_value == "OPEN"

    def test_short_closure_note_rejected(self, workflow, finding):
        with pytest.raises(MinimumLengthException) as exc_info:
            workflow.close_finding(finding, "Done")

        assert exc_info.value.code == ErrorCode.CLOSURE_NOTE_TOO_SHORT
        assert finding.status == FindingStatus.OPEN
        assert finding.activities == []

    def test_close_twice_rejected(self, workflow, finding):
        workflow.close_finding(finding, "Supervision records now complete")

        with pytest.raises(BusinessRuleException) as exc_info:
            workflow.close_finding(finding, "Supervision records now complete")

        assert exc_info.value.code == ErrorCode.FINDING_ALREADY_CLOSED

    def test_reopen(self, workflow, finding):
        workflow.close_finding(finding, "Supervision records now complete")
        workflow.reopen_finding(finding, reason="Records were for the wrong site")

        assert finding.status == FindingStatus.OPEN
        assert finding.closure_note is None
        assert finding.activities[-1].activity_type == FindingActivityType.REOPENED
        assert finding.activities[-1].comment == "Records were for the wrong site"

    def test_reopen_open_finding_rejected(self, workflow, finding):
        with pytest.raises(BusinessRuleException) as exc_info:
            workflow.reopen_finding(finding)

        assert exc_info.value.code == ErrorCode.FINDING_NOT_CLOSED

    def test_activities_only_appended(self, workflow, finding):
        workflow.assign_owner(finding, "Sam Nguyen")
        first = finding.activities[0]
        workflow.close_finding(finding, "Supervision records now complete")
        workflow.reopen_finding(finding)

        assert finding.activities[0] is first
        assert len(finding.activities) == 4


class TestEvidenceRequests:
    """Requesting, submitting and reviewing evidence."""

    def test_request_evidence(self, workflow, finding):
        request = workflow.request_evidence(finding, "TRAINING_RECORD", "  Upload training certificates  ",
                                            due_date=date(2026, 3, 1))

        assert request.status == EvidenceRequestStatus.REQUESTED
        assert request.request_note == "Upload training certificates"
        assert len(request.public_token) == 64
        assert finding.evidence_requests == [request]
        assert finding.activities[-1].activity_type == FindingActivityType.EVIDENCE_REQUESTED

    def test_tokens_are_unique(self):
        assert generate_public_token() != generate_public_token()

    def test_pending_request_blocks_another(self, workflow, finding):
        workflow.request_evidence(finding, "TRAINING_RECORD", "Upload training certificates")

        with pytest.raises(ConflictException) as exc_info:
            workflow.request_evidence(finding, "POLICY", "Upload the policy")

        assert exc_info.value.code == ErrorCode.EVIDENCE_REQUEST_EXISTS
        assert exc_info.value.status_code == 409

    def test_new_request_allowed_after_rejection(self, workflow, finding):
        request = _request_under_review(workflow, finding)
        workflow.review_evidence(finding, request, "REJECTED", "Records are for the wrong period")

        second = workflow.request_evidence(finding, "SUPERVISION_RECORD", "Upload the correct period")

        assert len(finding.evidence_requests) == 2
        assert second.status == EvidenceRequestStatus.REQUESTED

    def test_closed_finding_rejects_request(self, workflow, finding):
        workflow.close_finding(finding, "Supervision records now complete")

        with pytest.raises(BusinessRuleException):
            workflow.request_evidence(finding, "POLICY", "Upload the policy")

    def test_request_note_required(self, workflow, finding):
        with pytest.raises(ValidationException) as exc_info:
            workflow.request_evidence(finding, "POLICY", "  ")

        assert exc_info.value.code == ErrorCode.MISSING_FIELD

    def test_submit_evidence(self, workflow, finding):
        request = workflow.request_evidence(finding, "POLICY", "Upload the policy")
        workflow.submit_evidence(request, [EvidenceItem(file_name="policy.pdf")], finding=finding)

        assert request.status == EvidenceRequestStatus.SUBMITTED
        assert [item.file_name for item in request.items] == ["policy.pdf"]
        assert finding.activities[-1].activity_type == FindingActivityType.EVIDENCE_SUBMITTED

    def test_submit_requires_items(self, workflow, finding):
        request = workflow.request_evidence(finding, "POLICY", "Upload the policy")

        with pytest.raises(ValidationException):
            workflow.submit_evidence(request, [])

    def test_submit_twice_rejected(self, workflow, finding):
        request = workflow.request_evidence(finding, "POLICY", "Upload the policy")
        workflow.submit_evidence(request, [EvidenceItem(file_name="policy.pdf")])

        with pytest.raises(InvalidStateTransitionException):
            workflow.submit_evidence(request, [EvidenceItem(file_name="policy-v2.pdf")])

    def test_review_requires_under_review(self, workflow, finding):
        request = workflow.request_evidence(finding, "POLICY", "Upload the policy")
        workflow.submit_evidence(request, [EvidenceItem(file_name="policy.pdf")])

        with pytest.raises(InvalidStateTransitionException):
            workflow.review_evidence(finding, request, "ACCEPTED")

    def test_start_review_requires_submission(self, workflow, finding):
        request = workflow.request_evidence(finding, "POLICY", "Upload the policy")

        with pytest.raises(InvalidStateTransitionException):
            workflow.start_evidence_review(request)

    def test_reject_needs_note(self, workflow, finding):
        request = _request_under_review(workflow, finding)

        with pytest.raises(MinimumLengthException) as exc_info:
            workflow.review_evidence(finding, request, "REJECTED", "No")

        assert exc_info.value.code == ErrorCode.COMMENT_TOO_SHORT
        assert request.status == EvidenceRequestStatus.UNDER_REVIEW

    def test_reject_allows_resubmission(self, workflow, finding):
        request = _request_under_review(workflow, finding)
        workflow.review_evidence(finding, request, "REJECTED", "Records are for the wrong period")
        workflow.submit_evidence(request, [EvidenceItem(file_name="q1-corrected.pdf")])

        assert request.status == EvidenceRequestStatus.SUBMITTED
        assert len(request.items) == 2
        assert finding.status == FindingStatus.OPEN

    def test_accept_closes_finding(self, workflow, finding):
        request = _request_under_review(workflow, finding)
        workflow.review_evidence(finding, request, "ACCEPTED", performed_by="Jordan Lee")

        assert request.status == EvidenceRequestStatus.ACCEPTED
        assert finding.status == FindingStatus.CLOSED
        assert finding.closure_note == DEFAULT_ACCEPTANCE_NOTE
        assert _activity_types(finding)[-2:] == [
            FindingActivityType.EVIDENCE_REVIEWED,
            FindingActivityType.CLOSED,
        ]

    def test_accept_uses_review_note(self, workflow, finding):
        request = _request_under_review(workflow, finding)
        workflow.review_evidence(finding, request, "ACCEPTED", "Records verified against roster")

        assert finding.closure_note == "Records verified against roster"

    def test_invalid_decision(self, workflow, finding):
        request = _request_under_review(workflow, finding)

        with pytest.raises(ValidationException) as exc_info:
            workflow.review_evidence(finding, request, "SUBMITTED")

        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_get_evidence_request(self, workflow, finding):
        request = workflow.request_evidence(finding, "POLICY", "Upload the policy")

        assert workflow.get_evidence_request(finding, request.id) is request

    def test_get_unknown_evidence_request(self, workflow, finding):
        with pytest.raises(NotFoundException) as exc_info:
            workflow.get_evidence_request(finding, "missing-id")

        assert exc_info.value.status_code == 404
        assert exc_info.value.details["resource_id"] == "missing-id"
