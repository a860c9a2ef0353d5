"""
NDIS Compliance Platform - Finding Workflow Service

Lifecycle rules for findings and their evidence requests:
- Raising a finding from a non-conforming indicator response
- Assigning owners, due dates and comments
- Status changes, closure and reopening
- Evidence requests: request, submit, review, accept/reject

Every change appends an immutable FindingActivity; existing activities are
never edited or removed. Persistence is the caller's concern: the service
mutates the in-memory models it is given and returns them.
"""

import logging
import secrets
import uuid
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Union

from app.schemas.audit import (
    EvidenceItem,
    EvidenceRequest,
    EvidenceRequestStatus,
    EvidenceType,
    Finding,
    FindingActivity,
    FindingActivityType,
    FindingSeverity,
    FindingStatus,
    IndicatorRating,
    IndicatorResponse,
    UserRef,
)
from app.utils.error_handling import (
    BusinessRuleException,
    ConflictException,
    ErrorCode,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
    require_min_length,
)

logger = logging.getLogger(__name__)


MIN_COMMENT_LENGTH = 10
MIN_CLOSURE_NOTE_LENGTH = 10
MIN_REJECTION_NOTE_LENGTH = 10

NON_CONFORMING_RATINGS = (IndicatorRating.MINOR_NC, IndicatorRating.MAJOR_NC)

# Requests in these states block a new request on the same finding
PENDING_EVIDENCE_STATUSES = (
    EvidenceRequestStatus.REQUESTED,
    EvidenceRequestStatus.SUBMITTED,
    EvidenceRequestStatus.UNDER_REVIEW,
)

DEFAULT_ACCEPTANCE_NOTE = "Evidence accepted"


def generate_public_token() -> str:
    """Shareable upload token: 32 random bytes, hex encoded."""
    return secrets.token_hex(32)


class FindingWorkflowService:
    """Applies finding and evidence request transitions."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._now = clock or datetime.utcnow

    # =========================================================================
    # INDICATOR RESPONSES
    # =========================================================================

    def validate_response_comment(
        self,
        rating: Union[IndicatorRating, str],
        comment: Optional[str],
    ) -> Optional[str]:
        """
        Check the auditor comment for a rating.

        Non-conforming ratings need a comment of at least 10 characters.
        Returns the trimmed comment, or None when no comment was given.
        """
        if IndicatorRating(rating) in NON_CONFORMING_RATINGS:
            return require_min_length(
                comment,
                field="comment",
                minimum=MIN_COMMENT_LENGTH,
                code=ErrorCode.COMMENT_TOO_SHORT,
                message="Comment is required (minimum 10 characters) for non-conformance ratings",
            )
        cleaned = (comment or "").strip()
        return cleaned or None

    def create_finding_from_response(
        self,
        response: IndicatorResponse,
        performed_by: Optional[str] = None,
    ) -> Optional[Finding]:
        """Raise an OPEN finding for a non-conforming response; None for conforming ones."""
        if response.rating not in NON_CONFORMING_RATINGS:
            return None

        comment = self.validate_response_comment(response.rating, response.comment)
        severity = FindingSeverity(response.rating.value)
        finding = Finding(
            id=str(uuid.uuid4()),
            template_indicator_id=response.template_indicator_id,
            finding_text=f"Indicator: {response.indicator_text}. Auditor comment: {comment}.",
            severity=severity,
            status=FindingStatus.OPEN,
        )
        self._record(finding, FindingActivityType.CREATED, performed_by, new_value=severity.value)

        logger.info(f"Finding {finding.id} raised from indicator {response.template_indicator_id} ({severity.value})")
        return finding

    # =========================================================================
    # FINDING DETAILS
    # =========================================================================

    def assign_owner(self, finding: Finding, owner_name: str, performed_by: Optional[str] = None) -> Finding:
        owner = (owner_name or "").strip()
        if not owner:
            raise ValidationException("Owner name is required", field="owner_name", code=ErrorCode.MISSING_FIELD)

        previous = finding.owner_name
        finding.owner_name = owner
        self._record(finding, FindingActivityType.OWNER_ASSIGNED, performed_by,
                     previous_value=previous, new_value=owner)
        logger.info(f"Finding {finding.id} assigned to {owner}")
        return finding

    def set_due_date(
        self,
        finding: Finding,
        due_date: Union[date, datetime],
        performed_by: Optional[str] = None,
    ) -> Finding:
        previous = finding.due_date
        finding.due_date = due_date
        self._record(
            finding,
            FindingActivityType.DUE_DATE_SET,
            performed_by,
            previous_value=_date_text(previous),
            new_value=_date_text(due_date),
        )
        logger.info(f"Finding {finding.id} due date set to {_date_text(due_date)}")
        return finding

    def add_comment(self, finding: Finding, comment: str, performed_by: Optional[str] = None) -> Finding:
        text = (comment or "").strip()
        if not text:
            raise ValidationException("Comment is required", field="comment", code=ErrorCode.MISSING_FIELD)
        self._record(finding, FindingActivityType.COMMENT_ADDED, performed_by, comment=text)
        return finding

    # =========================================================================
    # STATUS
    # =========================================================================

    def change_status(
        self,
        finding: Finding,
        new_status: Union[FindingStatus, str],
        performed_by: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Finding:
        """
        Move a finding between OPEN and UNDER_REVIEW.

        Closing goes through close_finding and reopening through
        reopen_finding so their rules always apply.
        """
        target = FindingStatus(new_status)
        current = finding.status

        if current == FindingStatus.CLOSED or target == FindingStatus.CLOSED or current == target:
            raise InvalidStateTransitionException("Finding", current.value, target.value)

        finding.status = target
        self._record(finding, FindingActivityType.STATUS_CHANGED, performed_by,
                     previous_value=current.value, new_value=target.value, comment=comment)
        logger.info(f"Finding {finding.id} status {current.value} -> {target.value}")
        return finding

    def close_finding(
        self,
        finding: Finding,
        closure_note: str,
        performed_by: Optional[str] = None,
        evidence_ids: Optional[Iterable[str]] = None,
    ) -> Finding:
        """Close a finding with a closure note of at least 10 characters."""
        if finding.status == FindingStatus.CLOSED:
            raise BusinessRuleException(
                "Finding is already closed",
                rule="FINDING_CLOSE_ONCE",
                code=ErrorCode.FINDING_ALREADY_CLOSED,
            )

        note = require_min_length(
            closure_note,
            field="closure_note",
            minimum=MIN_CLOSURE_NOTE_LENGTH,
            code=ErrorCode.CLOSURE_NOTE_TOO_SHORT,
            message="Closure note must be at least 10 characters",
        )

        previous = finding.status
        self._record(finding, FindingActivityType.CLOSURE_INITIATED, performed_by, comment=note)
        finding.status = FindingStatus.CLOSED
        finding.closure_note = note
        for evidence_id in evidence_ids or []:
            if evidence_id not in finding.closure_evidence:
                finding.closure_evidence.append(evidence_id)
        self._record(finding, FindingActivityType.CLOSED, performed_by,
                     previous_value=previous.value, new_value=FindingStatus.CLOSED.value)

        logger.info(f"Finding {finding.id} closed with {len(finding.closure_evidence)} evidence item(s)")
        return finding

    def reopen_finding(
        self,
        finding: Finding,
        reason: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> Finding:
        if finding.status != FindingStatus.CLOSED:
            raise BusinessRuleException(
                "Only closed findings can be reopened",
                rule="FINDING_REOPEN_CLOSED_ONLY",
                code=ErrorCode.FINDING_NOT_CLOSED,
            )

        finding.status = FindingStatus.OPEN
        finding.closure_note = None
        self._record(finding, FindingActivityType.REOPENED, performed_by,
                     previous_value=FindingStatus.CLOSED.value, new_value=FindingStatus.OPEN.value,
                     comment=(reason or "").strip() or None)
        logger.info(f"Finding {finding.id} reopened")
        return finding

    # =========================================================================
    # EVIDENCE REQUESTS
    # =========================================================================

    def request_evidence(
        self,
        finding: Finding,
        evidence_type: Union[EvidenceType, str],
        request_note: str,
        performed_by: Optional[str] = None,
        due_date: Optional[Union[date, datetime]] = None,
    ) -> EvidenceRequest:
        """Open an evidence request with a shareable upload token."""
        if finding.status == FindingStatus.CLOSED:
            raise BusinessRuleException(
                "Evidence cannot be requested for a closed finding",
                rule="EVIDENCE_REQUEST_OPEN_FINDING",
                code=ErrorCode.FINDING_ALREADY_CLOSED,
            )
        if any(r.status in PENDING_EVIDENCE_STATUSES for r in finding.evidence_requests):
            raise ConflictException(
                "Evidence request already exists for this finding",
                resource_type="EvidenceRequest",
                code=ErrorCode.EVIDENCE_REQUEST_EXISTS,
            )

        note = (request_note or "").strip()
        if not note:
            raise ValidationException("Request note is required", field="request_note",
                                      code=ErrorCode.MISSING_FIELD)

        request = EvidenceRequest(
            id=str(uuid.uuid4()),
            evidence_type=EvidenceType(evidence_type),
            request_note=note,
            status=EvidenceRequestStatus.REQUESTED,
            public_token=generate_public_token(),
            due_date=due_date,
        )
        finding.evidence_requests.append(request)
        self._record(finding, FindingActivityType.EVIDENCE_REQUESTED, performed_by,
                     new_value=request.evidence_type.value, comment=note)

        logger.info(f"Evidence request {request.id} ({request.evidence_type.value}) opened for finding {finding.id}")
        return request

    def get_evidence_request(self, finding: Finding, request_id: str) -> EvidenceRequest:
        for request in finding.evidence_requests:
            if request.id == request_id:
                return request
        raise NotFoundException("EvidenceRequest", request_id)

    def submit_evidence(
        self,
        request: EvidenceRequest,
        items: List[EvidenceItem],
        finding: Optional[Finding] = None,
        performed_by: Optional[str] = None,
    ) -> EvidenceRequest:
        """Attach submitted files; allowed while REQUESTED or after a rejection."""
        if request.status not in (EvidenceRequestStatus.REQUESTED, EvidenceRequestStatus.REJECTED):
            raise InvalidStateTransitionException(
                "EvidenceRequest", request.status.value, EvidenceRequestStatus.SUBMITTED.value
            )
        if not items:
            raise ValidationException("At least one evidence item is required", field="items",
                                      code=ErrorCode.MISSING_FIELD)

        previous = request.status
        request.items.extend(items)
        request.status = EvidenceRequestStatus.SUBMITTED
        if finding is not None:
            self._record(finding, FindingActivityType.EVIDENCE_SUBMITTED, performed_by,
                         previous_value=previous.value, new_value=request.status.value,
                         comment=f"{len(items)} file(s) submitted")

        logger.info(f"Evidence request {request.id} submitted with {len(items)} item(s)")
        return request

    def start_evidence_review(self, request: EvidenceRequest) -> EvidenceRequest:
        if request.status != EvidenceRequestStatus.SUBMITTED:
            raise InvalidStateTransitionException(
                "EvidenceRequest",
                request.status.value,
                EvidenceRequestStatus.UNDER_REVIEW.value,
                message="Only submitted evidence can be put under review",
            )
        request.status = EvidenceRequestStatus.UNDER_REVIEW
        logger.info(f"Evidence request {request.id} under review")
        return request

    def review_evidence(
        self,
        finding: Finding,
        request: EvidenceRequest,
        decision: Union[EvidenceRequestStatus, str],
        review_note: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> EvidenceRequest:
        """
        Accept or reject evidence under review.

        Rejections need a note of at least 10 characters. Accepting closes
        the finding, using the review note (or "Evidence accepted") as the
        closure note.
        """
        outcome = EvidenceRequestStatus(decision)
        if outcome not in (EvidenceRequestStatus.ACCEPTED, EvidenceRequestStatus.REJECTED):
            raise ValidationException("Decision must be ACCEPTED or REJECTED", field="decision",
                                      code=ErrorCode.INVALID_INPUT)
        if request.status != EvidenceRequestStatus.UNDER_REVIEW:
            raise InvalidStateTransitionException(
                "EvidenceRequest",
                request.status.value,
                outcome.value,
                message="Evidence must be under review before final decision",
            )

        if outcome == EvidenceRequestStatus.REJECTED:
            note = require_min_length(
                review_note,
                field="review_note",
                minimum=MIN_REJECTION_NOTE_LENGTH,
                code=ErrorCode.COMMENT_TOO_SHORT,
                message="A rejection note of at least 10 characters is required",
            )
        else:
            note = (review_note or "").strip() or None

        request.status = outcome
        request.review_note = note
        self._record(finding, FindingActivityType.EVIDENCE_REVIEWED, performed_by,
                     previous_value=EvidenceRequestStatus.UNDER_REVIEW.value,
                     new_value=outcome.value, comment=note)

        if outcome == EvidenceRequestStatus.ACCEPTED and finding.status != FindingStatus.CLOSED:
            previous = finding.status
            finding.status = FindingStatus.CLOSED
            finding.closure_note = note or DEFAULT_ACCEPTANCE_NOTE
            self._record(finding, FindingActivityType.CLOSED, performed_by,
                         previous_value=previous.value, new_value=FindingStatus.CLOSED.value,
                         comment=finding.closure_note)

        logger.info(f"Evidence request {request.id} {outcome.value.lower()} for finding {finding.id}")
        return request

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _record(
        self,
        finding: Finding,
        activity_type: FindingActivityType,
        performed_by: Optional[str],
        previous_value: Optional[str] = None,
        new_value: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> FindingActivity:
        activity = FindingActivity(
            activity_type=activity_type,
            previous_value=previous_value,
            new_value=new_value,
            comment=comment,
            performed_by_user=UserRef(full_name=performed_by) if performed_by else None,
            created_at=self._now(),
        )
        finding.activities.append(activity)
        return activity


def _date_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
