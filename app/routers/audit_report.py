"""
Audit Report Router

Endpoints that score an audit snapshot and compile it into a PDF report.
The caller supplies the fully materialised ReportData; nothing is read
from storage here.
"""

import logging
import re
from decimal import Decimal
from typing import List

from fastapi import APIRouter, status
from fastapi.responses import Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from app.schemas.audit import ReportData
from app.services.audit_report_pdf_service import AuditReportPDFService
from app.services.audit_scoring import calculate_scores, score_band
from app.services.ndis_standards import (
    calculate_standard_scores,
    group_standard_scores_by_division,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/audit-reports",
    tags=["Audit Reports"],
)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class ScoreSummaryResponse(BaseModel):
    """Aggregate indicator score."""
    best_practice: int
    conformity: int
    minor_nc: int
    major_nc: int
    total: int
    points: int
    max_points: int
    percentage: int
    band: str


class StandardScoreResponse(BaseModel):
    number: str
    name: str
    count: int
    total_points: int
    average: Decimal


class DivisionScoresResponse(BaseModel):
    division: int
    name: str
    standards: List[StandardScoreResponse]


class AuditScoresResponse(BaseModel):
    """Overall score plus the per-standard breakdown."""
    summary: ScoreSummaryResponse
    divisions: List[DivisionScoresResponse]
    unmapped_count: int


def _report_filename(title: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", title or "").strip("_").lower()
    return f"audit_report_{slug or 'audit'}.pdf"


# ===========================================
# ENDPOINTS
# ===========================================

@router.post(
    "/pdf",
    summary="Generate Audit Report PDF",
    description="Compile the supplied audit snapshot into a paginated PDF report.",
    response_class=Response,
    responses={status.HTTP_200_OK: {"content": {"application/pdf": {}}}},
)
async def generate_audit_report(data: ReportData):
    """Generate the audit report PDF."""
    service = AuditReportPDFService()
    report = await run_in_threadpool(service.render, data)

    logger.info(f"Audit report served: {report.page_count} pages")
    return Response(
        content=report.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename={_report_filename(data.audit.title)}",
            "X-Report-Pages": str(report.page_count),
        },
    )


@router.post(
    "/scores",
    response_model=AuditScoresResponse,
    summary="Score Audit",
    description="Overall indicator score and compliance by NDIS Practice Standard.",
)
async def score_audit(data: ReportData) -> AuditScoresResponse:
    """Score the supplied indicator responses."""
    summary = calculate_scores(data.indicator_responses)
    standards = calculate_standard_scores(data.indicator_responses)

    divisions = [
        DivisionScoresResponse(
            division=division.number,
            name=division.name,
            standards=[
                StandardScoreResponse(
                    number=score.standard.number,
                    name=score.standard.name,
                    count=score.count,
                    total_points=score.total_points,
                    average=score.average,
                )
                for score in members
            ],
        )
        for division, members in group_standard_scores_by_division(standards.scores)
    ]

    return AuditScoresResponse(
        summary=ScoreSummaryResponse(**summary.to_dict(), band=score_band(summary.percentage).value),
        divisions=divisions,
        unmapped_count=standards.unmapped_count,
    )
