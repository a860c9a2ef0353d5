"""
NDIS Compliance Platform - Audit Report PDF Service

Compiles a fully materialised audit snapshot into a paginated PDF report.
Uses ReportLab: a NumberedCanvas for the running footer, LayoutContext for
cursor and page-break handling, and platypus Tables for tabular blocks.

Sections (in order):
- Cover page
- Table of contents
- Executive summary
- Audit overview
- Audit results and scoring
- Findings and non-conformances (when findings exist)
- Interview summary (when interviews exist)
- Site visit observations (when site visits exist)
- Registration groups and witnessing (when recorded)
- Conclusion and sign-off (when recorded)

Rendering is all-or-nothing: any error aborts the document and surfaces as
ReportGenerationException.
"""

import base64
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib.enums import TA_LEFT
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Paragraph, Table, TableStyle

from app.config import settings
from app.schemas.audit import (
    AuditInterview,
    AuditSiteVisit,
    ChecklistItem,
    Finding,
    FindingStatus,
    IndicatorRating,
    InterviewType,
    RegistrationGroupStatus,
    ReportData,
    WitnessedStatus,
)
from app.services.audit_scoring import (
    RATING_ORDER,
    RATING_POINTS,
    calculate_scores,
    group_by_rating,
    round_half_up,
    score_band,
)
from app.services.ndis_standards import (
    calculate_standard_scores,
    group_standard_scores_by_division,
)
from app.services.report_formatting import (
    EVIDENCE_STATUS_COLORS,
    EVIDENCE_STATUS_LABELS,
    FINDING_STATUS_LABELS,
    LONG_DATE_FORMAT,
    DATETIME_FORMAT,
    Palette,
    RATING_COLORS,
    RATING_LABELS,
    REGISTRATION_STATUS_COLORS,
    REGISTRATION_STATUS_LABELS,
    SCORE_BAND_COLORS,
    SEVERITY_COLORS,
    SEVERITY_LABELS,
    WITNESSED_COLORS,
    WITNESSED_LABELS,
    clean_comment,
    format_activity_type,
    format_audit_purpose,
    format_evidence_type,
    format_interview_method,
    format_interview_type,
    format_methodology,
    format_site_address,
    safe_format_date,
    truncate,
)
from app.services.report_layout import (
    FONT_BOLD,
    FONT_ITALIC,
    FONT_REGULAR,
    LayoutContext,
    NumberedCanvas,
    resolve_page_size,
)
from app.utils.error_handling import ReportGenerationException

logger = logging.getLogger(__name__)


DATA_IMAGE_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,(?P<payload>.+)$", re.DOTALL)

# Cover text is drawn without pagination
COVER_TITLE_LIMIT = 120
COVER_TEXT_LIMIT = 150
COVER_FACT_ROW_HEIGHT = 36
COVER_FOOTER_HEIGHT = 40

SECTION_TITLES = {
    "executive_summary": "Executive Summary",
    "audit_overview": "Audit Overview",
    "audit_results": "Audit Results & Scoring",
    "findings": "Findings & Non-Conformances",
    "interviews": "Interview Summary",
    "site_visits": "Site Visit Observations",
    "registration_groups": "Registration Groups & Witnessing",
    "conclusion": "Conclusion & Sign-off",
}

ENDORSEMENT_LABELS = [
    ("certification_recommended", "Certification is recommended for the audited scope"),
    ("scope_confirmed", "Audit scope confirmed with the provider"),
    ("findings_communicated", "Findings communicated to the provider at the closing meeting"),
]


@dataclass(frozen=True)
class PlannedSection:
    """A numbered section that will appear in the report and its table of contents."""
    key: str
    number: int
    title: str

    @property
    def heading(self) -> str:
        return f"{self.number}. {self.title}"


@dataclass
class RenderedReport:
    content: bytes
    page_count: int
    sections: List[PlannedSection] = field(default_factory=list)
    footer_labels: List[str] = field(default_factory=list)


def plan_sections(data: ReportData) -> List[PlannedSection]:
    """
    Decide which sections render and number them contiguously.

    The table of contents and every section heading read from this plan, so
    an omitted section never leaves a gap in the numbering.
    """
    keys = ["executive_summary", "audit_overview", "audit_results"]
    if data.findings:
        keys.append("findings")
    if data.interviews:
        keys.append("interviews")
    if data.site_visits:
        keys.append("site_visits")
    if data.audit.registration_groups_witnessing:
        keys.append("registration_groups")
    if data.audit.conclusion_data is not None:
        keys.append("conclusion")
    return [PlannedSection(key, index, SECTION_TITLES[key]) for index, key in enumerate(keys, start=1)]


class _Subsections:
    """Numbers subsections within a section: 3.1, 3.2, ..."""

    def __init__(self, section: PlannedSection):
        self.section = section
        self.count = 0

    def next(self, title: str) -> str:
        self.count += 1
        return f"{self.section.number}.{self.count} {title}"


class AuditReportPDFService:
    """Service for compiling audit reports to PDF."""

    def __init__(self, page_size: Optional[str] = None):
        self.page_size = resolve_page_size(page_size or settings.report_page_size)
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()
        self._builders: Dict[str, Callable[[LayoutContext, ReportData, PlannedSection], None]] = {
            "executive_summary": self._executive_summary,
            "audit_overview": self._audit_overview,
            "audit_results": self._audit_results,
            "findings": self._findings,
            "interviews": self._interviews,
            "site_visits": self._site_visits,
            "registration_groups": self._registration_groups,
            "conclusion": self._conclusion,
        }

    def _setup_custom_styles(self):
        """Setup paragraph styles used inside table cells."""
        self.styles.add(ParagraphStyle(
            name='TableCell',
            parent=self.styles['Normal'],
            fontName=FONT_REGULAR,
            fontSize=9,
            leading=11,
            alignment=TA_LEFT,
            textColor=Palette.BLACK,
        ))
        self.styles.add(ParagraphStyle(
            name='TableCellBold',
            parent=self.styles['TableCell'],
            fontName=FONT_BOLD,
        ))

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def generate_report(self, data: ReportData, report_date: Optional[date] = None) -> bytes:
        """Render the report and return the PDF bytes."""
        return self.render(data, report_date=report_date).content

    def render(self, data: ReportData, report_date: Optional[date] = None) -> RenderedReport:
        """
        Render the report.

        Args:
            data: Fully materialised audit snapshot
            report_date: Date printed on the cover; defaults to today

        Returns:
            RenderedReport with the PDF bytes, page count, section plan and
            the footer labels drawn on each numbered page

        Raises:
            ReportGenerationException: if any section fails to render
        """
        audit_ref = data.audit.id or data.audit.title
        sections = plan_sections(data)
        logger.info(
            f"Generating audit report for {audit_ref}: "
            f"{len(sections)} sections, {len(data.indicator_responses)} indicator responses"
        )

        buffer = io.BytesIO()
        current = "cover"
        try:
            canv = NumberedCanvas(buffer, pagesize=self.page_size)
            canv.setTitle(f"Audit Report - {data.audit.title}")
            canv.setAuthor(data.company.legal_name)
            canv.setSubject(settings.report_subject)
            canv.setCreator(settings.report_creator)

            layout = LayoutContext(canv, self.page_size)
            self._cover_page(layout, data, report_date or date.today())

            current = "table_of_contents"
            layout.new_page()
            self._table_of_contents(layout, sections)

            for section in sections:
                current = section.key
                layout.new_page()
                self._builders[section.key](layout, data, section)

            current = "finalise"
            layout.finish()
        except Exception as e:
            logger.error(f"Audit report generation failed for {audit_ref} in {current}: {e}", exc_info=True)
            raise ReportGenerationException(
                message=f"Failed to generate audit report: {e}",
                section=current,
                original_error=e,
            ) from e

        content = buffer.getvalue()
        buffer.close()

        logger.info(f"Generated audit report for {audit_ref}: {canv.total_pages} pages, {len(content)} bytes")
        return RenderedReport(
            content=content,
            page_count=canv.total_pages,
            sections=sections,
            footer_labels=list(canv.footer_labels),
        )

    # =========================================================================
    # SHARED BLOCKS
    # =========================================================================

    def _section_header(self, layout: LayoutContext, title: str):
        # Room for the heading plus the first few lines of content
        layout.ensure_space(18 * 1.3 + 60)
        layout.text(title, FONT_BOLD, 18, Palette.PRIMARY)
        layout.hline(Palette.PRIMARY, 2)
        layout.move_down(0.8)

    def _subsection_header(self, layout: LayoutContext, title: str):
        layout.ensure_space(12 * 1.3 + 40)
        layout.text(title, FONT_BOLD, 12, Palette.SECONDARY)
        layout.move_down(0.3)

    def _header_bar(self, layout: LayoutContext, title: str, color, reserve: float):
        """Coloured bar with a white title; ``reserve`` is the room the block below it needs."""
        layout.ensure_space(25 + reserve)
        top = layout.y
        layout.rect(25, color)
        layout.move_to(top + 7)
        layout.text(title, FONT_BOLD, 11, Palette.WHITE, x=layout.left + 10,
                    width=layout.content_width - 20, paginate=False)
        layout.move_to(top + 30)

    def _checklist(self, layout: LayoutContext, title: str, items: List[ChecklistItem]):
        layout.move_down(0.3, 9)
        layout.ensure_space(9 * 1.3 * min(len(items) + 1, 4))
        layout.text(title, FONT_BOLD, 9, Palette.MUTED)
        for item in items:
            if item.checked:
                mark, color = "[X]", Palette.SUCCESS
            elif item.partial:
                mark, color = "[~]", Palette.WARNING
            else:
                mark, color = "[ ]", Palette.DANGER
            layout.inline([(f"{mark} ", FONT_BOLD, color), (item.item, FONT_REGULAR, Palette.BLACK)],
                          size=9, indent=10)

    def _cell(self, text: str, bold: bool = False) -> Paragraph:
        style = self.styles['TableCellBold' if bold else 'TableCell']
        return Paragraph(escape(text or ""), style)

    # =========================================================================
    # COVER & CONTENTS
    # =========================================================================

    def _cover_page(self, layout: LayoutContext, data: ReportData, report_date: date):
        audit, company = data.audit, data.company
        width = layout.content_width

        layout.rect(180, Palette.PRIMARY, x=0, width=layout.page_width, top=0)
        layout.move_to(50)
        layout.text(settings.report_banner_title, FONT_REGULAR, 14, Palette.WHITE, align="center", paginate=False)
        layout.move_to(85)
        layout.text("AUDIT REPORT", FONT_BOLD, 28, Palette.WHITE, align="center", paginate=False)
        layout.move_to(130)
        layout.text("Confidential", FONT_REGULAR, 12, Palette.WHITE, align="center", paginate=False)

        layout.move_to(220)
        layout.text(truncate(audit.title, COVER_TITLE_LIMIT), FONT_BOLD, 20, Palette.BLACK,
                    align="center", paginate=False)
        layout.move_down(0.3, 14)
        layout.text(format_audit_purpose(audit.audit_purpose), FONT_REGULAR, 14, Palette.MUTED,
                    align="center", paginate=False)

        layout.move_to(max(layout.y + 20, 320))
        layout.text("Entity Being Audited:", FONT_BOLD, 12, Palette.BLACK, paginate=False)
        layout.text(truncate(audit.entity_name or company.legal_name, COVER_TEXT_LIMIT), FONT_REGULAR, 16,
                    Palette.BLACK, paginate=False)
        abn = audit.entity_abn or company.abn
        if abn:
            layout.text(f"ABN: {abn}", FONT_REGULAR, 11, Palette.MUTED, paginate=False)
        if audit.entity_address:
            layout.text(truncate(audit.entity_address, COVER_TEXT_LIMIT), FONT_REGULAR, 11, Palette.MUTED,
                        paginate=False)

        if audit.external_auditor_org:
            layout.move_down(1.5, 11)
            layout.text("Certification Body:", FONT_BOLD, 12, Palette.BLACK, paginate=False)
            layout.text(truncate(audit.external_auditor_org, COVER_TEXT_LIMIT), FONT_REGULAR, 14,
                        Palette.BLACK, paginate=False)
            if audit.external_auditor_name:
                layout.text(f"Lead Auditor: {audit.external_auditor_name}", FONT_REGULAR, 11,
                            Palette.MUTED, paginate=False)

        # Two-column facts block
        half = width / 2
        right_x = layout.left + half
        period = f"{safe_format_date(audit.scope_time_from)} - {safe_format_date(audit.scope_time_to)}"
        facts = [
            ("Audit Period:", period, "Methodology:", format_methodology(audit.methodology)),
            ("Report Date:", report_date.strftime(LONG_DATE_FORMAT),
             "NDIS Registration:" if company.ndis_registration_number else "",
             company.ndis_registration_number or ""),
        ]
        # Keep the facts block above the footer band
        facts_limit = layout.page_height - COVER_FOOTER_HEIGHT - COVER_FACT_ROW_HEIGHT * len(facts) - 10
        layout.move_to(min(max(layout.y + 20, 520), facts_limit))
        for left_label, left_value, right_label, right_value in facts:
            top = layout.y
            layout.text(left_label, FONT_BOLD, 10, Palette.BLACK, width=half, paginate=False)
            layout.text(left_value, FONT_REGULAR, 10, Palette.BLACK, width=half, paginate=False)
            if right_label:
                layout.move_to(top)
                layout.text(right_label, FONT_BOLD, 10, Palette.BLACK, x=right_x, width=half, paginate=False)
                layout.text(right_value, FONT_REGULAR, 10, Palette.BLACK, x=right_x, width=half, paginate=False)
            layout.move_to(top + COVER_FACT_ROW_HEIGHT)

        layout.rect(COVER_FOOTER_HEIGHT, Palette.LIGHT, x=0, width=layout.page_width,
                    top=layout.page_height - COVER_FOOTER_HEIGHT)
        layout.move_to(layout.page_height - 28)
        layout.text(settings.report_confidentiality_notice, FONT_REGULAR, 8, Palette.MUTED,
                    align="center", paginate=False)

    def _table_of_contents(self, layout: LayoutContext, sections: List[PlannedSection]):
        layout.text("Table of Contents", FONT_BOLD, 20, Palette.PRIMARY)
        layout.move_down(1)
        for section in sections:
            layout.text(section.heading, FONT_REGULAR, 12, Palette.BLACK)
            layout.move_down(0.6, 12)
        layout.move_down(1)
        layout.text(
            "Note: Page numbers are dynamically generated. "
            "Please refer to the section headings for navigation.",
            FONT_ITALIC, 9, Palette.MUTED,
        )

    # =========================================================================
    # EXECUTIVE SUMMARY
    # =========================================================================

    def _executive_summary(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        self._section_header(layout, section.heading)

        if data.audit.executive_summary:
            layout.text(data.audit.executive_summary, FONT_REGULAR, 11, Palette.BLACK)
        else:
            layout.text("Executive summary has not been generated for this audit.",
                        FONT_ITALIC, 11, Palette.MUTED)
        layout.move_down(1.5)

        scores = calculate_scores(data.indicator_responses)

        layout.ensure_space(14 * 1.3 + 70 + 60)
        layout.text("Overall Score Summary", FONT_BOLD, 14, Palette.PRIMARY)
        layout.move_down(0.5)

        box_width = (layout.content_width - 30) / 4
        box_height = 70
        boxes = [
            ("Best Practice", scores.best_practice, RATING_COLORS[IndicatorRating.CONFORMITY_BEST_PRACTICE]),
            ("Conformity", scores.conformity, RATING_COLORS[IndicatorRating.CONFORMITY]),
            ("Minor NC", scores.minor_nc, RATING_COLORS[IndicatorRating.MINOR_NC]),
            ("Major NC", scores.major_nc, RATING_COLORS[IndicatorRating.MAJOR_NC]),
        ]
        top = layout.y
        for index, (label, count, color) in enumerate(boxes):
            x = layout.left + (box_width + 10) * index
            layout.rect(box_height, color, x=x, width=box_width, top=top)
            layout.move_to(top + 15)
            layout.text(str(count), FONT_BOLD, 24, Palette.WHITE, align="center", x=x,
                        width=box_width, paginate=False)
            layout.move_to(top + 47)
            layout.text(label, FONT_REGULAR, 9, Palette.WHITE, align="center", x=x,
                        width=box_width, paginate=False)
        layout.move_to(top + box_height + 20)

        layout.text(f"Total Indicators Assessed: {scores.total}", FONT_REGULAR, 11)
        layout.text(f"Score: {scores.points} / {scores.max_points} points ({scores.percentage}%)",
                    FONT_REGULAR, 11)

        open_findings = [f for f in data.findings if f.status != FindingStatus.CLOSED]
        if data.findings:
            layout.text(
                f"Findings Raised: {len(data.findings)} ({len(open_findings)} open)",
                FONT_REGULAR, 11,
            )

    # =========================================================================
    # AUDIT OVERVIEW
    # =========================================================================

    def _audit_overview(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        audit, company, sites = data.audit, data.company, data.sites
        sub = _Subsections(section)
        self._section_header(layout, section.heading)

        self._subsection_header(layout, sub.next("Audit Details"))
        details = [
            ("Audit Title", audit.title),
            ("Audit Type", audit.audit_type),
            ("Audit Purpose", format_audit_purpose(audit.audit_purpose)),
            ("Methodology", format_methodology(audit.methodology)),
            ("Service Context", audit.service_context_label or audit.service_context),
            ("Audit Period", f"{safe_format_date(audit.scope_time_from)} - {safe_format_date(audit.scope_time_to)}"),
            ("Status", audit.status),
        ]
        for label, value in details:
            layout.labelled_text(label, value)
        layout.move_down(1)

        self._subsection_header(layout, sub.next("Entity Being Audited"))
        entity = [
            ("Organisation Name", audit.entity_name or company.legal_name),
            ("ABN", audit.entity_abn or company.abn or "N/A"),
            ("Address", audit.entity_address or "Not specified"),
            ("NDIS Registration", company.ndis_registration_number or "N/A"),
        ]
        for label, value in entity:
            layout.labelled_text(label, value)

        if sites:
            layout.move_down(1)
            self._subsection_header(layout, sub.next("Sites Audited"))
            for index, site in enumerate(sites, start=1):
                label = f"{site.site_name} (Primary Site)" if site.is_primary_site else site.site_name
                layout.ensure_space(10 * 1.3 * 2)
                layout.text(f"{index}. {label}", FONT_BOLD, 10)
                address = format_site_address(site.address, site.city, site.state, site.postcode)
                if address:
                    layout.text(address, FONT_REGULAR, 10, Palette.MUTED, x=layout.left + 12)

        if audit.external_auditor_org:
            layout.move_down(1)
            self._subsection_header(layout, sub.next("Certification Body"))
            layout.labelled_text("Organisation", audit.external_auditor_org)
            layout.labelled_text("Lead Auditor", audit.external_auditor_name)
            layout.labelled_text("Contact", audit.external_auditor_email)

        if audit.description:
            layout.move_down(1)
            self._subsection_header(layout, sub.next("Audit Description"))
            layout.text(audit.description, FONT_REGULAR, 10)

    # =========================================================================
    # AUDIT RESULTS
    # =========================================================================

    def _audit_results(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        sub = _Subsections(section)
        self._section_header(layout, section.heading)

        scores = calculate_scores(data.indicator_responses)

        self._subsection_header(layout, sub.next("Scoring Summary"))
        layout.text(f"A total of {scores.total} indicators were assessed during this audit.",
                    FONT_REGULAR, 11)
        layout.move_down(0.5)
        layout.flowable(self._scoring_table(layout, scores))
        layout.move_down(1.5)

        # Overall score box
        box_width, box_height = 150, 60
        layout.ensure_space(box_height + 20)
        box_x = layout.left + (layout.content_width - box_width) / 2
        top = layout.y
        layout.rect(box_height, SCORE_BAND_COLORS[score_band(scores.percentage)], x=box_x,
                    width=box_width, top=top)
        layout.move_to(top + 10)
        layout.text(f"{scores.percentage}%", FONT_BOLD, 28, Palette.WHITE, align="center",
                    x=box_x, width=box_width, paginate=False)
        layout.move_to(top + 42)
        layout.text("Overall Score", FONT_REGULAR, 10, Palette.WHITE, align="center",
                    x=box_x, width=box_width, paginate=False)
        layout.move_to(top + box_height + 20)

        standard_report = calculate_standard_scores(data.indicator_responses)
        if standard_report.scores:
            self._subsection_header(layout, sub.next("Compliance by NDIS Practice Standard"))
            layout.flowable(self._standards_table(layout, standard_report.scores))
            if standard_report.unmapped_count:
                layout.move_down(0.3, 9)
                layout.text(
                    f"{standard_report.unmapped_count} indicator(s) could not be matched to a "
                    f"practice standard and are included in the overall score only.",
                    FONT_ITALIC, 9, Palette.MUTED,
                )
            layout.move_down(1)

        if data.indicator_responses:
            self._subsection_header(layout, sub.next("Indicator Responses"))
            grouped = group_by_rating(data.indicator_responses)
            for rating in RATING_ORDER:
                responses = grouped[rating]
                if not responses:
                    continue
                layout.ensure_space(11 * 1.3 + 9 * 1.3 * 2)
                layout.text(f"{RATING_LABELS[rating]} ({len(responses)})", FONT_BOLD, 11, RATING_COLORS[rating])
                layout.move_down(0.3, 9)

                for response in responses:
                    label = response.indicator_text or f"ID: {response.template_indicator_id[:12]}..."
                    comment = truncate(clean_comment(response.comment), 150)
                    needed = layout.measure_text(f"• {label}", FONT_REGULAR, 9)
                    if comment:
                        needed += layout.measure_text(comment, FONT_ITALIC, 8, layout.content_width - 12)
                    layout.ensure_space(needed)
                    layout.text(f"• {label}", FONT_REGULAR, 9)
                    if comment:
                        layout.text(comment, FONT_ITALIC, 8, Palette.MUTED, x=layout.left + 12)
                layout.move_down(0.5)

    def _scoring_table(self, layout: LayoutContext, scores) -> Table:
        rows = [
            ("Best Practice (+3 pts each)", IndicatorRating.CONFORMITY_BEST_PRACTICE, scores.best_practice),
            ("Conformity (+2 pts each)", IndicatorRating.CONFORMITY, scores.conformity),
            ("Minor Non-Conformance (+1 pt each)", IndicatorRating.MINOR_NC, scores.minor_nc),
            ("Major Non-Conformance (0 pts)", IndicatorRating.MAJOR_NC, scores.major_nc),
        ]
        data = [["", "Rating", "Count", "Points"]]
        for label, rating, count in rows:
            data.append(["", label, str(count), str(count * RATING_POINTS[rating])])
        data.append(["", "TOTAL", str(scores.total), f"{scores.points} / {scores.max_points}"])

        width = layout.content_width
        table = Table(data, colWidths=[6, width * 0.5 - 6, width * 0.25, width * 0.25])

        style_commands = [
            # Header and total rows
            ('BACKGROUND', (0, 0), (-1, 0), Palette.PRIMARY),
            ('BACKGROUND', (0, -1), (-1, -1), Palette.PRIMARY),
            ('TEXTCOLOR', (0, 0), (-1, 0), Palette.WHITE),
            ('TEXTCOLOR', (0, -1), (-1, -1), Palette.WHITE),
            ('FONTNAME', (0, 0), (-1, 0), FONT_BOLD),
            ('FONTNAME', (0, -1), (-1, -1), FONT_BOLD),

            # Body rows
            ('FONTNAME', (0, 1), (-1, -2), FONT_REGULAR),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('TEXTCOLOR', (0, 1), (-1, -2), Palette.BLACK),
            ('TOPPADDING', (0, 0), (-1, -1), 7),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 7),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),

            # Alternating row colors
            ('ROWBACKGROUNDS', (0, 1), (-1, -2), [Palette.LIGHT, Palette.WHITE]),
        ]
        # Rating colour marker in the narrow first column
        for index, (_, rating, _) in enumerate(rows, start=1):
            style_commands.append(('BACKGROUND', (0, index), (0, index), RATING_COLORS[rating]))

        table.setStyle(TableStyle(style_commands))
        return table

    def _standards_table(self, layout: LayoutContext, scores) -> Table:
        data = [["Standard", "Indicators", "Average Score"]]
        style_commands = [
            ('BACKGROUND', (0, 0), (-1, 0), Palette.PRIMARY),
            ('TEXTCOLOR', (0, 0), (-1, 0), Palette.WHITE),
            ('FONTNAME', (0, 0), (-1, 0), FONT_BOLD),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ('ALIGN', (1, 0), (-1, -1), 'CENTER'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]

        shade = 0
        for division, members in group_standard_scores_by_division(scores):
            row = len(data)
            data.append([self._cell(f"Division {division.number}: {division.name}", bold=True), "", ""])
            style_commands.extend([
                ('SPAN', (0, row), (-1, row)),
                ('BACKGROUND', (0, row), (-1, row), Palette.LIGHT),
                ('LINEBELOW', (0, row), (-1, row), 0.5, Palette.MUTED),
            ])
            for score in members:
                row = len(data)
                data.append([
                    self._cell(f"{score.standard.number}. {score.standard.name}"),
                    str(score.count),
                    f"{score.average} / {score.max_average}",
                ])
                if shade % 2:
                    style_commands.append(('BACKGROUND', (0, row), (-1, row), Palette.LIGHT))
                style_commands.append(('TEXTCOLOR', (2, row), (2, row), self._average_color(score.average)))
                shade += 1

        table = Table(data, colWidths=[layout.content_width - 160, 70, 90], repeatRows=1)
        table.setStyle(TableStyle(style_commands))
        return table

    @staticmethod
    def _average_color(average):
        percentage = float(average) / max(RATING_POINTS.values()) * 100
        return SCORE_BAND_COLORS[score_band(int(round_half_up(percentage)))]

    # =========================================================================
    # FINDINGS
    # =========================================================================

    def _findings(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        self._section_header(layout, section.heading)
        layout.text(f"This section details the {len(data.findings)} finding(s) identified during the audit.",
                    FONT_REGULAR, 11)
        layout.move_down(1)

        for index, finding in enumerate(data.findings, start=1):
            self._finding_block(layout, index, finding)
            layout.move_down(1)

    def _finding_block(self, layout: LayoutContext, index: int, finding: Finding):
        title = f"Finding {index}: {truncate(finding.finding_text, 60)}"
        self._header_bar(layout, title, SEVERITY_COLORS[finding.severity], reserve=9 * 1.3 * 5)

        layout.labelled_text("Severity", SEVERITY_LABELS[finding.severity], size=9)
        layout.labelled_text("Status", FINDING_STATUS_LABELS[finding.status], size=9)
        if finding.owner_name:
            layout.labelled_text("Owner", finding.owner_name, size=9)
        if finding.due_date:
            layout.labelled_text("Due Date", safe_format_date(finding.due_date), size=9)

        layout.move_down(0.3, 9)
        layout.ensure_space(9 * 1.3 * 2)
        layout.text("Finding Details:", FONT_BOLD, 9, Palette.MUTED)
        layout.text(finding.finding_text, FONT_REGULAR, 9)

        if finding.closure_note:
            layout.move_down(0.3, 9)
            layout.ensure_space(9 * 1.3 * 2)
            layout.text("Closure Notes:", FONT_BOLD, 9, Palette.MUTED)
            layout.text(finding.closure_note, FONT_REGULAR, 9)

        if finding.activities:
            layout.move_down(0.5, 9)
            layout.ensure_space(9 * 1.3 + 8 * 1.3 * 2)
            layout.text("Corrective Action Journey:", FONT_BOLD, 9, Palette.PRIMARY)
            for number, activity in enumerate(finding.activities, start=1):
                when = safe_format_date(activity.created_at, DATETIME_FORMAT, "Unknown")
                performed_by = activity.performed_by_user.full_name if activity.performed_by_user else "System"
                layout.inline([
                    (f"{number}. {when} - {format_activity_type(activity.activity_type)}", FONT_REGULAR, Palette.MUTED),
                    (f" ({performed_by})", FONT_REGULAR, Palette.BLACK),
                ], size=8)
                if activity.previous_value and activity.new_value:
                    layout.text(f"{activity.previous_value} -> {activity.new_value}", FONT_REGULAR, 8,
                                Palette.MUTED, x=layout.left + 12)
                if activity.comment:
                    layout.text(f"\"{truncate(activity.comment, 100)}\"", FONT_ITALIC, 8,
                                Palette.BLACK, x=layout.left + 12)

        if finding.evidence_requests:
            layout.move_down(0.5, 9)
            layout.ensure_space(9 * 1.3 + 8 * 1.3 * 2)
            layout.text("Evidence Requests:", FONT_BOLD, 9, Palette.SECONDARY)
            for number, request in enumerate(finding.evidence_requests, start=1):
                layout.ensure_space(8 * 1.3 * (2 + min(len(request.items), 3)))
                layout.inline([
                    (f"{number}. {format_evidence_type(request.evidence_type)}", FONT_BOLD, Palette.BLACK),
                    (f" [{EVIDENCE_STATUS_LABELS[request.status].upper()}]", FONT_BOLD,
                     EVIDENCE_STATUS_COLORS[request.status]),
                ], size=8)
                if request.request_note:
                    layout.text(f"Request: {truncate(request.request_note, 80)}", FONT_REGULAR, 8,
                                Palette.MUTED, x=layout.left + 12)
                if request.review_note:
                    layout.text(f"Review: {truncate(request.review_note, 80)}", FONT_REGULAR, 8,
                                Palette.MUTED, x=layout.left + 12)
                if request.items:
                    layout.text(f"Submitted Files ({len(request.items)}):", FONT_REGULAR, 8,
                                Palette.SUCCESS, x=layout.left + 12)
                    for item in request.items:
                        layout.text(f"• {item.file_name or 'Unknown file'}", FONT_REGULAR, 7,
                                    Palette.BLACK, x=layout.left + 24)

        if finding.closure_evidence:
            layout.move_down(0.3, 9)
            layout.text(f"Closure Evidence: {len(finding.closure_evidence)} item(s) linked",
                        FONT_BOLD, 9, Palette.SUCCESS)

    # =========================================================================
    # INTERVIEWS
    # =========================================================================

    def _interviews(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        sub = _Subsections(section)
        self._section_header(layout, section.heading)
        layout.text(f"A total of {len(data.interviews)} interview(s) were conducted during the audit.",
                    FONT_REGULAR, 11)
        layout.move_down(1)

        for interview_type in InterviewType:
            interviews = [i for i in data.interviews if i.interview_type == interview_type]
            if not interviews:
                continue
            self._subsection_header(
                layout, sub.next(f"{format_interview_type(interview_type)} Interviews ({len(interviews)})")
            )
            for index, interview in enumerate(interviews, start=1):
                self._interview_block(layout, index, interview)
                layout.move_down(0.5)
            layout.move_down(0.5)

    def _interview_block(self, layout: LayoutContext, index: int, interview: AuditInterview):
        details = []
        if interview.interviewee_role:
            details.append(f"Role: {interview.interviewee_role}")
        if interview.interview_method:
            details.append(f"Method: {format_interview_method(interview.interview_method)}")
        if interview.site_location:
            details.append(f"Location: {interview.site_location}")
        if interview.interview_date:
            details.append(f"Date: {safe_format_date(interview.interview_date)}")

        needed = 10 * 1.3 + layout.measure_text(" | ".join(details), FONT_REGULAR, 9)
        layout.ensure_space(needed + 9 * 1.3 * 2)

        layout.text(f"{index}. {interview.interviewee_name or 'Anonymous'}", FONT_BOLD, 10)
        if details:
            layout.text(" | ".join(details), FONT_REGULAR, 9, Palette.MUTED)
        if interview.feedback_positive:
            layout.labelled_text("Positive", interview.feedback_positive, size=9, label_color=Palette.SUCCESS)
        if interview.feedback_concerns:
            layout.labelled_text("Concerns", interview.feedback_concerns, size=9, label_color=Palette.DANGER)
        if interview.feedback_checklist:
            self._checklist(layout, "Feedback Checklist:", interview.feedback_checklist)

    # =========================================================================
    # SITE VISITS
    # =========================================================================

    def _site_visits(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        self._section_header(layout, section.heading)
        layout.text(f"{len(data.site_visits)} site visit(s) were conducted during the audit.",
                    FONT_REGULAR, 11)
        layout.move_down(1)

        for index, visit in enumerate(data.site_visits, start=1):
            self._site_visit_block(layout, index, visit)
            layout.move_down(1)

    def _site_visit_block(self, layout: LayoutContext, index: int, visit: AuditSiteVisit):
        self._header_bar(layout, f"Site {index}: {visit.site_name}", Palette.SECONDARY, reserve=9 * 1.3 * 4)

        if visit.site_address:
            layout.labelled_text("Address", visit.site_address, size=9)
        if visit.visit_date:
            layout.labelled_text("Visit Date", safe_format_date(visit.visit_date), size=9)

        stats = []
        if visit.participants_at_site:
            stats.append(f"{visit.participants_at_site} participants observed")
        if visit.files_reviewed_count:
            stats.append(f"{visit.files_reviewed_count} files reviewed")
        if stats:
            layout.text(" | ".join(stats), FONT_REGULAR, 9)

        if visit.observations_positive:
            layout.move_down(0.3, 9)
            layout.ensure_space(9 * 1.3 * 2)
            layout.text("Positive Observations:", FONT_BOLD, 9, Palette.SUCCESS)
            layout.text(visit.observations_positive, FONT_REGULAR, 9)

        if visit.observations_concerns:
            layout.move_down(0.3, 9)
            layout.ensure_space(9 * 1.3 * 2)
            layout.text("Concerns:", FONT_BOLD, 9, Palette.DANGER)
            layout.text(visit.observations_concerns, FONT_REGULAR, 9)

        if visit.safety_items_checked:
            self._checklist(layout, "Safety Items Checked:", visit.safety_items_checked)
        if visit.documents_checked:
            self._checklist(layout, "Documents Reviewed:", visit.documents_checked)

    # =========================================================================
    # REGISTRATION GROUPS
    # =========================================================================

    def _registration_groups(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        items = data.audit.registration_groups_witnessing
        self._section_header(layout, section.heading)
        layout.text(
            "Registration group line items in scope for this audit, with the auditor's "
            "recommendation and whether service delivery was witnessed.",
            FONT_REGULAR, 10,
        )
        layout.move_down(0.5)

        rows = [["Code", "Line Item", "Recommended", "Status", "Witnessed"]]
        style_commands = [
            ('BACKGROUND', (0, 0), (-1, 0), Palette.PRIMARY),
            ('TEXTCOLOR', (0, 0), (-1, 0), Palette.WHITE),
            ('FONTNAME', (0, 0), (-1, 0), FONT_BOLD),
            ('FONTNAME', (0, 1), (-1, -1), FONT_REGULAR),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ('ALIGN', (2, 0), (-1, -1), 'CENTER'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [Palette.WHITE, Palette.LIGHT]),
        ]
        for row, item in enumerate(items, start=1):
            rows.append([
                item.item_code,
                self._cell(item.item_label),
                "Yes" if item.recommended else "No",
                REGISTRATION_STATUS_LABELS[item.status],
                WITNESSED_LABELS[item.witnessed],
            ])
            style_commands.extend([
                ('TEXTCOLOR', (3, row), (3, row), REGISTRATION_STATUS_COLORS[item.status]),
                ('TEXTCOLOR', (4, row), (4, row), WITNESSED_COLORS[item.witnessed]),
                ('FONTNAME', (3, row), (4, row), FONT_BOLD),
            ])

        table = Table(rows, colWidths=[80, layout.content_width - 265, 70, 55, 60], repeatRows=1)
        table.setStyle(TableStyle(style_commands))
        layout.flowable(table)
        layout.move_down(1)

        witnessed, not_witnessed, not_applicable = self._witnessing_counts(items)
        layout.ensure_space(10 * 1.3 * 3)
        layout.text("Witnessing Summary", FONT_BOLD, 11, Palette.SECONDARY)
        layout.text(
            f"{witnessed} of {len(items)} line item(s) witnessed, {not_witnessed} not witnessed, "
            f"{not_applicable} not applicable.",
            FONT_REGULAR, 10,
        )
        changes = [
            f"{sum(1 for i in items if i.status == status)} to {REGISTRATION_STATUS_LABELS[status].lower()}"
            for status in (RegistrationGroupStatus.ADD, RegistrationGroupStatus.REMOVE)
        ]
        layout.text(f"Scope changes recommended: {', '.join(changes)}.", FONT_REGULAR, 10)

    @staticmethod
    def _witnessing_counts(items) -> Tuple[int, int, int]:
        return (
            sum(1 for i in items if i.witnessed == WitnessedStatus.YES),
            sum(1 for i in items if i.witnessed == WitnessedStatus.NO),
            sum(1 for i in items if i.witnessed == WitnessedStatus.NA),
        )

    # =========================================================================
    # CONCLUSION & SIGN-OFF
    # =========================================================================

    def _conclusion(self, layout: LayoutContext, data: ReportData, section: PlannedSection):
        conclusion = data.audit.conclusion_data
        sub = _Subsections(section)
        self._section_header(layout, section.heading)

        self._subsection_header(layout, sub.next("Audit Conclusion"))
        if conclusion.conclusion_text:
            layout.text(conclusion.conclusion_text, FONT_REGULAR, 10)
        else:
            layout.text("No conclusion has been recorded for this audit.", FONT_ITALIC, 10, Palette.MUTED)

        if conclusion.reviewers_note:
            layout.move_down(1)
            self._subsection_header(layout, sub.next("Reviewer's Note"))
            layout.text(conclusion.reviewers_note, FONT_REGULAR, 10)

        layout.move_down(1)
        self._subsection_header(layout, sub.next("Endorsements"))
        endorsements = conclusion.endorsements
        for attribute, label in ENDORSEMENT_LABELS:
            endorsed = getattr(endorsements, attribute)
            layout.inline([
                ("[X] " if endorsed else "[ ] ", FONT_BOLD, Palette.SUCCESS if endorsed else Palette.MUTED),
                (label, FONT_REGULAR, Palette.BLACK),
            ], size=10)
        layout.move_down(0.5)
        layout.labelled_text(
            "Follow-up Required",
            "Yes" if conclusion.follow_up_required else "No",
            value_color=Palette.DANGER if conclusion.follow_up_required else Palette.SUCCESS,
        )

        layout.move_down(1)
        self._subsection_header(layout, sub.next("Sign-off"))
        layout.ensure_space(10 * 1.3 * 2 + 60 + 10 * 1.3)
        layout.labelled_text("Lead Auditor", conclusion.lead_auditor_name or data.audit.external_auditor_name)
        self._signature(layout, conclusion.lead_auditor_signature)
        layout.labelled_text("Date", safe_format_date(conclusion.signature_date))

    def _signature(self, layout: LayoutContext, signature: Optional[str]):
        if not signature:
            layout.labelled_text("Signature", None, fallback="Not signed")
            return

        match = DATA_IMAGE_PATTERN.match(signature.strip())
        if match is None:
            layout.text("Signature:", FONT_BOLD, 10, Palette.MUTED)
            layout.text(signature, FONT_ITALIC, 16, Palette.BLACK, x=layout.left + 12)
            return

        try:
            image = ImageReader(io.BytesIO(base64.b64decode(match.group("payload"), validate=False)))
            image.getSize()
        except Exception as e:
            logger.warning(f"Signature image could not be decoded, rendering placeholder: {e}")
            layout.labelled_text("Signature", "Signature image unavailable", value_color=Palette.MUTED)
            return

        layout.text("Signature:", FONT_BOLD, 10, Palette.MUTED)
        layout.image(image, width=180, height=60, x=layout.left + 12)
        layout.move_down(0.5)


def generate_audit_report_pdf(data: ReportData) -> bytes:
    """Render ``data`` with the configured page size and return the PDF bytes."""
    return AuditReportPDFService().generate_report(data)
