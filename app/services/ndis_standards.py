"""
NDIS Compliance Platform - NDIS Practice Standards Mapping

Classifies indicator text into an NDIS Practice Standard by keyword matching
and produces per-standard compliance scores grouped by core module division.

Keyword groups are scanned in declaration order and the first group with a
matching keyword wins. Indicator text that mentions keywords from several
groups therefore resolves to the earliest group; reorder with care.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from app.schemas.audit import IndicatorResponse
from app.services.audit_scoring import RATING_POINTS, round_half_up


@dataclass(frozen=True)
class NdisDivision:
    number: int
    name: str


@dataclass(frozen=True)
class NdisStandard:
    number: str
    name: str
    division: int


NDIS_DIVISIONS: List[NdisDivision] = [
    NdisDivision(1, "Rights and Responsibilities"),
    NdisDivision(2, "Governance and Operational Management"),
    NdisDivision(3, "Provision of Supports"),
    NdisDivision(4, "Support Provision Environment"),
]

# Ordered by division, then by standard within the division
NDIS_STANDARDS: "OrderedDict[str, NdisStandard]" = OrderedDict(
    (standard.number, standard)
    for standard in [
        NdisStandard("1", "Person-Centred Supports", 1),
        NdisStandard("2", "Individual Values and Beliefs", 1),
        NdisStandard("3", "Privacy and Dignity", 1),
        NdisStandard("4", "Independence and Informed Choice", 1),
        NdisStandard("5", "Violence, Abuse, Neglect, Exploitation and Discrimination", 1),
        NdisStandard("11", "Governance and Operational Management", 2),
        NdisStandard("12", "Risk Management", 2),
        NdisStandard("13", "Quality Management", 2),
        NdisStandard("14", "Information Management", 2),
        NdisStandard("15", "Feedback and Complaints Management", 2),
        NdisStandard("16", "Incident Management", 2),
        NdisStandard("17", "Human Resource Management", 2),
        NdisStandard("18", "Continuity of Supports", 2),
        NdisStandard("18A", "Emergency and Disaster Management", 2),
        NdisStandard("21", "Access to Supports", 3),
        NdisStandard("22", "Support Planning", 3),
        NdisStandard("23", "Service Agreements with Participants", 3),
        NdisStandard("24", "Responsive Support Provision", 3),
        NdisStandard("25", "Transition to or from a Provider", 3),
        NdisStandard("31", "Safe Environment", 4),
        NdisStandard("32", "Participant Money and Property", 4),
        NdisStandard("33", "Management of Medication", 4),
        NdisStandard("34", "Management of Waste", 4),
    ]
)

# (standard number, keywords). Lower case; matched as substrings.
STANDARD_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("17", (
        "police check",
        "working with children",
        "worker screening",
        "right to work",
        "reference check",
        "qualification",
        "training",
        "induction",
        "supervision",
        "performance review",
        "performance improvement",
        "appraisal",
        "staff register",
        "contractor",
        "rostering",
        "code of conduct",
        "child safe",
        "professional development",
        "scope of practice",
        "role description",
    )),
    ("18A", ("emergency", "disaster", "evacuation")),
    ("16", ("incident", "restrictive practice", "behavioural", "de-escalation")),
    ("15", ("complaint", "feedback")),
    ("12", ("risk management", "risk register", "risk assessment")),
    ("13", (
        "continuous improvement",
        "quality improvement",
        "internal audit",
        "external audit",
        "management review",
    )),
    ("14", ("privacy", "confidentiality", "record keeping", "information management")),
    ("11", (
        "governance",
        "organisational structure",
        "delegation",
        "roles and responsibilities",
        "fit and proper",
        "conflict of interest",
        "meeting minutes",
        "whistleblower",
        "reportable conduct",
        "policy register",
        "policies are communicated",
    )),
    ("18", ("continuity", "business continuity")),
    ("1", ("person-centred", "person centred")),
    ("2", ("values and beliefs", "culture")),
    ("3", ("dignity",)),
    ("4", ("informed choice", "independence", "choice and control")),
    ("5", ("abuse", "neglect", "exploitation", "discrimination")),
    ("21", ("access to supports",)),
    ("22", ("support plan", "care plan", "goals")),
    ("23", ("service agreement",)),
    ("24", ("responsive support",)),
    ("25", ("transition",)),
    ("31", ("safe environment", "fire", "smoke detector", "first aid", "whs")),
    ("32", ("participant money", "property")),
    ("33", ("medication", "prn")),
    ("34", ("waste",)),
]


@dataclass(frozen=True)
class StandardScore:
    """Average rating points for the responses mapped to one standard."""
    standard: NdisStandard
    count: int
    total_points: int
    average: Decimal

    @property
    def max_average(self) -> int:
        return max(RATING_POINTS.values())


@dataclass
class StandardScoreReport:
    scores: List[StandardScore] = field(default_factory=list)
    unmapped_count: int = 0


def get_ndis_standard(indicator_text: Optional[str]) -> Optional[NdisStandard]:
    """Resolve indicator text to a standard; None when no keyword matches."""
    if not indicator_text:
        return None
    text = indicator_text.lower()
    for number, keywords in STANDARD_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return NDIS_STANDARDS[number]
    return None


def calculate_standard_scores(responses: Iterable[IndicatorResponse]) -> StandardScoreReport:
    """
    Bucket responses by standard and average each bucket's rating points.

    Scores come back in standard table order. Responses whose text does not
    match any keyword are counted in ``unmapped_count``.
    """
    buckets: Dict[str, List[int]] = {}
    unmapped = 0

    for response in responses:
        standard = get_ndis_standard(response.indicator_text)
        if standard is None:
            unmapped += 1
            continue
        buckets.setdefault(standard.number, []).append(RATING_POINTS[response.rating])

    scores = []
    for number, standard in NDIS_STANDARDS.items():
        points = buckets.get(number)
        if not points:
            continue
        total = sum(points)
        scores.append(StandardScore(
            standard=standard,
            count=len(points),
            total_points=total,
            average=round_half_up(Decimal(total) / Decimal(len(points)), 1),
        ))

    return StandardScoreReport(scores=scores, unmapped_count=unmapped)


def group_standard_scores_by_division(
    scores: Iterable[StandardScore],
) -> List[Tuple[NdisDivision, List[StandardScore]]]:
    """Group scores under their division, in division table order, skipping empty divisions."""
    by_division: Dict[int, List[StandardScore]] = {}
    for score in scores:
        by_division.setdefault(score.standard.division, []).append(score)

    order = list(NDIS_STANDARDS)
    grouped = []
    for division in NDIS_DIVISIONS:
        members = by_division.get(division.number)
        if members:
            members.sort(key=lambda s: order.index(s.standard.number))
            grouped.append((division, members))
    return grouped
