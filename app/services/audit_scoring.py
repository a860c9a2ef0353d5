"""
NDIS Compliance Platform - Audit Scoring Engine

Converts per-indicator ratings into aggregate counts, weighted points and an
overall percentage score.

Point values:
- Conformity with best practice: 3
- Conformity: 2
- Minor non-conformance: 1
- Major non-conformance: 0
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, List, Union

from app.schemas.audit import IndicatorRating, IndicatorResponse


RATING_POINTS: Dict[IndicatorRating, int] = {
    IndicatorRating.CONFORMITY_BEST_PRACTICE: 3,
    IndicatorRating.CONFORMITY: 2,
    IndicatorRating.MINOR_NC: 1,
    IndicatorRating.MAJOR_NC: 0,
}

MAX_POINTS_PER_INDICATOR = 3

# Display order used wherever responses are listed by rating
RATING_ORDER: List[IndicatorRating] = [
    IndicatorRating.CONFORMITY_BEST_PRACTICE,
    IndicatorRating.CONFORMITY,
    IndicatorRating.MINOR_NC,
    IndicatorRating.MAJOR_NC,
]


class ScoreBand(str, Enum):
    """Qualitative band for an overall percentage."""
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True)
class ScoreSummary:
    """Aggregate score for a set of indicator responses."""
    best_practice: int
    conformity: int
    minor_nc: int
    major_nc: int
    total: int
    points: int
    max_points: int
    percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_half_up(value: Union[int, float, Decimal], places: int = 0) -> Decimal:
    """Round away from zero on .5, matching how the score has always been displayed."""
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def score_for_rating(rating: Union[IndicatorRating, str]) -> int:
    """Point value for a single rating."""
    return RATING_POINTS[IndicatorRating(rating)]


def calculate_scores(responses: Iterable[IndicatorResponse]) -> ScoreSummary:
    """
    Aggregate indicator responses into counts, points and a percentage.

    Pure and order independent. An empty input yields all zeros.
    """
    responses = list(responses)

    best_practice = sum(1 for r in responses if r.rating == IndicatorRating.CONFORMITY_BEST_PRACTICE)
    conformity = sum(1 for r in responses if r.rating == IndicatorRating.CONFORMITY)
    minor_nc = sum(1 for r in responses if r.rating == IndicatorRating.MINOR_NC)
    major_nc = sum(1 for r in responses if r.rating == IndicatorRating.MAJOR_NC)

    total = len(responses)
    points = (best_practice * 3) + (conformity * 2) + (minor_nc * 1) + (major_nc * 0)
    max_points = total * MAX_POINTS_PER_INDICATOR

    if max_points > 0:
        percentage = int(round_half_up(Decimal(points) * 100 / Decimal(max_points)))
    else:
        percentage = 0

    return ScoreSummary(
        best_practice=best_practice,
        conformity=conformity,
        minor_nc=minor_nc,
        major_nc=major_nc,
        total=total,
        points=points,
        max_points=max_points,
        percentage=percentage,
    )


def group_by_rating(
    responses: Iterable[IndicatorResponse],
) -> Dict[IndicatorRating, List[IndicatorResponse]]:
    """Bucket responses by rating in display order, keeping input order within a bucket."""
    grouped: Dict[IndicatorRating, List[IndicatorResponse]] = {rating: [] for rating in RATING_ORDER}
    for response in responses:
        grouped[IndicatorRating(response.rating)].append(response)
    return grouped


def score_band(percentage: int) -> ScoreBand:
    """Band used to colour the overall score."""
    if percentage < 50:
        return ScoreBand.POOR
    if percentage < 75:
        return ScoreBand.FAIR
    return ScoreBand.GOOD
