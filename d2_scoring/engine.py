"""
Scoring engine

Weighted-coefficient scoring with NA exclusion:

    Yes        -> coefficient
    Partially  -> coefficient / 2
    No         -> 0
    NA         -> None, excluded from both earned and max

Unanswered items score 0 but, like NA, stay out of the aggregates.
Percentages are rounded half-up to 2 decimals exactly once, here.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from core.logging import get_logger
from core.utils import calculate_percentage, round2
from d1_ingest.models import AuditItem, Category, Choice, Section

from .constants import DEFAULT_PASSING_GRADE
from .models import CategoryScore, CategoryScoreMethod, ScoreAggregate, ScoreFigures, ScoreStatus, SectionScore

logger = get_logger(__name__, domain="d2")


def item_value(choice: Choice, coefficient: float) -> Optional[float]:
    """Points earned by one answer; None for NA"""
    credit = choice.credit
    if credit is None:
        return None
    return float(Decimal(str(credit)) * Decimal(str(coefficient)))


def score_items(items: Iterable[AuditItem]) -> ScoreAggregate:
    earned = Decimal("0")
    maximum = Decimal("0")
    scoreable = 0
    excluded = 0
    for item in items:
        if not item.is_scoreable:
            excluded += 1
            continue
        scoreable += 1
        earned += Decimal(str(item_value(item.selected_choice, item.coefficient)))
        maximum += Decimal(str(item.coefficient))

    return ScoreAggregate(
        earned=float(earned),
        max_score=float(maximum),
        percentage=calculate_percentage(earned, maximum),
        scoreable_items=scoreable,
        excluded_items=excluded,
    )


def score_section(section: Section) -> SectionScore:
    """A section with nothing scoreable (all NA) scores 0, not 100 and not None"""
    aggregate = score_items(section.items)
    return SectionScore(
        section_id=section.section_id,
        section_name=section.section_name,
        section_number=section.section_number,
        earned=aggregate.earned,
        max_score=aggregate.max_score,
        percentage=aggregate.percentage,
        scoreable_items=aggregate.scoreable_items,
        excluded_items=aggregate.excluded_items,
    )


def score_overall(section_scores: Iterable[SectionScore]) -> ScoreAggregate:
    """earned/max rollup across sections, never an average of percentages"""
    earned = Decimal("0")
    maximum = Decimal("0")
    scoreable = 0
    excluded = 0
    for score in section_scores:
        earned += Decimal(str(score.earned))
        maximum += Decimal(str(score.max_score))
        scoreable += score.scoreable_items
        excluded += score.excluded_items
    return ScoreAggregate(
        earned=float(earned),
        max_score=float(maximum),
        percentage=calculate_percentage(earned, maximum),
        scoreable_items=scoreable,
        excluded_items=excluded,
    )


def rollup_figures(members: Sequence[ScoreFigures]) -> Tuple[ScoreFigures, CategoryScoreMethod]:
    """
    Combine member figures into one

    Weighted whenever at least one member has earned/max; members without
    them are then left out. Only when no member has earned/max are the
    available percentages averaged.
    """
    weighted = [m for m in members if m.is_weighted]
    if weighted:
        earned = sum((Decimal(str(m.earned)) for m in weighted), Decimal("0"))
        maximum = sum((Decimal(str(m.max_score)) for m in weighted), Decimal("0"))
        return (
            ScoreFigures(earned=float(earned), max_score=float(maximum), percentage=calculate_percentage(earned, maximum)),
            CategoryScoreMethod.WEIGHTED,
        )

    percentages = [Decimal(str(m.percentage)) for m in members if m.percentage is not None]
    if percentages:
        average = sum(percentages, Decimal("0")) / len(percentages)
        return ScoreFigures(percentage=round2(average)), CategoryScoreMethod.AVERAGED

    return ScoreFigures(), CategoryScoreMethod.NO_DATA


def score_category(category: Category, members: Sequence[ScoreFigures]) -> CategoryScore:
    figures, method = rollup_figures(members)
    if method is CategoryScoreMethod.AVERAGED:
        logger.debug(f"Category {category.category_name} averaged: member sections carry no earned/max")
    return CategoryScore(
        category_id=category.category_id,
        category_name=category.category_name,
        percentage=figures.percentage,
        method=method,
        earned=figures.earned,
        max_score=figures.max_score,
        section_ids=list(category.section_ids),
    )


def evaluate(percentage: Optional[float], threshold: Optional[float] = None) -> ScoreStatus:
    """PASS when percentage >= threshold, inclusive"""
    limit = DEFAULT_PASSING_GRADE if threshold is None else threshold
    if percentage is None:
        return ScoreStatus.FAIL
    return ScoreStatus.PASS if percentage >= limit else ScoreStatus.FAIL
