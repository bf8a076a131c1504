"""
D2 Scoring - weighted audit scoring and passing-grade resolution
"""
from .constants import DEFAULT_PASSING_GRADE, FAIL_COLOR, PASS_COLOR
from .engine import evaluate, item_value, rollup_figures, score_category, score_items, score_overall, score_section
from .models import (
    CategoryScore,
    CategoryScoreMethod,
    ScoreAggregate,
    ScoreFigures,
    ScoreStatus,
    SectionScore,
    Thresholds,
)
from .thresholds import ThresholdResolver

__all__ = [
    "DEFAULT_PASSING_GRADE",
    "FAIL_COLOR",
    "PASS_COLOR",
    "CategoryScore",
    "CategoryScoreMethod",
    "ScoreAggregate",
    "ScoreFigures",
    "ScoreStatus",
    "SectionScore",
    "ThresholdResolver",
    "Thresholds",
    "evaluate",
    "item_value",
    "rollup_figures",
    "score_category",
    "score_items",
    "score_overall",
    "score_section",
]
