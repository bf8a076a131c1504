"""
Historical audit snapshots
"""
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.exceptions import MalformedInputError
from core.utils import to_decimal
from d2_scoring.models import CategoryScoreMethod, ScoreFigures

NO_DATA = "No Data"


def _number(value: Any) -> Optional[float]:
    number = to_decimal(value)
    return float(number) if number is not None else None


def _created(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


class HistoricalSectionScore(BaseModel):
    """earned/max are absent for legacy rows that only kept a percentage"""

    earned: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None

    def figures(self) -> ScoreFigures:
        return ScoreFigures(earned=self.earned, max_score=self.max_score, percentage=self.percentage)


class HistoricalRecord(BaseModel):
    document_number: str
    store_name: Optional[str] = None
    cycle: Optional[str] = None
    year: Optional[int] = None
    total_score: Optional[float] = None
    created: Optional[datetime] = None
    section_scores: Dict[str, HistoricalSectionScore] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HistoricalRecord":
        """
        Raises:
            MalformedInputError: When section_scores is not a mapping
        """
        section_scores = row.get("section_scores") or {}
        if not isinstance(section_scores, Mapping):
            raise MalformedInputError(
                f"section_scores of {row.get('document_number')} is a {type(section_scores).__name__}, not a mapping",
                source="store history",
            )

        scores = {}
        for name, raw in section_scores.items():
            if isinstance(raw, Mapping):
                scores[str(name)] = HistoricalSectionScore(
                    earned=_number(raw.get("earned")),
                    max_score=_number(raw.get("max")),
                    percentage=_number(raw.get("percentage")),
                )
            else:
                scores[str(name)] = HistoricalSectionScore(percentage=_number(raw))

        year = _number(row.get("year"))
        return cls(
            document_number=str(row.get("document_number") or "").strip(),
            store_name=row.get("store_name"),
            cycle=str(row["cycle"]).strip() if row.get("cycle") else None,
            year=int(year) if year is not None else None,
            total_score=_number(row.get("total_score")),
            created=_created(row.get("created")),
            section_scores=scores,
        )


class CycleColumn(BaseModel):
    """Header of one historical column"""

    code: str
    document_number: Optional[str] = None
    cycle_label: Optional[str] = None
    year: Optional[int] = None

    @property
    def has_data(self) -> bool:
        return self.document_number is not None


class HistoricalValue(BaseModel):
    """One cell: a percentage, or None rendered as "No Data" (never as 0%)"""

    code: str
    percentage: Optional[float] = None
    method: Optional[CategoryScoreMethod] = None

    @property
    def display(self) -> str:
        return NO_DATA if self.percentage is None else f"{self.percentage:.2f}%"


class HistoricalSeries(BaseModel):
    label: str
    values: List[HistoricalValue] = Field(default_factory=list)
