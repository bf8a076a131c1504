"""
Score result types

Plain frozen dataclasses; every figure here is computed by the engine from
items and never read back from storage.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import DEFAULT_PASSING_GRADE


class ScoreStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class CategoryScoreMethod(str, Enum):
    """How a category percentage was obtained"""

    WEIGHTED = "weighted"  # sum(earned) / sum(max) over member sections
    AVERAGED = "averaged"  # mean of member percentages, legacy data without earned/max
    NO_DATA = "no_data"


@dataclass(frozen=True)
class ScoreFigures:
    """Earned/max/percentage of anything scored; earned and max may be unknown for legacy rows"""

    earned: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None

    @property
    def is_weighted(self) -> bool:
        return self.earned is not None and self.max_score is not None


@dataclass(frozen=True)
class ScoreAggregate:
    earned: float
    max_score: float
    percentage: float
    scoreable_items: int = 0
    excluded_items: int = 0

    def figures(self) -> ScoreFigures:
        return ScoreFigures(earned=self.earned, max_score=self.max_score, percentage=self.percentage)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SectionScore:
    section_id: str
    section_name: str
    section_number: int
    earned: float
    max_score: float
    percentage: float
    scoreable_items: int = 0
    excluded_items: int = 0

    def figures(self) -> ScoreFigures:
        return ScoreFigures(earned=self.earned, max_score=self.max_score, percentage=self.percentage)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CategoryScore:
    category_id: str
    category_name: str
    percentage: Optional[float]
    method: CategoryScoreMethod
    earned: Optional[float] = None
    max_score: Optional[float] = None
    section_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["method"] = self.method.value
        return data


@dataclass(frozen=True)
class Thresholds:
    """Passing grades of one schema"""

    overall: float = DEFAULT_PASSING_GRADE
    section: float = DEFAULT_PASSING_GRADE
    category: float = DEFAULT_PASSING_GRADE
    section_overrides: Dict[str, float] = field(default_factory=dict)
    from_defaults: bool = True
    warning: Optional[str] = None

    def for_section(self, section_id: Optional[str]) -> float:
        if section_id is not None and section_id in self.section_overrides:
            return self.section_overrides[section_id]
        return self.section

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
