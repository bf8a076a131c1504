"""
Canonical audit data model

Everything downstream of the normalizer works on these types only.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from d0_gateway.types import RecordShape


class Choice(str, Enum):
    """Selected answer, canonicalized; EMPTY means the question was left unanswered"""

    YES = "Yes"
    PARTIALLY = "Partially"
    NO = "No"
    NA = "NA"
    EMPTY = ""

    @property
    def credit(self) -> Optional[float]:
        """Share of the coefficient earned by this answer, None when not applicable"""
        return _CHOICE_CREDIT[self]

    @property
    def is_scoreable(self) -> bool:
        """NA and unanswered items count in neither numerator nor denominator"""
        return self in (Choice.YES, Choice.PARTIALLY, Choice.NO)

    @property
    def is_finding(self) -> bool:
        return self in (Choice.NO, Choice.PARTIALLY)


_CHOICE_CREDIT = {
    Choice.YES: 1.0,
    Choice.PARTIALLY: 0.5,
    Choice.NO: 0.0,
    Choice.NA: None,
    Choice.EMPTY: 0.0,
}


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return {Priority.HIGH: 1, Priority.MEDIUM: 2, Priority.LOW: 3}[self]


class ReadingType(str, Enum):
    GOOD = "good"
    BAD = "bad"


class AuditItem(BaseModel):
    """One question/response pair"""

    model_config = ConfigDict(frozen=True)

    id: str
    reference_value: str
    title: str
    coefficient: float = 2.0
    selected_choice: Choice = Choice.EMPTY
    comment: Optional[str] = None
    finding: Optional[str] = None
    corrective_action: Optional[str] = None
    priority: Optional[Priority] = None
    source_shape: RecordShape = RecordShape.SHAREPOINT_JSON

    @computed_field
    @property
    def value(self) -> Optional[float]:
        """Earned points, always derived from choice and coefficient"""
        credit = self.selected_choice.credit
        if credit is None:
            return None
        return credit * self.coefficient

    @property
    def is_scoreable(self) -> bool:
        return self.selected_choice.is_scoreable

    @property
    def has_finding_text(self) -> bool:
        return bool(self.finding or self.corrective_action)


class Section(BaseModel):
    """A named, ordered group of audit items; scores are computed, never stored here"""

    section_id: str
    section_name: str
    section_number: int = 0
    icon: Optional[str] = None
    items: List[AuditItem] = Field(default_factory=list)
    skipped_records: int = 0
    warnings: List[str] = Field(default_factory=list)


class Category(BaseModel):
    """Optional grouping of sections for rollup display"""

    category_id: str
    category_name: str
    display_order: int = 0
    section_ids: List[str] = Field(default_factory=list)


class FridgeReading(BaseModel):
    """A temperature check, tied to an audit response by raw foreign key"""

    reading_id: str
    response_id: Optional[str] = None
    reference_value: Optional[str] = None
    section: Optional[str] = None
    unit: Optional[str] = None
    display_temp: Optional[str] = None
    probe_temp: Optional[str] = None
    issue: Optional[str] = None
    pictures: List[str] = Field(default_factory=list)
    reading_type: ReadingType = ReadingType.BAD
    created: Optional[datetime] = None


class AuditMeta(BaseModel):
    """Header information of the audit being rendered"""

    document_number: str
    store_name: str
    store_code: Optional[str] = None
    store_id: Optional[str] = None
    schema_id: Optional[str] = None
    schema_name: Optional[str] = None
    report_title: str = "Food Safety Audit Report"
    audit_date: Optional[str] = None
    time_in: Optional[str] = None
    time_out: Optional[str] = None
    cycle: Optional[str] = None
    year: Optional[int] = None
    auditors: Optional[str] = None
    accompanied_by: Optional[str] = None
    status: Optional[str] = None
    stored_total_score: Optional[float] = None
