"""
Report document model

The finished, renderer-agnostic document. Everything is computed by the
assembler and serializable with ``ReportDocument.to_dict()``.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from d1_ingest.models import AuditMeta, Choice, FridgeReading, Priority
from d2_scoring.models import CategoryScore, ScoreAggregate, ScoreStatus, SectionScore, Thresholds
from d3_pictures.associator import ItemPictures, Picture, PictureType
from d4_history.models import CycleColumn, HistoricalRecord, HistoricalValue
from d4_history.repetitive import RepetitiveFinding

UNCATEGORIZED_ID = "uncategorized"
UNCATEGORIZED_NAME = "Uncategorized"


class ItemRow(BaseModel):
    """One line of a section's main table"""

    item_id: str
    question_id: str
    reference_value: str
    title: str
    coefficient: float
    selected_choice: Choice
    value: Optional[float] = None
    comment: Optional[str] = None
    finding: Optional[str] = None
    corrective_action: Optional[str] = None
    priority: Optional[Priority] = None
    pictures: ItemPictures = Field(default_factory=ItemPictures)


class FindingRow(BaseModel):
    section_id: str
    section_name: str
    section_number: int
    item_id: str
    reference_value: str
    title: str
    selected_choice: Choice
    coefficient: float
    value: Optional[float] = None
    finding: Optional[str] = None
    corrective_action: Optional[str] = None
    comment: Optional[str] = None
    priority: Optional[Priority] = None
    severity_class: str = ""
    needs_corrective_action: bool = False
    finding_pictures: List[Picture] = Field(default_factory=list)
    corrective_pictures: List[Picture] = Field(default_factory=list)
    repetitive: Optional[RepetitiveFinding] = None

    @property
    def is_repetitive(self) -> bool:
        return self.repetitive is not None


class TemperatureTable(BaseModel):
    """Fridge readings attached to one question, split by outcome"""

    item_id: str
    reference_value: str
    title: str
    bad: List[FridgeReading] = Field(default_factory=list)
    good: List[FridgeReading] = Field(default_factory=list)


class SectionReport(BaseModel):
    section_id: str
    section_name: str
    section_number: int
    icon: Optional[str] = None
    score: Optional[SectionScore] = None
    threshold: Optional[float] = None
    status: Optional[ScoreStatus] = None
    items: List[ItemRow] = Field(default_factory=list)
    findings: List[FindingRow] = Field(default_factory=list)
    temperature_tables: List[TemperatureTable] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.error is not None


class GalleryEntry(BaseModel):
    picture: Picture
    section_name: Optional[str] = None
    section_number: Optional[int] = None
    reference_value: Optional[str] = None
    title: Optional[str] = None


class Gallery(BaseModel):
    picture_type: PictureType
    entries: List[GalleryEntry] = Field(default_factory=list)
    error: Optional[str] = None


class CategoryReport(BaseModel):
    category_id: str
    category_name: str
    display_order: int = 0
    score: CategoryScore
    threshold: float
    status: Optional[ScoreStatus] = None
    section_ids: List[str] = Field(default_factory=list)
    is_uncategorized: bool = False


class SummaryRow(BaseModel):
    kind: str  # "category", "section" or "total"
    label: str
    current: Optional[float] = None
    status: Optional[ScoreStatus] = None
    historical: List[HistoricalValue] = Field(default_factory=list)


class SummaryTable(BaseModel):
    columns: List[CycleColumn] = Field(default_factory=list)
    rows: List[SummaryRow] = Field(default_factory=list)


class ChartPoint(BaseModel):
    label: str
    percentage: float
    threshold: float
    color: str


class GenerationMetadata(BaseModel):
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = ""
    skipped_records: int = 0
    image_failures: int = 0
    generation_time_ms: float = 0.0
    warnings: List[str] = Field(default_factory=list)


class ReportDocument(BaseModel):
    """Immutable once assembled"""

    model_config = ConfigDict(frozen=True)

    audit_meta: AuditMeta
    sections: List[SectionReport]
    categories: List[CategoryReport]
    galleries: Dict[PictureType, Gallery]
    summary: SummaryTable
    historical: List[HistoricalRecord]
    total: ScoreAggregate
    overall_status: ScoreStatus
    thresholds: Thresholds
    action_plan: List[FindingRow]
    chart: List[ChartPoint]
    metadata: GenerationMetadata

    @property
    def total_score(self) -> float:
        return self.total.percentage

    def section(self, section_id: str) -> Optional[SectionReport]:
        return next((s for s in self.sections if s.section_id == section_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
