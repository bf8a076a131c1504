"""
Report assembler

Composes normalized sections, scores, pictures, fridge readings and history
into one ReportDocument. Every section and every gallery is built on its
own; a failure there becomes a placeholder carrying the error instead of
aborting the document.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from core.logging import get_logger
from core.utils import natural_sort_key
from d0_gateway.section_config import TemperatureQuestion
from d1_ingest.models import AuditItem, AuditMeta, Category, FridgeReading, ReadingType, Section
from d2_scoring.constants import FAIL_COLOR, PASS_COLOR
from d2_scoring.engine import evaluate, score_category, score_overall, score_section
from d2_scoring.models import ScoreStatus, SectionScore, Thresholds
from d3_pictures.associator import PictureIndex, PictureType
from d3_pictures.identifiers import question_id_of
from d4_history.aggregator import HistoricalAggregator
from d4_history.repetitive import RepetitiveFindingIndex

from .models import (
    UNCATEGORIZED_ID,
    UNCATEGORIZED_NAME,
    CategoryReport,
    ChartPoint,
    FindingRow,
    Gallery,
    GalleryEntry,
    GenerationMetadata,
    ItemRow,
    ReportDocument,
    SectionReport,
    SummaryRow,
    SummaryTable,
    TemperatureTable,
)

logger = get_logger(__name__, domain="d5")

_NO_PRIORITY_RANK = 4


@dataclass
class AssemblyInputs:
    """Everything the assembler needs, already fetched and normalized"""

    meta: AuditMeta
    sections: List[Section]
    thresholds: Thresholds
    pictures: PictureIndex = field(default_factory=PictureIndex)
    fridge_readings: List[FridgeReading] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    history: Optional[HistoricalAggregator] = None
    repetitive: Optional[RepetitiveFindingIndex] = None
    temperature_question: TemperatureQuestion = field(default_factory=TemperatureQuestion)
    gallery_error: Optional[str] = None
    metadata: GenerationMetadata = field(default_factory=GenerationMetadata)


def is_finding(item: AuditItem) -> bool:
    """No or Partially, with something written about it"""
    return item.selected_choice.is_finding and item.has_finding_text


def severity_class(item: AuditItem) -> str:
    return f"priority-{item.priority.value.lower()}" if item.priority else ""


def action_plan_key(row: FindingRow) -> Tuple:
    rank = row.priority.rank if row.priority else _NO_PRIORITY_RANK
    return (rank, row.section_number, natural_sort_key(row.reference_value))


class ReportAssembler:
    """Pure composition, no I/O"""

    def assemble(self, inputs: AssemblyInputs) -> ReportDocument:
        history = inputs.history or HistoricalAggregator([], inputs.meta.document_number)
        sections = sorted(inputs.sections, key=lambda s: (s.section_number, natural_sort_key(s.section_name)))
        fridge_by_item = self._attach_readings(sections, inputs.fridge_readings, inputs.temperature_question)

        section_reports = [self._safe_section(section, inputs, fridge_by_item) for section in sections]
        scored = [r.score for r in section_reports if r.score is not None]
        total = score_overall(scored)
        overall_status = evaluate(total.percentage, inputs.thresholds.overall)

        categories = self._build_categories(section_reports, inputs.categories, inputs.thresholds)
        galleries = {
            picture_type: self._safe_gallery(picture_type, sections, inputs)
            for picture_type in (PictureType.GOOD, PictureType.FINDING, PictureType.CORRECTIVE)
        }

        findings = [row for report in section_reports for row in report.findings]
        warnings = list(inputs.metadata.warnings)
        for report in section_reports:
            warnings.extend(report.warnings)
        metadata = inputs.metadata.model_copy(update={"warnings": warnings})

        logger.with_context(document_number=inputs.meta.document_number).info(
            f"Assembled {len(section_reports)} sections, {len(findings)} findings, total {total.percentage}%"
        )

        return ReportDocument(
            audit_meta=inputs.meta,
            sections=section_reports,
            categories=categories,
            galleries=galleries,
            summary=self._build_summary(section_reports, categories, total.percentage, overall_status, history),
            historical=list(history.records),
            total=total,
            overall_status=overall_status,
            thresholds=inputs.thresholds,
            action_plan=sorted(findings, key=action_plan_key),
            chart=self._build_chart(section_reports),
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _safe_section(
        self, section: Section, inputs: AssemblyInputs, fridge_by_item: Dict[str, List[FridgeReading]]
    ) -> SectionReport:
        try:
            return self.build_section(section, inputs, fridge_by_item)
        except Exception as e:
            logger.error(f"Section {section.section_name} could not be assembled: {e}", exc_info=True)
            return SectionReport(
                section_id=section.section_id,
                section_name=section.section_name,
                section_number=section.section_number,
                icon=section.icon,
                warnings=[f"Section {section.section_name} could not be rendered"],
                error=str(e) or e.__class__.__name__,
            )

    def build_section(
        self,
        section: Section,
        inputs: AssemblyInputs,
        fridge_by_item: Optional[Dict[str, List[FridgeReading]]] = None,
    ) -> SectionReport:
        fridge_by_item = fridge_by_item or {}
        score = score_section(section)
        threshold = inputs.thresholds.for_section(section.section_id)

        items = []
        findings = []
        temperature_tables = []
        for item in section.items:
            pictures = inputs.pictures.for_item(item)
            items.append(
                ItemRow(
                    item_id=item.id,
                    question_id=question_id_of(item.id),
                    reference_value=item.reference_value,
                    title=item.title,
                    coefficient=item.coefficient,
                    selected_choice=item.selected_choice,
                    value=item.value,
                    comment=item.comment,
                    finding=item.finding,
                    corrective_action=item.corrective_action,
                    priority=item.priority,
                    pictures=pictures,
                )
            )

            if is_finding(item):
                findings.append(
                    FindingRow(
                        section_id=section.section_id,
                        section_name=section.section_name,
                        section_number=section.section_number,
                        item_id=item.id,
                        reference_value=item.reference_value,
                        title=item.title,
                        selected_choice=item.selected_choice,
                        coefficient=item.coefficient,
                        value=item.value,
                        finding=item.finding,
                        corrective_action=item.corrective_action,
                        comment=item.comment,
                        priority=item.priority,
                        severity_class=severity_class(item),
                        needs_corrective_action=item.is_scoreable and (item.value or 0) < item.coefficient,
                        finding_pictures=pictures.finding,
                        corrective_pictures=pictures.corrective,
                        repetitive=inputs.repetitive.lookup(item) if inputs.repetitive else None,
                    )
                )

            readings = fridge_by_item.get(self._item_key(section, item))
            if readings:
                temperature_tables.append(
                    TemperatureTable(
                        item_id=item.id,
                        reference_value=item.reference_value,
                        title=item.title,
                        bad=[r for r in readings if r.reading_type is ReadingType.BAD],
                        good=[r for r in readings if r.reading_type is ReadingType.GOOD],
                    )
                )

        return SectionReport(
            section_id=section.section_id,
            section_name=section.section_name,
            section_number=section.section_number,
            icon=section.icon,
            score=score,
            threshold=threshold,
            status=evaluate(score.percentage, threshold),
            items=items,
            findings=findings,
            temperature_tables=temperature_tables,
            warnings=list(section.warnings),
        )

    @staticmethod
    def _item_key(section: Section, item: AuditItem) -> str:
        return f"{section.section_id}::{item.id}"

    def _attach_readings(
        self,
        sections: Sequence[Section],
        readings: Sequence[FridgeReading],
        question: TemperatureQuestion,
    ) -> Dict[str, List[FridgeReading]]:
        """
        Readings by the item they belong to

        A reading joins on its raw response id. Readings without one go to
        the temperature-monitoring question.
        """
        by_item: Dict[str, List[FridgeReading]] = {}
        if not readings:
            return by_item

        keys_by_id: Dict[str, str] = {}
        temperature_key: Optional[str] = None
        phrase = question.title_contains.lower()
        for section in sections:
            for item in section.items:
                key = self._item_key(section, item)
                keys_by_id.setdefault(item.id, key)
                if temperature_key is None and (
                    phrase in item.title.lower() or item.reference_value == question.reference_value
                ):
                    temperature_key = key

        unmatched = 0
        for reading in readings:
            key = keys_by_id.get(reading.response_id) if reading.response_id else temperature_key
            if key is None:
                unmatched += 1
                continue
            by_item.setdefault(key, []).append(reading)

        if unmatched:
            logger.debug(f"{unmatched} fridge reading(s) matched no audit item")
        return by_item

    # ------------------------------------------------------------------
    # Galleries
    # ------------------------------------------------------------------

    def _safe_gallery(self, picture_type: PictureType, sections: Sequence[Section], inputs: AssemblyInputs) -> Gallery:
        if inputs.gallery_error:
            return Gallery(picture_type=picture_type, error=inputs.gallery_error)
        try:
            return self.build_gallery(picture_type, sections, inputs.pictures)
        except Exception as e:
            logger.error(f"{picture_type.value} gallery could not be assembled: {e}", exc_info=True)
            return Gallery(picture_type=picture_type, error=str(e) or e.__class__.__name__)

    def build_gallery(self, picture_type: PictureType, sections: Sequence[Section], pictures: PictureIndex) -> Gallery:
        """All pictures of one type across sections, in natural reference order"""
        entries = []
        matched_questions = set()
        for section in sections:
            for item in section.items:
                question_id = question_id_of(item.id)
                matched_questions.add(question_id)
                for picture in getattr(pictures.for_item(item), picture_type.value):
                    entries.append(
                        GalleryEntry(
                            picture=picture,
                            section_name=section.section_name,
                            section_number=section.section_number,
                            reference_value=item.reference_value,
                            title=item.title,
                        )
                    )

        # Pictures of questions missing from the answers still show, after the matched ones
        for picture in pictures.pictures():
            if picture.picture_type is picture_type and picture.question_id not in matched_questions:
                entries.append(GalleryEntry(picture=picture))

        entries.sort(
            key=lambda e: (
                e.reference_value is None,
                natural_sort_key(e.reference_value),
                e.section_number or 0,
            )
        )
        return Gallery(picture_type=picture_type, entries=entries)

    # ------------------------------------------------------------------
    # Categories, summary, chart
    # ------------------------------------------------------------------

    def _build_categories(
        self,
        section_reports: Sequence[SectionReport],
        categories: Sequence[Category],
        thresholds: Thresholds,
    ) -> List[CategoryReport]:
        scores: Dict[str, SectionScore] = {r.section_id: r.score for r in section_reports if r.score is not None}
        assigned = set()
        reports = []

        for category in sorted(categories, key=lambda c: (c.display_order, c.category_name)):
            member_ids = [sid for sid in category.section_ids if sid in scores and sid not in assigned]
            if not member_ids:
                continue
            assigned.update(member_ids)
            reports.append(self._category_report(category.model_copy(update={"section_ids": member_ids}), scores, thresholds))

        leftover = [r.section_id for r in section_reports if r.section_id in scores and r.section_id not in assigned]
        if leftover:
            synthetic = Category(
                category_id=UNCATEGORIZED_ID,
                category_name=UNCATEGORIZED_NAME,
                display_order=max((c.display_order for c in categories), default=0) + 1,
                section_ids=leftover,
            )
            reports.append(self._category_report(synthetic, scores, thresholds, is_uncategorized=True))
        return reports

    @staticmethod
    def _category_report(
        category: Category,
        scores: Dict[str, SectionScore],
        thresholds: Thresholds,
        is_uncategorized: bool = False,
    ) -> CategoryReport:
        # Current scores always carry earned/max, so this is the weighted branch
        score = score_category(category, [scores[sid].figures() for sid in category.section_ids])
        return CategoryReport(
            category_id=category.category_id,
            category_name=category.category_name,
            display_order=category.display_order,
            score=score,
            threshold=thresholds.category,
            status=evaluate(score.percentage, thresholds.category) if score.percentage is not None else None,
            section_ids=list(category.section_ids),
            is_uncategorized=is_uncategorized,
        )

    @staticmethod
    def _build_summary(
        section_reports: Sequence[SectionReport],
        categories: Sequence[CategoryReport],
        total_percentage: float,
        overall_status: ScoreStatus,
        history: HistoricalAggregator,
    ) -> SummaryTable:
        by_id = {r.section_id: r for r in section_reports}
        rows = []
        for category in categories:
            members = [by_id[sid] for sid in category.section_ids if sid in by_id]
            rows.append(
                SummaryRow(
                    kind="category",
                    label=category.category_name,
                    current=category.score.percentage,
                    status=category.status,
                    historical=history.category_series(
                        category.category_name, [m.section_name for m in members]
                    ).values,
                )
            )
            for member in members:
                rows.append(
                    SummaryRow(
                        kind="section",
                        label=member.section_name,
                        current=member.score.percentage if member.score else None,
                        status=member.status,
                        historical=history.section_series(member.section_name).values,
                    )
                )

        rows.append(
            SummaryRow(
                kind="total",
                label="Total",
                current=total_percentage,
                status=overall_status,
                historical=history.total_series().values,
            )
        )
        return SummaryTable(columns=history.columns(), rows=rows)

    @staticmethod
    def _build_chart(section_reports: Sequence[SectionReport]) -> List[ChartPoint]:
        return [
            ChartPoint(
                label=report.section_name,
                percentage=report.score.percentage,
                threshold=report.threshold,
                color=PASS_COLOR if report.status is ScoreStatus.PASS else FAIL_COLOR,
            )
            for report in section_reports
            if report.score is not None and report.threshold is not None
        ]
