"""
D5 Reports Generator

Coordinates fetching, normalization, scoring and assembly of one audit
report within a timeout. Independent fetches run concurrently and each one
that fails degrades only its own piece of the document.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.config import get_settings
from core.exceptions import AuditReportError, FatalInputError, MalformedInputError
from core.logging import get_logger
from d0_gateway.base import AuditDataSource
from d0_gateway.images import ImageFetcher
from d0_gateway.section_config import TemperatureQuestion
from d0_gateway.settings_store import SqlSettingsStore
from d0_gateway.types import SourceKind
from d1_ingest.models import AuditMeta, Category, FridgeReading, Section
from d1_ingest.normalizer import build_section, normalize_audit_meta, normalize_categories, normalize_fridge_reading
from d2_scoring.thresholds import ThresholdResolver
from d3_pictures.associator import PictureIndex, associate
from d4_history.aggregator import HistoricalAggregator
from d4_history.repetitive import RepetitiveFindingIndex

from .assembler import AssemblyInputs, ReportAssembler
from .models import GenerationMetadata, ReportDocument

logger = get_logger(__name__, domain="d5")


@dataclass
class GenerationOptions:
    """Options for report generation"""

    timeout_seconds: Optional[float] = None
    embed_images: bool = True
    include_history: bool = True
    include_repetitive: bool = True


@dataclass
class GenerationResult:
    """Result of report generation"""

    success: bool
    document: Optional[ReportDocument] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    generation_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization"""
        return {
            "success": self.success,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "warnings": list(self.warnings),
            "generation_time_seconds": self.generation_time_seconds,
            "document": self.document.to_dict() if self.document else None,
        }


class ReportGenerator:
    """
    Main report generator

    Args:
        source: Record source of audits, pictures and history
        threshold_resolver: Passing grades; backed by the SQL settings table
            for the SQL source and by defaults otherwise
        image_fetcher: Inlines remote pictures; pre-resolved SQL picture
            URLs are never downloaded
        temperature_question: Question that collects unattached fridge readings
        assembler: Pure document composition
    """

    def __init__(
        self,
        source: AuditDataSource,
        threshold_resolver: Optional[ThresholdResolver] = None,
        image_fetcher: Optional[ImageFetcher] = None,
        temperature_question: Optional[TemperatureQuestion] = None,
        assembler: Optional[ReportAssembler] = None,
    ):
        self.source = source
        if threshold_resolver is None:
            store = SqlSettingsStore() if source.kind is SourceKind.SQL else None
            threshold_resolver = ThresholdResolver(store=store)
        self.threshold_resolver = threshold_resolver
        if image_fetcher is None and source.kind is not SourceKind.SQL:
            image_fetcher = ImageFetcher(source.download_file)
        self.image_fetcher = image_fetcher
        if temperature_question is None:
            # List-based sources carry the section mapping; SQL keeps the default question
            config = getattr(source, "config", None)
            temperature_question = config.temperature_question if config is not None else TemperatureQuestion()
        self.temperature_question = temperature_question
        self.assembler = assembler or ReportAssembler()

    async def generate_report(
        self, document_number: Optional[str], options: Optional[GenerationOptions] = None
    ) -> GenerationResult:
        """
        Generate the report document of one audit

        Never raises; every failure is returned as an unsuccessful result.
        """
        options = options or GenerationOptions()
        timeout = options.timeout_seconds or get_settings().report_timeout_seconds
        start_time = time.time()

        try:
            if not document_number or not str(document_number).strip():
                raise FatalInputError("A document number is required to generate a report")
            document_number = str(document_number).strip()

            document = await asyncio.wait_for(self._generate(document_number, options, start_time), timeout=timeout)
            elapsed = time.time() - start_time
            logger.info(f"Report for {document_number} generated in {elapsed:.2f}s")
            return GenerationResult(
                success=True,
                document=document,
                warnings=list(document.metadata.warnings),
                generation_time_seconds=elapsed,
            )

        except asyncio.TimeoutError:
            elapsed = time.time() - start_time
            logger.error(f"Report generation for {document_number} timed out after {timeout}s")
            return GenerationResult(
                success=False,
                error_code="TIMEOUT",
                error_message=f"Report generation timed out after {timeout} seconds",
                generation_time_seconds=elapsed,
            )
        except FatalInputError as e:
            logger.error(f"Report generation refused: {e.message}")
            return GenerationResult(
                success=False,
                error_code=e.error_code,
                error_message=e.message,
                generation_time_seconds=time.time() - start_time,
            )
        except AuditReportError as e:
            logger.error(f"Report generation for {document_number} failed: {e.message}")
            return GenerationResult(
                success=False,
                error_code=e.error_code,
                error_message=e.message,
                generation_time_seconds=time.time() - start_time,
            )
        except Exception as e:
            logger.error(f"Report generation for {document_number} failed: {str(e)}", exc_info=True)
            return GenerationResult(
                success=False,
                error_code="GENERATION_FAILED",
                error_message=f"Report generation failed: {str(e)}",
                generation_time_seconds=time.time() - start_time,
            )

    async def _generate(self, document_number: str, options: GenerationOptions, start_time: float) -> ReportDocument:
        log = logger.with_context(document_number=document_number)
        warnings: List[str] = []

        meta = await self._load_meta(document_number, warnings)

        (
            raw_sections,
            picture_records,
            reading_records,
            category_rows,
            thresholds,
            history,
            repetitive,
        ) = await asyncio.gather(
            self.source.get_sections(document_number),
            self.source.get_pictures(document_number),
            self.source.get_fridge_readings(document_number),
            self.source.get_categories(meta.schema_id),
            self.threshold_resolver.get_thresholds(meta.schema_id),
            self._load_history(meta, options),
            self._load_repetitive(meta, options),
            return_exceptions=True,
        )

        # Without sections there is no report to render
        if isinstance(raw_sections, BaseException):
            raise raw_sections
        sections = self._build_sections(raw_sections)

        gallery_error = None
        pictures = PictureIndex()
        try:
            if isinstance(picture_records, BaseException):
                raise picture_records
            pictures = associate(picture_records, document_number)
        except Exception as e:
            gallery_error = self._degrade("Pictures", e, warnings)

        image_failures = 0
        if options.embed_images and self.image_fetcher is not None and len(pictures):
            failures_before = self.image_fetcher.failures
            data_urls = await self.image_fetcher.fetch_all(pictures.remote_urls())
            pictures = pictures.with_data_urls(data_urls)
            image_failures = self.image_fetcher.failures - failures_before
            if image_failures:
                warnings.append(f"{image_failures} picture(s) could not be embedded and link to the source instead")

        fridge_readings: List[FridgeReading] = []
        try:
            if isinstance(reading_records, BaseException):
                raise reading_records
            fridge_readings = self._normalize_readings(reading_records)
        except Exception as e:
            self._degrade("Fridge readings", e, warnings)

        categories: List[Category] = []
        try:
            if isinstance(category_rows, BaseException):
                raise category_rows
            categories = normalize_categories(category_rows)
        except Exception as e:
            self._degrade("Categories", e, warnings)

        if isinstance(thresholds, BaseException):
            thresholds = self.threshold_resolver.defaults(
                warning=self._degrade("Passing grades", thresholds, warnings)
            )
        elif thresholds.warning:
            warnings.append(thresholds.warning)

        if isinstance(history, BaseException):
            history = HistoricalAggregator([], document_number, warning=self._degrade("History", history, warnings))
        elif history.warning:
            warnings.append(history.warning)

        if isinstance(repetitive, BaseException):
            repetitive = RepetitiveFindingIndex(warning=self._degrade("Repetitive findings", repetitive, warnings))
        elif repetitive is not None and repetitive.warning:
            warnings.append(repetitive.warning)

        metadata = GenerationMetadata(
            source=self.source.name,
            skipped_records=sum(s.skipped_records for s in sections),
            image_failures=image_failures,
            warnings=warnings,
        )
        document = self.assembler.assemble(
            AssemblyInputs(
                meta=meta,
                sections=sections,
                thresholds=thresholds,
                pictures=pictures,
                fridge_readings=fridge_readings,
                categories=categories,
                history=history,
                repetitive=repetitive,
                temperature_question=self.temperature_question,
                gallery_error=gallery_error,
                metadata=metadata,
            )
        )

        elapsed_ms = (time.time() - start_time) * 1000
        log.info(f"Assembled report with {len(document.metadata.warnings)} warning(s)")
        return document.model_copy(
            update={"metadata": document.metadata.model_copy(update={"generation_time_ms": elapsed_ms})}
        )

    async def _load_meta(self, document_number: str, warnings: List[str]) -> AuditMeta:
        try:
            header = await self.source.get_audit_header(document_number)
        except Exception as e:
            self._degrade("Audit header", e, warnings)
            header = None
        else:
            if header is None:
                warnings.append(f"No audit header found for {document_number}")
                logger.warning(f"No audit header found for {document_number}, metadata synthesized")
        return normalize_audit_meta(header, document_number)

    async def _load_history(self, meta: AuditMeta, options: GenerationOptions) -> HistoricalAggregator:
        if not options.include_history:
            return HistoricalAggregator([], meta.document_number)
        return await HistoricalAggregator.load(self.source, meta.store_name, meta.document_number)

    async def _load_repetitive(self, meta: AuditMeta, options: GenerationOptions) -> Optional[RepetitiveFindingIndex]:
        if not options.include_repetitive:
            return None
        return await RepetitiveFindingIndex.load(self.source, meta.store_name, meta.document_number)

    @staticmethod
    def _build_sections(raw_sections) -> List[Section]:
        return [build_section(raw) for raw in raw_sections]

    @staticmethod
    def _normalize_readings(records) -> List[FridgeReading]:
        readings = []
        for record in records:
            try:
                readings.append(normalize_fridge_reading(record))
            except MalformedInputError as e:
                logger.warning(f"Skipping fridge reading: {e.message}")
        return readings

    @staticmethod
    def _degrade(piece: str, error: BaseException, warnings: List[str]) -> str:
        """Record a failed piece as a warning so the rest of the document is still produced"""
        if not isinstance(error, Exception):
            raise error
        if isinstance(error, AuditReportError):
            warning = f"{piece} unavailable: {error.message}"
            logger.warning(warning)
        else:
            warning = f"{piece} unavailable: {error.__class__.__name__}: {error}"
            logger.error(warning, exc_info=error)
        warnings.append(warning)
        return warning


async def generate_report(
    source: AuditDataSource, document_number: Optional[str], options: Optional[GenerationOptions] = None
) -> GenerationResult:
    """Generate one report with a default generator for ``source``"""
    return await ReportGenerator(source).generate_report(document_number, options)


__all__ = ["GenerationOptions", "GenerationResult", "ReportGenerator", "generate_report"]
