"""
D5 Reports - report assembly and generation orchestration
"""
from .assembler import AssemblyInputs, ReportAssembler
from .generator import GenerationOptions, GenerationResult, ReportGenerator, generate_report
from .models import (
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

__all__ = [
    "AssemblyInputs",
    "CategoryReport",
    "ChartPoint",
    "FindingRow",
    "Gallery",
    "GalleryEntry",
    "GenerationMetadata",
    "GenerationOptions",
    "GenerationResult",
    "ItemRow",
    "ReportAssembler",
    "ReportDocument",
    "ReportGenerator",
    "SectionReport",
    "SummaryRow",
    "SummaryTable",
    "TemperatureTable",
    "generate_report",
]
