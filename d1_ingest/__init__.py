"""
D1 Ingest - canonical audit model and answer normalization
"""
from .models import AuditItem, AuditMeta, Category, Choice, FridgeReading, Priority, ReadingType, Section
from .normalizer import (
    build_section,
    normalize_audit_meta,
    normalize_categories,
    normalize_choice,
    normalize_fridge_reading,
    normalize_record,
    parse_response_json,
)

__all__ = [
    "AuditItem",
    "AuditMeta",
    "Category",
    "Choice",
    "FridgeReading",
    "Priority",
    "ReadingType",
    "Section",
    "build_section",
    "normalize_audit_meta",
    "normalize_categories",
    "normalize_choice",
    "normalize_fridge_reading",
    "normalize_record",
    "parse_response_json",
]
