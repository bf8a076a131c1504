"""
Gateway types

Raw, source-shaped payloads handed from the record sources to the ingest
layer. Nothing past d1_ingest operates on these.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RecordShape(str, Enum):
    """Known shapes of a single question/answer record"""

    SHAREPOINT_JSON = "sharepoint_json"  # entry of a list item's ResponseJSON array
    RELATIONAL_ROW = "relational_row"  # AuditResponses row
    DEBUG_JSON = "debug_json"  # pre-processed entry from a frozen debug dump


class SourceKind(str, Enum):
    SQL = "sql"
    SHAREPOINT = "sharepoint"
    DEBUG = "debug"


class RawSection(BaseModel):
    """
    One section as delivered by a record source

    ``records`` are already one-dict-per-question; ``answer_items`` are list
    items whose ``ResponseJSON`` field still has to be parsed.
    """

    section_id: str
    section_name: str
    section_number: int = 0
    icon: Optional[str] = None
    shape: Optional[RecordShape] = None
    records: List[Dict[str, Any]] = Field(default_factory=list)
    answer_items: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
