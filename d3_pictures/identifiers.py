"""
Composite picture identifiers

Pictures in the SharePoint library carry one string encoding
``{store}-{docType}-{docNum}-{questionId}``, e.g. ``GMRL-FSACR-0048-87``:

- the document number is the first three hyphen-delimited segments, and only
  exists when there are at least four segments
- the question id is always the last segment, or the whole string when it
  has no hyphen

This is the only place that splits such strings.
"""

from dataclasses import dataclass
from typing import Any, Optional

SEPARATOR = "-"
DOCUMENT_SEGMENTS = 3


@dataclass(frozen=True)
class CompositeId:
    raw: str
    question_id: str
    document_number: Optional[str] = None

    @property
    def is_composite(self) -> bool:
        return self.document_number is not None


def parse_composite_id(identifier: Any) -> CompositeId:
    text = "" if identifier is None else str(identifier).strip()
    parts = text.split(SEPARATOR)
    document_number = None
    if len(parts) > DOCUMENT_SEGMENTS:
        document_number = SEPARATOR.join(parts[:DOCUMENT_SEGMENTS])
    return CompositeId(raw=text, question_id=parts[-1], document_number=document_number)


def question_id_of(identifier: Any) -> str:
    return parse_composite_id(identifier).question_id


def document_number_of(identifier: Any) -> Optional[str]:
    return parse_composite_id(identifier).document_number


def belongs_to(identifier: Any, document_number: str) -> bool:
    """False for identifiers too short to carry a document number"""
    parsed = parse_composite_id(identifier)
    return parsed.is_composite and parsed.document_number == document_number
