"""
Repetitive finding index

A current finding is repetitive when the same reference value was a finding
(No or Partially) in earlier audits of the same store.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from core.config import get_settings
from core.exceptions import MalformedInputError, UpstreamUnavailableError
from core.logging import get_logger
from core.utils import first_present
from d0_gateway.base import AuditDataSource
from d1_ingest.models import AuditItem
from d1_ingest.normalizer import RESPONSE_JSON_KEYS, SHAPE_ALIASES, normalize_record, parse_response_json

logger = get_logger(__name__, domain="d4")


@dataclass(frozen=True)
class RepetitiveFinding:
    reference_value: str
    count: int
    documents: List[str] = field(default_factory=list)
    overflow: int = 0

    @property
    def label(self) -> str:
        more = f" (+{self.overflow} more)" if self.overflow else ""
        return f"Found in {self.count} previous audit(s): {', '.join(self.documents)}{more}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_value": self.reference_value,
            "count": self.count,
            "documents": list(self.documents),
            "overflow": self.overflow,
        }


def finding_key(item: AuditItem) -> str:
    """Reference value, else the question title"""
    return item.reference_value or item.title


def _expand(records: Iterable[Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    """Yield answer records, unpacking list items that still hold a ResponseJSON"""
    for record in records:
        if not isinstance(record, dict):
            continue
        payload = first_present(record, *RESPONSE_JSON_KEYS)
        if payload is None:
            yield record
            continue
        document_number = record.get("DocumentNumber")
        try:
            entries = parse_response_json(payload, source=f"history {document_number}")
        except MalformedInputError as e:
            logger.warning(f"Skipping historical list item of {document_number}: {e.message}")
            continue
        for entry in entries:
            if isinstance(entry, dict):
                yield {**entry, "DocumentNumber": document_number}


class RepetitiveFindingIndex:
    """reference value -> prior documents in which it was a finding"""

    def __init__(self, display_limit: Optional[int] = None, warning: Optional[str] = None):
        self.display_limit = display_limit or get_settings().repetitive_display_limit
        self.warning = warning
        self._occurrences: Dict[str, List[str]] = OrderedDict()

    def add(self, key: str, document_number: str) -> None:
        self._occurrences.setdefault(key, []).append(document_number)

    def __len__(self) -> int:
        return len(self._occurrences)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Dict[str, Any]],
        exclude_document: str,
        display_limit: Optional[int] = None,
    ) -> "RepetitiveFindingIndex":
        index = cls(display_limit=display_limit)
        for position, record in enumerate(_expand(records), start=1):
            document_number = record.get("DocumentNumber")
            if not document_number or document_number == exclude_document:
                continue
            try:
                item = normalize_record(record, position=position)
            except MalformedInputError:
                continue
            if not item.selected_choice.is_finding:
                continue
            # A synthesized reference would be positional, so fall back to the title instead
            reference = first_present(record, *SHAPE_ALIASES[item.source_shape]["reference_value"])
            index.add(str(reference).strip() if reference is not None else item.title, str(document_number))
        return index

    @classmethod
    async def load(
        cls,
        source: AuditDataSource,
        store_name: str,
        exclude_document: str,
        display_limit: Optional[int] = None,
    ) -> "RepetitiveFindingIndex":
        try:
            records = await source.get_historical_findings(store_name, exclude_document)
        except UpstreamUnavailableError as e:
            warning = f"Historical findings unavailable: {e.message}"
            logger.warning(warning, extra={"store_name": store_name})
            return cls(display_limit=display_limit, warning=warning)
        return cls.from_records(records, exclude_document, display_limit)

    def lookup(self, item: AuditItem) -> Optional[RepetitiveFinding]:
        """Annotation for a current finding, None when it never occurred before"""
        key = finding_key(item)
        occurrences = self._occurrences.get(key) or self._occurrences.get(item.title)
        if not occurrences:
            return None
        unique = list(dict.fromkeys(occurrences))
        return RepetitiveFinding(
            reference_value=key,
            count=len(occurrences),
            documents=unique[: self.display_limit],
            overflow=max(0, len(unique) - self.display_limit),
        )
