"""
Test Helper Utilities

Builders for canonical audit objects and an in-memory record source, so
tests can exercise the pipeline without a database or SharePoint.
"""

import json
from typing import Any, Dict, List, Optional

from d0_gateway.base import AuditDataSource
from d0_gateway.exceptions import SourceError
from d0_gateway.types import RawSection, SourceKind
from d1_ingest.models import AuditItem, Choice, Section


def make_item(
    reference_value: str,
    choice: Choice = Choice.YES,
    coefficient: float = 2.0,
    item_id: Optional[str] = None,
    title: Optional[str] = None,
    **fields: Any,
) -> AuditItem:
    return AuditItem(
        id=item_id or reference_value,
        reference_value=reference_value,
        title=title or f"{reference_value} Question",
        coefficient=coefficient,
        selected_choice=choice,
        **fields,
    )


def make_section(section_id: str, items: List[AuditItem], number: int = 1, name: Optional[str] = None) -> Section:
    return Section(
        section_id=section_id,
        section_name=name or f"Section {section_id}",
        section_number=number,
        items=items,
    )


def response_json_item(entries: List[Dict[str, Any]], document_number: str = "GMRL-FSACR-0048") -> Dict[str, Any]:
    """A SharePoint answer-list item wrapping entries in its ResponseJSON field"""
    return {"Document_x0020_Number": document_number, "ResponseJSON": json.dumps(entries)}


class FakeAuditSource(AuditDataSource):
    """
    In-memory record source

    Any method listed in ``failures`` raises SourceError instead of
    returning its canned data.
    """

    kind = SourceKind.DEBUG

    def __init__(
        self,
        header: Optional[Dict[str, Any]] = None,
        sections: Optional[List[RawSection]] = None,
        pictures: Optional[List[Dict[str, Any]]] = None,
        fridge_readings: Optional[List[Dict[str, Any]]] = None,
        history: Optional[List[Dict[str, Any]]] = None,
        historical_findings: Optional[List[Dict[str, Any]]] = None,
        categories: Optional[List[Dict[str, Any]]] = None,
        files: Optional[Dict[str, bytes]] = None,
        failures: Optional[List[str]] = None,
    ):
        super().__init__()
        self.header = header
        self.sections = sections or []
        self.pictures = pictures or []
        self.fridge_readings = fridge_readings or []
        self.history = history or []
        self.historical_findings = historical_findings or []
        self.categories = categories or []
        self.files = files or {}
        self.failures = set(failures or [])
        self.calls: List[str] = []

    def _answer(self, operation: str, value: Any) -> Any:
        self.calls.append(operation)
        if operation in self.failures:
            raise SourceError("fake", f"{operation} is down")
        return value

    async def get_audit_header(self, document_number: str) -> Optional[Dict[str, Any]]:
        return self._answer("get_audit_header", self.header)

    async def get_sections(self, document_number: str) -> List[RawSection]:
        return self._answer("get_sections", [s.model_copy(deep=True) for s in self.sections])

    async def get_pictures(self, document_number: str) -> List[Dict[str, Any]]:
        return self._answer("get_pictures", list(self.pictures))

    async def get_fridge_readings(self, document_number: str) -> List[Dict[str, Any]]:
        return self._answer("get_fridge_readings", list(self.fridge_readings))

    async def get_store_history(self, store_name: str) -> List[Dict[str, Any]]:
        return self._answer("get_store_history", list(self.history))

    async def get_historical_findings(self, store_name: str, exclude_document: str) -> List[Dict[str, Any]]:
        return self._answer("get_historical_findings", list(self.historical_findings))

    async def get_categories(self, schema_id: Optional[str]) -> List[Dict[str, Any]]:
        return self._answer("get_categories", list(self.categories))

    async def download_file(self, url: str) -> bytes:
        self.calls.append("download_file")
        if url not in self.files:
            raise SourceError("fake", f"{url} not found", status_code=404)
        return self.files[url]
