"""
Debug folder source

Reads frozen SharePoint dumps laid out as
``<root>/<DocumentNumber>/<List_Name>_Item<N>.json``. Each file holds either
one list item (with its ResponseJSON) or an array of already-processed
answer records. Files that are not valid JSON are skipped and counted.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.config import get_settings

from .base import AuditDataSource
from .exceptions import SourceError
from .section_config import SectionConfig, get_section_config
from .types import RawSection, RecordShape, SourceKind

_ITEM_SUFFIX = re.compile(r"_Item\d+\.json$")
CATEGORIES_LIST = "Categories"


def list_name_from_file(file_name: str) -> str:
    """'SRA_Food_Handling_Item12.json' -> 'SRA Food Handling'"""
    return _ITEM_SUFFIX.sub("", file_name).replace("_", " ")


class DebugFolderSource(AuditDataSource):
    """Audit source over a folder of frozen JSON dumps"""

    kind = SourceKind.DEBUG

    def __init__(self, root: Optional[str] = None, section_config: Optional[SectionConfig] = None):
        super().__init__()
        self.root = Path(root or get_settings().debug_folder)
        self.config = section_config or get_section_config()
        self.skipped_files = 0
        self._dumps: Dict[str, Dict[str, List[Any]]] = {}

    def _load_document(self, document_number: str) -> Dict[str, List[Any]]:
        if document_number in self._dumps:
            return self._dumps[document_number]

        root = self.root.resolve()
        folder = (self.root / document_number).resolve()
        if folder == root or not folder.is_relative_to(root):
            raise SourceError("debug", f"Refusing to read outside the debug folder: {document_number}")
        if not folder.is_dir():
            raise SourceError("debug", f"Debug folder not found: {folder}")

        lists: Dict[str, List[Any]] = {}
        for path in sorted(folder.glob("*.json")):
            try:
                content = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                self.logger.warning(f"Skipping invalid JSON file {path.name}: {str(e)[:100]}")
                self.skipped_files += 1
                continue
            lists.setdefault(list_name_from_file(path.name), []).append(content)

        self._dumps[document_number] = lists
        return lists

    async def _lists(self, document_number: str) -> Dict[str, List[Any]]:
        return await asyncio.to_thread(self._load_document, document_number)

    def _other_documents(self, exclude_document: Optional[str] = None) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name for entry in self.root.iterdir() if entry.is_dir() and entry.name != exclude_document
        )

    @staticmethod
    def _objects(entries: List[Any]) -> List[Dict[str, Any]]:
        return [entry for entry in entries if isinstance(entry, dict)]

    async def get_audit_header(self, document_number: str) -> Optional[Dict[str, Any]]:
        lists = await self._lists(document_number)
        headers = self._objects(lists.get(self.config.header_list, []))
        if not headers:
            # Older dumps only have the first answer list, which repeats the store columns
            headers = self._objects(lists.get(self.config.ordered_sections()[0].answer_list, []))
        if not headers:
            return None
        header = dict(headers[0])
        header.setdefault("DocumentNumber", document_number)
        header.setdefault("StoreName", header.get(self.config.store_field))
        return header

    async def get_sections(self, document_number: str) -> List[RawSection]:
        lists = await self._lists(document_number)
        sections = []
        for mapping in self.config.ordered_sections():
            section = RawSection(
                section_id=mapping.key,
                section_name=mapping.title,
                section_number=mapping.number,
                icon=mapping.icon,
            )
            for entry in lists.get(mapping.answer_list, []):
                if isinstance(entry, list):
                    # Pre-processed answer records
                    section.records.extend(entry)
                    section.shape = RecordShape.DEBUG_JSON
                elif isinstance(entry, dict):
                    section.answer_items.append(entry)
            sections.append(section)
        return sections

    async def get_pictures(self, document_number: str) -> List[Dict[str, Any]]:
        lists = await self._lists(document_number)
        pictures = []
        for entry in self._objects(lists.get("CImages", [])):
            pictures.append(
                {
                    "ImageID": entry.get("ImageID"),
                    "Iscorrective": entry.get("Iscorrective"),
                    "PictureType": entry.get("PictureType"),
                    "FileName": entry.get("FileLeafRef") or entry.get("FileName"),
                    "Url": entry.get("FileRef") or entry.get("Url"),
                    "DataUrl": entry.get("DataUrl"),
                    "Created": entry.get("Created"),
                }
            )
        return pictures

    async def get_fridge_readings(self, document_number: str) -> List[Dict[str, Any]]:
        lists = await self._lists(document_number)
        fridge = self.config.fridge_lists
        return [{**item, "ReadingType": "Bad"} for item in self._objects(lists.get(fridge.finding, []))] + [
            {**item, "ReadingType": "Good"} for item in self._objects(lists.get(fridge.good, []))
        ]

    async def get_store_history(self, store_name: str) -> List[Dict[str, Any]]:
        history = []
        for document_number in self._other_documents():
            try:
                header = await self.get_audit_header(document_number)
            except SourceError:
                continue
            if header and header.get("StoreName") == store_name:
                row = self.config.history_row(header)
                row["document_number"] = row.get("document_number") or document_number
                history.append(row)
        history.sort(key=lambda row: str(row.get("created") or ""), reverse=True)
        return history

    async def get_historical_findings(self, store_name: str, exclude_document: str) -> List[Dict[str, Any]]:
        findings = []
        for row in await self.get_store_history(store_name):
            document_number = row["document_number"]
            if document_number == exclude_document:
                continue
            for section in await self.get_sections(document_number):
                for item in section.answer_items + section.records:
                    if isinstance(item, dict):
                        findings.append({**item, "DocumentNumber": document_number, "SectionName": section.section_name})
        return findings

    async def get_categories(self, schema_id: Optional[str]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for document_number in self._other_documents():
            lists = await self._lists(document_number)
            for entry in lists.get(CATEGORIES_LIST, []):
                rows.extend(entry if isinstance(entry, list) else [entry])
            if rows:
                break
        return [row for row in rows if isinstance(row, dict)]

    async def download_file(self, url: str) -> bytes:
        path = (self.root / url.lstrip("/")).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise SourceError("debug", f"Refusing to read outside the debug folder: {url}")
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SourceError("debug", f"Cannot read {url}: {e}") from e
