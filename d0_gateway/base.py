"""
Base record source with the contract shared by all audit data sources
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from core.logging import get_logger

from .types import RawSection, SourceKind


class AuditDataSource(ABC):
    """
    Abstract base class for audit record sources

    Every method returns raw, source-shaped records; normalization happens
    in d1_ingest. Methods raise ``SourceError`` when the upstream cannot be
    reached and return empty collections when it simply has no data.
    """

    kind: SourceKind

    def __init__(self):
        self.logger = get_logger(f"gateway.{self.kind.value}", domain="d0")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Release any held connections"""

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    async def get_audit_header(self, document_number: str) -> Optional[Dict[str, Any]]:
        """Header record of the audit, None when the audit is unknown"""

    @abstractmethod
    async def get_sections(self, document_number: str) -> List[RawSection]:
        """
        All sections of the audit with their raw answer records

        A section whose records could not be fetched is still returned,
        empty and carrying a warning.
        """

    @abstractmethod
    async def get_pictures(self, document_number: str) -> List[Dict[str, Any]]:
        """Picture records for the audit"""

    @abstractmethod
    async def get_fridge_readings(self, document_number: str) -> List[Dict[str, Any]]:
        """Fridge/freezer temperature readings for the audit"""

    @abstractmethod
    async def get_store_history(self, store_name: str) -> List[Dict[str, Any]]:
        """
        Aggregate rows of every audit of the store

        Each row carries document_number, store_name, cycle, year,
        total_score, created and section_scores (name -> earned/max/percentage).
        """

    @abstractmethod
    async def get_historical_findings(self, store_name: str, exclude_document: str) -> List[Dict[str, Any]]:
        """Answer records of the store's other audits, each tagged with its DocumentNumber"""

    @abstractmethod
    async def get_categories(self, schema_id: Optional[str]) -> List[Dict[str, Any]]:
        """Category -> section membership rows for the schema"""

    @abstractmethod
    async def download_file(self, url: str) -> bytes:
        """Raw bytes of a picture hosted by this source"""
