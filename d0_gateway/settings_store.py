"""
Passing-grade settings store

Rows in ``system_settings`` keyed by schema and setting type; section rows
also carry the section id. A missing row is ``None``, never an error.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from database.models import SystemSetting
from database.session import SessionLocal

from .exceptions import SourceError

OVERALL = "Overall"
SECTION = "Section"
CATEGORY = "Category"


class SettingsStore(ABC):
    """Persistent passing-grade configuration"""

    @abstractmethod
    async def get_passing_grade(self, schema_id: str, section_id: Optional[str] = None) -> Optional[float]:
        """Overall grade for the schema, or the section's grade when section_id is given"""

    @abstractmethod
    async def get_section_grades(self, schema_id: str) -> Dict[str, float]:
        """Every section-level override of the schema, keyed by section id"""

    @abstractmethod
    async def get_category_grade(self, schema_id: str) -> Optional[float]:
        """Category-level grade of the schema"""


class SqlSettingsStore(SettingsStore):
    """Settings store over the system_settings table"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory
        self.logger = get_logger("gateway.settings_store", domain="d0")

    async def _query(self, schema_id: str, setting_type: str, entity_id: Optional[str] = None):
        def run():
            with self.session_factory() as db:
                stmt = select(SystemSetting).where(
                    SystemSetting.schema_id == int(schema_id),
                    SystemSetting.setting_type == setting_type,
                )
                if entity_id is not None:
                    stmt = stmt.where(SystemSetting.entity_id == int(entity_id))
                return [(row.entity_id, row.passing_grade) for row in db.execute(stmt).scalars()]

        try:
            return await asyncio.to_thread(run)
        except (SQLAlchemyError, ValueError) as e:
            self.logger.warning(f"Passing grade lookup failed for schema {schema_id}: {e}")
            raise SourceError("settings_store", f"passing grade lookup failed: {e.__class__.__name__}") from e

    async def get_passing_grade(self, schema_id: str, section_id: Optional[str] = None) -> Optional[float]:
        if section_id is not None:
            rows = await self._query(schema_id, SECTION, entity_id=section_id)
        else:
            rows = await self._query(schema_id, OVERALL)
        return float(rows[0][1]) if rows else None

    async def get_section_grades(self, schema_id: str) -> Dict[str, float]:
        rows = await self._query(schema_id, SECTION)
        return {str(entity_id): float(grade) for entity_id, grade in rows if entity_id is not None}

    async def get_category_grade(self, schema_id: str) -> Optional[float]:
        rows = await self._query(schema_id, CATEGORY)
        return float(rows[0][1]) if rows else None
