"""
Relational audit source

Reads audits from the SQL schema in ``database.models``. Queries run on
synchronous sessions pushed to a worker thread so the event loop stays free.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.models import (
    AuditCategory,
    AuditInstance,
    AuditPicture,
    AuditResponse,
    AuditSection,
    AuditSectionScore,
    CategorySection,
    FridgeReading,
)
from database.session import SessionLocal

from .base import AuditDataSource
from .exceptions import SourceError
from .types import RawSection, RecordShape, SourceKind

T = TypeVar("T")

PICTURE_URL_TEMPLATE = "/api/pictures/{picture_id}"
COMPLETED = "Completed"


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SqlAuditSource(AuditDataSource):
    """Audit source backed by the relational audit tables"""

    kind = SourceKind.SQL

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        super().__init__()
        self.session_factory = session_factory

    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        def _in_session() -> T:
            with self.session_factory() as db:
                return fn(db)

        try:
            return await asyncio.to_thread(_in_session)
        except SQLAlchemyError as e:
            self.logger.warning(f"Database query {operation} failed: {e}")
            raise SourceError("sql", f"{operation} failed: {e.__class__.__name__}") from e

    @staticmethod
    def _find_audit(db: Session, document_number: str) -> Optional[AuditInstance]:
        return db.execute(
            select(AuditInstance).where(AuditInstance.document_number == document_number)
        ).scalar_one_or_none()

    async def get_audit_header(self, document_number: str) -> Optional[Dict[str, Any]]:
        def query(db: Session) -> Optional[Dict[str, Any]]:
            audit = self._find_audit(db, document_number)
            if audit is None:
                return None
            schema = audit.schema
            return {
                "AuditID": audit.audit_id,
                "DocumentNumber": audit.document_number,
                "StoreID": audit.store_id,
                "StoreCode": audit.store_code,
                "StoreName": audit.store_name,
                "SchemaID": audit.schema_id,
                "SchemaName": schema.schema_name if schema else None,
                "ReportTitle": schema.report_title if schema else None,
                "AuditDate": _iso(audit.audit_date),
                "TimeIn": audit.time_in,
                "TimeOut": audit.time_out,
                "Cycle": audit.cycle,
                "Year": audit.year,
                "Auditors": audit.auditors,
                "AccompaniedBy": audit.accompanied_by,
                "Status": audit.status,
                "TotalScore": audit.total_score,
                "Created": _iso(audit.created_at),
            }

        return await self._run("get_audit_header", query)

    async def get_sections(self, document_number: str) -> List[RawSection]:
        def query(db: Session) -> List[RawSection]:
            audit = self._find_audit(db, document_number)
            if audit is None:
                return []

            sections: "OrderedDict[str, RawSection]" = OrderedDict()
            schema_sections = db.execute(
                select(AuditSection)
                .where(AuditSection.schema_id == audit.schema_id, AuditSection.is_active.is_(True))
                .order_by(AuditSection.section_number)
            ).scalars()
            for section in schema_sections:
                sections[str(section.section_id)] = RawSection(
                    section_id=str(section.section_id),
                    section_name=section.section_name,
                    section_number=section.section_number,
                    icon=section.section_icon,
                    shape=RecordShape.RELATIONAL_ROW,
                )

            responses = db.execute(
                select(AuditResponse)
                .where(AuditResponse.audit_id == audit.audit_id)
                .order_by(AuditResponse.section_number, AuditResponse.response_id)
            ).scalars()
            for response in responses:
                key = str(response.section_id)
                if key not in sections:
                    sections[key] = RawSection(
                        section_id=key,
                        section_name=response.section_name,
                        section_number=response.section_number,
                        shape=RecordShape.RELATIONAL_ROW,
                    )
                sections[key].records.append(
                    {
                        "ResponseID": response.response_id,
                        "SectionID": response.section_id,
                        "ReferenceValue": response.reference_value,
                        "Title": response.title,
                        "Coeff": response.coeff,
                        "Answer": response.answer_options,
                        "CR": response.cr,
                        "SelectedChoice": response.selected_choice,
                        "Finding": response.finding,
                        "Comment": response.comment,
                        "CorrectiveAction": response.corrective_action,
                        "Priority": response.priority,
                    }
                )
            return list(sections.values())

        return await self._run("get_sections", query)

    async def get_pictures(self, document_number: str) -> List[Dict[str, Any]]:
        def query(db: Session) -> List[Dict[str, Any]]:
            rows = db.execute(
                select(AuditPicture)
                .join(AuditInstance, AuditInstance.audit_id == AuditPicture.audit_id)
                .where(AuditInstance.document_number == document_number)
                .order_by(AuditPicture.picture_id)
            ).scalars()
            return [
                {
                    "PictureID": picture.picture_id,
                    "ResponseID": picture.response_id,
                    "PictureType": picture.picture_type,
                    "FileName": picture.file_name,
                    "ContentType": picture.content_type,
                    "Url": PICTURE_URL_TEMPLATE.format(picture_id=picture.picture_id),
                    "Created": _iso(picture.created_at),
                }
                for picture in rows
            ]

        return await self._run("get_pictures", query)

    async def get_fridge_readings(self, document_number: str) -> List[Dict[str, Any]]:
        def query(db: Session) -> List[Dict[str, Any]]:
            rows = db.execute(
                select(FridgeReading)
                .join(AuditInstance, AuditInstance.audit_id == FridgeReading.audit_id)
                .where(AuditInstance.document_number == document_number)
                .order_by(FridgeReading.reading_id)
            ).scalars()
            return [
                {
                    "ReadingID": reading.reading_id,
                    "ResponseID": reading.response_id,
                    "Section": reading.section,
                    "Unit": reading.unit,
                    "DisplayTemp": reading.display_temp,
                    "ProbeTemp": reading.probe_temp,
                    "Issue": reading.issue,
                    "Picture": reading.picture,
                    "ReadingType": reading.reading_type,
                    "CreatedAt": _iso(reading.created_at),
                }
                for reading in rows
            ]

        return await self._run("get_fridge_readings", query)

    async def get_store_history(self, store_name: str) -> List[Dict[str, Any]]:
        def query(db: Session) -> List[Dict[str, Any]]:
            audits = db.execute(
                select(AuditInstance)
                .where(AuditInstance.store_name == store_name, AuditInstance.status == COMPLETED)
                .order_by(AuditInstance.created_at.desc(), AuditInstance.audit_id.desc())
            ).scalars()
            history = []
            for audit in audits:
                scores = db.execute(
                    select(AuditSectionScore).where(AuditSectionScore.audit_id == audit.audit_id)
                ).scalars()
                history.append(
                    {
                        "document_number": audit.document_number,
                        "store_name": audit.store_name,
                        "cycle": audit.cycle,
                        "year": audit.year,
                        "total_score": audit.total_score,
                        "created": audit.created_at,
                        "section_scores": {
                            score.section_name: {
                                "earned": score.earned_score,
                                "max": score.max_score,
                                "percentage": score.percentage,
                            }
                            for score in scores
                        },
                    }
                )
            return history

        return await self._run("get_store_history", query)

    async def get_historical_findings(self, store_name: str, exclude_document: str) -> List[Dict[str, Any]]:
        def query(db: Session) -> List[Dict[str, Any]]:
            rows = db.execute(
                select(AuditResponse, AuditInstance.document_number)
                .join(AuditInstance, AuditInstance.audit_id == AuditResponse.audit_id)
                .where(
                    AuditInstance.store_name == store_name,
                    AuditInstance.document_number != exclude_document,
                    AuditInstance.status == COMPLETED,
                    AuditResponse.selected_choice.in_(["No", "Partially"]),
                )
                .order_by(AuditInstance.created_at.desc())
            ).all()
            return [
                {
                    "DocumentNumber": document_number,
                    "ResponseID": response.response_id,
                    "SectionName": response.section_name,
                    "ReferenceValue": response.reference_value,
                    "Title": response.title,
                    "Coeff": response.coeff,
                    "SelectedChoice": response.selected_choice,
                    "Finding": response.finding,
                    "CorrectiveAction": response.corrective_action,
                    "CR": response.cr,
                }
                for response, document_number in rows
            ]

        return await self._run("get_historical_findings", query)

    async def get_categories(self, schema_id: Optional[str]) -> List[Dict[str, Any]]:
        if schema_id is None or not str(schema_id).isdigit():
            return []

        def query(db: Session) -> List[Dict[str, Any]]:
            rows = db.execute(
                select(AuditCategory, CategorySection)
                .join(CategorySection, CategorySection.category_id == AuditCategory.category_id)
                .where(AuditCategory.schema_id == int(schema_id), AuditCategory.is_active.is_(True))
                .order_by(AuditCategory.display_order, CategorySection.display_order)
            ).all()
            return [
                {
                    "CategoryID": category.category_id,
                    "CategoryName": category.category_name,
                    "CategoryOrder": category.display_order,
                    "SectionID": membership.section_id,
                    "SectionOrder": membership.display_order,
                }
                for category, membership in rows
            ]

        return await self._run("get_categories", query)

    async def download_file(self, url: str) -> bytes:
        # Pictures in the relational store are served pre-resolved
        raise SourceError("sql", f"Cannot download {url}: pictures are served by URL")
