"""
Shared fixtures for all tests
"""
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import get_settings
from d0_gateway.section_config import get_section_config
from database.base import Base
from database.models import (
    AuditCategory,
    AuditInstance,
    AuditPicture,
    AuditResponse,
    AuditSchema,
    AuditSection,
    AuditSectionScore,
    CategorySection,
    FridgeReading,
    SystemSetting,
)

CURRENT_DOCUMENT = "GMRL-FSACR-0048"
STORE_NAME = "GMRL Abu Dhabi"


@pytest.fixture(autouse=True)
def clear_cached_config():
    get_settings.cache_clear()
    get_section_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_section_config.cache_clear()


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory SQLite database"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


def _audit(audit_id, document_number, cycle, created_at, status="Completed", total=None):
    return AuditInstance(
        audit_id=audit_id,
        document_number=document_number,
        store_id=7,
        store_code="GMRL-AD",
        store_name=STORE_NAME,
        schema_id=1,
        audit_date=date(2025, created_at.month, created_at.day),
        time_in="09:00",
        time_out="12:30",
        cycle=cycle,
        year=2025,
        auditors="A. Auditor",
        status=status,
        total_score=total,
        created_at=created_at,
    )


def _response(response_id, audit_id, section_id, reference, choice, coeff=2, **fields):
    section_names = {1: "Food Storage and Dry Storage", 2: "Fridges and Freezers"}
    return AuditResponse(
        response_id=response_id,
        audit_id=audit_id,
        section_id=section_id,
        section_number=section_id,
        section_name=section_names[section_id],
        reference_value=reference,
        title=fields.pop("title", f"{reference} Question"),
        coeff=coeff,
        selected_choice=choice,
        **fields,
    )


@pytest.fixture
def seeded_session_factory(session_factory):
    """
    One store with a current in-progress audit and two completed prior audits

    Audit 1 (current, C3):  1.1 Yes, 1.2 No with finding, 2.26 Partially, 2.1 NA
    Audit 2 (C2, older):    1.2 No with finding
    Audit 3 (C3 label, completed earlier than the current one)
    """
    with session_factory() as db:
        db.add(AuditSchema(schema_id=1, schema_name="Food Safety", report_title="Food Safety Audit Report"))
        db.add_all(
            [
                AuditSection(section_id=1, schema_id=1, section_number=1, section_name="Food Storage and Dry Storage", section_icon="🥫"),
                AuditSection(section_id=2, schema_id=1, section_number=2, section_name="Fridges and Freezers", section_icon="❄️"),
            ]
        )
        db.add_all(
            [
                _audit(1, CURRENT_DOCUMENT, "C3 (May/Jun)", datetime(2025, 6, 1), status="In Progress"),
                _audit(2, "GMRL-FSACR-0031", "C2 (Mar/Apr)", datetime(2025, 4, 1), total=80.0),
                _audit(3, "GMRL-FSACR-0040", "C3", datetime(2025, 5, 1), total=90.0),
            ]
        )
        db.add_all(
            [
                _response(11, 1, 1, "1.1", "Yes"),
                _response(12, 1, 1, "1.2", "No", finding="Expired stock", corrective_action="Discarded", priority="High"),
                _response(13, 1, 2, "2.26", "Partially", coeff=4, title="2.26 Check air temperature of fridges and freezers", cr="Adjust thermostat"),
                _response(14, 1, 2, "2.1", "NA"),
                _response(21, 2, 1, "1.2", "No", finding="Expired stock"),
                _response(22, 2, 1, "1.1", "Yes"),
                _response(31, 3, 1, "1.2", "Partially", finding="Labels missing"),
            ]
        )
        db.add_all(
            [
                AuditSectionScore(audit_id=2, section_id=1, section_number=1, section_name="Food Storage and Dry Storage", earned_score=2, max_score=4, percentage=50.0),
                AuditSectionScore(audit_id=3, section_id=1, section_number=1, section_name="Food Storage and Dry Storage", earned_score=1, max_score=2, percentage=50.0),
                AuditSectionScore(audit_id=3, section_id=2, section_number=2, section_name="Fridges and Freezers", percentage=75.0),
            ]
        )
        db.add_all(
            [
                AuditPicture(picture_id=1, response_id=12, audit_id=1, file_name="before.jpg", content_type="image/jpeg", picture_type="Finding"),
                AuditPicture(picture_id=2, response_id=12, audit_id=1, file_name="after.jpg", content_type="image/jpeg", picture_type="Corrective"),
                AuditPicture(picture_id=3, response_id=11, audit_id=1, file_name="good.jpg", content_type="image/jpeg", picture_type="Good"),
                AuditPicture(picture_id=4, response_id=21, audit_id=2, file_name="old.jpg", content_type="image/jpeg", picture_type="Finding"),
            ]
        )
        db.add_all(
            [
                FridgeReading(reading_id=1, audit_id=1, response_id=13, unit="Walk-in chiller", display_temp="9", probe_temp="8.5", issue="Too warm", reading_type="Bad"),
                FridgeReading(reading_id=2, audit_id=1, response_id=13, unit="Freezer 1", display_temp="-18", probe_temp="-18.2", reading_type="Good"),
            ]
        )
        db.add_all(
            [
                AuditCategory(category_id=1, category_name="Storage", display_order=1, schema_id=1),
                CategorySection(id=1, category_id=1, section_id=1, display_order=1),
            ]
        )
        db.add_all(
            [
                SystemSetting(setting_id=1, schema_id=1, setting_type="Overall", passing_grade=85.0),
                SystemSetting(setting_id=2, schema_id=1, setting_type="Section", entity_id=2, passing_grade=70.0),
                SystemSetting(setting_id=3, schema_id=1, setting_type="Category", passing_grade=80.0),
            ]
        )
        db.commit()
    return session_factory


@pytest.fixture
def current_document():
    return CURRENT_DOCUMENT


@pytest.fixture
def store_name():
    return STORE_NAME
