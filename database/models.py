"""
Relational audit schema

Read-only from the reporting pipeline's perspective: audits, their section
scores, responses, pictures, fridge readings, categories and passing-grade
settings.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database.base import Base


class AuditSchema(Base):
    __tablename__ = "audit_schemas"

    schema_id = Column(Integer, primary_key=True)
    schema_name = Column(String(200), nullable=False)
    description = Column(Text)
    report_title = Column(String(200))
    document_prefix = Column(String(50))
    edition = Column(String(50))
    is_active = Column(Boolean, default=True)


class AuditSection(Base):
    __tablename__ = "audit_sections"

    section_id = Column(Integer, primary_key=True)
    schema_id = Column(Integer, ForeignKey("audit_schemas.schema_id"), nullable=False)
    section_number = Column(Integer, nullable=False)
    section_name = Column(String(200), nullable=False)
    section_icon = Column(String(20))
    is_active = Column(Boolean, default=True)


class AuditInstance(Base):
    __tablename__ = "audit_instances"

    audit_id = Column(Integer, primary_key=True)
    document_number = Column(String(50), nullable=False, unique=True)
    store_id = Column(Integer, nullable=False)
    store_code = Column(String(50))
    store_name = Column(String(200), nullable=False)
    schema_id = Column(Integer, ForeignKey("audit_schemas.schema_id"), nullable=False)
    audit_date = Column(Date)
    time_in = Column(String(10))
    time_out = Column(String(10))
    cycle = Column(String(30))  # "C1", "C1 (Jan/Feb)", ...
    year = Column(Integer)
    auditors = Column(String(500))
    accompanied_by = Column(String(500))
    status = Column(String(50), default="In Progress")
    total_score = Column(Float)
    created_at = Column(DateTime, server_default=func.now())
    completed_at = Column(DateTime)

    schema = relationship("AuditSchema")
    section_scores = relationship("AuditSectionScore", back_populates="audit")

    __table_args__ = (Index("idx_audit_instances_store", "store_name", "created_at"),)


class AuditSectionScore(Base):
    __tablename__ = "audit_section_scores"

    id = Column(Integer, primary_key=True)
    audit_id = Column(Integer, ForeignKey("audit_instances.audit_id"), nullable=False)
    section_id = Column(Integer, ForeignKey("audit_sections.section_id"))
    section_number = Column(Integer)
    section_name = Column(String(200), nullable=False)
    earned_score = Column(Float)
    max_score = Column(Float)
    percentage = Column(Float)

    audit = relationship("AuditInstance", back_populates="section_scores")


class AuditResponse(Base):
    __tablename__ = "audit_responses"

    response_id = Column(Integer, primary_key=True)
    audit_id = Column(Integer, ForeignKey("audit_instances.audit_id"), nullable=False)
    section_id = Column(Integer, ForeignKey("audit_sections.section_id"), nullable=False)
    section_number = Column(Integer, nullable=False)
    section_name = Column(String(200), nullable=False)
    item_id = Column(Integer)
    reference_value = Column(String(50))
    title = Column(Text)
    coeff = Column(Integer, default=2)
    answer_options = Column(String(200))
    cr = Column(Text)
    selected_choice = Column(String(20))
    value = Column(Float)  # stored, never trusted
    finding = Column(Text)
    comment = Column(Text)
    corrective_action = Column(Text)
    priority = Column(String(20))
    escalate = Column(Boolean, default=False)
    department = Column(String(200))

    __table_args__ = (Index("idx_audit_responses_audit", "audit_id", "section_number"),)


class AuditPicture(Base):
    __tablename__ = "audit_pictures"

    picture_id = Column(Integer, primary_key=True)
    response_id = Column(Integer, ForeignKey("audit_responses.response_id"), nullable=False)
    audit_id = Column(Integer, ForeignKey("audit_instances.audit_id"), nullable=False)
    file_name = Column(String(255))
    file_path = Column(String(500))
    content_type = Column(String(100))
    picture_type = Column(String(20))  # Good, Finding, Corrective
    created_at = Column(DateTime, server_default=func.now())


class FridgeReading(Base):
    __tablename__ = "fridge_readings"

    reading_id = Column(Integer, primary_key=True)
    audit_id = Column(Integer, ForeignKey("audit_instances.audit_id"), nullable=False)
    response_id = Column(Integer)
    document_number = Column(String(50))
    section = Column(String(200))
    unit = Column(String(200))
    display_temp = Column(String(20))
    probe_temp = Column(String(20))
    issue = Column(Text)
    picture = Column(Text)
    reading_type = Column(String(10))  # Good, Bad
    created_at = Column(DateTime, server_default=func.now())


class AuditCategory(Base):
    __tablename__ = "audit_categories"

    category_id = Column(Integer, primary_key=True)
    category_name = Column(String(200), nullable=False)
    display_order = Column(Integer, default=0)
    schema_id = Column(Integer, ForeignKey("audit_schemas.schema_id"), nullable=False)
    is_active = Column(Boolean, default=True)


class CategorySection(Base):
    __tablename__ = "category_sections"

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey("audit_categories.category_id"), nullable=False)
    section_id = Column(Integer, ForeignKey("audit_sections.section_id"), nullable=False)
    display_order = Column(Integer, default=0)


class SystemSetting(Base):
    __tablename__ = "system_settings"

    setting_id = Column(Integer, primary_key=True)
    schema_id = Column(Integer, nullable=False)
    setting_type = Column(String(20), nullable=False)  # Overall, Section, Category
    entity_id = Column(Integer)  # section id for Section rows
    passing_grade = Column(Float, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    updated_by = Column(String(200))

    __table_args__ = (Index("idx_system_settings_schema", "schema_id", "setting_type"),)
