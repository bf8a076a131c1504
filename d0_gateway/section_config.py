"""Schema and loader for the section mapping YAML

The section mapping ties each audit section to the SharePoint answer list
holding its ResponseJSON items, the survey-list field carrying its historical
score, its display number and its icon. It also names the auxiliary lists
(survey header, fridge readings) read by the list-based sources.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from core.config import get_settings
from core.exceptions import ConfigurationError
from core.logging import get_logger

_logger = get_logger("gateway.section_config", domain="d0")
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SectionMapping(BaseModel):
    """One audit section and where its answers live"""

    key: str
    title: str
    number: int = Field(..., ge=1)
    answer_list: str
    document_field: str | None = Field(default=None, description="Overrides the default document field")
    score_field: str | None = Field(default=None, description="Survey-list column with the historical percentage")
    icon: str | None = None


class FridgeLists(BaseModel):
    finding: str = "Fridges finding"
    good: str = "Fridges Good"
    finding_key_field: str = "fridgeid"
    good_key_field: str = "goodid"


class TemperatureQuestion(BaseModel):
    """The question fridge readings attach to when they carry no response id"""

    title_contains: str = "air temperature of fridges and freezers"
    reference_value: str = "2.26"


class SectionConfig(BaseModel):
    """Root of the section mapping document"""

    header_list: str = "FS Survey"
    document_field: str = "Document_x0020_Number"
    store_field: str = "Store_x0020_Name"
    total_score_field: str = "Scor"
    fridge_lists: FridgeLists = Field(default_factory=FridgeLists)
    temperature_question: TemperatureQuestion = Field(default_factory=TemperatureQuestion)
    sections: list[SectionMapping] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _validate_unique_sections(self) -> SectionConfig:
        keys = [s.key for s in self.sections]
        if len(set(keys)) != len(keys):
            raise ValueError("Section keys must be unique")
        numbers = [s.number for s in self.sections]
        if len(set(numbers)) != len(numbers):
            raise ValueError("Section numbers must be unique")
        return self

    def ordered_sections(self) -> list[SectionMapping]:
        return sorted(self.sections, key=lambda s: s.number)

    def document_field_for(self, mapping: SectionMapping) -> str:
        return mapping.document_field or self.document_field

    def history_row(self, survey_item: dict[str, Any]) -> dict[str, Any]:
        """
        Reshape one survey-list item into a historical row

        Survey lists only keep flat section percentages, no earned/max.
        """
        section_scores = {}
        for mapping in self.sections:
            if mapping.score_field and mapping.score_field in survey_item:
                section_scores[mapping.title] = {"percentage": survey_item.get(mapping.score_field)}

        return {
            "document_number": survey_item.get("Title") or survey_item.get(self.document_field),
            "store_name": survey_item.get(self.store_field),
            "cycle": survey_item.get("Cycle"),
            "year": survey_item.get("Year"),
            "total_score": survey_item.get(self.total_score_field, survey_item.get("Score")),
            "created": survey_item.get("Created"),
            "section_scores": section_scores,
        }


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Configured path, resolved against the project root when relative"""
    candidate = Path(path or get_settings().sections_config_path)
    if not candidate.is_absolute() and not candidate.exists():
        candidate = _PROJECT_ROOT / candidate
    return candidate


def load_section_config(path: str | Path | None = None) -> SectionConfig:
    """Load and validate the section mapping YAML

    Raises:
        ConfigurationError: When the file is missing, is not YAML, or fails validation
    """
    config_path = resolve_config_path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Section config not found: {config_path}", setting="sections_config_path") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}", setting="sections_config_path") from e

    try:
        config = SectionConfig.model_validate(raw or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid section config {config_path}: {e}", setting="sections_config_path") from e

    _logger.debug(f"Loaded {len(config.sections)} section mappings from {config_path}")
    return config


@lru_cache()
def get_section_config() -> SectionConfig:
    """Cached section mapping for the configured path"""
    return load_section_config()
