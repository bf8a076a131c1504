"""
Answer normalizer

Turns heterogeneous raw answer records (SharePoint ResponseJSON entries,
relational rows, debug dumps) into canonical ``AuditItem`` objects.

Normalization is a pure function of the raw record: same input, same item.
Records that cannot be parsed raise ``MalformedInputError``; section-level
helpers catch it, count the record as skipped and carry on.
"""
import json
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.exceptions import MalformedInputError
from core.logging import get_logger
from core.utils import clean_text, first_present, natural_sort_key, to_decimal, truncate_text
from d0_gateway.types import RawSection, RecordShape
from d1_ingest.models import (
    AuditItem,
    AuditMeta,
    Category,
    Choice,
    FridgeReading,
    Priority,
    ReadingType,
    Section,
)

logger = get_logger(__name__, domain="d1")

DEFAULT_COEFFICIENT = 2.0
DEFAULT_TITLE = "Unknown Question"

# Alias table, per input shape, field -> keys in lookup order
_COMMON_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("Id", "ID", "id"),
    "reference_value": ("ReferenceValue", "referenceValue", "reference_value", "Reference", "Ref"),
    "title": ("Title", "title", "Question", "Criteria"),
    "coefficient": ("Coeff", "Coef", "coeff", "coef", "Coefficient"),
    "selected_choice": ("SelectedChoice", "selectedChoice", "selected_choice", "Choice"),
    "comment": ("comment", "Comment", "Comments", "comments"),
    "finding": ("Finding", "finding"),
    "corrective_action": ("correctedaction", "correctiveAction", "CorrectiveAction", "corrective_action"),
    "priority": ("Priority", "priority"),
}

SHAPE_ALIASES: Dict[RecordShape, Dict[str, Tuple[str, ...]]] = {
    RecordShape.SHAREPOINT_JSON: {
        **_COMMON_ALIASES,
        "corrective_action": _COMMON_ALIASES["corrective_action"] + ("SelectedCr", "cr", "CR"),
    },
    RecordShape.RELATIONAL_ROW: {
        **_COMMON_ALIASES,
        "id": ("ResponseID", "response_id", "ResponseId") + _COMMON_ALIASES["id"],
        "corrective_action": _COMMON_ALIASES["corrective_action"] + ("CR", "cr"),
    },
    RecordShape.DEBUG_JSON: {
        **_COMMON_ALIASES,
        "id": ("ImageID", "ImageId") + _COMMON_ALIASES["id"],
        "corrective_action": _COMMON_ALIASES["corrective_action"] + ("cr", "CR"),
    },
}

RESPONSE_JSON_KEYS = ("ResponseJSON", "ResponseJson", "responseJSON", "response_json")

_CHOICE_WORDS = {
    "yes": Choice.YES,
    "partially": Choice.PARTIALLY,
    "partial": Choice.PARTIALLY,
    "no": Choice.NO,
    "na": Choice.NA,
    "n/a": Choice.NA,
    "not applicable": Choice.NA,
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
_STRAY_BACKSLASH = re.compile(r'\\(?!["\\/bfnrtu])')
_LEADING_REFERENCE = re.compile(r"^\s*(\d+(?:\.\d+)*)")


def detect_shape(record: Dict[str, Any]) -> RecordShape:
    """Best-effort shape detection for records arriving without a tag"""
    if any(key in record for key in ("ResponseID", "response_id", "SectionID", "AuditID")):
        return RecordShape.RELATIONAL_ROW
    if any(key in record for key in ("ImageID", "Coef", "Comments")):
        return RecordShape.DEBUG_JSON
    return RecordShape.SHAREPOINT_JSON


def normalize_choice(value: Any) -> Choice:
    """Case-insensitive canonicalization; anything unrecognized becomes EMPTY"""
    if value is None:
        return Choice.EMPTY
    if isinstance(value, Choice):
        return value
    text = str(value).strip().lower()
    if not text:
        return Choice.EMPTY
    choice = _CHOICE_WORDS.get(text)
    if choice is None:
        logger.debug(f"Unrecognized choice {value!r}, treating as unanswered")
        return Choice.EMPTY
    return choice


def normalize_coefficient(value: Any) -> float:
    """Non-negative weight; missing or invalid values fall back to the default"""
    number = to_decimal(value)
    if number is None or number < 0:
        return DEFAULT_COEFFICIENT
    return float(number)


def normalize_priority(value: Any) -> Optional[Priority]:
    if value is None:
        return None
    text = str(value).strip().lower()
    for priority in Priority:
        if priority.value.lower() == text:
            return priority
    return None


def synthesize_reference(title: Optional[str], position: int) -> str:
    """Leading numeric token of the title, else the 1-based position in the section"""
    if title:
        match = _LEADING_REFERENCE.match(str(title))
        if match:
            return match.group(1)
    return str(position)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = clean_text(str(value))
    return text or None


def normalize_record(
    record: Dict[str, Any],
    position: int = 1,
    shape: Optional[RecordShape] = None,
) -> AuditItem:
    """
    Normalize one raw answer record

    Args:
        record: Raw record in any known shape
        position: 1-based position inside its section, used to synthesize
            a reference value when none can be found
        shape: Known shape of the record; detected from its keys when omitted

    Returns:
        Canonical AuditItem

    Raises:
        MalformedInputError: When the record is not a mapping
    """
    if not isinstance(record, dict):
        raise MalformedInputError(
            "Answer record is not an object",
            source="record",
            preview=truncate_text(repr(record), 200),
        )

    shape = shape or detect_shape(record)
    aliases = SHAPE_ALIASES[shape]

    def lookup(field: str) -> Any:
        return first_present(record, *aliases[field])

    title = _text(lookup("title")) or DEFAULT_TITLE
    reference = lookup("reference_value")
    reference_value = str(reference).strip() if reference is not None else synthesize_reference(title, position)
    raw_id = lookup("id")
    item_id = str(raw_id).strip() if raw_id is not None else reference_value

    return AuditItem(
        id=item_id,
        reference_value=reference_value,
        title=title,
        coefficient=normalize_coefficient(lookup("coefficient")),
        selected_choice=normalize_choice(lookup("selected_choice")),
        comment=_text(lookup("comment")),
        finding=_text(lookup("finding")),
        corrective_action=_text(lookup("corrective_action")),
        priority=normalize_priority(lookup("priority")),
        source_shape=shape,
    )


def parse_response_json(raw: Any, source: str = "ResponseJSON") -> List[Dict[str, Any]]:
    """
    Parse a ResponseJSON payload into a list of answer records

    Exports are sometimes polluted with raw control characters or lone
    backslashes; each cleanup is tried only when the previous parse failed.

    Raises:
        MalformedInputError: When no cleanup yields valid JSON
    """
    if isinstance(raw, list):
        parsed: Any = raw
    elif isinstance(raw, dict):
        parsed = [raw]
    elif isinstance(raw, str):
        parsed = _loads_tolerant(raw, source)
    else:
        raise MalformedInputError(
            f"Unsupported ResponseJSON type {type(raw).__name__}",
            source=source,
        )

    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list):
        raise MalformedInputError("ResponseJSON root is not a list", source=source, preview=truncate_text(str(raw), 200))
    return parsed


def _loads_tolerant(text: str, source: str) -> Any:
    stripped = text.strip()
    candidates = [stripped]
    without_control = _CONTROL_CHARS.sub("", stripped)
    candidates.append(without_control)
    candidates.append(_STRAY_BACKSLASH.sub(r"\\\\", without_control))

    last_error: Optional[json.JSONDecodeError] = None
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e

    raise MalformedInputError(
        f"Invalid ResponseJSON: {last_error.msg if last_error else 'empty payload'}",
        source=source,
        preview=truncate_text(stripped, 200),
        position=last_error.pos if last_error else None,
    )


def expand_answer_items(answer_items: Iterable[Dict[str, Any]], source: str) -> Tuple[List[Dict[str, Any]], int]:
    """
    Flatten list items carrying a ResponseJSON field into answer records

    Returns:
        (records, number of list items skipped)
    """
    records: List[Dict[str, Any]] = []
    skipped = 0
    for list_item in answer_items:
        payload = first_present(list_item, *RESPONSE_JSON_KEYS) if isinstance(list_item, dict) else None
        if payload is None:
            logger.warning(f"No ResponseJSON field on list item in {source}")
            skipped += 1
            continue
        try:
            records.extend(parse_response_json(payload, source=source))
        except MalformedInputError as e:
            logger.warning(
                f"Skipping list item in {source}: {e.message}",
                extra={"preview": e.details.get("preview")},
            )
            skipped += 1
    return records, skipped


def build_section(raw: RawSection) -> Section:
    """
    Normalize every record of a raw section into an ordered Section

    Items are ordered by natural reference order ("1.2" before "1.10").
    Unparseable records are skipped and counted, never fatal.
    """
    expanded, skipped = expand_answer_items(raw.answer_items, source=raw.section_name)
    # ResponseJSON entries are always SharePoint-shaped; direct records carry the section's shape
    tagged = [(record, raw.shape) for record in raw.records]
    tagged += [(record, RecordShape.SHAREPOINT_JSON) for record in expanded]

    items: List[AuditItem] = []
    for position, (record, shape) in enumerate(tagged, start=1):
        try:
            items.append(normalize_record(record, position=position, shape=shape))
        except MalformedInputError as e:
            logger.warning(f"Skipping record {position} in {raw.section_name}: {e.message}")
            skipped += 1

    items.sort(key=lambda item: natural_sort_key(item.reference_value))

    warnings = list(raw.warnings)
    if skipped:
        warnings.append(f"{skipped} record(s) in {raw.section_name} could not be parsed and were skipped")

    return Section(
        section_id=raw.section_id,
        section_name=raw.section_name,
        section_number=raw.section_number,
        icon=raw.icon,
        items=items,
        skipped_records=skipped,
        warnings=warnings,
    )


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_fridge_reading(record: Dict[str, Any], reading_type: Optional[ReadingType] = None) -> FridgeReading:
    """Normalize a fridge/freezer temperature reading from any source"""
    if not isinstance(record, dict):
        raise MalformedInputError("Fridge reading is not an object", source="fridge_readings")

    raw_type = first_present(record, "ReadingType", "reading_type", "Type")
    if reading_type is None:
        reading_type = ReadingType.GOOD if str(raw_type or "").strip().lower() == "good" else ReadingType.BAD

    pictures_raw = first_present(record, "Picture", "Pictures", "picture")
    if isinstance(pictures_raw, list):
        pictures = [str(p) for p in pictures_raw if p]
    elif pictures_raw:
        pictures = [p.strip() for p in str(pictures_raw).split(",") if p.strip()]
    else:
        pictures = []

    reading_id = first_present(record, "ReadingID", "reading_id", "ID", "Id", "id")
    response_id = first_present(record, "ResponseID", "response_id", "ResponseId")

    return FridgeReading(
        reading_id=str(reading_id) if reading_id is not None else "",
        response_id=str(response_id).strip() if response_id is not None else None,
        reference_value=_text(first_present(record, "ReferenceValue", "reference_value")),
        section=_text(first_present(record, "Section", "section")),
        unit=_text(first_present(record, "Unit", "unit", "key", "Key", "Title")),
        display_temp=_text(first_present(record, "DisplayTemp", "display_temp", "Display", "Value")),
        probe_temp=_text(first_present(record, "ProbeTemp", "probe_temp", "Probe")),
        issue=_text(first_present(record, "Issue", "issue")),
        pictures=pictures,
        reading_type=reading_type,
        created=_parse_datetime(first_present(record, "CreatedAt", "created_at", "Created")),
    )


def normalize_audit_meta(header: Optional[Dict[str, Any]], document_number: str) -> AuditMeta:
    """
    Build audit metadata from a header record

    A missing header yields metadata synthesized from the document number.
    The store name falls back to the first dash-separated segment of the
    document number.
    """
    header = header or {}
    fallback_store = document_number.split("-")[0] if document_number else "Unknown Store"

    year = to_decimal(first_present(header, "Year", "year"))
    total = to_decimal(first_present(header, "TotalScore", "total_score", "Score", "OverallScore"))
    audit_date = first_present(header, "AuditDate", "audit_date", "Date", "Created")
    if isinstance(audit_date, datetime):
        audit_date = audit_date.date().isoformat()

    def field(*keys: str) -> Optional[str]:
        value = first_present(header, *keys)
        return str(value).strip() if value is not None else None

    return AuditMeta(
        document_number=field("DocumentNumber", "document_number", "Document_x0020_Number") or document_number,
        store_name=field("StoreName", "store_name", "Store_x0020_Name", "Store_Name", "Store", "Store Name")
        or fallback_store,
        store_code=field("StoreCode", "store_code"),
        store_id=field("StoreID", "store_id", "StoreId"),
        schema_id=field("SchemaID", "schema_id", "SchemaId"),
        schema_name=field("SchemaName", "schema_name"),
        report_title=field("ReportTitle", "report_title") or "Food Safety Audit Report",
        audit_date=str(audit_date) if audit_date is not None else None,
        time_in=field("TimeIn", "time_in", "Time_x0020_In"),
        time_out=field("TimeOut", "time_out", "Time_x0020_Out"),
        cycle=field("Cycle", "cycle"),
        year=int(year) if year is not None else None,
        auditors=field("Auditors", "auditors", "Auditor"),
        accompanied_by=field("AccompaniedBy", "accompanied_by", "Accompanied_x0020_By"),
        status=field("Status", "status"),
        stored_total_score=float(total) if total is not None else None,
    )


def normalize_categories(rows: Iterable[Dict[str, Any]]) -> List[Category]:
    """
    Build ordered categories from flat (category, section) rows or nested objects

    Flat rows repeat the category columns for each member section.
    """
    categories: Dict[str, Category] = {}
    members: Dict[str, List[Tuple[int, str]]] = {}

    for row in rows:
        if not isinstance(row, dict):
            logger.warning(f"Skipping category row that is not an object: {truncate_text(repr(row), 80)}")
            continue
        category_id = first_present(row, "CategoryID", "categoryId", "category_id")
        if category_id is None:
            continue
        key = str(category_id)
        if key not in categories:
            order = to_decimal(first_present(row, "CategoryOrder", "DisplayOrder", "displayOrder", "display_order"))
            categories[key] = Category(
                category_id=key,
                category_name=str(first_present(row, "CategoryName", "categoryName", "category_name") or key),
                display_order=int(order) if order is not None else 0,
            )
            members[key] = []

        nested = row.get("sections")
        if isinstance(nested, list):
            for index, section in enumerate(nested):
                if not isinstance(section, dict):
                    logger.warning(
                        f"Skipping category {key} member that is not an object: {truncate_text(repr(section), 80)}"
                    )
                    continue
                section_id = first_present(section, "sectionId", "SectionID", "section_id")
                if section_id is not None:
                    members[key].append((index, str(section_id)))
            continue

        section_id = first_present(row, "SectionID", "sectionId", "section_id")
        if section_id is not None:
            order = to_decimal(first_present(row, "SectionOrder", "section_order"))
            members[key].append((int(order) if order is not None else len(members[key]), str(section_id)))

    result = []
    for key, category in categories.items():
        ordered = [section_id for _, section_id in sorted(members[key], key=lambda pair: pair[0])]
        result.append(category.model_copy(update={"section_ids": ordered}))
    result.sort(key=lambda c: (c.display_order, c.category_name))
    return result
