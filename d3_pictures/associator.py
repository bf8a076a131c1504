"""
Picture associator

Filters picture records to the audit being rendered, classifies each one
exactly once and groups them by question id for lookup from items.
"""

from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.logging import get_logger
from core.utils import first_present
from d1_ingest.models import AuditItem

from .identifiers import parse_composite_id, question_id_of

logger = get_logger(__name__, domain="d3")


class PictureType(str, Enum):
    GOOD = "good"
    FINDING = "finding"  # "before"
    CORRECTIVE = "corrective"  # "after"


_TYPE_WORDS = {
    "good": PictureType.GOOD,
    "finding": PictureType.FINDING,
    "before": PictureType.FINDING,
    "corrective": PictureType.CORRECTIVE,
    "after": PictureType.CORRECTIVE,
}

_TRUE_WORDS = {"true", "1", "yes", "y"}


class Picture(BaseModel):
    model_config = ConfigDict(frozen=True)

    picture_id: Optional[str] = None
    question_id: str
    picture_type: PictureType
    document_number: Optional[str] = None
    remote_url: Optional[str] = None
    data_url: Optional[str] = None
    file_name: Optional[str] = None
    created: Optional[datetime] = None

    @property
    def src(self) -> Optional[str]:
        """What a renderer should point at: the inlined data, else the remote file"""
        return self.data_url or self.remote_url


class ItemPictures(BaseModel):
    good: List[Picture] = Field(default_factory=list)
    finding: List[Picture] = Field(default_factory=list)
    corrective: List[Picture] = Field(default_factory=list)

    @property
    def has_any(self) -> bool:
        return bool(self.good or self.finding or self.corrective)


def _is_true(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_WORDS


def classify(record: Dict[str, Any]) -> PictureType:
    """
    Typed sources may say good/finding/corrective; flag-only sources can
    only ever produce finding or corrective.
    """
    explicit = first_present(record, "PictureType", "pictureType", "picture_type")
    if explicit is not None:
        picture_type = _TYPE_WORDS.get(str(explicit).strip().lower())
        if picture_type is not None:
            return picture_type
    flag = first_present(record, "Iscorrective", "IsCorrective", "isCorrective", "is_corrective")
    return PictureType.CORRECTIVE if _is_true(flag) else PictureType.FINDING


def _created(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_picture(record: Dict[str, Any], document_number: str) -> Optional[Picture]:
    """
    Picture for this document, or None when it belongs elsewhere

    Composite identifiers are filtered by their document number; records
    without one are keyed by their response id and trusted to be scoped
    by the source already.
    """
    identifier = first_present(record, "ImageID", "ImageId", "imageId", "image_id")
    if identifier is not None:
        parsed = parse_composite_id(identifier)
        if not parsed.is_composite or parsed.document_number != document_number:
            return None
        question_id = parsed.question_id
        owner = parsed.document_number
    else:
        response_id = first_present(record, "ResponseID", "ResponseId", "response_id")
        if response_id is None:
            logger.debug(f"Picture without ImageID or ResponseID ignored: {record.get('FileName')}")
            return None
        question_id = str(response_id).strip()
        owner = document_number

    picture_id = first_present(record, "PictureID", "Id", "ID", "ImageID")
    return Picture(
        picture_id=str(picture_id) if picture_id is not None else None,
        question_id=question_id,
        picture_type=classify(record),
        document_number=owner,
        remote_url=first_present(record, "Url", "FileRef", "url"),
        data_url=first_present(record, "DataUrl", "dataUrl", "data_url"),
        file_name=first_present(record, "FileName", "FileLeafRef", "file_name"),
        created=_created(first_present(record, "Created", "CreatedAt", "created")),
    )


class PictureIndex:
    """Pictures of one audit keyed by question id, then type"""

    def __init__(self, pictures: Iterable[Picture] = ()):
        self._groups: Dict[str, Dict[PictureType, List[Picture]]] = defaultdict(lambda: defaultdict(list))
        self._count = 0
        for picture in pictures:
            self._groups[picture.question_id][picture.picture_type].append(picture)
            self._count += 1

    def __len__(self) -> int:
        return self._count

    def pictures(self) -> List[Picture]:
        return [p for by_type in self._groups.values() for group in by_type.values() for p in group]

    def for_question(self, question_id: str) -> ItemPictures:
        by_type = self._groups.get(question_id)
        if not by_type:
            return ItemPictures()
        return ItemPictures(
            good=list(by_type.get(PictureType.GOOD, [])),
            finding=list(by_type.get(PictureType.FINDING, [])),
            corrective=list(by_type.get(PictureType.CORRECTIVE, [])),
        )

    def for_item(self, item: AuditItem) -> ItemPictures:
        """No match is not an error, just an empty set"""
        return self.for_question(question_id_of(item.id))

    def remote_urls(self) -> List[str]:
        return [p.remote_url for p in self.pictures() if p.remote_url and not p.data_url]

    def with_data_urls(self, data_urls: Dict[str, Optional[str]]) -> "PictureIndex":
        """Copy with downloaded content inlined; pictures whose download failed keep their remote URL"""
        updated = []
        for picture in self.pictures():
            data_url = data_urls.get(picture.remote_url) if picture.remote_url else None
            updated.append(picture.model_copy(update={"data_url": data_url}) if data_url else picture)
        return PictureIndex(updated)


def associate(records: Iterable[Dict[str, Any]], document_number: str) -> PictureIndex:
    """Filter, classify and group raw picture records of one document"""
    pictures = []
    excluded = 0
    for record in records:
        if not isinstance(record, dict):
            excluded += 1
            continue
        picture = normalize_picture(record, document_number)
        if picture is None:
            excluded += 1
            continue
        pictures.append(picture)

    if excluded:
        logger.debug(f"{excluded} picture record(s) excluded for {document_number}")
    return PictureIndex(pictures)
