"""
D3 Pictures - composite identifier parsing and picture association
"""
from .associator import ItemPictures, Picture, PictureIndex, PictureType, associate, classify, normalize_picture
from .identifiers import CompositeId, belongs_to, document_number_of, parse_composite_id, question_id_of

__all__ = [
    "CompositeId",
    "ItemPictures",
    "Picture",
    "PictureIndex",
    "PictureType",
    "associate",
    "belongs_to",
    "classify",
    "document_number_of",
    "normalize_picture",
    "parse_composite_id",
    "question_id_of",
]
