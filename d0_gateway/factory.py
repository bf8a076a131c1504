"""
Factory for creating D0 Gateway record sources
"""
from typing import Optional, Union

from core.config import get_settings
from core.exceptions import ConfigurationError
from core.logging import get_logger

from .base import AuditDataSource
from .debug_folder import DebugFolderSource
from .sharepoint import SharePointAuditSource, SharePointClient
from .sql_source import SqlAuditSource
from .types import SourceKind

logger = get_logger("gateway.factory", domain="d0")


def create_source(kind: Optional[Union[str, SourceKind]] = None) -> AuditDataSource:
    """
    Create the record source selected by ``kind`` or by ``settings.record_source``

    Raises:
        ConfigurationError: Unknown source kind, or SharePoint without a token
    """
    settings = get_settings()
    try:
        source_kind = SourceKind(kind or settings.record_source)
    except ValueError as e:
        raise ConfigurationError(f"Unknown record source: {kind}", setting="record_source") from e

    if source_kind is SourceKind.SQL:
        source: AuditDataSource = SqlAuditSource()
    elif source_kind is SourceKind.SHAREPOINT:
        try:
            client = SharePointClient()
        except ValueError as e:
            raise ConfigurationError(str(e), setting="sharepoint_access_token") from e
        source = SharePointAuditSource(client)
    else:
        source = DebugFolderSource()

    logger.info(f"Using {source_kind.value} record source")
    return source
