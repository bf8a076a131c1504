"""
D0 Gateway - external collaborators of the report pipeline

Record sources (SQL, SharePoint REST, debug folder), the passing-grade
settings store, the bounded image fetcher and the section mapping config.
No other domain talks to a database, an HTTP endpoint or the file system.
"""

from .base import AuditDataSource
from .debug_folder import DebugFolderSource
from .exceptions import SourceError
from .factory import create_source
from .images import ImageFetcher
from .section_config import SectionConfig, SectionMapping, get_section_config, load_section_config
from .settings_store import SettingsStore, SqlSettingsStore
from .sharepoint import SharePointAuditSource, SharePointClient
from .sql_source import SqlAuditSource
from .types import RawSection, RecordShape, SourceKind

__all__ = [
    "AuditDataSource",
    "DebugFolderSource",
    "ImageFetcher",
    "RawSection",
    "RecordShape",
    "SectionConfig",
    "SectionMapping",
    "SettingsStore",
    "SharePointAuditSource",
    "SharePointClient",
    "SourceError",
    "SourceKind",
    "SqlAuditSource",
    "SqlSettingsStore",
    "create_source",
    "get_section_config",
    "load_section_config",
]
