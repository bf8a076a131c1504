"""
Tests for record source selection
"""
import pytest

from core.exceptions import ConfigurationError
from d0_gateway.debug_folder import DebugFolderSource
from d0_gateway.factory import create_source
from d0_gateway.sharepoint import SharePointAuditSource
from d0_gateway.sql_source import SqlAuditSource

pytestmark = [pytest.mark.unit]


class TestCreateSource:
    def test_sql_by_default(self):
        assert isinstance(create_source(), SqlAuditSource)

    def test_debug(self):
        assert isinstance(create_source("debug"), DebugFolderSource)

    def test_kind_from_settings(self, monkeypatch):
        monkeypatch.setenv("RECORD_SOURCE", "debug")
        assert isinstance(create_source(), DebugFolderSource)

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_source("ftp")
        assert exc_info.value.details == {"setting": "record_source"}

    def test_sharepoint_with_token(self, monkeypatch):
        monkeypatch.setenv("SHAREPOINT_ACCESS_TOKEN", "token-123")
        assert isinstance(create_source("sharepoint"), SharePointAuditSource)

    def test_sharepoint_without_token(self, monkeypatch):
        monkeypatch.delenv("SHAREPOINT_ACCESS_TOKEN", raising=False)
        with pytest.raises(ConfigurationError) as exc_info:
            create_source("sharepoint")
        assert exc_info.value.details == {"setting": "sharepoint_access_token"}
