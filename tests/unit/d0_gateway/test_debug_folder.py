"""
Tests for the frozen-dump debug source
"""
import json

import pytest

from d0_gateway.debug_folder import DebugFolderSource, list_name_from_file
from d0_gateway.exceptions import SourceError
from d0_gateway.section_config import SectionConfig
from d0_gateway.types import RecordShape

pytestmark = [pytest.mark.unit]

DOCUMENT = "GMRL-FSACR-0048"


@pytest.fixture
def section_config():
    return SectionConfig.model_validate(
        {
            "sections": [
                {"key": "food_storage", "title": "Food Storage", "number": 1, "answer_list": "Survey Responses List", "score_field": "FoodScore"},
                {"key": "fridges", "title": "Fridges", "number": 2, "answer_list": "SRA Fridges"},
            ]
        }
    )


def write(folder, name, content):
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_text(content if isinstance(content, str) else json.dumps(content), encoding="utf-8")
    return path


@pytest.fixture
def dump_root(tmp_path):
    current = tmp_path / DOCUMENT
    write(current, "FS_Survey_Item1.json", {"Title": DOCUMENT, "Store_x0020_Name": "GMRL", "Cycle": "C3", "Created": "2025-06-01T00:00:00Z"})
    write(
        current,
        "Survey_Responses_List_Item1.json",
        {"ResponseJSON": json.dumps([{"Id": "1", "ReferenceValue": "1.1", "SelectedChoice": "Yes"}])},
    )
    write(current, "SRA_Fridges_Item1.json", [{"ImageID": f"{DOCUMENT}-5", "Title": "2.1 Fridge clean", "Coef": 2, "SelectedChoice": "No"}])
    write(current, "SRA_Fridges_Item2.json", "{not json")
    write(current, "CImages_Item1.json", {"ImageID": f"{DOCUMENT}-5", "Iscorrective": False, "FileRef": "pics/a.jpg"})
    write(current, "Fridges_finding_Item1.json", {"key": "Chiller", "Issue": "Warm"})
    write(current, "Fridges_Good_Item1.json", {"key": "Freezer"})
    (current / "pics").mkdir()
    (current / "pics" / "a.jpg").write_bytes(b"jpeg-bytes")

    prior = tmp_path / "GMRL-FSACR-0040"
    write(prior, "FS_Survey_Item1.json", {"Title": "GMRL-FSACR-0040", "Store_x0020_Name": "GMRL", "Cycle": "C2", "FoodScore": 80, "Created": "2025-04-01T00:00:00Z"})
    write(
        prior,
        "Survey_Responses_List_Item1.json",
        {"ResponseJSON": json.dumps([{"Id": "1", "ReferenceValue": "1.1", "SelectedChoice": "No"}])},
    )
    write(prior, "Categories_Item1.json", [{"CategoryID": 1, "CategoryName": "Storage", "SectionID": "food_storage"}])

    other_store = tmp_path / "XYZ-FSACR-0001"
    write(other_store, "FS_Survey_Item1.json", {"Title": "XYZ-FSACR-0001", "Store_x0020_Name": "XYZ"})
    return tmp_path


@pytest.fixture
def source(dump_root, section_config):
    return DebugFolderSource(root=str(dump_root), section_config=section_config)


class TestListNames:
    def test_list_name_from_file(self):
        assert list_name_from_file("SRA_Food_Handling_Item12.json") == "SRA Food Handling"
        assert list_name_from_file("FS_Survey_Item1.json") == "FS Survey"


class TestDebugFolderSource:
    @pytest.mark.asyncio
    async def test_header(self, source):
        header = await source.get_audit_header(DOCUMENT)
        assert header["DocumentNumber"] == DOCUMENT
        assert header["StoreName"] == "GMRL"

    @pytest.mark.asyncio
    async def test_sections_and_invalid_files(self, source):
        sections = await source.get_sections(DOCUMENT)

        food, fridges = sections
        assert len(food.answer_items) == 1
        assert food.shape is None
        assert fridges.shape is RecordShape.DEBUG_JSON
        assert fridges.records[0]["Coef"] == 2
        assert source.skipped_files == 1

    @pytest.mark.asyncio
    async def test_missing_document_folder(self, source):
        with pytest.raises(SourceError):
            await source.get_sections("NOPE-0000")

    @pytest.mark.asyncio
    async def test_pictures_and_readings(self, source):
        pictures = await source.get_pictures(DOCUMENT)
        readings = await source.get_fridge_readings(DOCUMENT)

        assert pictures[0]["ImageID"] == f"{DOCUMENT}-5"
        assert pictures[0]["Url"] == "pics/a.jpg"
        assert [r["ReadingType"] for r in readings] == ["Bad", "Good"]

    @pytest.mark.asyncio
    async def test_store_history_scans_other_dumps(self, source):
        history = await source.get_store_history("GMRL")

        assert [row["document_number"] for row in history] == [DOCUMENT, "GMRL-FSACR-0040"]
        assert history[1]["section_scores"] == {"Food Storage": {"percentage": 80}}

    @pytest.mark.asyncio
    async def test_historical_findings_exclude_current(self, source):
        findings = await source.get_historical_findings("GMRL", DOCUMENT)
        assert {f["DocumentNumber"] for f in findings} == {"GMRL-FSACR-0040"}
        assert findings[0]["SectionName"] == "Food Storage"

    @pytest.mark.asyncio
    async def test_categories(self, source):
        rows = await source.get_categories(None)
        assert rows == [{"CategoryID": 1, "CategoryName": "Storage", "SectionID": "food_storage"}]

    @pytest.mark.asyncio
    async def test_download_file(self, source):
        assert await source.download_file(f"{DOCUMENT}/pics/a.jpg") == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_download_outside_root_refused(self, source):
        with pytest.raises(SourceError, match="outside"):
            await source.download_file("../../etc/passwd")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document_number", ["../GMRL-FSACR-0040", "..", "."])
    async def test_document_outside_root_refused(self, dump_root, section_config, document_number):
        nested = DebugFolderSource(root=str(dump_root / DOCUMENT), section_config=section_config)

        with pytest.raises(SourceError, match="outside"):
            await nested.get_sections(document_number)
