"""
SharePoint REST client and list-based audit source

Authentication is out of scope: the client is handed a bearer token.
"""

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import httpx

from core.config import get_settings
from core.logging import get_logger

from .base import AuditDataSource
from .exceptions import SourceError
from .section_config import SectionConfig, SectionMapping, get_section_config
from .types import RawSection, RecordShape, SourceKind

IMAGE_SELECT = "Id,ImageID,Iscorrective,FileLeafRef,FileRef,File_x0020_Type,Created"
PAGE_SIZE = 1000


def odata_literal(value: str) -> str:
    """Quote a value for an OData $filter expression"""
    return "'" + str(value).replace("'", "''") + "'"


class SharePointClient:
    """Thin async wrapper over the SharePoint REST API"""

    def __init__(
        self,
        site_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = get_settings()
        self.site_url = (site_url or self.settings.sharepoint_site_url).rstrip("/") + "/"
        self.logger = get_logger("gateway.sharepoint", domain="d0")
        token = access_token or self.settings.get_sharepoint_token()

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or float(self.settings.request_timeout)),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json;odata=verbose",
            },
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    def absolute_url(self, server_relative_url: str) -> str:
        """Turn a FileRef like /operations/CImages/a.jpg into a full URL"""
        if urlparse(server_relative_url).scheme:
            return server_relative_url
        parsed = urlparse(self.site_url)
        return urljoin(f"{parsed.scheme}://{parsed.netloc}", server_relative_url)

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self.client.get(url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.logger.warning(f"SharePoint request failed: {url}: {e}")
            raise SourceError("sharepoint", f"request to {url} failed: {e.__class__.__name__}") from e

        if response.status_code >= 400:
            self.logger.warning(f"SharePoint returned HTTP {response.status_code} for {url}")
            raise SourceError(
                "sharepoint",
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
            )
        return response

    async def _get_items(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = url
        next_params: Optional[Dict[str, Any]] = params
        while next_url:
            response = await self._get(next_url, params=next_params)
            try:
                payload = response.json().get("d", {})
            except ValueError as e:
                raise SourceError("sharepoint", f"invalid JSON from {next_url}") from e
            items.extend(payload.get("results", []))
            # __next already embeds the query string
            next_url = payload.get("__next")
            next_params = None
        return items

    async def get_list_items(
        self,
        list_name: str,
        filter: Optional[str] = None,
        top: Optional[int] = None,
        expand: Optional[str] = None,
        select: Optional[str] = None,
        orderby: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Items of a list addressed by title

        Args:
            list_name: List title
            filter: OData $filter expression
            top: Page size
            expand: OData $expand
            select: OData $select
            orderby: OData $orderby

        Returns:
            All items across pages
        """
        params: Dict[str, Any] = {"$top": top or PAGE_SIZE}
        if filter:
            params["$filter"] = filter
        if expand:
            params["$expand"] = expand
        if select:
            params["$select"] = select
        if orderby:
            params["$orderby"] = orderby

        url = f"{self.site_url}_api/web/lists/GetByTitle({odata_literal(list_name)})/items"
        items = await self._get_items(url, params)
        self.logger.debug(f"Fetched {len(items)} items from {list_name}")
        return items

    async def get_library_items(
        self, list_guid: str, select: str, filter: Optional[str] = None, top: int = PAGE_SIZE
    ) -> List[Dict[str, Any]]:
        """Items of a list or document library addressed by GUID"""
        params: Dict[str, Any] = {"$select": select, "$top": top}
        if filter:
            params["$filter"] = filter
        url = f"{self.site_url}_api/web/lists(guid'{list_guid}')/items"
        return await self._get_items(url, params)

    async def download_file(self, url: str) -> bytes:
        response = await self._get(self.absolute_url(url))
        return response.content


class SharePointAuditSource(AuditDataSource):
    """Audit source reading the SharePoint answer, survey, picture and fridge lists"""

    kind = SourceKind.SHAREPOINT

    def __init__(
        self,
        client: SharePointClient,
        section_config: Optional[SectionConfig] = None,
        images_list: Optional[str] = None,
    ):
        super().__init__()
        self.client = client
        self.config = section_config or get_section_config()
        self.images_list = images_list or get_settings().sharepoint_images_list

    async def close(self) -> None:
        await self.client.close()

    async def get_audit_header(self, document_number: str) -> Optional[Dict[str, Any]]:
        items = await self.client.get_list_items(
            self.config.header_list,
            filter=f"Title eq {odata_literal(document_number)}",
            top=1,
        )
        if not items:
            return None
        header = dict(items[0])
        header.setdefault("DocumentNumber", document_number)
        header.setdefault("StoreName", header.get(self.config.store_field))
        return header

    async def _fetch_section(self, mapping: SectionMapping, document_number: str) -> RawSection:
        section = RawSection(
            section_id=mapping.key,
            section_name=mapping.title,
            section_number=mapping.number,
            icon=mapping.icon,
            shape=RecordShape.SHAREPOINT_JSON,
        )
        field = self.config.document_field_for(mapping)
        try:
            section.answer_items = await self.client.get_list_items(
                mapping.answer_list, filter=f"{field} eq {odata_literal(document_number)}"
            )
        except SourceError as e:
            self.logger.warning(f"Answer list {mapping.answer_list} unavailable for {document_number}: {e.message}")
            section.warnings.append(f"Answers for {mapping.title} could not be loaded: {e.message}")
        return section

    async def get_sections(self, document_number: str) -> List[RawSection]:
        return list(
            await asyncio.gather(
                *(self._fetch_section(mapping, document_number) for mapping in self.config.ordered_sections())
            )
        )

    async def get_pictures(self, document_number: str) -> List[Dict[str, Any]]:
        # The picture library has no document column; every file is listed and filtered by ImageID
        items = await self.client.get_library_items(self.images_list, select=IMAGE_SELECT, filter="FSObjType eq 0")
        pictures = []
        for item in items:
            file_ref = item.get("FileRef")
            pictures.append(
                {
                    "ImageID": item.get("ImageID"),
                    "Iscorrective": item.get("Iscorrective"),
                    "FileName": item.get("FileLeafRef"),
                    "Url": self.client.absolute_url(file_ref) if file_ref else None,
                    "Created": item.get("Created"),
                }
            )
        return pictures

    async def get_fridge_readings(self, document_number: str) -> List[Dict[str, Any]]:
        lists = self.config.fridge_lists
        finding_items, good_items = await asyncio.gather(
            self.client.get_list_items(
                lists.finding, filter=f"substringof({odata_literal(document_number)}, {lists.finding_key_field})"
            ),
            self.client.get_list_items(
                lists.good, filter=f"substringof({odata_literal(document_number)}, {lists.good_key_field})"
            ),
        )
        return [{**item, "ReadingType": "Bad"} for item in finding_items] + [
            {**item, "ReadingType": "Good"} for item in good_items
        ]

    async def get_store_history(self, store_name: str) -> List[Dict[str, Any]]:
        items = await self.client.get_list_items(
            self.config.header_list,
            filter=f"{self.config.store_field} eq {odata_literal(store_name)}",
            orderby="Created desc",
        )
        return [self.config.history_row(item) for item in items]

    async def get_historical_findings(self, store_name: str, exclude_document: str) -> List[Dict[str, Any]]:
        history = await self.get_store_history(store_name)
        documents = [
            row["document_number"]
            for row in history
            if row.get("document_number") and row["document_number"] != exclude_document
        ][: get_settings().max_history_cycles]
        if not documents:
            return []

        async def fetch(mapping: SectionMapping) -> List[Dict[str, Any]]:
            field = self.config.document_field_for(mapping)
            clause = " or ".join(f"{field} eq {odata_literal(doc)}" for doc in documents)
            try:
                items = await self.client.get_list_items(mapping.answer_list, filter=clause)
            except SourceError as e:
                self.logger.warning(f"Historical answers for {mapping.title} unavailable: {e.message}")
                return []
            tagged = []
            for item in items:
                tagged.append({**item, "DocumentNumber": item.get(field), "SectionName": mapping.title})
            return tagged

        per_section = await asyncio.gather(*(fetch(mapping) for mapping in self.config.ordered_sections()))
        return [item for items in per_section for item in items]

    async def get_categories(self, schema_id: Optional[str]) -> List[Dict[str, Any]]:
        # Categories are only maintained in the relational store
        return []

    async def download_file(self, url: str) -> bytes:
        return await self.client.download_file(url)
