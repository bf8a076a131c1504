"""
Bounded image fetcher

Downloads remote pictures and inlines them as base64 data URLs so a rendered
report is self-contained. A failed download keeps the remote URL.
"""

import asyncio
import base64
import mimetypes
from typing import Awaitable, Callable, Dict, Iterable, Optional

from core.config import get_settings
from core.logging import get_logger

from .exceptions import SourceError

DEFAULT_MIME_TYPE = "image/jpeg"

Downloader = Callable[[str], Awaitable[bytes]]


def mime_type_for(url: str) -> str:
    mime, _ = mimetypes.guess_type(url.split("?", 1)[0])
    return mime if mime and mime.startswith("image/") else DEFAULT_MIME_TYPE


def to_data_url(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


class ImageFetcher:
    """Fetch-and-encode with at most ``concurrency`` downloads in flight"""

    def __init__(self, downloader: Downloader, concurrency: Optional[int] = None):
        self.downloader = downloader
        self.concurrency = concurrency or get_settings().image_download_concurrency
        self.failures = 0
        self.logger = get_logger("gateway.images", domain="d0")

    async def _fetch_one(self, semaphore: asyncio.Semaphore, url: str) -> Optional[str]:
        async with semaphore:
            try:
                content = await self.downloader(url)
            except SourceError as e:
                self.failures += 1
                self.logger.warning(f"Image download failed, keeping remote URL {url}: {e.message}")
                return None
            except Exception as e:
                self.failures += 1
                self.logger.warning(
                    f"Image download failed, keeping remote URL {url}: {e.__class__.__name__}: {e}", exc_info=True
                )
                return None
        return to_data_url(content, mime_type_for(url))

    async def fetch_all(self, urls: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Download every distinct URL

        Returns:
            url -> data URL, or None when that download failed
        """
        unique = list(dict.fromkeys(url for url in urls if url))
        if not unique:
            return {}

        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(self._fetch_one(semaphore, url) for url in unique))
        self.logger.info(f"Embedded {sum(1 for r in results if r)} of {len(unique)} pictures")
        return dict(zip(unique, results))
