# services/part_uploader.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from ..models.errors import PartUploadError, ProtocolError, TransportError, UploadError
from ..models.upload_models import Part, PartReceipt
from .byte_source import ByteSource

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def normalize_etag(etag: str) -> str:
    """Strip exactly one pair of surrounding double quotes"""
    if len(etag) >= 2 and etag.startswith('"') and etag.endswith('"'):
        return etag[1:-1]
    return etag


class PartUploader:
    def __init__(
        self,
        client: httpx.AsyncClient,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        backoff_cap: float = 10.0,
        sleep: Optional[Sleep] = None,
        timeout: float = 300.0,
    ):
        self._client = client
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep or asyncio.sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)"""
        return min(self.backoff_base * 2 ** attempt, self.backoff_cap)

    async def upload_part(self, url: str, part: Part, source: ByteSource) -> PartReceipt:
        """PUT one part to its presigned URL and return its receipt.

        The first attempt goes out immediately, every retry waits for
        ``backoff_delay``. A 2xx response without an ETag header counts as a
        failed attempt. Raises ``PartUploadError`` once all attempts are used.
        """
        data = await source.read_range(part.start, part.end)
        if len(data) != part.size:
            raise PartUploadError(
                part.part_number,
                0,
                ProtocolError(f"Expected {part.size} bytes, read {len(data)}"),
            )

        last_error: Optional[UploadError] = None
        for attempt in range(self.max_attempts):
            if attempt > 0:
                await self._sleep(self.backoff_delay(attempt))
            try:
                return await self._put(url, part, data)
            except (TransportError, ProtocolError) as e:
                last_error = e
                logger.warning(
                    f"Failed to upload part {part.part_number} "
                    f"(attempt {attempt + 1}/{self.max_attempts}): {e}"
                )

        raise PartUploadError(part.part_number, self.max_attempts, last_error)

    async def _put(self, url: str, part: Part, data: bytes) -> PartReceipt:
        try:
            response = await self._client.put(url, content=data, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        if response.is_error:
            raise TransportError(
                f"HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        etag = response.headers.get("ETag")
        if not etag:
            raise ProtocolError("No ETag found in response headers")

        logger.debug(f"Part {part.part_number} uploaded ({part.size} bytes)")
        return PartReceipt(part_number=part.part_number, etag=normalize_etag(etag))
