# services/storage_api.py
import logging
from typing import Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import UploaderSettings
from ..models.errors import ProtocolError, TransportError
from ..models.upload_models import (
    AbortUploadRequest,
    BatchAssignment,
    BatchRequest,
    CompleteUploadRequest,
    CompleteUploadResponse,
    InitiateUploadRequest,
    InitiateUploadResponse,
    PartReceipt,
)

logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


def _error_detail(response: httpx.Response) -> str:
    """Best human-readable reason from an error response"""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase or f"HTTP {response.status_code}"


class StorageApiClient:
    """Client for the remote multipart session API"""

    def __init__(self, client: httpx.AsyncClient, settings: UploaderSettings):
        self._client = client
        self._api_base = settings.api_base_url.rstrip("/")
        self._completion_base = settings.completion_url
        self._timeout = settings.request_timeout_seconds
        self._headers: Dict[str, str] = {}
        if settings.api_token:
            self._headers["Authorization"] = f"Bearer {settings.api_token}"

    async def initiate(self, request: InitiateUploadRequest) -> InitiateUploadResponse:
        """Create a new multipart upload session"""
        return await self._post(
            f"{self._api_base}/uploads/initiate",
            request,
            InitiateUploadResponse,
        )

    async def request_batch(self, upload_id: str, confirmed: List[PartReceipt]) -> BatchAssignment:
        """Exchange confirmed receipts for the next wave of presigned URLs"""
        return await self._post(
            f"{self._api_base}/uploads/{upload_id}/presigned-urls/batch",
            BatchRequest(upload_id=upload_id, confirmed_etags=confirmed),
            BatchAssignment,
        )

    async def complete(self, upload_id: str, parts: List[PartReceipt]) -> CompleteUploadResponse:
        return await self._post(
            f"{self._completion_base}/complete-upload",
            CompleteUploadRequest(upload_id=upload_id, parts=parts),
            CompleteUploadResponse,
        )

    async def abort(self, upload_id: str):
        await self._post(
            f"{self._completion_base}/abort-upload",
            AbortUploadRequest(upload_id=upload_id),
        )

    async def _post(
        self,
        url: str,
        payload: BaseModel,
        response_model: Optional[Type[ResponseModel]] = None,
    ):
        try:
            response = await self._client.post(
                url,
                json=payload.model_dump(mode="json", by_alias=True),
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise TransportError(f"Could not reach storage API: {e}") from e

        if response.is_error:
            detail = _error_detail(response)
            logger.error(f"Storage API returned {response.status_code} for {url}: {detail}")
            raise TransportError(detail, status_code=response.status_code)

        if response_model is None:
            return None

        try:
            return response_model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProtocolError(f"Malformed response from {url}: {e}") from e
