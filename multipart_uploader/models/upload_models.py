# models/upload_models.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional, Union
from enum import Enum


class UploadStatus(str, Enum):
    IDLE = "idle"
    INITIATING = "initiating"
    UPLOADING = "uploading"
    PAUSED = "paused"
    COMPLETING = "completing"
    DONE = "done"
    ABORTING = "aborting"
    ABORTED = "aborted"
    FAILED = "failed"


TERMINAL_STATUSES = {UploadStatus.DONE, UploadStatus.ABORTED, UploadStatus.FAILED}


class ApiModel(BaseModel):
    """Wire model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Part(BaseModel):
    model_config = ConfigDict(frozen=True)

    part_number: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


class PartReceipt(ApiModel):
    model_config = ConfigDict(frozen=True)

    part_number: int
    etag: str


class InitiateUploadRequest(ApiModel):
    bucket: str
    path: str
    file_name: str
    content_type: str
    file_size: int


class MultipartUploadInfo(ApiModel):
    part_size_bytes: int
    total_parts: Optional[int] = None
    presigned_urls_batch_size: Optional[int] = None
    total_batches: Optional[int] = None


class InitiateUploadResponse(ApiModel):
    upload_id: str
    bucket: Optional[str] = None
    object_key: Optional[str] = None
    multipart_upload_info: MultipartUploadInfo


class BatchRequest(ApiModel):
    upload_id: str
    confirmed_etags: List[PartReceipt] = Field(default_factory=list, alias="confirmedETags")


class PresignedPart(ApiModel):
    part_number: int
    url: str


class BatchProgress(ApiModel):
    completed_parts: int
    total_parts: int
    percent_complete: float
    is_complete: bool


class BatchAssignment(ApiModel):
    progress: BatchProgress
    presigned_urls: List[PresignedPart] = Field(default_factory=list)


class CompleteUploadRequest(ApiModel):
    upload_id: str
    parts: List[PartReceipt]


class CompleteUploadResponse(ApiModel):
    file_url: str


class AbortUploadRequest(ApiModel):
    upload_id: str


class UploadSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    upload_id: str
    total_size: int
    part_size: int
    bucket: Optional[str] = None
    object_key: Optional[str] = None
    presigned_urls_batch_size: Optional[int] = None
    total_batches: Optional[int] = None

    @property
    def total_parts(self) -> int:
        return -(-self.total_size // self.part_size)


class UploadState(BaseModel):
    upload_id: Optional[str] = None
    file_name: str
    file_size: int
    uploaded_size: int = 0
    speed: str = "0 B"
    time_remaining: str = "Calculating..."


class UploadProgress(BaseModel):
    percent_complete: float
    uploaded_size: int
    speed: str
    time_remaining: str


class UploadOutcome(BaseModel):
    status: UploadStatus
    file_url: Optional[str] = None


# Wave results

class WaveSuccess(BaseModel):
    kind: Literal["success"] = "success"
    receipts: List[PartReceipt]


class WavePartialFailure(BaseModel):
    kind: Literal["partial_failure"] = "partial_failure"
    receipts: List[PartReceipt]
    failed_parts: List[int]


class WaveFatal(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["fatal"] = "fatal"
    error: BaseException


WaveResult = Union[WaveSuccess, WavePartialFailure, WaveFatal]
