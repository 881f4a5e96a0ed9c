"""Chunked multipart uploads through presigned URL batches"""

from .config import UploaderSettings
from .models.upload_models import UploadOutcome, UploadProgress, UploadState, UploadStatus
from .services.byte_source import BytesByteSource, FileByteSource
from .services.upload_service import UploadOrchestrator

__version__ = "1.0.0"

__all__ = [
    'UploaderSettings',
    'UploadOrchestrator',
    'UploadOutcome',
    'UploadProgress',
    'UploadState',
    'UploadStatus',
    'BytesByteSource',
    'FileByteSource',
]
