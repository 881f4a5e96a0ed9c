from .batch_coordinator import BatchCoordinator
from .byte_source import ByteSource, BytesByteSource, FileByteSource
from .chunker import count_parts, split
from .part_uploader import PartUploader, normalize_etag
from .progress_tracker import ProgressTracker, format_speed, format_time_remaining
from .storage_api import StorageApiClient
from .upload_service import UploadOrchestrator

__all__ = [
    'BatchCoordinator',
    'ByteSource',
    'BytesByteSource',
    'FileByteSource',
    'count_parts',
    'split',
    'PartUploader',
    'normalize_etag',
    'ProgressTracker',
    'format_speed',
    'format_time_remaining',
    'StorageApiClient',
    'UploadOrchestrator',
]
