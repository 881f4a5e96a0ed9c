from .errors import (
    ConfigurationError,
    InvalidConfigurationError,
    InvalidStateError,
    PartUploadError,
    ProtocolError,
    TransportError,
    UploadError,
    UploadFailedError,
)
from .upload_models import (
    BatchAssignment,
    BatchProgress,
    Part,
    PartReceipt,
    PresignedPart,
    UploadOutcome,
    UploadProgress,
    UploadSession,
    UploadState,
    UploadStatus,
    WaveFatal,
    WavePartialFailure,
    WaveResult,
    WaveSuccess,
)

__all__ = [
    'ConfigurationError',
    'InvalidConfigurationError',
    'InvalidStateError',
    'PartUploadError',
    'ProtocolError',
    'TransportError',
    'UploadError',
    'UploadFailedError',
    'BatchAssignment',
    'BatchProgress',
    'Part',
    'PartReceipt',
    'PresignedPart',
    'UploadOutcome',
    'UploadProgress',
    'UploadSession',
    'UploadState',
    'UploadStatus',
    'WaveFatal',
    'WavePartialFailure',
    'WaveResult',
    'WaveSuccess',
]
