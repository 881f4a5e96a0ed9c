# services/upload_service.py
import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import httpx

from ..config import UploaderSettings
from ..models.errors import (
    InvalidStateError,
    ProtocolError,
    UploadError,
    UploadFailedError,
)
from ..models.upload_models import (
    TERMINAL_STATUSES,
    InitiateUploadRequest,
    Part,
    PartReceipt,
    UploadOutcome,
    UploadProgress,
    UploadSession,
    UploadState,
    UploadStatus,
    WaveFatal,
    WavePartialFailure,
)
from . import chunker
from .batch_coordinator import BatchCoordinator
from .byte_source import ByteSource, FileByteSource
from .part_uploader import PartUploader, Sleep
from .progress_tracker import ProgressTracker, percent_complete
from .storage_api import StorageApiClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]

BUSY_STATUSES = {
    UploadStatus.INITIATING,
    UploadStatus.UPLOADING,
    UploadStatus.PAUSED,
    UploadStatus.COMPLETING,
    UploadStatus.ABORTING,
}


class UploadOrchestrator:
    """Drives one file through a remote multipart upload session.

    Lifecycle::

        idle -> initiating -> uploading <-> paused -> completing -> done
                 any non-terminal state -> aborting -> aborted
                 initiating / uploading / completing -> failed

    The wave loop is the only writer of the upload state. ``pause`` is
    honoured at the top of the loop, so the current wave always finishes.
    ``abort`` may be called while a wave is in flight; the in-flight part
    uploads are cancelled and the loop discards that wave's results.
    """

    def __init__(
        self,
        settings: UploaderSettings,
        client: httpx.AsyncClient,
        on_progress: Optional[ProgressCallback] = None,
        sleep: Optional[Sleep] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._api = StorageApiClient(client, settings)
        self._coordinator = BatchCoordinator(
            self._api,
            PartUploader(
                client,
                max_attempts=settings.max_attempts,
                backoff_base=settings.backoff_base_seconds,
                backoff_cap=settings.backoff_cap_seconds,
                sleep=sleep,
                timeout=settings.request_timeout_seconds,
            ),
            max_concurrency=settings.max_concurrency,
        )
        self._on_progress = on_progress
        self._clock = clock

        self._status = UploadStatus.IDLE
        self._source: Optional[ByteSource] = None
        self._content_type = "application/octet-stream"
        self._state: Optional[UploadState] = None
        self._session: Optional[UploadSession] = None
        self._parts: Dict[int, Part] = {}
        self._receipts: Dict[int, PartReceipt] = {}
        self._tracker: Optional[ProgressTracker] = None
        self._file_url: Optional[str] = None
        self._waves_requested = 0
        self._stalled_waves = 0
        self._wave_task: Optional[asyncio.Task] = None

        self._pause_requested = False
        self._abort_requested = False
        self._running = False

    # Read-only views

    @property
    def status(self) -> UploadStatus:
        return self._status

    @property
    def upload_state(self) -> Optional[UploadState]:
        return self._state.model_copy() if self._state else None

    @property
    def session(self) -> Optional[UploadSession]:
        return self._session

    @property
    def receipts(self) -> List[PartReceipt]:
        return sorted(self._receipts.values(), key=lambda r: r.part_number)

    @property
    def file_url(self) -> Optional[str]:
        return self._file_url

    # Caller surface

    def select_file(
        self,
        source: Union[ByteSource, str, Path],
        file_name: Optional[str] = None,
        content_type: Optional[str] = None,
    ):
        """Choose the payload for the next upload"""
        if self._running or self._status in BUSY_STATUSES:
            raise InvalidStateError(f"Cannot select a file while {self._status.value}")

        if not isinstance(source, ByteSource):
            source = FileByteSource(source)

        self._source = source
        self._content_type = content_type or "application/octet-stream"
        self._state = UploadState(
            file_name=file_name or source.name,
            file_size=source.size,
        )
        self._file_url = None
        self._set_status(UploadStatus.IDLE)
        logger.info(f"Selected file {self._state.file_name} ({source.size} bytes)")

    async def start_upload(self, path: Optional[str] = None) -> UploadOutcome:
        """Initiate a session and run the wave loop until it stops.

        Returns when the upload is done, paused or aborted. Raises
        ``UploadFailedError`` if the session cannot be completed.
        """
        if self._source is None or self._state is None:
            raise InvalidStateError("No file selected")
        if self._running or self._status in BUSY_STATUSES:
            raise InvalidStateError(f"Cannot start an upload while {self._status.value}")

        self._reset_session()
        self._file_url = None
        self._pause_requested = False
        self._abort_requested = False
        self._running = True
        try:
            self._set_status(UploadStatus.INITIATING)
            try:
                await self._initiate(path or self.settings.storage_path)
            except UploadError as e:
                if self._abort_requested:
                    return await self._finish_abort_during_initiation()
                raise await self._failure(e) from e

            if self._abort_requested:
                return await self._finish_abort_during_initiation()

            return await self._run()
        finally:
            self._running = False

    def pause(self):
        """Stop requesting new waves once the current wave finishes"""
        if self._status not in (UploadStatus.INITIATING, UploadStatus.UPLOADING):
            raise InvalidStateError(f"Cannot pause while {self._status.value}")
        self._pause_requested = True
        logger.info("Pause requested, waiting for the current wave to finish")

    async def resume(self) -> UploadOutcome:
        """Continue a paused upload with the receipts collected so far"""
        if self._status != UploadStatus.PAUSED or self._running:
            raise InvalidStateError(f"Cannot resume while {self._status.value}")

        self._pause_requested = False
        self._running = True
        logger.info(f"Resuming upload {self._session.upload_id}")
        try:
            return await self._run()
        finally:
            self._running = False

    async def abort(self) -> UploadOutcome:
        """Abort the remote session and reset local state.

        Local state is reset even when the remote abort call fails.
        """
        if self._status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Cannot abort while {self._status.value}")
        if self._status == UploadStatus.ABORTING:
            return UploadOutcome(status=UploadStatus.ABORTING)

        self._abort_requested = True
        self._set_status(UploadStatus.ABORTING)

        if self._session is None:
            if self._running:
                # Still initiating: the run loop aborts once the upload id arrives.
                logger.info("Abort requested during initiation")
                return UploadOutcome(status=UploadStatus.ABORTING)
            self._reset_session()
            self._set_status(UploadStatus.ABORTED)
            return UploadOutcome(status=UploadStatus.ABORTED)

        await self._abort_remote(self._session.upload_id)
        self._reset_session()
        self._set_status(UploadStatus.ABORTED)
        if self._wave_task is not None:
            # Parts still in flight target a session that no longer exists.
            self._wave_task.cancel()
        return UploadOutcome(status=UploadStatus.ABORTED)

    # Internals

    async def _initiate(self, path: str):
        request = InitiateUploadRequest(
            bucket=self.settings.bucket,
            path=path,
            file_name=self._state.file_name,
            content_type=self._content_type,
            file_size=self._source.size,
        )
        response = await self._api.initiate(request)
        info = response.multipart_upload_info

        self._session = UploadSession(
            upload_id=response.upload_id,
            total_size=self._source.size,
            part_size=info.part_size_bytes,
            bucket=response.bucket,
            object_key=response.object_key,
            presigned_urls_batch_size=info.presigned_urls_batch_size,
            total_batches=info.total_batches,
        )
        self._state.upload_id = response.upload_id

        parts = chunker.split(self._source.size, info.part_size_bytes)
        self._parts = {part.part_number: part for part in parts}
        if info.total_parts is not None and info.total_parts != len(parts):
            logger.warning(
                f"Remote expects {info.total_parts} parts, file splits into {len(parts)}"
            )

        self._tracker = ProgressTracker(self._source.size, clock=self._clock)
        logger.info(
            f"Started upload {response.upload_id} with part size "
            f"{info.part_size_bytes} ({len(parts)} parts)"
        )

    async def _run(self) -> UploadOutcome:
        self._set_status(UploadStatus.UPLOADING)
        self._tracker.reset(self._state.uploaded_size)
        upload_id = self._session.upload_id

        while True:
            if self._abort_requested:
                return UploadOutcome(status=UploadStatus.ABORTED)
            if self._pause_requested:
                self._set_status(UploadStatus.PAUSED)
                logger.info(f"Upload {upload_id} paused")
                return UploadOutcome(status=UploadStatus.PAUSED)

            if self._waves_requested >= self.settings.max_waves:
                error = ProtocolError(
                    f"Remote session did not complete within {self.settings.max_waves} waves"
                )
                raise await self._failure(error) from error
            self._waves_requested += 1

            try:
                assignment = await self._coordinator.request_wave(upload_id, self.receipts)
            except UploadError as e:
                if self._abort_requested:
                    return UploadOutcome(status=UploadStatus.ABORTED)
                raise await self._failure(e) from e

            if self._abort_requested:
                return UploadOutcome(status=UploadStatus.ABORTED)
            if assignment.progress.is_complete:
                break

            self._wave_task = asyncio.ensure_future(
                self._coordinator.execute_wave(
                    assignment, self._parts, self._source, skip=set(self._receipts)
                )
            )
            try:
                result = await self._wave_task
            except asyncio.CancelledError:
                if not self._abort_requested:
                    raise
                result = None
            finally:
                self._wave_task = None

            if self._abort_requested:
                logger.info("Discarding wave results after abort")
                return UploadOutcome(status=UploadStatus.ABORTED)
            if isinstance(result, WaveFatal):
                raise await self._failure(result.error) from result.error

            added = self._record_receipts(result.receipts)
            if isinstance(result, WavePartialFailure):
                logger.warning(
                    f"Parts {result.failed_parts} not confirmed, "
                    f"expecting them in a later wave"
                )

            self._stalled_waves = 0 if added else self._stalled_waves + 1
            if self._stalled_waves >= self.settings.max_stalled_waves:
                error = ProtocolError(
                    f"No forward progress after {self._stalled_waves} consecutive waves"
                )
                raise await self._failure(error) from error

            self._report_progress()

        return await self._complete()

    async def _complete(self) -> UploadOutcome:
        self._set_status(UploadStatus.COMPLETING)
        session = self._session

        missing = sorted(set(self._parts) - set(self._receipts))
        if missing:
            error = ProtocolError(
                f"Remote reported completion with unconfirmed parts {missing}"
            )
            raise await self._failure(error) from error

        logger.info("All parts uploaded, completing multipart upload...")
        try:
            response = await self._api.complete(session.upload_id, self.receipts)
        except UploadError as e:
            if self._abort_requested:
                return UploadOutcome(status=UploadStatus.ABORTED)
            raise await self._failure(e) from e

        if self._abort_requested:
            return UploadOutcome(status=UploadStatus.ABORTED)

        self._file_url = response.file_url
        logger.info(f"Upload complete! File URL: {response.file_url}")
        self._reset_session()
        self._set_status(UploadStatus.DONE)
        return UploadOutcome(status=UploadStatus.DONE, file_url=response.file_url)

    def _record_receipts(self, receipts: List[PartReceipt]) -> int:
        """Merge a wave's receipts; confirmed part numbers are never rewritten"""
        added = 0
        for receipt in receipts:
            if receipt.part_number in self._receipts:
                continue
            self._receipts[receipt.part_number] = receipt
            added += 1

        confirmed_bytes = sum(self._parts[n].size for n in self._receipts)
        self._state.uploaded_size = max(
            self._state.uploaded_size, min(confirmed_bytes, self._state.file_size)
        )
        return added

    def _report_progress(self):
        state = self._state
        snapshot = self._tracker.observe(state.uploaded_size)
        if snapshot is not None:
            state.speed = snapshot.speed
            state.time_remaining = snapshot.time_remaining

        if self._on_progress is not None:
            self._on_progress(
                UploadProgress(
                    percent_complete=percent_complete(state.uploaded_size, state.file_size),
                    uploaded_size=state.uploaded_size,
                    speed=state.speed,
                    time_remaining=state.time_remaining,
                )
            )

    async def _failure(self, error: Exception) -> UploadFailedError:
        """Move to failed, abort the remote session best-effort and reset"""
        logger.error(f"Upload failed: {error}")
        self._set_status(UploadStatus.FAILED)
        if self._session is not None and not self._abort_requested:
            await self._abort_remote(self._session.upload_id)
        self._reset_session()
        return UploadFailedError(f"Upload failed: {error}")

    async def _finish_abort_during_initiation(self) -> UploadOutcome:
        if self._session is not None:
            await self._abort_remote(self._session.upload_id)
        self._reset_session()
        self._set_status(UploadStatus.ABORTED)
        return UploadOutcome(status=UploadStatus.ABORTED)

    async def _abort_remote(self, upload_id: str) -> bool:
        try:
            await self._api.abort(upload_id)
        except UploadError as e:
            logger.error(f"Failed to abort upload {upload_id}: {e}")
            return False
        logger.info(f"Upload {upload_id} aborted successfully")
        return True

    def _reset_session(self):
        self._session = None
        self._parts = {}
        self._receipts = {}
        self._tracker = None
        self._waves_requested = 0
        self._stalled_waves = 0
        if self._state is not None:
            self._state.upload_id = None
            self._state.uploaded_size = 0
            self._state.speed = "0 B"
            self._state.time_remaining = "Calculating..."

    def _set_status(self, status: UploadStatus):
        if status != self._status:
            logger.debug(f"Upload status {self._status.value} -> {status.value}")
        self._status = status
