# services/batch_coordinator.py
import asyncio
import logging
from typing import Collection, Dict, List, Optional

from ..models.errors import PartUploadError, ProtocolError
from ..models.upload_models import (
    BatchAssignment,
    Part,
    PartReceipt,
    PresignedPart,
    WaveFatal,
    WavePartialFailure,
    WaveResult,
    WaveSuccess,
)
from .byte_source import ByteSource
from .part_uploader import PartUploader
from .storage_api import StorageApiClient

logger = logging.getLogger(__name__)


class BatchCoordinator:
    """Requests waves of presigned URLs and uploads each wave's parts"""

    def __init__(
        self,
        api: StorageApiClient,
        part_uploader: PartUploader,
        max_concurrency: Optional[int] = None,
    ):
        self._api = api
        self._part_uploader = part_uploader
        self.max_concurrency = max_concurrency

    async def request_wave(self, upload_id: str, confirmed: List[PartReceipt]) -> BatchAssignment:
        """Send every confirmed receipt so far and receive the next wave.

        The full cumulative set is always sent, which keeps a repeated
        request for the same wave harmless on the remote side.
        """
        ordered = sorted(confirmed, key=lambda r: r.part_number)
        assignment = await self._api.request_batch(upload_id, ordered)
        progress = assignment.progress
        logger.info(
            f"Wave assigned {len(assignment.presigned_urls)} parts "
            f"({progress.completed_parts}/{progress.total_parts} confirmed, "
            f"complete={progress.is_complete})"
        )
        return assignment

    async def execute_wave(
        self,
        assignment: BatchAssignment,
        parts: Dict[int, Part],
        source: ByteSource,
        skip: Collection[int] = (),
    ) -> WaveResult:
        """Upload every part of ``assignment`` concurrently.

        ``parts`` maps part numbers to byte ranges. Part numbers listed in
        ``skip`` are already confirmed and are not uploaded again. Part
        failures never cancel siblings; they are reported in the result.
        """
        targets: List[PresignedPart] = []
        for target in assignment.presigned_urls:
            if target.part_number not in parts:
                return WaveFatal(
                    error=ProtocolError(
                        f"Batch assigned unknown part number {target.part_number}"
                    )
                )
            if target.part_number in skip:
                logger.info(f"Part {target.part_number} already confirmed, skipping")
                continue
            targets.append(target)

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def upload(target: PresignedPart) -> PartReceipt:
            part = parts[target.part_number]
            if semaphore is None:
                return await self._part_uploader.upload_part(target.url, part, source)
            async with semaphore:
                return await self._part_uploader.upload_part(target.url, part, source)

        results = await asyncio.gather(
            *(upload(target) for target in targets), return_exceptions=True
        )

        receipts: List[PartReceipt] = []
        failed: List[int] = []
        for target, result in zip(targets, results):
            if isinstance(result, PartReceipt):
                receipts.append(result)
            elif isinstance(result, PartUploadError):
                logger.error(f"Failed to upload part {target.part_number}: {result}")
                failed.append(target.part_number)
            else:
                return WaveFatal(error=result)

        if failed:
            logger.warning(
                f"Batch completed with {len(receipts)}/{len(targets)} successful uploads"
            )
            return WavePartialFailure(receipts=receipts, failed_parts=failed)

        logger.info(f"All {len(receipts)} parts in batch uploaded successfully")
        return WaveSuccess(receipts=receipts)
