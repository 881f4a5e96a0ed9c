import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv

from .config import UploaderSettings
from .models.errors import UploadError
from .models.upload_models import UploadProgress, UploadStatus
from .services.byte_source import FileByteSource
from .services.upload_service import UploadOrchestrator

load_dotenv()

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or "application/octet-stream"


def log_progress(progress: UploadProgress):
    logger.info(
        f"{progress.percent_complete:.1f}% uploaded "
        f"({progress.uploaded_size} bytes, {progress.speed}/s, "
        f"{progress.time_remaining} remaining)"
    )


async def upload_file(
    args,
    settings: UploaderSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    path = Path(args.file)
    source = FileByteSource(path)

    async with httpx.AsyncClient(
        timeout=settings.request_timeout_seconds, transport=transport
    ) as client:
        orchestrator = UploadOrchestrator(settings, client, on_progress=log_progress)
        orchestrator.select_file(
            source,
            content_type=args.content_type or guess_content_type(path),
        )
        try:
            outcome = await orchestrator.start_upload(args.path)
        except asyncio.CancelledError:
            logger.warning("Interrupted, aborting upload")
            await orchestrator.abort()
            raise

    if outcome.status == UploadStatus.DONE:
        print(outcome.file_url)
        return 0

    logger.warning(f"Upload stopped: {outcome.status.value}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Upload a large file through a presigned multipart session"
    )
    parser.add_argument("file", help="File to upload")
    parser.add_argument("--path", default=None, help="Destination path inside the bucket")
    parser.add_argument("--bucket", default=None, help="Destination bucket")
    parser.add_argument("--api-url", default=None, help="Storage API base URL")
    parser.add_argument("--concurrency", type=int, default=None,
                        help="Maximum concurrent part uploads per wave")
    parser.add_argument("--content-type", default=None, help="Override the detected content type")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        settings = UploaderSettings.from_env(
            api_base_url=args.api_url,
            bucket=args.bucket,
            max_concurrency=args.concurrency,
        )
        return asyncio.run(upload_file(args, settings))
    except (UploadError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
