import asyncio
import logging
from typing import List, Optional, Sequence

from file_gateway.core.config import Settings
from file_gateway.core.errors import GatewayError, ValidationError
from file_gateway.core.validation import validate_upload
from file_gateway.models.file import UploadBatchOutcome, UploadFailure, UploadItem, UploadResult
from file_gateway.services.buckets import BucketManager
from file_gateway.services.resolver import FileIdResolver
from file_gateway.services.storage import FILENAME_META, StorageService

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """Uploads single files and batches.

    Batch items are validated one by one; the valid ones are stored
    concurrently, at most ``concurrency`` at a time. A failing item is
    recorded and never stops or rolls back the others.
    """

    def __init__(
        self,
        storage: StorageService,
        resolver: FileIdResolver,
        buckets: BucketManager,
        settings: Settings,
    ):
        self.storage = storage
        self.resolver = resolver
        self.buckets = buckets
        self.settings = settings
        self.concurrency = max(1, settings.UPLOAD_CONCURRENCY)

    def _store(self, item: UploadItem, destination: Optional[str]) -> UploadResult:
        placement = self.resolver.placement(destination, item.filename)
        self.storage.put(
            placement.bucket,
            placement.key,
            item.buffer,
            content_type=item.mimetype,
            metadata={FILENAME_META: item.filename},
        )
        logger.debug(
            "Stored %r as file %s", item.filename, placement.file_id,
            extra={"bucket": placement.bucket, "key": placement.key, "file_id": placement.file_id},
        )
        return UploadResult(
            file_id=placement.file_id,
            bucket_name=placement.bucket,
            category=placement.category,
            key=placement.key,
            filename=item.filename,
            size=len(item.buffer),
            mimetype=item.mimetype,
        )

    def _prepare_destination(self, destination: Optional[str]) -> None:
        # Raises ValidationError for a bad destination before anything is stored
        bucket = self.resolver.placement(destination, "").bucket
        self.buckets.ensure(bucket)

    async def upload_one(self, item: UploadItem, destination: Optional[str]) -> UploadResult:
        reasons = validate_upload(item, self.settings)
        if reasons:
            raise ValidationError(f"Invalid upload {item.filename!r}", reasons)
        await asyncio.to_thread(self._prepare_destination, destination)
        return await asyncio.to_thread(self._store, item, destination)

    async def upload_batch(self, items: Sequence[UploadItem], destination: Optional[str]) -> UploadBatchOutcome:
        outcome = UploadBatchOutcome()
        valid: List[UploadItem] = []
        for item in items:
            reasons = validate_upload(item, self.settings)
            if reasons:
                outcome.errors.append(
                    UploadFailure(filename=item.filename, reason="; ".join(reasons), details=reasons)
                )
            else:
                valid.append(item)

        if valid:
            await asyncio.to_thread(self._prepare_destination, destination)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(item: UploadItem) -> None:
            async with semaphore:
                try:
                    result = await asyncio.to_thread(self._store, item, destination)
                except GatewayError as e:
                    logger.warning("Upload of %r failed: %s", item.filename, e.message)
                    outcome.errors.append(
                        UploadFailure(filename=item.filename, reason=e.message, details=e.details)
                    )
                    return
                except Exception as e:
                    logger.exception("Unexpected error uploading %r", item.filename)
                    outcome.errors.append(UploadFailure(filename=item.filename, reason=str(e)))
                    return
            outcome.successes.append(result)

        await asyncio.gather(*(run(item) for item in valid))
        logger.info(
            "Batch upload finished: %d stored, %d failed",
            len(outcome.successes),
            len(outcome.errors),
        )
        return outcome
