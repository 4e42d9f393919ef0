"""
Receipt ingestion pipeline.

    RECEIVED -> VALIDATED -> UPLOADED -> EXTRACTED -> PERSISTED -> RESPONDED

Each request runs the stages once, in order, with no shared state between
requests. Any failure stops the pipeline and is re-raised with the stage it
happened in. Nothing is retried and nothing is compensated: if extraction or
persistence fails after the upload, the stored image stays behind as an
orphan and is logged with its storage_ref for out-of-band cleanup.
"""

from enum import Enum
from typing import Protocol

from loguru import logger
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.errors import ReceiptServiceError, StoreUnavailable, UpstreamError
from ..models.receipt import ExtractionResult, Receipt
from .blob_storage import StorageGatewayBase
from .image_validator import reject_if_invalid
from .storage.receipt_repository_base import ReceiptRepositoryBase


class IngestionStage(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    UPLOADED = "uploaded"
    EXTRACTED = "extracted"
    PERSISTED = "persisted"
    RESPONDED = "responded"


class Extractor(Protocol):
    async def extract(self, image_url: str) -> ExtractionResult: ...


class ReceiptIngestionService:
    def __init__(
        self,
        storage: StorageGatewayBase,
        extractor: Extractor,
        repository: ReceiptRepositoryBase,
        max_upload_bytes: int | None = None,
    ):
        self.storage = storage
        self.extractor = extractor
        self.repository = repository
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

    async def ingest(self, owner_id: str, filename: str | None, content: bytes | None) -> Receipt:
        """
        Run one receipt image through the pipeline for an owner.

        Returns:
            The persisted Receipt

        Raises:
            ImageRejected: the file failed validation (no network call made)
            StorageError / ExtractionError: a provider failed
            StoreUnavailable: the receipt could not be persisted
        """
        log = logger.bind(owner_id=owner_id, filename=filename)
        stage = IngestionStage.RECEIVED
        stored = None

        try:
            mime_type = reject_if_invalid(filename, content, self.max_upload_bytes)
            stage = IngestionStage.VALIDATED
            log.info("Receipt image accepted", mime_type=mime_type, size=len(content))

            stored = await self.storage.upload(content, mime_type, owner_id)
            stage = IngestionStage.UPLOADED
            log.info("Receipt image uploaded", storage_ref=stored.storage_ref)

            extraction = await self.extractor.extract(stored.url)
            stage = IngestionStage.EXTRACTED

            try:
                receipt = await run_in_threadpool(
                    self.repository.create,
                    owner_id,
                    extraction,
                    stored.url,
                    stored.storage_ref,
                )
            except ValueError as e:
                # Receipt model validators rejected the row at persistence time
                raise StoreUnavailable(f"Receipt failed validation on create: {e}") from e
            stage = IngestionStage.PERSISTED
        except ReceiptServiceError as e:
            e.stage = stage.value
            self._log_failure(log, e, stored)
            raise

        log.info("Receipt ingested", receipt_id=receipt.id, stage=IngestionStage.RESPONDED.value)
        return receipt

    @staticmethod
    def _log_failure(log, error: ReceiptServiceError, stored) -> None:
        if isinstance(error, (UpstreamError, StoreUnavailable)):
            log.error("Ingestion failed", stage=error.stage, error_type=type(error).__name__, detail=error.detail)
        else:
            log.info("Ingestion rejected", stage=error.stage, detail=error.detail)

        if stored is not None:
            log.warning("Uploaded image left without a receipt", storage_ref=stored.storage_ref)
