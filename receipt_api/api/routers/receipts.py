
from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from ..deps import (
    ErrorResponse,
    MessageResponse,
    ReceiptListResponse,
    ReceiptResponse,
    get_current_owner,
    get_ingestion_service,
    get_receipt_repository,
    get_storage_gateway,
)
from ...core.errors import NotFoundOrForbidden, StorageError
from ...services.blob_storage import StorageGatewayBase
from ...services.ingestion import ReceiptIngestionService
from ...services.storage import ReceiptRepositoryBase

router = APIRouter(
    prefix="/api/receipts",
    tags=["receipts"],
    responses={
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.post(
    "",
    response_model=ReceiptResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def upload_receipt(
    receipt: UploadFile | None = File(None),
    owner_id: str = Depends(get_current_owner),
    service: ReceiptIngestionService = Depends(get_ingestion_service),
):
    """
    Upload a receipt image (multipart field `receipt`, JPG/JPEG/PNG, max 5MB).

    The image is stored, read by the vision model and the validated result is
    saved for the caller. The response is built from the saved receipt.
    """
    filename = receipt.filename if receipt else None
    content = await receipt.read() if receipt else None

    saved = await service.ingest(owner_id, filename, content)
    return ReceiptResponse.from_receipt(saved)


@router.get("", response_model=ReceiptListResponse)
async def list_receipts(
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepositoryBase = Depends(get_receipt_repository),
):
    """List the caller's receipts, newest first"""
    receipts = await run_in_threadpool(repository.list_by_owner, owner_id)
    return ReceiptListResponse(
        receipts=[ReceiptResponse.from_receipt(r) for r in receipts],
        total=len(receipts),
    )


@router.get("/{receipt_id}", response_model=ReceiptResponse, responses={404: {"model": ErrorResponse}})
async def get_receipt(
    receipt_id: str,
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepositoryBase = Depends(get_receipt_repository),
):
    saved = await run_in_threadpool(repository.get_by_owner_and_id, owner_id, receipt_id)
    if saved is None:
        raise NotFoundOrForbidden(f"Receipt {receipt_id} not found for owner")
    return ReceiptResponse.from_receipt(saved)


@router.delete("/{receipt_id}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
async def delete_receipt(
    receipt_id: str,
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepositoryBase = Depends(get_receipt_repository),
    storage: StorageGatewayBase = Depends(get_storage_gateway),
):
    """Permanently delete one of the caller's receipts and release its image"""
    deleted = await run_in_threadpool(repository.delete_by_owner_and_id, owner_id, receipt_id)
    if deleted is None:
        raise NotFoundOrForbidden(f"Receipt {receipt_id} not found for owner")

    try:
        await storage.delete(deleted.storage_ref)
    except StorageError as e:
        logger.warning(
            "Receipt deleted but image release failed",
            receipt_id=receipt_id,
            storage_ref=deleted.storage_ref,
            detail=e.detail,
        )

    logger.info("Deleted receipt", owner_id=owner_id, receipt_id=receipt_id)
    return MessageResponse(message="Receipt deleted successfully")
