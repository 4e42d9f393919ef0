
from datetime import datetime

from fastapi import Depends, Header
from pydantic import BaseModel, ConfigDict, Field

from ..core.security import resolve_owner_id
from ..models.receipt import Receipt, ReceiptItem
from ..services.blob_storage import StorageGatewayBase, create_storage_gateway
from ..services.extraction import create_extraction_client
from ..services.ingestion import Extractor, ReceiptIngestionService
from ..services.storage import ReceiptRepositoryBase, receipt_repository


class ReceiptResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    image_url: str
    date: str
    currency: str
    vendor_name: str
    receipt_items: list[ReceiptItem]
    tax: float
    total: float
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> "ReceiptResponse":
        return cls(
            id=receipt.id,
            user_id=receipt.owner_id,
            image_url=receipt.image_url,
            date=receipt.date,
            currency=receipt.currency,
            vendor_name=receipt.vendor_name,
            receipt_items=receipt.receipt_items,
            tax=receipt.tax,
            total=receipt.total,
            created_at=receipt.created_at,
        )


class ReceiptListResponse(BaseModel):
    receipts: list[ReceiptResponse]
    total: int


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


def get_current_owner(authorization: str | None = Header(default=None)) -> str:
    return resolve_owner_id(authorization)


def get_receipt_repository() -> ReceiptRepositoryBase:
    return receipt_repository


def get_storage_gateway() -> StorageGatewayBase:
    return create_storage_gateway()


def get_extractor() -> Extractor:
    return create_extraction_client()


def get_ingestion_service(
    storage: StorageGatewayBase = Depends(get_storage_gateway),
    extractor: Extractor = Depends(get_extractor),
    repository: ReceiptRepositoryBase = Depends(get_receipt_repository),
) -> ReceiptIngestionService:
    return ReceiptIngestionService(storage=storage, extractor=extractor, repository=repository)
