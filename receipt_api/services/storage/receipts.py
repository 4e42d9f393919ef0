"""
In-memory receipt repository (for tests and demo runs).
In production, configure RECEIPTS_DB_PATH to use SQLite.
"""
import itertools
import threading
import uuid
from datetime import datetime, UTC
from typing import Dict, Optional

from ...models.receipt import ExtractionResult, Receipt
from .receipt_repository_base import ReceiptRepositoryBase


class InMemoryReceiptRepository(ReceiptRepositoryBase):
    def __init__(self):
        self._receipts: Dict[str, Receipt] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def create(self, owner_id: str, extraction: ExtractionResult, image_url: str, storage_ref: str) -> Receipt:
        """Create a receipt and return it"""
        now = datetime.now(UTC)
        receipt = Receipt(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            image_url=image_url,
            storage_ref=storage_ref,
            created_at=now,
            updated_at=now,
            **extraction.model_dump(),
        )
        with self._lock:
            self._receipts[receipt.id] = receipt
            self._sequence[receipt.id] = next(self._counter)
        return receipt

    def list_by_owner(self, owner_id: str) -> list[Receipt]:
        """List an owner's receipts, newest first"""
        with self._lock:
            owned = [r for r in self._receipts.values() if r.owner_id == owner_id]
            return sorted(owned, key=lambda r: (r.created_at, self._sequence[r.id]), reverse=True)

    def get_by_owner_and_id(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        receipt = self._receipts.get(receipt_id)
        if receipt is None or receipt.owner_id != owner_id:
            return None
        return receipt

    def delete_by_owner_and_id(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        with self._lock:
            receipt = self._receipts.get(receipt_id)
            if receipt is None or receipt.owner_id != owner_id:
                return None
            del self._receipts[receipt_id]
            del self._sequence[receipt_id]
            return receipt
