"""
Abstract base class for receipt repositories.

Every operation takes the owner id explicitly. A receipt that belongs to a
different owner is indistinguishable from one that does not exist.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...models.receipt import ExtractionResult, Receipt


class ReceiptRepositoryBase(ABC):
    """
    Abstract base class for receipt persistence.

    Implementations:
    - In-memory storage (for testing/demo)
    - SQLite (for single-instance deployments)
    """

    @abstractmethod
    def create(
        self,
        owner_id: str,
        extraction: ExtractionResult,
        image_url: str,
        storage_ref: str,
    ) -> Receipt:
        """
        Persist a validated extraction for an owner.

        Args:
            owner_id: Authenticated caller identity
            extraction: Validated extraction result
            image_url: URL of the stored receipt image
            storage_ref: Opaque reference used to delete the stored image

        Returns:
            The new Receipt with id and timestamps set

        Raises:
            StoreUnavailable: the underlying store failed
        """
        pass

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> list[Receipt]:
        """
        List an owner's receipts, newest first.

        Returns:
            List of receipts (empty if the owner has none)
        """
        pass

    @abstractmethod
    def get_by_owner_and_id(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        """
        Get one receipt.

        Returns:
            The receipt, or None if it does not exist or belongs to another owner
        """
        pass

    @abstractmethod
    def delete_by_owner_and_id(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        """
        Permanently delete one receipt in a single atomic step.

        Returns:
            The deleted receipt (so its storage_ref can be released), or None
            if it does not exist or belongs to another owner
        """
        pass
