from loguru import logger

from ...core.config import settings
from .receipt_repository_base import ReceiptRepositoryBase
from .receipts import InMemoryReceiptRepository
from .receipts_sqlite import SQLiteReceiptRepository


def create_receipt_repository() -> ReceiptRepositoryBase:
    if settings.receipts_db_path:
        logger.info("Using SQLite receipt repository", db_path=settings.receipts_db_path)
        return SQLiteReceiptRepository(settings.receipts_db_path)

    logger.warning("RECEIPTS_DB_PATH not set - receipts are kept in memory only")
    return InMemoryReceiptRepository()


# Global instance (the API resolves it through a dependency so tests can override it)
receipt_repository = create_receipt_repository()

__all__ = [
    "ReceiptRepositoryBase",
    "InMemoryReceiptRepository",
    "SQLiteReceiptRepository",
    "create_receipt_repository",
    "receipt_repository",
]
