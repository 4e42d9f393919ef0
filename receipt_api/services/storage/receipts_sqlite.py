"""
SQLite-based receipt repository for production use.

Provides persistent, owner-scoped storage of extracted receipts. Line items
are kept as a JSON column; tax and total are REAL columns so money values are
always stored as numbers.
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, UTC
from typing import Iterator, Optional

from loguru import logger

from ...core.errors import StoreUnavailable
from ...models.receipt import ExtractionResult, Receipt
from .receipt_repository_base import ReceiptRepositoryBase

_COLUMNS = """
    id, owner_id, date, currency, vendor_name, receipt_items, tax, total,
    image_url, storage_ref, created_at, updated_at
"""


class SQLiteReceiptRepository(ReceiptRepositoryBase):
    """
    SQLite-backed receipt repository.

    Features:
    - Persistent storage across application restarts
    - Owner filter on every statement
    - Single-statement conditional delete (DELETE ... RETURNING)
    """

    def __init__(self, db_path: str = "receipts.db"):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file (default: receipts.db)
        """
        self.db_path = db_path
        self._init_database()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, map driver errors to StoreUnavailable"""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open receipt store: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Receipt store error", db_path=self.db_path, error=str(e))
            raise StoreUnavailable(f"Receipt store error: {e}") from e
        finally:
            conn.close()

    def _init_database(self):
        """Create receipts table if it doesn't exist"""
        with self._connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS receipts (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    owner_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    currency TEXT NOT NULL,
                    vendor_name TEXT NOT NULL,
                    receipt_items TEXT NOT NULL,
                    tax REAL NOT NULL CHECK (tax >= 0),
                    total REAL NOT NULL CHECK (total >= 0),
                    image_url TEXT NOT NULL,
                    storage_ref TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_receipts_owner_created
                ON receipts(owner_id, created_at)
            """)

    @staticmethod
    def _row_to_receipt(row: sqlite3.Row) -> Receipt:
        return Receipt(
            id=row["id"],
            owner_id=row["owner_id"],
            date=row["date"],
            currency=row["currency"],
            vendor_name=row["vendor_name"],
            receipt_items=json.loads(row["receipt_items"]),
            tax=row["tax"],
            total=row["total"],
            image_url=row["image_url"],
            storage_ref=row["storage_ref"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def create(self, owner_id: str, extraction: ExtractionResult, image_url: str, storage_ref: str) -> Receipt:
        """
        Insert a receipt and return it.

        The Receipt model is built before the INSERT so the field validators
        run on exactly what gets stored.
        """
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
        timestamp = now.isoformat(timespec="microseconds")

        with self._connection() as conn:
            conn.execute(
                f"INSERT INTO receipts ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    receipt.id,
                    receipt.owner_id,
                    receipt.date,
                    receipt.currency,
                    receipt.vendor_name,
                    json.dumps([item.model_dump() for item in receipt.receipt_items]),
                    receipt.tax,
                    receipt.total,
                    receipt.image_url,
                    receipt.storage_ref,
                    timestamp,
                    timestamp,
                ),
            )

        return receipt

    def list_by_owner(self, owner_id: str) -> list[Receipt]:
        """
        List an owner's receipts (ordered by creation time, newest first).

        Returns:
            List of receipts
        """
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM receipts
                WHERE owner_id = ?
                ORDER BY created_at DESC, seq DESC
                """,
                (owner_id,),
            ).fetchall()

        return [self._row_to_receipt(row) for row in rows]

    def get_by_owner_and_id(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM receipts WHERE id = ? AND owner_id = ?",
                (receipt_id, owner_id),
            ).fetchone()

        if row is None:
            return None
        return self._row_to_receipt(row)

    def delete_by_owner_and_id(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        with self._connection() as conn:
            rows = conn.execute(
                f"DELETE FROM receipts WHERE id = ? AND owner_id = ? RETURNING {_COLUMNS}",
                (receipt_id, owner_id),
            ).fetchall()

        if not rows:
            return None
        return self._row_to_receipt(rows[0])
