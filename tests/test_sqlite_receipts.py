"""
Tests for SQLite-based receipt persistence.

This test suite verifies that the SQLite repository:
- Writes money columns as numbers, not strings
- Persists receipts across instances
- Maps driver failures to StoreUnavailable
"""

import pytest
import sqlite3
import tempfile
import os

from receipt_api.core.errors import StoreUnavailable
from receipt_api.models.receipt import ExtractionResult
from receipt_api.services.storage.receipts_sqlite import SQLiteReceiptRepository


@pytest.fixture
def db_path():
    """Create a temporary database file for testing"""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    # Cleanup
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def repo(db_path):
    """Create a fresh SQLiteReceiptRepository for each test"""
    return SQLiteReceiptRepository(db_path)


@pytest.fixture
def extraction():
    return ExtractionResult(
        date="15/08/2024",
        currency="usd",
        vendor_name="Corner Store",
        receipt_items=[
            {"item_name": "Milk", "item_cost": "3.49"},
            {"item_name": "Bread", "item_cost": 2},
        ],
        tax="0.55",
        total=6.04,
    )


def test_create_persists_numeric_money_columns(repo, db_path, extraction):
    """Tax and total land in REAL columns"""
    receipt = repo.create("U1", extraction, "https://img/1.png", "receipts/user_U1/1.png")

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.execute(
        "SELECT owner_id, typeof(tax), typeof(total), currency, receipt_items FROM receipts WHERE id = ?",
        (receipt.id,),
    )
    row = cursor.fetchone()
    conn.close()

    assert row is not None
    assert row[0] == "U1"
    assert row[1] == "real"
    assert row[2] == "real"
    assert row[3] == "USD"  # normalized before storage
    assert '"item_cost": 3.49' in row[4]


def test_items_keep_extraction_order(repo, extraction):
    receipt = repo.create("U1", extraction, "https://img/1.png", "receipts/user_U1/1.png")

    fetched = repo.get_by_owner_and_id("U1", receipt.id)

    assert [i.item_name for i in fetched.receipt_items] == ["Milk", "Bread"]
    assert fetched.receipt_items[0].item_cost == 3.49


def test_timestamps_round_trip_as_utc(repo, extraction):
    receipt = repo.create("U1", extraction, "https://img/1.png", "receipts/user_U1/1.png")

    fetched = repo.get_by_owner_and_id("U1", receipt.id)

    assert fetched.created_at == receipt.created_at
    assert fetched.created_at.utcoffset().total_seconds() == 0


def test_persistence_across_instances(db_path, extraction):
    """Test that data persists when creating new repository instances"""
    repo1 = SQLiteReceiptRepository(db_path)
    receipt = repo1.create("U1", extraction, "https://img/1.png", "receipts/user_U1/1.png")

    repo2 = SQLiteReceiptRepository(db_path)
    fetched = repo2.get_by_owner_and_id("U1", receipt.id)

    assert fetched is not None
    assert fetched.vendor_name == "Corner Store"
    assert fetched.total == 6.04


def test_unreadable_store_raises_store_unavailable(tmp_path):
    """A directory path cannot be opened as a database"""
    with pytest.raises(StoreUnavailable):
        SQLiteReceiptRepository(str(tmp_path))


def test_dropped_table_raises_store_unavailable(repo, db_path, extraction):
    conn = sqlite3.connect(db_path)
    conn.execute("DROP TABLE receipts")
    conn.commit()
    conn.close()

    with pytest.raises(StoreUnavailable):
        repo.create("U1", extraction, "https://img/1.png", "receipts/user_U1/1.png")
