"""
Pytest configuration and shared fixtures.

Registers the integration marker / option and provides fake storage and
extraction backends that are injected into the app through
dependency_overrides, so no test touches a real provider by default.
"""

import os
import tempfile

# Must be set before the app is imported: the local media mount is created at import time
os.environ.setdefault("LOCAL_MEDIA_DIR", tempfile.mkdtemp(prefix="receipt-media-"))

import pytest
from fastapi.testclient import TestClient

from receipt_api.api import deps
from receipt_api.api.main import app
from receipt_api.core.errors import ExtractionError, StorageError
from receipt_api.core.security import create_access_token
from receipt_api.models.receipt import ExtractionResult
from receipt_api.services.blob_storage import StorageGatewayBase, StoredImage, build_object_key
from receipt_api.services.storage import InMemoryReceiptRepository

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff\xe0"

CAFE_EXTRACTION = {
    "date": "01/01/2024",
    "currency": "INR",
    "vendor_name": "Cafe",
    "receipt_items": [{"item_name": "Tea", "item_cost": 20}],
    "tax": 2,
    "total": 22,
}


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against real storage and LLM providers"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real providers"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def make_png(size: int) -> bytes:
    """PNG signature padded to `size` bytes"""
    return PNG_SIGNATURE + b"\x00" * (size - len(PNG_SIGNATURE))


def make_jpeg(size: int) -> bytes:
    return JPEG_SIGNATURE + b"\x00" * (size - len(JPEG_SIGNATURE))


class FakeStorage(StorageGatewayBase):
    def __init__(self):
        self.uploads: list[dict] = []
        self.deleted: list[str] = []
        self.objects: dict[str, bytes] = {}
        self.error: Exception | None = None

    async def upload(self, data: bytes, mime_type: str, owner_id: str) -> StoredImage:
        self.uploads.append({"owner_id": owner_id, "mime_type": mime_type, "size": len(data)})
        if self.error:
            raise self.error
        key = build_object_key(owner_id, mime_type)
        self.objects[key] = data
        return StoredImage(url=f"https://blobs.example.com/{key}", storage_ref=key)

    async def delete(self, storage_ref: str) -> None:
        self.deleted.append(storage_ref)
        if self.error:
            raise self.error
        self.objects.pop(storage_ref, None)


class FakeExtractor:
    def __init__(self):
        self.calls: list[str] = []
        self.payload: dict = dict(CAFE_EXTRACTION)
        self.error: Exception | None = None

    async def extract(self, image_url: str) -> ExtractionResult:
        self.calls.append(image_url)
        if self.error:
            raise self.error
        return ExtractionResult.model_validate(self.payload)


@pytest.fixture
def png_bytes():
    return make_png


@pytest.fixture
def jpeg_bytes():
    return make_jpeg


@pytest.fixture
def cafe_extraction():
    return ExtractionResult.model_validate(CAFE_EXTRACTION)


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def repository():
    return InMemoryReceiptRepository()


@pytest.fixture
def client(fake_storage, fake_extractor, repository):
    app.dependency_overrides[deps.get_storage_gateway] = lambda: fake_storage
    app.dependency_overrides[deps.get_extractor] = lambda: fake_extractor
    app.dependency_overrides[deps.get_receipt_repository] = lambda: repository
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(owner_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(owner_id)}"}
    return _headers


@pytest.fixture
def storage_failure():
    return StorageError("blob service returned 503: account throttled")


@pytest.fixture
def extraction_failure():
    return ExtractionError("Failed to parse receipt data: response is not valid JSON")
