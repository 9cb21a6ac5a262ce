"""
Shared pytest fixtures for the backfill tests.

Fake collaborators implement the same methods as TransformClient,
ArtifactStore and RecordUpdater so the pool and pipeline can be exercised
without any network calls.
"""

from io import BytesIO
import threading
import time

from bson import ObjectId
import mongomock
from PIL import Image
import pytest

from watermark_backfill.config import Settings
from watermark_backfill.errors import RemoteStatusError, TransportError
from watermark_backfill.storage import build_public_url


def _png_bytes():
    buf = BytesIO()
    Image.new("RGB", (4, 4), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


PNG_BYTES = _png_bytes()


def wait_for(predicate, timeout=5.0, interval=0.01):
    """Poll `predicate` until it is true or fail the test after `timeout` seconds."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(interval)
    pytest.fail("condition not met before timeout")


# =============================================================================
# Settings / record store
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        mongo_database="catalog",
        mongo_collection="projects",
        s3_bucket="cleaned-images",
        s3_region="ap-south-1",
        worker_count=4,
        queue_size=8,
        log_level="INFO",
    )


@pytest.fixture
def mongomock_client():
    """In-memory MongoDB client for tests."""
    return mongomock.MongoClient()


@pytest.fixture
def collection(mongomock_client, settings):
    return mongomock_client[settings.mongo_database][settings.mongo_collection]


@pytest.fixture
def pending_records(collection):
    """Three records without results and one that is already processed."""
    ids = [ObjectId() for _ in range(3)]
    collection.insert_many(
        [
            {"_id": ids[0], "temp_link": "https://cdn.example.com/u1.jpg", "psf_images": []},
            {"_id": ids[1], "temp_link": "https://cdn.example.com/u2.jpg", "psf_images": []},
            {"_id": ids[2], "temp_link": "https://cdn.example.com/u3.jpg", "psf_images": []},
            {"_id": ObjectId(), "temp_link": "https://cdn.example.com/done.jpg", "psf_images": ["x"]},
        ]
    )
    return [str(i) for i in ids]


# =============================================================================
# Fake collaborators
# =============================================================================


class FakeTransformer:
    def __init__(self, fail_for=(), error=None):
        self.fail_for = set(fail_for)
        self.error = error or TransportError("connection refused")
        self.calls = []
        self._lock = threading.Lock()

    def transform(self, source_reference):
        with self._lock:
            self.calls.append(source_reference)
        if source_reference in self.fail_for:
            raise self.error
        return PNG_BYTES


class FakeStore:
    def __init__(self, region="ap-south-1", fail=False):
        self.region = region
        self.fail = fail
        self.calls = []
        self._lock = threading.Lock()

    def store(self, bucket, key, content):
        with self._lock:
            self.calls.append((bucket, key, content))
        if self.fail:
            raise RemoteStatusError("AccessDenied", status_code=403, body="AccessDenied")
        return build_public_url(bucket, self.region, key)


class FakeUpdater:
    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self._lock = threading.Lock()

    def apply(self, record_id, result_urls):
        with self._lock:
            self.calls.append((record_id, list(result_urls)))
        if self.error is not None:
            raise self.error


@pytest.fixture
def transformer():
    return FakeTransformer()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def updater():
    return FakeUpdater()
