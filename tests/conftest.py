"""
Shared pytest fixtures.

No test talks to MongoDB, S3 or Google: the database handle is a mock
with AsyncMock collection methods, and the storage and geocoding services
are replaced through ``app.dependency_overrides``.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

# Before any app import
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("MONGO_URI", None)

from app.deps import get_db  # noqa: E402
from app.models import Location  # noqa: E402
from app.security.auth import create_access_token  # noqa: E402
from app.services.geocoding_service import get_geocoding_service  # noqa: E402
from app.services.s3_service import get_s3_service  # noqa: E402

BUCKET_URL = "https://places-test.s3.us-east-1.amazonaws.com"


class FakeCursor:
    """Stands in for a motor cursor: async iteration and ``to_list``."""

    def __init__(self, docs):
        self.docs = list(docs)

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration

    async def to_list(self, length=None):
        return self.docs if length is None else self.docs[:length]


def _collection():
    collection = MagicMock()
    collection.find = MagicMock(return_value=FakeCursor([]))
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock()
    return collection


@pytest.fixture
def mock_db():
    """
    A database handle whose ``places``/``users`` collections are mocks and
    whose client hands out sessions usable by ``app.db.transaction``.
    """
    txn = MagicMock()
    txn.__aenter__.return_value = None
    txn.__aexit__.return_value = False

    session = MagicMock()
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    session.start_transaction.return_value = txn

    db = MagicMock()
    db.places = _collection()
    db.users = _collection()
    db.client.start_session = AsyncMock(return_value=session)
    db.session = session
    return db


@pytest.fixture
def mock_s3():
    s3 = MagicMock()
    s3.upload_image = AsyncMock(
        side_effect=lambda file_content, filename, content_type, prefix="images": {
            "s3_key": f"{prefix}/generated.jpg",
            "s3_url": f"{BUCKET_URL}/{prefix}/generated.jpg",
            "size": len(file_content),
        }
    )
    s3.delete_image_by_url = AsyncMock(return_value=True)
    return s3


@pytest.fixture
def mock_geocoder():
    geocoder = MagicMock()
    geocoder.get_coords_for_address = AsyncMock(
        return_value=Location(lat=40.7484405, lng=-73.9878584)
    )
    return geocoder


@pytest.fixture
def user_doc():
    return {
        "_id": ObjectId(),
        "name": "Max",
        "email": "max@example.com",
        "password": "not-a-real-hash",
        "image": f"{BUCKET_URL}/users/max.jpg",
        "places": [],
    }


@pytest.fixture
def other_user_doc():
    return {
        "_id": ObjectId(),
        "name": "Manuel",
        "email": "manuel@example.com",
        "password": "not-a-real-hash",
        "image": f"{BUCKET_URL}/users/manuel.jpg",
        "places": [],
    }


@pytest.fixture
def place_doc(user_doc):
    return {
        "_id": ObjectId(),
        "title": "Empire State Building",
        "description": "One of the most famous sky scrapers in the world!",
        "image": f"{BUCKET_URL}/places/empire.jpg",
        "address": "20 W 34th St, New York, NY 10001",
        "location": {"lat": 40.7484405, "lng": -73.9878584},
        "creatorName": user_doc["name"],
        "creatorImage": user_doc["image"],
        "likes": [],
        "comments": [],
        "creator": user_doc["_id"],
    }


def auth_headers(user: dict) -> dict:
    token = create_access_token(str(user["_id"]), user["email"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_image_bytes():
    # Minimal JPEG: SOI + JFIF header + EOI
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest_asyncio.fixture
async def test_client(mock_db, mock_s3, mock_geocoder, monkeypatch):
    """HTTPX client talking to the app in-process, with external services mocked."""
    from app.main import app

    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_s3_service] = lambda: mock_s3
    # delete_place resolves storage itself, after the delete commits
    monkeypatch.setattr("app.routers.places.get_s3_service", lambda: mock_s3)
    app.dependency_overrides[get_geocoding_service] = lambda: mock_geocoder
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_for():
    """``auth_for(user_doc)`` -> Authorization header carrying a token for that user."""
    return auth_headers


@pytest.fixture
def cursor_of():
    """``cursor_of(docs)`` -> a cursor-like object yielding ``docs``."""
    return FakeCursor
