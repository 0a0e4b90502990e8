import io
import os
import uuid

# Must be set before resourcehub.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["ADMIN_EMAIL"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from resourcehub.database import get_db
from resourcehub.main import app
from resourcehub.models import Base, User
from resourcehub.services.blob_store import (
    BlobStoreConfig,
    LocalChunkStore,
    SqlChunkStore,
    SqlMetadataIndex,
    StorageHandle,
)

# Small chunks keep multi-chunk files cheap to build in tests
CHUNK_SIZE = 1024
MAX_SIZE = 10 * CHUNK_SIZE


class BytesReader:
    """Async file-like source, the shape of FastAPI's UploadFile.read()."""

    def __init__(self, data: bytes, max_read: int | None = None):
        self._buffer = io.BytesIO(data)
        self._max_read = max_read
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        self.reads += 1
        if self._max_read is not None and (size < 0 or size > self._max_read):
            size = self._max_read
        return self._buffer.read(size)


def pdf_bytes(size: int) -> bytes:
    header = b"%PDF-1.4\n"
    if size <= len(header):
        return header[:size]
    return header + os.urandom(size - len(header))


@pytest.fixture
def make_pdf():
    return pdf_bytes


@pytest.fixture
def reader():
    return BytesReader


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def blob_config():
    return BlobStoreConfig(max_size_bytes=MAX_SIZE, chunk_size_bytes=CHUNK_SIZE)


@pytest.fixture(params=["database", "local"])
def storage(request, session_factory, blob_config, tmp_path):
    """A storage handle for each chunk backend."""
    if request.param == "database":
        chunks = SqlChunkStore(session_factory)
    else:
        chunks = LocalChunkStore(tmp_path / "chunks")
    return StorageHandle(chunks=chunks, index=SqlMetadataIndex(session_factory), config=blob_config)


@pytest.fixture
def api_storage(session_factory, blob_config):
    return StorageHandle(
        chunks=SqlChunkStore(session_factory),
        index=SqlMetadataIndex(session_factory),
        config=blob_config,
    )


@pytest.fixture
async def client(session_factory, api_storage):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.storage = api_storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    async def _make_user(role: str = "student", **overrides) -> User:
        fields = {
            "name": "Test Student",
            "email": f"{uuid.uuid4().hex[:12]}@example.edu",
            "branch": "CSE",
            "semester": 3,
            "role": role,
            "account_status": "active",
        }
        fields.update(overrides)
        async with session_factory() as db:
            user = User(**fields)
            db.add(user)
            await db.commit()
            await db.refresh(user)
            return user
    return _make_user


@pytest.fixture
async def student(make_user):
    return await make_user()


@pytest.fixture
async def admin(make_user):
    return await make_user(role="admin", name="Admin")


def auth(user: User) -> dict:
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def auth_headers():
    return auth
