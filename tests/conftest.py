"""
Shared fixtures for the relay tests.

Provides:
- Transient storage rooted in tmp_path
- A SQLite-backed dedup cache session
- A fake destination host built on httpx.MockTransport
"""
import json
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fatbox.models import Base
from fatbox.services import DedupCache, Forwarder, TransientStorage, UploadPipeline


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def storage(tmp_path: Path) -> TransientStorage:
    """Transient storage with both roots created under tmp_path."""
    transient = TransientStorage(tmp_path / "uploads", tmp_path / "temp")
    transient.ensure_dirs()
    return transient


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.txt"
    path.write_bytes(b"hello fatbox\n" * 100)
    return path


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def cache(db_session) -> DedupCache:
    return DedupCache(db_session)


# =============================================================================
# Fake Destination Host
# =============================================================================


@dataclass
class FakeHost:
    """
    Records every upload that reached it and answers like the real hosts.

    Set `status`/`body` to script a specific reply.
    """

    requests: list[httpx.Request] = field(default_factory=list)
    bodies: list[bytes] = field(default_factory=list)
    status: int = 200
    body: str = ""

    async def handler(self, request: httpx.Request) -> httpx.Response:
        content = await request.aread()
        self.requests.append(request)
        self.bodies.append(content)

        if self.body or self.status != 200:
            return httpx.Response(self.status, text=self.body)

        n = len(self.requests)
        if request.url.host == "pomf.lain.la":
            return httpx.Response(
                200,
                text=json.dumps({"success": True, "files": [{"url": f"https://pomf.lain.la/f/{n}.txt"}]})
            )
        if request.url.host == "litterbox.catbox.moe":
            return httpx.Response(200, text=f"https://litter.catbox.moe/{n}.txt")
        return httpx.Response(200, text=f"https://files.catbox.moe/{n}.txt\n")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def forwarder(fake_host: FakeHost) -> Forwarder:
    return Forwarder(timeout=5, chunk_size=16, max_buffered_chunks=2, transport=fake_host.transport)


@pytest.fixture
def pipeline(storage, cache, forwarder) -> UploadPipeline:
    return UploadPipeline(storage=storage, cache=cache, forwarder=forwarder)
