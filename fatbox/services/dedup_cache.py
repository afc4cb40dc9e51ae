"""
Content-hash dedup cache backed by the `hash` table
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import CacheLookupError, CacheStoreError
from ..models import FileHash
from .destinations import DESTINATIONS

logger = logging.getLogger(__name__)

CACHE_COLUMNS = {
    name: destination.cache_column
    for name, destination in DESTINATIONS.items()
    if destination.cacheable
}

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class CacheRecord:
    """URLs previously obtained for one fingerprint, keyed by destination"""

    fingerprint: str
    urls: dict[str, str] = field(default_factory=dict)

    def url_for(self, destination: str) -> Optional[str]:
        return self.urls.get(destination)

    @property
    def empty(self) -> bool:
        return not self.urls


class DedupCache:
    """
    Point lookup and upsert of forwarded URLs by content fingerprint.

    Holds no state besides the injected session. A hit is unconditional:
    there is no TTL and the URL is never re-validated with the host.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lookup(self, fingerprint: str) -> CacheRecord:
        """
        Return the record for `fingerprint`; an unknown hash gives an empty record.

        The read transaction is ended before returning, so no connection is
        held while the caller forwards the file.
        """
        columns = [getattr(FileHash, column) for column in CACHE_COLUMNS.values()]
        try:
            result = await self.session.execute(
                select(*columns).where(FileHash.hash == fingerprint).limit(1)
            )
            row = result.mappings().first()
        except SQLAlchemyError as e:
            raise CacheLookupError(f"database lookup failed for hash {fingerprint[:10]}: {e}") from e
        finally:
            await self.session.rollback()

        record = CacheRecord(fingerprint=fingerprint)
        if row is not None:
            for destination, column in CACHE_COLUMNS.items():
                url = row[column]
                if url:
                    record.urls[destination] = url
        return record

    async def upsert(self, fingerprint: str, destination: str, url: str) -> None:
        """
        Insert or overwrite the URL for (fingerprint, destination).

        A single INSERT ... ON CONFLICT statement, so concurrent upserts for
        different fingerprints never collide and the same key is last-write-wins.
        Other destinations' columns on the row are left untouched.
        """
        column = CACHE_COLUMNS.get(destination)
        if column is None:
            raise CacheStoreError(f"cannot store URL for unsupported destination: {destination}")

        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise CacheStoreError(f"no upsert support for database dialect {dialect}")

        stmt = insert(FileHash).values(hash=fingerprint, **{column: url})
        stmt = stmt.on_conflict_do_update(
            index_elements=[FileHash.hash],
            set_={column: getattr(stmt.excluded, column)}
        )

        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise CacheStoreError(f"database insert/update failed: {e}") from e

        logger.debug(f"💾 Stored {destination} URL for hash {fingerprint[:10]}")
