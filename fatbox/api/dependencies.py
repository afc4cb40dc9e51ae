"""FastAPI dependencies wiring the pipeline together"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..services import DedupCache, Forwarder, TransientStorage, UploadPipeline, get_forwarder, get_storage


async def get_pipeline(
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[TransientStorage, Depends(get_storage)],
    forwarder: Annotated[Forwarder, Depends(get_forwarder)]
) -> UploadPipeline:
    """Pipeline bound to this request's database session"""
    return UploadPipeline(storage=storage, cache=DedupCache(db), forwarder=forwarder)
