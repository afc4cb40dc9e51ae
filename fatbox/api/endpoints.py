"""
FastAPI endpoints for chunked and direct uploads
"""
import logging
from typing import Annotated, AsyncIterator, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ..core.config import settings
from ..core.exceptions import ForwardError, InputError, RelayError
from ..schemas import ChunkReceivedResponse, UploadResponse
from ..services import ForwardOptions, TransientStorage, UploadPipeline, get_storage
from .dependencies import get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


async def _iter_upload(upload: UploadFile) -> AsyncIterator[bytes]:
    """Read an UploadFile in fixed-size blocks"""
    while chunk := await upload.read(settings.STREAM_CHUNK_SIZE):
        yield chunk


def _require(**fields: Optional[str]) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise InputError(f"Missing {', '.join(missing)}")


def _to_http(e: RelayError) -> HTTPException:
    detail = f"Upload failed: {e}" if isinstance(e, ForwardError) else str(e)
    return HTTPException(status_code=e.http_status, detail=detail)


def _options(userhash: Optional[str], ttl: Optional[str]) -> ForwardOptions:
    return ForwardOptions(userhash=userhash or None, ttl=ttl or settings.DEFAULT_LITTERBOX_TTL)


@router.post("/chunk", response_model=ChunkReceivedResponse)
async def receive_chunk(
    storage: Annotated[TransientStorage, Depends(get_storage)],
    upload_id: Annotated[Optional[str], Form(alias="uploadId")] = None,
    index: Annotated[Optional[str], Form()] = None,
    chunk: Annotated[Optional[UploadFile], File()] = None
):
    """
    Store one chunk of a chunked upload.

    Chunks may arrive in any order and concurrently; re-sending an index
    replaces the earlier chunk.
    """
    try:
        _require(uploadId=upload_id, index=index)
        if chunk is None:
            raise InputError("Missing chunk file")
        await storage.put_chunk(upload_id, index, _iter_upload(chunk))
    except RelayError as e:
        logger.error(f"❌ Chunk {index} for uploadId {upload_id} rejected: {e}")
        raise _to_http(e)

    logger.info(f"✅ Received chunk {index} for uploadId: {upload_id}")
    return ChunkReceivedResponse(
        message=f"Chunk {index} for {upload_id} received.",
        upload_id=upload_id,
        index=index
    )


@router.post("/finish", response_model=UploadResponse)
async def finish_upload(
    pipeline: Annotated[UploadPipeline, Depends(get_pipeline)],
    upload_id: Annotated[Optional[str], Form(alias="uploadId")] = None,
    filename: Annotated[Optional[str], Form()] = None,
    destination: Annotated[Optional[str], Form()] = None,
    userhash: Annotated[Optional[str], Form()] = None,
    ttl: Annotated[Optional[str], Form(alias="time")] = None
):
    """
    Assemble a chunked upload and forward it.

    The session's chunks are deleted afterwards whether or not the upload
    succeeded.
    """
    try:
        _require(uploadId=upload_id, filename=filename, destination=destination)
        result = await pipeline.process_chunked(
            upload_id, filename, destination, _options(userhash, ttl)
        )
    except RelayError as e:
        logger.error(f"❌ Finish failed for uploadId {upload_id} → {destination}: {e}")
        raise _to_http(e)

    return UploadResponse(url=result.url)


@router.post("/direct", response_model=UploadResponse)
async def direct_upload(
    pipeline: Annotated[UploadPipeline, Depends(get_pipeline)],
    file: Annotated[Optional[UploadFile], File()] = None,
    destination: Annotated[Optional[str], Form()] = None,
    userhash: Annotated[Optional[str], Form()] = None,
    ttl: Annotated[Optional[str], Form(alias="time")] = None
):
    """Forward a file uploaded in a single request"""
    try:
        if file is None:
            raise InputError("Missing file")
        _require(destination=destination)
        result = await pipeline.process_direct(
            _iter_upload(file), file.filename or "upload", destination, _options(userhash, ttl)
        )
    except RelayError as e:
        logger.error(f"❌ Direct upload to {destination} failed: {e}")
        raise _to_http(e)

    return UploadResponse(url=result.url)
