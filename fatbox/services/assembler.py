"""
Reassembly of chunked uploads into a single artifact
"""
import logging
import shutil
from pathlib import Path

from ..core.exceptions import AssemblyIOError, NoChunksError
from .storage import CHUNK_PREFIX, TransientStorage, safe_unlink

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024  # 1MB


def chunk_sort_key(chunk_path: Path) -> tuple:
    """
    Order chunks by numeric index.

    Chunks whose suffix is not an integer are still assembled, after all
    numeric ones and in name order.
    """
    suffix = chunk_path.name[len(CHUNK_PREFIX):]
    try:
        return (0, int(suffix), "")
    except ValueError:
        return (1, 0, suffix)


def assemble_chunks(storage: TransientStorage, upload_id: str, filename: str) -> Path:
    """
    Concatenate every chunk of a session, in index order, into a new artifact.

    Reads only chunks already on disk; it never waits for more to arrive.
    On failure the partial artifact is deleted before raising.

    Returns:
        Path of the assembled artifact
    """
    chunks = sorted(storage.list_chunks(upload_id), key=chunk_sort_key)
    if not chunks:
        raise NoChunksError(upload_id)

    logger.info(f"🔧 Reassembling {len(chunks)} chunks for uploadId {upload_id}...")

    final_path = storage.new_artifact_path(filename)
    try:
        storage.temp_dir.mkdir(parents=True, exist_ok=True)
        with open(final_path, "wb") as outfile:
            for chunk_path in chunks:
                with open(chunk_path, "rb") as infile:
                    shutil.copyfileobj(infile, outfile, COPY_BUFFER_SIZE)
    except OSError as e:
        safe_unlink(final_path)
        logger.error(f"❌ Assembly failed for uploadId {upload_id}: {e}")
        raise AssemblyIOError(f"failed to assemble chunks for {upload_id}: {e}") from e

    return final_path
