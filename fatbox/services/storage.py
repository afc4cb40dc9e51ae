"""
Transient filesystem storage for chunk sessions and artifacts
"""
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import AsyncIterator, Union

from ..core.config import settings
from ..core.exceptions import ArtifactIOError, InputError

logger = logging.getLogger(__name__)

CHUNK_PREFIX = "chunk_"
TMP_PREFIX = ".tmp-"


def safe_unlink(path: Path) -> None:
    """Best-effort file removal (logs instead of raising)"""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"❌ Failed to remove {path}: {e}")


def _check_component(value: str, label: str) -> str:
    """Reject identifiers that would escape their directory"""
    if not value or value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise InputError(f"invalid {label}: {value!r}")
    return value


class TransientStorage:
    """
    Local scratch space for the relay.

    Layout:
        {uploads_dir}/{upload_id}/chunk_{index}   one file per received chunk
        {temp_dir}/{uuid}-{filename}              assembled artifacts
        {temp_dir}/{uuid}{ext}                    direct-upload artifacts

    Every chunk is its own file and every artifact gets a fresh uuid, so
    concurrent requests never write to the same path.
    """

    def __init__(self, uploads_dir: Union[str, Path], temp_dir: Union[str, Path]):
        self.uploads_dir = Path(uploads_dir)
        self.temp_dir = Path(temp_dir)

    def ensure_dirs(self) -> None:
        """Create the uploads and temp roots"""
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"📂 Transient storage ready: uploads={self.uploads_dir} temp={self.temp_dir}")

    def session_dir(self, upload_id: str) -> Path:
        return self.uploads_dir / _check_component(upload_id, "uploadId")

    async def put_chunk(
        self,
        upload_id: str,
        index: str,
        content_stream: AsyncIterator[bytes]
    ) -> Path:
        """
        Write one chunk of an upload session.

        The chunk is streamed to a hidden temp file and renamed into place,
        so a rewrite of the same index replaces the old chunk as a whole.
        """
        chunk_name = CHUNK_PREFIX + _check_component(index, "index")
        session_dir = self.session_dir(upload_id)
        chunk_path = session_dir / chunk_name
        tmp_path = session_dir / f"{TMP_PREFIX}{uuid.uuid4().hex}"

        try:
            session_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as out:
                async for chunk in content_stream:
                    out.write(chunk)
            os.replace(tmp_path, chunk_path)
        except OSError as e:
            safe_unlink(tmp_path)
            raise ArtifactIOError(f"failed to write chunk {index} for {upload_id}: {e}") from e

        return chunk_path

    def list_chunks(self, upload_id: str) -> list[Path]:
        """Chunk files of a session in directory order (unsorted)"""
        session_dir = self.session_dir(upload_id)
        if not session_dir.is_dir():
            return []
        return [
            entry for entry in session_dir.iterdir()
            if entry.name.startswith(CHUNK_PREFIX) and entry.is_file()
        ]

    def discard_session(self, upload_id: str) -> None:
        """Remove a session directory and everything in it"""
        session_dir = self.session_dir(upload_id)
        shutil.rmtree(session_dir, ignore_errors=True)
        logger.debug(f"🗑️  Discarded session directory {session_dir}")

    def new_artifact_path(self, filename: str) -> Path:
        """Fresh collision-free artifact path that keeps the original name visible"""
        base = Path(filename).name or "upload"
        return self.temp_dir / f"{uuid.uuid4()}-{base}"

    async def save_upload(
        self,
        content_stream: AsyncIterator[bytes],
        filename: str
    ) -> tuple[Path, int]:
        """
        Stream a directly uploaded file to a new artifact.

        Returns:
            (artifact_path, size_bytes) tuple
        """
        artifact_path = self.temp_dir / f"{uuid.uuid4()}{Path(filename).suffix}"
        size = 0
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            with open(artifact_path, "wb") as out:
                async for chunk in content_stream:
                    out.write(chunk)
                    size += len(chunk)
        except OSError as e:
            safe_unlink(artifact_path)
            raise ArtifactIOError(f"failed to write file to disk: {e}") from e
        return artifact_path, size

    def remove_artifact(self, path: Path) -> None:
        safe_unlink(Path(path))


# Singleton instance
storage = TransientStorage(settings.UPLOADS_DIR, settings.TEMP_DIR)


def get_storage() -> TransientStorage:
    """Dependency for the transient storage"""
    return storage
