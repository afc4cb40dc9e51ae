"""
Content fingerprinting for dedup
"""
import hashlib
from pathlib import Path
from typing import Union

from ..core.exceptions import ArtifactIOError

HASH_CHUNK_SIZE = 65536  # 64KB


def compute_file_hash(file_path: Union[str, Path], chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """
    Compute SHA256 hex digest of a file in a single streamed pass.

    Only the current chunk is held in memory, so any file size works.
    """
    hasher = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                hasher.update(chunk)
    except OSError as e:
        raise ArtifactIOError(f"failed to calculate file hash: {e}") from e
    return hasher.hexdigest()
