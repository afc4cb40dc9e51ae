"""
Upload pipeline: assemble -> hash -> cache lookup -> forward -> cache store

Flow for cacheable destinations:
    Received -> (Assembling) -> Hashing -> CacheLookup
        -> CacheHit: Done
        -> CacheMiss: Forwarding -> CacheStore -> Done

Non-cacheable destinations (litterbox) go straight to Forwarding. The
session directory and the artifact are removed in every terminal state.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Optional

from ..core.exceptions import CacheStoreError
from ..core.helpers import format_bytes
from .assembler import assemble_chunks
from .dedup_cache import DedupCache
from .destinations import ForwardOptions, get_destination
from .forwarder import Forwarder
from .hashing import compute_file_hash
from .storage import TransientStorage

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    Outcome of one upload.

    `warnings` collects side-effect failures (cache writes) that did not
    prevent the URL from being returned.
    """

    url: str
    destination: str
    cache_hit: bool = False
    fingerprint: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


class UploadPipeline:
    """Runs one upload request from artifact to public URL"""

    def __init__(self, storage: TransientStorage, cache: DedupCache, forwarder: Forwarder):
        self.storage = storage
        self.cache = cache
        self.forwarder = forwarder

    async def process_chunked(
        self,
        upload_id: str,
        filename: str,
        destination: str,
        options: Optional[ForwardOptions] = None
    ) -> PipelineResult:
        """Assemble a chunk session and run it through the pipeline"""
        artifact_path: Optional[Path] = None
        try:
            get_destination(destination)
            loop = asyncio.get_running_loop()
            artifact_path = await loop.run_in_executor(
                None, assemble_chunks, self.storage, upload_id, filename
            )
            logger.info(f"📦 Assembled file ready: {artifact_path}")
            return await self.process_artifact(artifact_path, filename, destination, options)
        finally:
            self.storage.discard_session(upload_id)
            if artifact_path is not None:
                self.storage.remove_artifact(artifact_path)

    async def process_direct(
        self,
        content_stream: AsyncIterator[bytes],
        filename: str,
        destination: str,
        options: Optional[ForwardOptions] = None
    ) -> PipelineResult:
        """Store a single-request upload and run it through the pipeline"""
        get_destination(destination)
        artifact_path, size = await self.storage.save_upload(content_stream, filename)
        try:
            logger.info(f"📥 Direct upload received: {filename} → {destination} ({format_bytes(size)})")
            return await self.process_artifact(artifact_path, filename, destination, options)
        finally:
            self.storage.remove_artifact(artifact_path)

    async def process_artifact(
        self,
        artifact_path: Path,
        filename: str,
        destination: str,
        options: Optional[ForwardOptions] = None
    ) -> PipelineResult:
        """Dedup (when the destination allows it) and forward a finished artifact"""
        target = get_destination(destination)

        if not target.cacheable:
            logger.info(f"🗑️ {target.name} file will not be cached. Proceeding with direct upload.")
            url = await self.forwarder.forward(target.name, artifact_path, filename, options)
            logger.info(f"🚀 Uploaded to {target.name}: {url}")
            return PipelineResult(url=url, destination=target.name)

        loop = asyncio.get_running_loop()
        fingerprint = await loop.run_in_executor(None, compute_file_hash, artifact_path)

        record = await self.cache.lookup(fingerprint)
        cached_url = record.url_for(target.name)
        if cached_url:
            logger.info(
                f"✅ Cache hit for hash {fingerprint[:10]} on destination {target.name}. "
                f"Returning stored URL."
            )
            return PipelineResult(
                url=cached_url,
                destination=target.name,
                cache_hit=True,
                fingerprint=fingerprint
            )

        logger.info(f"🔍 Cache miss for hash {fingerprint[:10]} on destination {target.name}. Uploading...")
        url = await self.forwarder.forward(target.name, artifact_path, filename, options)
        result = PipelineResult(url=url, destination=target.name, fingerprint=fingerprint)

        try:
            await self.cache.upsert(fingerprint, target.name, url)
        except CacheStoreError as e:
            logger.warning(
                f"⚠️ Failed to store hash {fingerprint[:10]} for destination {target.name} in database: {e}"
            )
            result.warnings.append(str(e))

        logger.info(f"🚀 Uploaded to {target.name}: {url}")
        return result
