"""
Forwarding of finished artifacts to a destination host
"""
import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from ..core.config import settings
from ..core.exceptions import BackendUnavailableError, ForwardError
from .destinations import ForwardOptions, get_destination
from .multipart import MultipartStream

logger = logging.getLogger(__name__)


class Forwarder:
    """
    Streams an artifact to a destination and returns its public URL.

    The request body is produced on the fly (see MultipartStream), so
    memory use does not depend on the file size. One attempt per call,
    bounded by `timeout` seconds end to end.
    """

    def __init__(
        self,
        timeout: float = settings.FORWARD_TIMEOUT_SECONDS,
        chunk_size: int = settings.STREAM_CHUNK_SIZE,
        max_buffered_chunks: int = settings.PIPE_BUFFER_CHUNKS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.max_buffered_chunks = max_buffered_chunks
        self.transport = transport

    async def forward(
        self,
        destination_name: str,
        file_path: Union[str, Path],
        filename: str,
        options: Optional[ForwardOptions] = None
    ) -> str:
        """
        Upload `file_path` as `filename` to the named destination.

        Raises:
            UnsupportedDestinationError: unknown destination, nothing sent
            ArtifactIOError: the file could not be read while streaming
            ForwardError: non-2xx status or unusable response body
            BackendUnavailableError: network failure or timeout
        """
        destination = get_destination(destination_name)
        options = options or ForwardOptions()

        body = MultipartStream(
            file_path,
            filename,
            destination.file_field,
            destination.form_fields(options),
            chunk_size=self.chunk_size,
            max_buffered_chunks=self.max_buffered_chunks
        )

        logger.info(f"🚀 Forwarding {filename} to {destination.name} ({destination.upload_url})")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await asyncio.wait_for(
                    client.post(
                        destination.upload_url,
                        content=body,
                        headers={"Content-Type": body.content_type}
                    ),
                    timeout=self.timeout
                )
        except asyncio.TimeoutError as e:
            raise BackendUnavailableError(
                f"upload to {destination.name} timed out after {self.timeout:g}s"
            ) from e
        except httpx.TimeoutException as e:
            raise BackendUnavailableError(f"upload to {destination.name} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"http request failed: {e}") from e
        finally:
            await body.aclose()

        response_text = response.text
        if not response.is_success:
            raise ForwardError(
                f"upload failed with status {response.status_code}: {response_text}",
                upstream_status=response.status_code,
                upstream_body=response_text
            )

        try:
            return destination.parse_response(response_text)
        except ForwardError as e:
            e.upstream_status = response.status_code
            raise


# Singleton instance
forwarder = Forwarder()


def get_forwarder() -> Forwarder:
    """Dependency for the forwarder"""
    return forwarder
