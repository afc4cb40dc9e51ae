"""
Streaming multipart/form-data body for outbound uploads.

A producer task encodes the form fields and the file into a bounded
in-memory pipe while the HTTP client drains the other end as the request
body. At most `max_buffered_chunks` blocks are ever held in memory, whatever
the file size.
"""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence, Union

from ..core.exceptions import ArtifactIOError, InputError

logger = logging.getLogger(__name__)

_EOF = object()


class AsyncPipe:
    """
    Bounded single-producer/single-consumer byte pipe.

    `write` blocks while the buffer is full; the reader blocks while it is
    empty. Closing with an error makes the reader raise that error once the
    data written before it has been consumed.
    """

    def __init__(self, max_chunks: int):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, max_chunks))
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("write to closed pipe")
        if data:
            await self._queue.put(data)

    async def close(self, error: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(error if error is not None else _EOF)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


def _quote(value: str) -> str:
    """Escape a Content-Disposition parameter value"""
    return value.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


class MultipartStream:
    """
    Async-iterable multipart body: plain fields first, then one file part.

    Iterating starts the producer task; `aclose()` cancels it if the
    consumer stopped early (timeout, transport failure).
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        filename: str,
        file_field: str,
        fields: Sequence[tuple[str, str]] = (),
        chunk_size: int = 65536,
        max_buffered_chunks: int = 4,
        boundary: Optional[str] = None
    ):
        self.file_path = Path(file_path)
        self.filename = filename
        self.file_field = file_field
        self.fields = list(fields)
        for name, value in self.fields:
            if "\r" in value or "\n" in value:
                raise InputError(f"invalid value for form field {name}: line breaks are not allowed")
        self.chunk_size = chunk_size
        self.max_buffered_chunks = max_buffered_chunks
        self.boundary = boundary or uuid.uuid4().hex
        self._producer: Optional[asyncio.Task] = None

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def _field_part(self, name: str, value: str) -> bytes:
        return (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{_quote(name)}"\r\n'
            f"\r\n"
            f"{value}\r\n"
        ).encode("utf-8")

    def _file_part_header(self) -> bytes:
        return (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{_quote(self.file_field)}"; '
            f'filename="{_quote(self.filename)}"\r\n'
            f"Content-Type: application/octet-stream\r\n"
            f"\r\n"
        ).encode("utf-8")

    def _closing_boundary(self) -> bytes:
        return f"\r\n--{self.boundary}--\r\n".encode("utf-8")

    async def _produce(self, pipe: AsyncPipe) -> None:
        """Write the encoded body into the pipe, closing it with any error"""
        loop = asyncio.get_running_loop()
        try:
            for name, value in self.fields:
                await pipe.write(self._field_part(name, value))
            await pipe.write(self._file_part_header())

            # File reads run in the executor so the event loop stays free
            with open(self.file_path, "rb") as f:
                while True:
                    chunk = await loop.run_in_executor(None, f.read, self.chunk_size)
                    if not chunk:
                        break
                    await pipe.write(chunk)

            await pipe.write(self._closing_boundary())
        except OSError as e:
            logger.error(f"❌ Failed to stream {self.file_path.name}: {e}")
            await pipe.close(ArtifactIOError(f"failed to stream file content: {e}"))
        except Exception as e:
            await pipe.close(e)
        else:
            await pipe.close()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._producer is not None:
            raise RuntimeError("multipart body can only be streamed once")
        pipe = AsyncPipe(self.max_buffered_chunks)
        self._producer = asyncio.create_task(self._produce(pipe))
        try:
            async for data in pipe:
                yield data
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        producer = self._producer
        if producer is None or producer.done():
            return
        producer.cancel()
        try:
            await producer
        except asyncio.CancelledError:
            pass
