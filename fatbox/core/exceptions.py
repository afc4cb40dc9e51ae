"""
Error taxonomy for the upload relay.

Services raise these; the API layer maps `http_status` onto the response.
"""
from typing import Optional


class RelayError(Exception):
    """Base class for every failure the relay reports to a caller"""

    http_status: int = 500


class InputError(RelayError):
    """Missing or malformed request fields"""

    http_status = 400


class UnsupportedDestinationError(InputError):
    """Destination name is not in the destination table"""

    def __init__(self, destination: str):
        self.destination = destination
        super().__init__(f"destination '{destination}' is not supported")


class NoChunksError(InputError):
    """Finish was requested for a session that has no chunks on disk"""

    def __init__(self, upload_id: str):
        self.upload_id = upload_id
        super().__init__(f"no chunks found for {upload_id}")


class ArtifactIOError(RelayError):
    """Disk read/write failure while storing, assembling or hashing"""


class AssemblyIOError(ArtifactIOError):
    """Concatenating chunks into the artifact failed"""


class CacheLookupError(RelayError):
    """Dedup cache could not be read"""


class CacheStoreError(RelayError):
    """Dedup cache could not be written; never fails the upload"""


class ForwardError(RelayError):
    """
    Backend rejected the upload or returned something unparseable.

    Keeps the upstream status code and raw body for diagnostics.
    """

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None
    ):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class BackendUnavailableError(ForwardError):
    """Network failure or timeout talking to the backend"""

    http_status = 502
