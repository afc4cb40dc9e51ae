"""
Destination table for the hosts the relay forwards to.

Each destination declares the multipart field carrying the file, the extra
form fields it needs, how to turn its response body into a URL, and whether
its links may be cached by content hash.

Usage:
    destination = get_destination("catbox")
    fields = destination.form_fields(ForwardOptions(userhash="abc"))
    url = destination.parse_response(response.text)
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..core.config import settings
from ..core.exceptions import ForwardError, UnsupportedDestinationError


@dataclass(frozen=True)
class ForwardOptions:
    """
    Per-request options passed through to the destination.

    Attributes:
        userhash: catbox account hash; files land in that account when set
        ttl: litterbox retention (1h, 12h, 24h or 72h)
    """

    userhash: Optional[str] = None
    ttl: str = settings.DEFAULT_LITTERBOX_TTL


class Destination(ABC):
    """Contract every destination implements"""

    name: str
    file_field: str
    # Column in the dedup cache table, None when links must not be cached
    cache_column: Optional[str] = None

    @property
    @abstractmethod
    def upload_url(self) -> str:
        """Endpoint receiving the multipart POST"""

    @property
    @abstractmethod
    def files_host(self) -> str:
        """Public host that serves uploaded files (for download passthrough)"""

    @property
    def cacheable(self) -> bool:
        return self.cache_column is not None

    def form_fields(self, options: ForwardOptions) -> list[tuple[str, str]]:
        """Non-file form fields, written before the file part"""
        return []

    @abstractmethod
    def parse_response(self, body: str) -> str:
        """Extract the public URL from a 2xx response body"""


class PlainTextDestination(Destination):
    """catbox-style hosts that answer with the bare URL"""

    file_field = "fileToUpload"

    def form_fields(self, options: ForwardOptions) -> list[tuple[str, str]]:
        return [("reqtype", "fileupload")]

    def parse_response(self, body: str) -> str:
        url = body.strip()
        if not url:
            raise ForwardError(f"{self.name} returned an empty response", upstream_body=body)
        return url


class PomfDestination(Destination):
    name = "pomf"
    file_field = "files[]"
    cache_column = "pomf"

    @property
    def upload_url(self) -> str:
        return settings.POMF_UPLOAD_URL

    @property
    def files_host(self) -> str:
        return settings.POMF_FILES_HOST

    def parse_response(self, body: str) -> str:
        try:
            result = json.loads(body)
        except ValueError as e:
            raise ForwardError(f"failed to parse pomf response: {e}", upstream_body=body) from e

        if not isinstance(result, dict):
            raise ForwardError("failed to parse pomf response: not an object", upstream_body=body)
        if not result.get("success"):
            raise ForwardError(
                f"pomf upload failed: {result.get('error') or 'unknown error'}",
                upstream_body=body
            )

        files = result.get("files") or []
        if not files or not isinstance(files[0], dict) or not files[0].get("url"):
            raise ForwardError("pomf response missing file URL", upstream_body=body)
        return files[0]["url"]


class CatboxDestination(PlainTextDestination):
    name = "catbox"
    cache_column = "catbox"

    @property
    def upload_url(self) -> str:
        return settings.CATBOX_UPLOAD_URL

    @property
    def files_host(self) -> str:
        return settings.CATBOX_FILES_HOST

    def form_fields(self, options: ForwardOptions) -> list[tuple[str, str]]:
        fields = super().form_fields(options)
        if options.userhash:
            fields.append(("userhash", options.userhash))
        return fields


class LitterboxDestination(PlainTextDestination):
    """Temporary host; links self-destruct so they are never cached"""

    name = "litterbox"

    @property
    def upload_url(self) -> str:
        return settings.LITTERBOX_UPLOAD_URL

    @property
    def files_host(self) -> str:
        return settings.LITTERBOX_FILES_HOST

    def form_fields(self, options: ForwardOptions) -> list[tuple[str, str]]:
        fields = super().form_fields(options)
        fields.append(("time", options.ttl or settings.DEFAULT_LITTERBOX_TTL))
        return fields


DESTINATIONS: dict[str, Destination] = {
    destination.name: destination
    for destination in (PomfDestination(), CatboxDestination(), LitterboxDestination())
}


def get_destination(name: str) -> Destination:
    """Look up a destination, failing before any I/O when it is unknown"""
    try:
        return DESTINATIONS[name]
    except KeyError:
        raise UnsupportedDestinationError(name) from None
