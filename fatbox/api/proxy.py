"""
Download passthrough to the destination hosts

GET /{destination}/{path} is rewritten to the destination's public file host
and streamed back with the upstream status and headers.
"""
import logging
from typing import Annotated, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ..core.config import settings
from ..services import DESTINATIONS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["downloads"])

# Managed by the server for its own connection, never mirrored
HOP_BY_HOP_HEADERS = {"connection", "keep-alive", "transfer-encoding"}


def get_proxy_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Dependency for the outbound transport (httpx default when None)"""
    return None


async def _proxy(
    files_host: str,
    file_path: str,
    request: Request,
    transport: Optional[httpx.AsyncBaseTransport]
) -> StreamingResponse:
    if not file_path:
        raise HTTPException(status_code=400, detail="File path is missing.")

    target_url = files_host + file_path
    logger.info(f"Proxying {request.url.path} to {target_url}")

    headers = {}
    if range_header := request.headers.get("range"):
        headers["Range"] = range_header

    client = httpx.AsyncClient(timeout=settings.FORWARD_TIMEOUT_SECONDS, transport=transport)
    try:
        upstream = await client.send(client.build_request("GET", target_url, headers=headers), stream=True)
    except httpx.HTTPError as e:
        await client.aclose()
        logger.error(f"❌ Proxy error for {target_url} (executing request): {e}")
        raise HTTPException(status_code=502, detail="Bad Gateway")

    async def close_upstream():
        await upstream.aclose()
        await client.aclose()

    response_headers = {
        key: value
        for key, value in upstream.headers.items()
        if key.lower() not in HOP_BY_HOP_HEADERS
    }

    # Raw bytes keep any upstream Content-Encoding valid
    return StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        headers=response_headers,
        background=BackgroundTask(close_upstream)
    )


def _register(destination_name: str) -> None:
    files_host = DESTINATIONS[destination_name].files_host

    async def proxy_download(
        file_path: str,
        request: Request,
        transport: Annotated[Optional[httpx.AsyncBaseTransport], Depends(get_proxy_transport)]
    ):
        return await _proxy(files_host, file_path, request, transport)

    router.add_api_route(
        f"/{destination_name}/{{file_path:path}}",
        proxy_download,
        methods=["GET"],
        name=f"proxy_{destination_name}",
        summary=f"Stream a file from {destination_name}"
    )


for _name in DESTINATIONS:
    _register(_name)
