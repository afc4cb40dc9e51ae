"""
Endpoint tests through the ASGI app with storage, database and hosts overridden.

Run with: pytest tests/test_api.py -v
"""
import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from fatbox.api.proxy import get_proxy_transport
from fatbox.core.database import get_db
from fatbox.main import app
from fatbox.services import get_forwarder, get_storage


@pytest.fixture
async def client(storage, db_session, forwarder):
    """HTTP client wired to tmp storage, SQLite cache and the fake host."""
    async def override_db():
        yield db_session

    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_forwarder] = lambda: forwarder
    app.dependency_overrides[get_db] = override_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


async def send_chunk(client: AsyncClient, upload_id: str, index: str, data: bytes) -> httpx.Response:
    return await client.post(
        "/chunk",
        data={"uploadId": upload_id, "index": index},
        files={"chunk": ("blob", data, "application/octet-stream")},
    )


class TestChunkEndpoint:

    async def test_acknowledges_chunk(self, client: AsyncClient, storage) -> None:
        response = await send_chunk(client, "u1", "0", b"A")

        assert response.status_code == 200
        assert response.json() == {
            "message": "Chunk 0 for u1 received.",
            "uploadId": "u1",
            "index": "0",
        }
        assert storage.session_dir("u1").joinpath("chunk_0").read_bytes() == b"A"

    @pytest.mark.parametrize("data", [{"index": "0"}, {"uploadId": "u1"}, {"uploadId": "", "index": "0"}])
    async def test_missing_fields_is_bad_request(self, client: AsyncClient, data: dict) -> None:
        response = await client.post("/chunk", data=data, files={"chunk": ("blob", b"A")})

        assert response.status_code == 400
        assert "Missing" in response.json()["detail"]

    async def test_missing_chunk_file_is_bad_request(self, client: AsyncClient) -> None:
        response = await client.post("/chunk", data={"uploadId": "u1", "index": "0"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing chunk file"

    async def test_path_traversal_is_rejected(self, client: AsyncClient) -> None:
        response = await send_chunk(client, "..", "0", b"A")

        assert response.status_code == 400


class TestFinishEndpoint:

    async def test_out_of_order_chunks_end_to_end(self, client: AsyncClient, storage, fake_host) -> None:
        for index, data in (("1", b"B"), ("0", b"A"), ("2", b"C")):
            assert (await send_chunk(client, "u1", index, data)).status_code == 200

        response = await client.post(
            "/finish", data={"uploadId": "u1", "filename": "abc.txt", "destination": "catbox"}
        )

        assert response.status_code == 200
        assert response.json() == {"url": "https://files.catbox.moe/1.txt"}
        assert b'filename="abc.txt"' in fake_host.bodies[0]
        assert b"\r\n\r\nABC\r\n--" in fake_host.bodies[0]
        assert list(storage.uploads_dir.iterdir()) == []
        assert list(storage.temp_dir.iterdir()) == []

    async def test_time_defaults_to_one_hour(self, client: AsyncClient, fake_host) -> None:
        await send_chunk(client, "u1", "0", b"A")

        response = await client.post(
            "/finish", data={"uploadId": "u1", "filename": "a.txt", "destination": "litterbox"}
        )

        assert response.status_code == 200
        assert b'name="time"\r\n\r\n1h\r\n' in fake_host.bodies[0]

    async def test_missing_fields_is_bad_request(self, client: AsyncClient) -> None:
        response = await client.post("/finish", data={"uploadId": "u1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing filename, destination"

    async def test_unknown_session_is_bad_request(self, client: AsyncClient) -> None:
        response = await client.post(
            "/finish", data={"uploadId": "nope", "filename": "a.txt", "destination": "catbox"}
        )

        assert response.status_code == 400
        assert "no chunks found" in response.json()["detail"]

    async def test_unknown_destination_no_network_call(self, client: AsyncClient, storage, fake_host) -> None:
        await send_chunk(client, "u1", "0", b"A")

        response = await client.post(
            "/finish", data={"uploadId": "u1", "filename": "a.txt", "destination": "dropbox"}
        )

        assert response.status_code == 400
        assert "not supported" in response.json()["detail"]
        assert fake_host.requests == []
        assert list(storage.uploads_dir.iterdir()) == []

    async def test_backend_rejection_surfaces_status_and_body(
        self, client: AsyncClient, storage, fake_host
    ) -> None:
        await send_chunk(client, "u1", "0", b"A")
        fake_host.status = 413
        fake_host.body = "File too large"

        response = await client.post(
            "/finish", data={"uploadId": "u1", "filename": "a.txt", "destination": "pomf"}
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert "413" in detail and "File too large" in detail
        assert list(storage.temp_dir.iterdir()) == []


class TestDirectEndpoint:

    async def test_same_file_twice_is_forwarded_once(self, client: AsyncClient, fake_host) -> None:
        payload = {"file": ("photo.png", b"\x89PNG same bytes", "image/png")}

        first = await client.post("/direct", data={"destination": "pomf"}, files=payload)
        second = await client.post("/direct", data={"destination": "pomf"}, files=payload)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json() == {"url": "https://pomf.lain.la/f/1.txt"}
        assert len(fake_host.requests) == 1

    async def test_userhash_is_forwarded_to_catbox(self, client: AsyncClient, fake_host) -> None:
        response = await client.post(
            "/direct",
            data={"destination": "catbox", "userhash": "me"},
            files={"file": ("a.txt", b"data")},
        )

        assert response.status_code == 200
        assert b'name="userhash"\r\n\r\nme\r\n' in fake_host.bodies[0]

    async def test_missing_file_is_bad_request(self, client: AsyncClient) -> None:
        response = await client.post("/direct", data={"destination": "catbox"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing file"

    async def test_backend_unreachable_is_bad_gateway(self, client: AsyncClient, storage) -> None:
        from fatbox.services import Forwarder

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        app.dependency_overrides[get_forwarder] = lambda: Forwarder(transport=httpx.MockTransport(refuse))

        response = await client.post(
            "/direct", data={"destination": "catbox"}, files={"file": ("a.txt", b"data")}
        )

        assert response.status_code == 502
        assert list(storage.temp_dir.iterdir()) == []


class TestProxy:

    async def test_streams_upstream_with_range(self, client: AsyncClient) -> None:
        seen = []

        def upstream(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                206,
                stream=httpx.ByteStream(b"partial"),
                headers={"Content-Range": "bytes 0-6/100", "Content-Type": "text/plain"},
            )

        app.dependency_overrides[get_proxy_transport] = lambda: httpx.MockTransport(upstream)

        response = await client.get("/catbox/abc123.txt", headers={"Range": "bytes=0-6"})

        assert response.status_code == 206
        assert response.content == b"partial"
        assert response.headers["content-range"] == "bytes 0-6/100"
        assert str(seen[0].url) == "https://files.catbox.moe/abc123.txt"
        assert seen[0].headers["range"] == "bytes=0-6"

    @pytest.mark.parametrize("prefix, host", [
        ("litterbox", "https://litter.catbox.moe/"),
        ("pomf", "https://pomf.lain.la/"),
    ])
    async def test_prefix_maps_to_host(self, client: AsyncClient, prefix: str, host: str) -> None:
        seen = []

        def upstream(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(404, stream=httpx.ByteStream(b"gone"))

        app.dependency_overrides[get_proxy_transport] = lambda: httpx.MockTransport(upstream)

        response = await client.get(f"/{prefix}/x.bin")

        assert response.status_code == 404
        assert response.text == "gone"
        assert seen == [host + "x.bin"]

    async def test_empty_path_is_bad_request(self, client: AsyncClient) -> None:
        response = await client.get("/catbox/")

        assert response.status_code == 400

    async def test_upstream_failure_is_bad_gateway(self, client: AsyncClient) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        app.dependency_overrides[get_proxy_transport] = lambda: httpx.MockTransport(refuse)

        response = await client.get("/catbox/a.txt")

        assert response.status_code == 502

    async def test_only_get_is_allowed(self, client: AsyncClient) -> None:
        response = await client.post("/catbox/a.txt")

        assert response.status_code == 405


class TestMisc:

    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/")

        assert response.status_code == 200
        assert response.text.strip() == "fatbox is working."

    async def test_favicon(self, client: AsyncClient) -> None:
        assert (await client.get("/favicon.ico")).status_code == 204

    async def test_unknown_route_json(self, client: AsyncClient) -> None:
        response = await client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {
            "message": "Route GET:/nope not found",
            "error": "Not Found",
            "statusCode": 404,
        }
