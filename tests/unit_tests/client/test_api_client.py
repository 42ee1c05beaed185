from datetime import datetime, timezone

import httpx
import pytest

from rooms_api.errors import BackendUnavailable, ListFailed, RoomsError, UploadFailed, ValidationError
from rooms_api.schemas import FileRecord
from rooms_client.api import RoomsClient
from tests.fixtures.app_fixtures import TEST_BASE_URL


async def test_create_room(rooms_client: RoomsClient):
    room_id = await rooms_client.create_room()
    assert room_id
    assert await rooms_client.create_room() != room_id


async def test_upload_then_list(rooms_client: RoomsClient):
    record = await rooms_client.upload_file("r1", b"hello", "hello.txt")

    assert record.room_id == "r1"
    assert record.original_filename == "hello.txt"
    assert record.byte_size == 5

    listed = await rooms_client.list_files("r1")
    assert [r.storage_key for r in listed] == [record.storage_key]


async def test_empty_room(rooms_client: RoomsClient):
    assert await rooms_client.list_files("empty") == []


async def test_upload_is_validated_locally(rooms_client: RoomsClient, fake_backend):
    with pytest.raises(ValidationError, match="Missing file"):
        await rooms_client.upload_file("r1", b"", "a.txt")
    with pytest.raises(ValidationError, match="Missing room identifier"):
        await rooms_client.upload_file("", b"x", "a.txt")
    assert fake_backend.requests == []


async def test_server_errors_map_to_client_errors(rooms_client: RoomsClient, fake_backend):
    fake_backend.fail_with = 500
    with pytest.raises(UploadFailed) as exc_info:
        await rooms_client.upload_file("r1", b"x", "a.txt")
    assert exc_info.value.message == "Upload failed"

    fake_backend.fail_with = 400
    with pytest.raises(ListFailed) as exc_info:
        await rooms_client.list_files("r1")
    assert exc_info.value.message == "Failed to fetch files"

    fake_backend.fail_with = 503
    with pytest.raises(BackendUnavailable):
        await rooms_client.list_files("r1")


@pytest.fixture
async def cdn_client():
    """Factory for clients whose HTTP calls are answered by ``handler``; closed on teardown."""
    http_clients = []

    def make(handler) -> RoomsClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        http_clients.append(http_client)
        return RoomsClient(TEST_BASE_URL, http_client=http_client)

    yield make
    for http_client in http_clients:
        await http_client.aclose()


def cdn_record(name: str = "notes.pdf") -> FileRecord:
    return FileRecord(
        storage_key="r1__abc",
        download_url="https://cdn.test/r1__abc",
        original_filename=name,
        byte_size=4,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        room_id="r1",
    )


async def test_unreachable_api_is_backend_unavailable(cdn_client):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendUnavailable) as exc_info:
        await cdn_client(refuse).create_room()
    assert exc_info.value.message == "Rooms API unreachable"


async def test_download_into_directory(cdn_client, tmp_path):
    client = cdn_client(lambda request: httpx.Response(200, content=b"%PDF"))

    destination = await client.download(cdn_record(), tmp_path)

    assert destination == tmp_path / "notes.pdf"
    assert destination.read_bytes() == b"%PDF"


async def test_download_to_file_path(cdn_client, tmp_path):
    client = cdn_client(lambda request: httpx.Response(200, content=b"%PDF"))

    destination = await client.download(cdn_record(), tmp_path / "copy.pdf")

    assert destination.read_bytes() == b"%PDF"


async def test_download_missing_file(cdn_client, tmp_path):
    client = cdn_client(lambda request: httpx.Response(404))

    with pytest.raises(RoomsError) as exc_info:
        await client.download(cdn_record(), tmp_path)
    assert exc_info.value.message == "Download failed"


async def test_download_same_name_twice_keeps_both(cdn_client, tmp_path):
    client = cdn_client(lambda request: httpx.Response(200, content=request.url.path.encode()))
    first = cdn_record("same.txt").model_copy(update={"storage_key": "r1__one", "download_url": "https://cdn.test/one"})
    second = cdn_record("same.txt").model_copy(update={"storage_key": "r1__two", "download_url": "https://cdn.test/two"})

    first_path = await client.download(first, tmp_path)
    second_path = await client.download(second, tmp_path)

    assert first_path == tmp_path / "same.txt"
    assert second_path == tmp_path / "same (1).txt"
    assert first_path.read_bytes() == b"/one"
    assert second_path.read_bytes() == b"/two"


async def test_download_never_overwrites_explicit_path(cdn_client, tmp_path):
    existing = tmp_path / "copy.pdf"
    existing.write_bytes(b"keep me")
    client = cdn_client(lambda request: httpx.Response(200, content=b"%PDF"))

    with pytest.raises(RoomsError) as exc_info:
        await client.download(cdn_record(), existing)

    assert exc_info.value.message == "File already exists"
    assert existing.read_bytes() == b"keep me"


async def test_aclose_leaves_injected_client_open():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200))) as http_client:
        async with RoomsClient(TEST_BASE_URL, http_client=http_client):
            pass
        assert not http_client.is_closed
    assert http_client.is_closed
