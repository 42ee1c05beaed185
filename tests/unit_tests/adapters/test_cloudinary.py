import hashlib

import pytest

from rooms_api.adapters.cloudinary import LIST_MAX_RESULTS, RESOURCE_TYPES, CloudinaryStorage
from rooms_api.errors import BackendUnavailable, ListFailed, UploadFailed
from rooms_api.settings import Settings
from tests.fixtures.fake_backends import CLOUDINARY_API_SECRET, parse_form_fields

TEST_PDF_CONTENT = b"%PDF-1.4" + b"\0" * (2048 - len(b"%PDF-1.4"))


async def test_upload_pdf_into_room_folder(cloudinary_storage, fake_cloudinary):
    record = await cloudinary_storage.upload(TEST_PDF_CONTENT, "notes.pdf", "application/pdf", "abc123")

    assert record.storage_key.startswith("rooms/abc123/")
    assert record.byte_size == 2048
    assert record.format == "pdf"
    assert record.original_filename == "notes.pdf"
    assert record.room_id == "abc123"
    assert record.download_url.startswith("https://")
    assert record.file_key is None

    fields = parse_form_fields(fake_cloudinary.requests[-1])
    assert fields["folder"] == "rooms/abc123"
    assert fields["context"] == "original_filename=notes.pdf"
    assert fields["upload_preset"] == "senddown"


async def test_same_filename_twice_gives_distinct_keys(cloudinary_storage):
    first = await cloudinary_storage.upload(b"one", "same.txt", "text/plain", "abc123")
    second = await cloudinary_storage.upload(b"two", "same.txt", "text/plain", "abc123")
    assert first.storage_key != second.storage_key


async def test_upload_then_list_keeps_original_filename(cloudinary_storage):
    uploaded = await cloudinary_storage.upload(b"a,b\n1,2\n", "data|v=2.csv", "text/csv", "abc123")

    [listed] = await cloudinary_storage.list_by_room("abc123")

    assert listed.storage_key == uploaded.storage_key
    assert listed.original_filename == "data|v=2.csv"
    assert listed.format == "csv"


async def test_list_queries_every_resource_type_by_prefix(cloudinary_storage, fake_cloudinary):
    await cloudinary_storage.list_by_room("abc123")

    assert sorted(call["resource_type"] for call in fake_cloudinary.list_calls) == sorted(RESOURCE_TYPES)
    for call in fake_cloudinary.list_calls:
        assert call["prefix"] == "rooms/abc123/"
        assert call["max_results"] == str(LIST_MAX_RESULTS)
        assert call["context"] == "true"


async def test_list_merges_resource_types(cloudinary_storage, fake_cloudinary):
    fake_cloudinary.add_resource("rooms/r1", "a.pdf", size=10)
    fake_cloudinary.add_resource("rooms/r1", "clip.mp4", size=20)
    fake_cloudinary.add_resource("rooms/r1", "notes.txt", size=30)

    records = await cloudinary_storage.list_by_room("r1")

    assert sorted(r.original_filename for r in records) == ["a.pdf", "clip.mp4", "notes.txt"]
    assert sorted(r.byte_size for r in records) == [10, 20, 30]
    assert all(r.room_id == "r1" for r in records)


async def test_list_does_not_leak_prefix_rooms(cloudinary_storage, fake_cloudinary):
    fake_cloudinary.add_resource("rooms/ab", "mine.txt")
    fake_cloudinary.add_resource("rooms/ab2", "theirs.txt")

    records = await cloudinary_storage.list_by_room("ab")

    assert [r.original_filename for r in records] == ["mine.txt"]


async def test_list_without_context_falls_back_to_public_id(cloudinary_storage, fake_cloudinary):
    resource = fake_cloudinary.add_resource("rooms/r1", "photo.png", with_context=False)

    [record] = await cloudinary_storage.list_by_room("r1")

    asset = resource["public_id"].rsplit("/", 1)[-1]
    assert record.original_filename == f"{asset}.png"
    assert record.format == "png"


async def test_list_over_page_limit_returns_first_page(cloudinary_storage, fake_cloudinary):
    for i in range(LIST_MAX_RESULTS + 5):
        fake_cloudinary.add_resource("rooms/r1", f"file{i}.txt")

    records = await cloudinary_storage.list_by_room("r1")

    assert len(records) == LIST_MAX_RESULTS


async def test_malformed_resource_is_list_failed(cloudinary_storage, fake_cloudinary):
    resource = fake_cloudinary.add_resource("rooms/r1", "a.txt")
    del resource["created_at"]

    with pytest.raises(ListFailed):
        await cloudinary_storage.list_by_room("r1")


async def test_rejected_upload_is_upload_failed(cloudinary_storage, fake_cloudinary):
    fake_cloudinary.fail_with = 400
    with pytest.raises(UploadFailed):
        await cloudinary_storage.upload(b"x", "a.txt", "text/plain", "r1")


@pytest.mark.parametrize("status_code", [401, 500, 503])
async def test_bad_credentials_or_outage_is_backend_unavailable(cloudinary_storage, fake_cloudinary, status_code):
    fake_cloudinary.fail_with = status_code
    with pytest.raises(BackendUnavailable):
        await cloudinary_storage.list_by_room("r1")


def test_from_settings_requires_credentials():
    settings = Settings(_env_file=None, uploadthing_token=None, cloudinary_cloud_name="demo")
    with pytest.raises(ValueError, match="CLOUDINARY_API_KEY"):
        CloudinaryStorage.from_settings(settings)


async def test_upload_is_signed_with_api_secret(cloudinary_storage, fake_cloudinary):
    await cloudinary_storage.upload(b"x", "a.txt", "text/plain", "r1")

    fields = parse_form_fields(fake_cloudinary.requests[-1])
    signed = "&".join(f"{key}={fields[key]}" for key in ("context", "folder", "timestamp", "upload_preset"))
    assert fields["signature"] == hashlib.sha1(f"{signed}{CLOUDINARY_API_SECRET}".encode()).hexdigest()
    assert "api_key" in fields


async def test_upload_with_wrong_secret_is_rejected(cloudinary_storage):
    cloudinary_storage.api_secret = "not-the-secret"
    with pytest.raises(BackendUnavailable):
        await cloudinary_storage.upload(b"x", "a.txt", "text/plain", "r1")


async def test_generic_provider_filename_is_ignored(cloudinary_storage, fake_cloudinary):
    resource = fake_cloudinary.add_resource("rooms/r1", "notes.txt", with_context=False)
    resource["original_filename"] = "file"

    [record] = await cloudinary_storage.list_by_room("r1")

    assert record.original_filename == resource["public_id"].rsplit("/", 1)[-1]
    assert record.format == "txt"


async def test_malformed_upload_response_is_upload_failed(cloudinary_storage, fake_cloudinary, monkeypatch):
    original_add = fake_cloudinary.add_resource

    def add_with_bad_size(*args, **kwargs):
        resource = original_add(*args, **kwargs)
        resource["bytes"] = "lots"
        return resource

    monkeypatch.setattr(fake_cloudinary, "add_resource", add_with_bad_size)
    with pytest.raises(UploadFailed):
        await cloudinary_storage.upload(b"x", "a.txt", "text/plain", "r1")
