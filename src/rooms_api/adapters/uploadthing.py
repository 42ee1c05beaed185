"""
UploadThing storage backend (flat keyspace).

UploadThing keeps every file of the app in one flat keyspace. Room membership
is carried by the custom id chosen at upload time, ``"<room_id>__<nonce>"``,
and the listing API cannot filter on it, so listing a room walks the whole
keyspace and filters client side.
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pydantic

from rooms_api.adapters.storage import BaseStorageAdapter
from rooms_api.errors import BackendUnavailable, ListFailed, UploadFailed
from rooms_api.namespace import belongs_to_room, derive_storage_key, infer_format, new_upload_nonce
from rooms_api.schemas import FileRecord
from rooms_api.settings import Settings

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 200
API_VERSION = "v6"


def decode_api_key(token: str) -> str:
    """Extract the API key from an UploadThing token.

    Tokens are base64 encoded JSON (``{"apiKey": ..., "appId": ..., "regions": [...]}``);
    a bare ``sk_...`` secret is accepted as-is.
    """
    token = token.strip()
    if token.startswith("sk_"):
        return token
    try:
        padded = token + "=" * (-len(token) % 4)
        payload = json.loads(base64.b64decode(padded))
        api_key = payload["apiKey"]
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise ValueError("UPLOADTHING_TOKEN is neither a valid token nor an sk_ secret") from e
    if not isinstance(api_key, str) or not api_key:
        raise ValueError("UPLOADTHING_TOKEN carries an empty apiKey")
    return api_key


def _uploaded_at(value: Any) -> datetime:
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"uploadedAt out of range: {value!r}") from e
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    logger.warning("UploadThing file without uploadedAt, sorting it as oldest")
    return datetime.fromtimestamp(0, tz=timezone.utc)


class UploadThingStorage(BaseStorageAdapter):
    """Flat keyspace storage on UploadThing's REST API."""

    backend_name = "uploadthing"

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.uploadthing.com",
        file_url_base: str = "https://utfs.io/f",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(http_client)
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.file_url_base = file_url_base.rstrip("/")
        logger.info("UploadThingStorage initialized")
        logger.info(f"  API: {self.api_url}")

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "UploadThingStorage":
        return cls(
            decode_api_key(settings.uploadthing_token),
            api_url=settings.uploadthing_api_url,
            file_url_base=settings.uploadthing_file_url_base,
            http_client=http_client,
        )

    @property
    def _headers(self) -> Dict[str, str]:
        return {"x-uploadthing-api-key": self.api_key}

    def _endpoint(self, name: str) -> str:
        return f"{self.api_url}/{API_VERSION}/{name}"

    def fallback_url(self, file_key: str) -> str:
        return f"{self.file_url_base}/{file_key}"

    async def upload(self, file_bytes: bytes, filename: str, mime_type: str, room_id: str) -> FileRecord:
        custom_id = derive_storage_key(room_id, new_upload_nonce())
        logger.info(f"Uploading '{filename}' to room {room_id} as {custom_id}")

        payload = await self._request_json(
            "POST",
            self._endpoint("uploadFiles"),
            failure=UploadFailed,
            headers=self._headers,
            json={
                "files": [
                    {"name": filename, "size": len(file_bytes), "type": mime_type, "customId": custom_id}
                ],
                "acl": "public-read",
                "contentDisposition": "inline",
            },
        )

        entries = payload.get("data") if isinstance(payload, dict) else None
        presigned = entries[0] if isinstance(entries, list) and entries else None
        if not isinstance(presigned, dict) or not isinstance(presigned.get("key"), str) or not presigned.get("url"):
            raise UploadFailed(detail=f"UploadThing upload response lacks a file key: {payload!r}")

        try:
            response = await self._client.post(
                presigned["url"],
                data=presigned.get("fields") or {},
                files={"file": (filename, file_bytes, mime_type)},
            )
        except httpx.TransportError as e:
            raise BackendUnavailable(detail=f"UploadThing storage unreachable: {e!r}") from e
        if response.is_error:
            raise UploadFailed(detail=f"UploadThing storage answered {response.status_code}: {response.text[:200]}")

        file_key = presigned["key"]
        try:
            record = FileRecord(
                storage_key=presigned.get("customId") or custom_id,
                download_url=presigned.get("fileUrl") or self.fallback_url(file_key),
                original_filename=filename,
                format=infer_format(filename),
                byte_size=len(file_bytes),
                created_at=datetime.now(timezone.utc),
                room_id=room_id,
                file_key=file_key,
            )
        except (ValueError, TypeError, pydantic.ValidationError) as e:
            raise UploadFailed(detail=f"UploadThing upload response is malformed: {e}") from e
        logger.info(f"UploadThing upload result: {record.storage_key} ({record.byte_size} bytes)")
        return record

    async def list_all_files(self) -> List[Dict[str, Any]]:
        """Walk every page of the app's files.

        Stops on ``hasMore == False`` or on an empty page, whichever comes first,
        so an inconsistent ``hasMore`` flag cannot loop forever.
        """
        collected: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = await self._request_json(
                "POST",
                self._endpoint("listFiles"),
                failure=ListFailed,
                headers=self._headers,
                json={"limit": LIST_PAGE_SIZE, "offset": offset},
            )
            files = page.get("files") if isinstance(page, dict) else None
            if not isinstance(files, list):
                raise ListFailed(detail=f"UploadThing listFiles response lacks files: {page!r}")

            collected.extend(files)
            offset += len(files)
            logger.debug(f"Fetched {len(files)} files (total {len(collected)})")

            if not page.get("hasMore") or not files:
                break
        return collected

    async def resolve_urls(self, file_keys: List[str]) -> Dict[str, str]:
        if not file_keys:
            return {}
        payload = await self._request_json(
            "POST",
            self._endpoint("getFileUrl"),
            failure=ListFailed,
            headers=self._headers,
            json={"fileKeys": file_keys},
        )
        entries = payload.get("data") if isinstance(payload, dict) else None
        return {
            entry["key"]: entry["url"]
            for entry in entries or []
            if isinstance(entry, dict) and entry.get("key") and entry.get("url")
        }

    async def list_by_room(self, room_id: str) -> List[FileRecord]:
        logger.info(f"Fetching files for room ID: {room_id}")
        all_files = await self.list_all_files()

        relevant = [
            item for item in all_files
            if isinstance(item, dict) and belongs_to_room(item.get("customId"), room_id)
        ]
        if not relevant:
            return []

        for item in relevant:
            if not isinstance(item.get("key"), str):
                raise ListFailed(detail=f"UploadThing file entry lacks a key: {item!r}")

        urls = await self.resolve_urls([item["key"] for item in relevant])

        try:
            records = [
                FileRecord(
                    storage_key=item["customId"],
                    download_url=urls.get(item["key"]) or self.fallback_url(item["key"]),
                    original_filename=item.get("name"),
                    format=infer_format(item.get("name")),
                    byte_size=int(item.get("size") or 0),
                    created_at=_uploaded_at(item.get("uploadedAt")),
                    room_id=room_id,
                    file_key=item["key"],
                )
                for item in relevant
            ]
        except (KeyError, ValueError, TypeError, pydantic.ValidationError) as e:
            raise ListFailed(detail=f"UploadThing file entry is malformed: {e!r}") from e
        logger.info(f"Room {room_id}: {len(records)} of {len(all_files)} UploadThing files")
        return records
