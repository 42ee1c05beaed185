"""
Cloudinary storage backend (prefix keyspace).

Files are uploaded into the ``rooms/<room_id>`` folder and Cloudinary picks the
public id. Cloudinary partitions assets by resource type, so a room listing
queries the raw, image and video partitions concurrently.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import cloudinary.utils
import httpx
import pydantic

from rooms_api.adapters.storage import BaseStorageAdapter
from rooms_api.errors import ListFailed, UploadFailed
from rooms_api.namespace import infer_format, room_folder, room_prefix
from rooms_api.schemas import FileRecord
from rooms_api.settings import Settings

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ("raw", "image", "video")
# No pagination past this per resource type.
LIST_MAX_RESULTS = 100

# Cloudinary names files sent without a filename "file"
GENERIC_FILENAME = "file"


def _original_filename(resource: Dict[str, Any]) -> Optional[str]:
    context = resource.get("context") or {}
    custom = context.get("custom") if isinstance(context, dict) else None
    if isinstance(custom, dict) and custom.get("original_filename"):
        return custom["original_filename"]
    if resource.get("original_filename") and resource["original_filename"] != GENERIC_FILENAME:
        return resource["original_filename"]
    # Fall back to the last path segment of the public id
    name = str(resource.get("public_id", "")).rsplit("/", 1)[-1]
    fmt = resource.get("format")
    if name and fmt and not name.endswith(f".{fmt}"):
        name = f"{name}.{fmt}"
    return name or None


class CloudinaryStorage(BaseStorageAdapter):
    """Prefix keyspace storage on Cloudinary's upload and admin APIs."""

    backend_name = "cloudinary"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        *,
        upload_preset: Optional[str] = None,
        api_url: str = "https://api.cloudinary.com",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(http_client)
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.upload_preset = upload_preset
        self.api_url = api_url.rstrip("/")
        logger.info("CloudinaryStorage initialized")
        logger.info(f"  Cloud: {self.cloud_name}")
        logger.info(f"  Upload preset: {self.upload_preset}")

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "CloudinaryStorage":
        missing = [
            name for name, value in (
                ("CLOUDINARY_CLOUD_NAME", settings.cloudinary_cloud_name),
                ("CLOUDINARY_API_KEY", settings.cloudinary_api_key),
                ("CLOUDINARY_API_SECRET", settings.cloudinary_api_secret),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Cloudinary backend selected but {', '.join(missing)} not set")
        return cls(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            upload_preset=settings.cloudinary_upload_preset,
            api_url=settings.cloudinary_api_url,
            http_client=http_client,
        )

    def _endpoint(self, action: str, resource_type: str) -> str:
        return cloudinary.utils.cloudinary_api_url(
            action, resource_type=resource_type, cloud_name=self.cloud_name, upload_prefix=self.api_url
        )

    async def upload(self, file_bytes: bytes, filename: str, mime_type: str, room_id: str) -> FileRecord:
        logger.info(f"Uploading '{filename}' to room {room_id}")
        params = {
            "folder": room_folder(room_id),
            "context": cloudinary.utils.encode_context({"original_filename": filename}),
            "timestamp": str(int(time.time())),
            "upload_preset": self.upload_preset,
        }
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["signature"] = cloudinary.utils.api_sign_request(params, self.api_secret)
        params["api_key"] = self.api_key

        result = await self._request_json(
            "POST",
            self._endpoint("upload", "auto"),
            failure=UploadFailed,
            data=params,
            files={"file": (filename, file_bytes, mime_type)},
        )
        if not isinstance(result, dict) or not result.get("public_id") or not result.get("secure_url"):
            raise UploadFailed(detail=f"Cloudinary upload response lacks public_id: {result!r}")

        try:
            record = FileRecord(
                storage_key=result["public_id"],
                download_url=result["secure_url"],
                original_filename=filename,
                format=infer_format(filename) or result.get("format"),
                byte_size=int(result.get("bytes") or len(file_bytes)),
                created_at=result.get("created_at") or time.time(),
                room_id=room_id,
            )
        except (ValueError, TypeError, pydantic.ValidationError) as e:
            raise UploadFailed(detail=f"Cloudinary upload response is malformed: {e}") from e
        logger.info(f"Cloudinary upload result: {record.storage_key} ({record.byte_size} bytes)")
        return record

    async def _list_resource_type(self, resource_type: str, prefix: str) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            self._endpoint("upload", f"resources/{resource_type}"),
            failure=ListFailed,
            params={"prefix": prefix, "max_results": LIST_MAX_RESULTS, "context": "true"},
            auth=(self.api_key, self.api_secret),
        )
        resources = payload.get("resources") if isinstance(payload, dict) else None
        if not isinstance(resources, list):
            raise ListFailed(detail=f"Cloudinary {resource_type} listing lacks resources: {payload!r}")
        if payload.get("next_cursor"):
            logger.warning(
                f"Room prefix {prefix} has more than {LIST_MAX_RESULTS} {resource_type} files; "
                "only the first page is returned"
            )
        logger.debug(f"{resource_type} files: {len(resources)}")
        return resources

    async def list_by_room(self, room_id: str) -> List[FileRecord]:
        prefix = room_prefix(room_id)
        logger.info(f"Fetching files for room ID: {room_id}")
        logger.info(f"Using prefix: {prefix}")

        pages = await asyncio.gather(
            *(self._list_resource_type(resource_type, prefix) for resource_type in RESOURCE_TYPES)
        )
        resources = [resource for page in pages for resource in page]

        try:
            records = [
                FileRecord(
                    storage_key=resource["public_id"],
                    download_url=resource.get("secure_url") or resource["url"],
                    original_filename=_original_filename(resource),
                    format=infer_format(_original_filename(resource)) or resource.get("format"),
                    byte_size=int(resource.get("bytes") or 0),
                    created_at=resource["created_at"],
                    room_id=room_id,
                )
                for resource in resources
            ]
        except (KeyError, ValueError, TypeError, pydantic.ValidationError) as e:
            raise ListFailed(detail=f"Cloudinary resource is malformed: {e!r}") from e

        logger.info(f"Room {room_id}: {len(records)} Cloudinary files")
        return records
