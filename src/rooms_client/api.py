"""
Async HTTP client for the Rooms API.
"""

import itertools
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Type

import httpx
import pydantic

from rooms_api.errors import (
    BackendUnavailable,
    ListFailed,
    RoomsError,
    UploadFailed,
    ValidationError,
)
from rooms_api.namespace import validate_room_id
from rooms_api.schemas import CreateRoomResponse, FileRecord
from rooms_api.services.uploads import guess_content_type

logger = logging.getLogger(__name__)


class RoomsClient:
    """Talks to a Rooms API server; one instance may serve many sessions."""

    def __init__(self, base_url: str, http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    async def __aenter__(self) -> "RoomsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _send(self, method: str, path: str, *, failure: Type[RoomsError], **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, self._url(path), **kwargs)
        except httpx.TransportError as e:
            raise BackendUnavailable("Rooms API unreachable", detail=f"{method} {path}: {e!r}") from e

        if response.is_error:
            try:
                message = response.json().get("error")
            except (ValueError, AttributeError):
                message = None
            detail = f"{method} {path} answered {response.status_code}: {message or response.text[:200]}"
            if response.status_code == 400:
                raise ValidationError(message, detail=detail)
            if response.status_code == 502:
                raise BackendUnavailable(message, detail=detail)
            raise failure(message, detail=detail)
        return response

    async def create_room(self) -> str:
        response = await self._send("POST", "/api/room/create", failure=RoomsError)
        try:
            room_id = CreateRoomResponse.model_validate(response.json()).room_id
        except (ValueError, pydantic.ValidationError) as e:
            raise RoomsError("Could not create room", detail=f"malformed create-room response: {e}") from e
        logger.info(f"Created room: {room_id}")
        return room_id

    async def upload_file(
        self,
        room_id: str,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """Upload one file; validation happens before anything is sent."""
        if not content:
            raise ValidationError("Missing file")
        validate_room_id(room_id)

        response = await self._send(
            "POST",
            "/api/upload",
            failure=UploadFailed,
            data={"roomId": room_id},
            files={"file": (filename, content, guess_content_type(filename, content_type))},
        )
        try:
            record = FileRecord.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as e:
            raise UploadFailed(detail=f"malformed upload response: {e}") from e
        logger.info(f"File uploaded successfully: {record.storage_key}")
        return record

    async def list_files(self, room_id: str) -> List[FileRecord]:
        validate_room_id(room_id)
        response = await self._send("GET", f"/api/files/{room_id}", failure=ListFailed)
        try:
            payload = response.json()
            if not isinstance(payload, list):
                raise ValueError(f"expected a list, got {type(payload).__name__}")
            return [FileRecord.model_validate(item) for item in payload]
        except (ValueError, pydantic.ValidationError) as e:
            raise ListFailed(detail=f"malformed listing for room {room_id}: {e}") from e

    async def download(self, record: FileRecord, destination: Path) -> Path:
        """Stream a file's content to ``destination`` (a directory or a file path).

        Existing files are never overwritten. In a directory, a name that is
        already taken gets a counter (``notes (1).pdf``); an explicit file path
        that exists raises ``RoomsError``.
        """
        destination = Path(destination)
        into_directory = destination.is_dir()
        if into_directory:
            destination = destination / Path(record.original_filename or record.storage_key).name
        try:
            async with self._client.stream("GET", record.download_url, follow_redirects=True) as response:
                if response.is_error:
                    raise RoomsError(
                        "Download failed",
                        detail=f"{record.download_url} answered {response.status_code}",
                    )
                destination, f = _create_exclusive(destination, rename=into_directory)
                try:
                    with f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
                except BaseException:
                    destination.unlink(missing_ok=True)
                    raise
        except httpx.TransportError as e:
            raise BackendUnavailable("Download failed", detail=f"{record.download_url}: {e!r}") from e
        logger.info(f"Downloaded {record.storage_key} to {destination}")
        return destination


def _create_exclusive(path: Path, *, rename: bool) -> Tuple[Path, BinaryIO]:
    candidate = path
    for counter in itertools.count(1):
        try:
            return candidate, open(candidate, "xb")
        except FileExistsError:
            if not rename:
                raise RoomsError("File already exists", detail=f"refusing to overwrite {candidate}") from None
            candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
