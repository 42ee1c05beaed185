"""
Upload orchestration for rooms.

An upload either produces exactly one record or fails as a whole with
``UploadFailed``; nothing is retried here, re-submission is up to the caller.
"""

import logging
import mimetypes
from typing import List, Optional

from rooms_api.adapters.storage import BaseStorageAdapter
from rooms_api.errors import StorageError, UploadFailed, ValidationError
from rooms_api.namespace import validate_room_id
from rooms_api.schemas import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "upload"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(filename: str, content_type: Optional[str] = None) -> str:
    if content_type:
        return content_type
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_CONTENT_TYPE


async def submit_upload(
    storage: BaseStorageAdapter,
    content: Optional[bytes],
    filename: Optional[str],
    content_type: Optional[str],
    room_id: Optional[str],
) -> FileRecord:
    """
    Store one file in a room through the configured storage adapter.

    Args:
        storage: The process-wide storage adapter
        content: File bytes; must be non-empty
        filename: Name the file was uploaded with
        content_type: MIME type, guessed from the filename when missing
        room_id: Owning room; must be a valid, non-empty room id

    Returns:
        FileRecord: The stored file, ``room_id`` stamped with the caller's value

    Raises:
        ValidationError: Missing file or room id, before any backend call
        UploadFailed: Any backend failure (network, quota, malformed response)
    """
    if not content:
        raise ValidationError("Missing file")
    room_id = validate_room_id(room_id)
    filename = filename or DEFAULT_FILENAME
    content_type = guess_content_type(filename, content_type)

    logger.info(f"Uploading file to room: {room_id}")
    logger.info(f"Original file name: {filename}")

    try:
        record = await storage.upload(content, filename, content_type, room_id)
    except UploadFailed:
        raise
    except StorageError as e:
        raise UploadFailed(detail=str(e)) from e

    if record.room_id != room_id:
        record = record.model_copy(update={"room_id": room_id})
    return record


async def list_room_files(storage: BaseStorageAdapter, room_id: Optional[str]) -> List[FileRecord]:
    """List a room's files; an empty room yields ``[]``."""
    room_id = validate_room_id(room_id)
    return await storage.list_by_room(room_id)
