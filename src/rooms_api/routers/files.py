import logging
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Path,
    UploadFile,
    status
)

from rooms_api.adapters.storage import BaseStorageAdapter
from rooms_api.dependencies import get_storage
from rooms_api.schemas import ErrorResponse, FileRecord
from rooms_api.services.uploads import list_room_files, submit_upload

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
}


@router.post(
    "/upload",
    response_model=FileRecord,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def upload_file(
    file: Optional[UploadFile] = File(None, description="The file to upload"),
    room_id: Optional[str] = Form(None, alias="roomId", description="Room the file belongs to"),
    storage: BaseStorageAdapter = Depends(get_storage),
) -> FileRecord:
    """
    Upload one file into a room.

    Missing file or room id is rejected with 400 before anything is sent to
    the storage backend; any backend failure is a 500 ``Upload failed``.
    """
    content = await file.read() if file is not None else None
    record = await submit_upload(
        storage,
        content=content,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        room_id=room_id,
    )
    logger.info(f"Upload result: {record.storage_key}")
    return record


@router.get(
    "/files/{room_id}",
    response_model=List[FileRecord],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def get_room_files(
    room_id: str = Path(..., description="The room to list"),
    storage: BaseStorageAdapter = Depends(get_storage),
) -> List[FileRecord]:
    """
    List every file in a room.

    An empty or unknown room returns ``[]``, never an error.
    """
    records = await list_room_files(storage, room_id)
    logger.info(f"Room {room_id}: returning {len(records)} files")
    return records
