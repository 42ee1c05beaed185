import logging

from fastapi import APIRouter, Depends

from rooms_api.dependencies import get_app_settings
from rooms_api.namespace import generate_room_id, room_share_url
from rooms_api.schemas import CreateRoomResponse
from rooms_api.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/room/create", response_model=CreateRoomResponse)
async def create_room(settings: Settings = Depends(get_app_settings)) -> CreateRoomResponse:
    """
    Issue a new room identifier.

    Rooms have no server-side state; the id only namespaces the files
    uploaded with it.
    """
    room_id = generate_room_id()
    logger.info(f"Created room: {room_id} ({room_share_url(settings.public_base_url, room_id)})")
    return CreateRoomResponse(room_id=room_id)
