"""
Room session: one device's view of one room.
"""

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional

from rooms_api.errors import ListPartial
from rooms_api.namespace import room_share_url, validate_room_id
from rooms_api.schemas import FileRecord
from rooms_client.api import RoomsClient
from rooms_client.reconciler import DEFAULT_POLL_INTERVAL, ListingReconciler

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Room session lifecycle"""
    DETACHED = "detached"  # No room yet
    ACTIVE = "active"      # Room known and polled
    CLOSED = "closed"      # Polling released (terminal state)


class RoomSessionError(Exception):
    """Raised for invalid session state transitions"""
    pass


class RoomSession:
    """Owns a room id on this device, its polling and its uploads.

    Use ``open_room`` to get a session whose polling is released on every
    exit path.
    """

    def __init__(
        self,
        client: RoomsClient,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_change: Optional[Callable[[List[FileRecord]], None]] = None,
        on_error: Optional[Callable[[ListPartial], None]] = None,
    ):
        self.client = client
        self.interval = interval
        self.state = SessionState.DETACHED
        self.room_id: Optional[str] = None
        self.reconciler: Optional[ListingReconciler] = None
        self._on_change = on_change
        self._on_error = on_error

    @property
    def files(self) -> List[FileRecord]:
        return self.reconciler.files if self.reconciler is not None else []

    @property
    def notice(self) -> Optional[str]:
        """Message of the last failed poll, cleared by the next successful one."""
        if self.reconciler is None or self.reconciler.last_error is None:
            return None
        return self.reconciler.last_error.message

    async def create(self) -> str:
        """Create a new room and adopt it."""
        self._require(SessionState.DETACHED, "create")
        return self._attach(await self.client.create_room())

    def join(self, room_id: str) -> str:
        """Adopt an existing room id."""
        self._require(SessionState.DETACHED, "join")
        return self._attach(validate_room_id(room_id))

    def start(self) -> None:
        self._require(SessionState.ACTIVE, "start")
        self.reconciler.start()

    async def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        if self.reconciler is not None:
            await self.reconciler.stop()
        self.state = SessionState.CLOSED
        logger.info(f"Closed session for room {self.room_id}")

    async def refresh(self) -> bool:
        self._require(SessionState.ACTIVE, "refresh")
        return await self.reconciler.poll_once()

    async def upload(self, content: bytes, filename: str, content_type: Optional[str] = None) -> FileRecord:
        """Upload into this room, show the file right away, then refresh.

        ``ValidationError`` and ``UploadFailed`` propagate to the caller.
        """
        self._require(SessionState.ACTIVE, "upload")
        logger.info(f"Sending file: {filename}")
        record = await self.client.upload_file(self.room_id, content, filename, content_type)
        self.reconciler.add_records([record])
        await self.reconciler.poll_once()
        return record

    def room_url(self, base_url: str) -> str:
        """Shareable link that joins this room."""
        self._require(SessionState.ACTIVE, "share")
        return room_share_url(base_url, self.room_id)

    def _attach(self, room_id: str) -> str:
        self.room_id = room_id
        self.reconciler = ListingReconciler(
            room_id,
            self.client.list_files,
            interval=self.interval,
            on_change=self._on_change,
            on_error=self._on_error,
        )
        self.state = SessionState.ACTIVE
        logger.info(f"Session attached to room {room_id}")
        return room_id

    def _require(self, state: SessionState, action: str) -> None:
        if self.state is not state:
            raise RoomSessionError(f"Cannot {action} a session in state {self.state.value}")


@asynccontextmanager
async def open_room(
    client: RoomsClient,
    room_id: Optional[str] = None,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    on_change: Optional[Callable[[List[FileRecord]], None]] = None,
    on_error: Optional[Callable[[ListPartial], None]] = None,
) -> AsyncIterator[RoomSession]:
    """Join ``room_id`` (or create a room), poll it, and always stop polling on exit."""
    session = RoomSession(client, interval=interval, on_change=on_change, on_error=on_error)
    if room_id is None:
        await session.create()
    else:
        session.join(room_id)
    session.start()
    try:
        yield session
    finally:
        await session.close()
