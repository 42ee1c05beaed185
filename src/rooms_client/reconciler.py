"""
Listing reconciler: keeps a room's file set in sync by polling.

Each poll result is merged into the set as an additive union: new keys are
appended, known keys are replaced in place, keys missing from the snapshot
are kept. A listing that lags behind a recent write therefore never makes a
file disappear. Deleted files are never pruned.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from rooms_api.errors import ListPartial
from rooms_api.schemas import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

FetchFiles = Callable[[str], Awaitable[List[FileRecord]]]


class PollState(str, Enum):
    """Reconciler states"""
    IDLE = "idle"         # No listing call outstanding
    POLLING = "polling"   # One listing call in flight


def merge_snapshot(existing: Sequence[FileRecord], incoming: Iterable[FileRecord]) -> List[FileRecord]:
    """Merge a listing snapshot into a file set.

    Args:
        existing: Current file set, unique by storage key
        incoming: Records from the latest listing

    Returns:
        A new list, unique by storage key, newest ``created_at`` first. The sort
        is stable, so ties keep the order they had before the merge.
    """
    merged = list(existing)
    index = {record.storage_key: position for position, record in enumerate(merged)}
    for record in incoming:
        position = index.get(record.storage_key)
        if position is None:
            index[record.storage_key] = len(merged)
            merged.append(record)
        else:
            merged[position] = record
    merged.sort(key=lambda record: record.created_at, reverse=True)
    return merged


class ListingReconciler:
    """Polls one room's listing on a fixed interval and owns its file set.

    The interval is the only trigger: a tick that fires while a poll is still
    in flight is skipped rather than queued, so a slow backend sees at most
    one outstanding request.
    """

    def __init__(
        self,
        room_id: str,
        fetch: FetchFiles,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_change: Optional[Callable[[List[FileRecord]], None]] = None,
        on_error: Optional[Callable[[ListPartial], None]] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.room_id = room_id
        self.interval = interval
        self.state = PollState.IDLE
        self.last_error: Optional[ListPartial] = None
        self._fetch = fetch
        self._on_change = on_change
        self._on_error = on_error
        self._files: List[FileRecord] = []
        self._ticker: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def files(self) -> List[FileRecord]:
        return list(self._files)

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def add_records(self, records: Iterable[FileRecord]) -> List[FileRecord]:
        """Merge locally known records (e.g. our own uploads) without polling."""
        self._files = merge_snapshot(self._files, records)
        self._notify_change()
        return self.files

    def start(self) -> None:
        """Poll now, then on every interval tick until ``stop``."""
        if self.running:
            return
        logger.info(f"Start polling room {self.room_id} every {self.interval}s")
        self._ticker = asyncio.create_task(self._run(), name=f"poll-{self.room_id}")

    async def stop(self) -> None:
        """Cancel the interval task and any poll still in flight."""
        tasks = [task for task in (self._ticker, self._inflight) if task is not None and not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._ticker = None
        self._inflight = None
        self.state = PollState.IDLE
        logger.info(f"Stopped polling room {self.room_id}")

    async def poll_once(self) -> bool:
        """Poll immediately, or wait for the poll already in flight.

        Returns:
            True if the poll succeeded and was merged
        """
        if self.state is not PollState.POLLING or self._inflight is None:
            self._begin_poll()
        return await asyncio.shield(self._inflight)

    async def _run(self) -> None:
        while True:
            self._tick()
            await asyncio.sleep(self.interval)

    def _tick(self) -> None:
        if self.state is PollState.POLLING:
            logger.debug(f"Poll for room {self.room_id} still in flight, skipping tick")
            return
        self._begin_poll()

    def _begin_poll(self) -> None:
        self.state = PollState.POLLING
        self._inflight = asyncio.create_task(self._poll())
        self._inflight.add_done_callback(self._poll_done)

    def _poll_done(self, task: asyncio.Task) -> None:
        # _poll absorbs fetch errors; anything left came from a callback
        if task.cancelled() or task.exception() is None:
            return
        error = task.exception()
        logger.error(f"Poll for room {self.room_id} failed after fetching: {error!r}")
        self.last_error = ListPartial(detail=repr(error))
        if self._on_error is not None:
            self._on_error(self.last_error)

    async def _poll(self) -> bool:
        try:
            logger.debug(f"Fetching files for room: {self.room_id}")
            snapshot = await self._fetch(self.room_id)
        except Exception as e:
            self.last_error = e if isinstance(e, ListPartial) else ListPartial(detail=str(e))
            logger.warning(f"Error fetching files for room {self.room_id}: {e}")
            if self._on_error is not None:
                self._on_error(self.last_error)
            return False
        finally:
            self.state = PollState.IDLE

        self._files = merge_snapshot(self._files, snapshot)
        self.last_error = None
        logger.debug(f"Room {self.room_id}: {len(snapshot)} listed, {len(self._files)} known")
        self._notify_change()
        return True

    def _notify_change(self) -> None:
        if self._on_change is not None:
            self._on_change(self.files)
