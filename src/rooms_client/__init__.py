"""
Client side of rooms: HTTP client, listing reconciler and room sessions.
"""

from rooms_client.api import RoomsClient
from rooms_client.reconciler import ListingReconciler, PollState, merge_snapshot
from rooms_client.session import RoomSession, RoomSessionError, SessionState, open_room

__all__ = [
    'RoomsClient',
    'ListingReconciler',
    'PollState',
    'merge_snapshot',
    'RoomSession',
    'RoomSessionError',
    'SessionState',
    'open_room',
]
