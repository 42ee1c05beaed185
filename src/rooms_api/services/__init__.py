"""
Rooms API service layer

Request-level operations that sit between the HTTP routers and the storage
adapter: validation, delegation and error normalization.
"""

from .uploads import list_room_files, submit_upload

__all__ = [
    'submit_upload',
    'list_room_files',
]
