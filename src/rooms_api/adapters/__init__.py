"""
Adapter layer for the Rooms API.

Contains the storage capability shared by every backend and its two
implementations: Cloudinary (prefix keyspace) and UploadThing (flat keyspace).
The backend is selected once, from configuration, when the app starts.
"""

from rooms_api.adapters.storage import BaseStorageAdapter, StorageAdapterFactory, build_storage_adapter

__all__ = [
    "BaseStorageAdapter",
    "StorageAdapterFactory",
    "build_storage_adapter",
]
