"""
Storage capability shared by the room storage backends.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Type

import httpx

from rooms_api.errors import BackendUnavailable, StorageError
from rooms_api.schemas import FileRecord
from rooms_api.settings import Settings

logger = logging.getLogger(__name__)


class BaseStorageAdapter(ABC):
    """Room scoped object storage.

    Implementations own one ``httpx.AsyncClient``; pass ``http_client`` to
    share or fake the transport.
    """

    backend_name = "base"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    @abstractmethod
    async def upload(self, file_bytes: bytes, filename: str, mime_type: str, room_id: str) -> FileRecord:
        """Store one file in ``room_id``.

        Args:
            file_bytes: Raw file content
            filename: Name the file was uploaded with
            mime_type: Content type of the file
            room_id: Owning room, already validated

        Returns:
            The normalized record of the stored object
        """

    @abstractmethod
    async def list_by_room(self, room_id: str) -> List[FileRecord]:
        """Return every stored object belonging to ``room_id`` (possibly empty)."""

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        failure: Type[StorageError],
        **kwargs,
    ) -> Any:
        """Issue one provider call and decode its JSON body.

        Transport errors, rejected credentials and provider 5xx become
        ``BackendUnavailable``; any other non-2xx or undecodable body becomes
        ``failure``.
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise BackendUnavailable(detail=f"{self.backend_name} unreachable: {e!r}") from e

        if response.status_code in (401, 403) or response.status_code >= 500:
            raise BackendUnavailable(
                detail=f"{self.backend_name} answered {response.status_code}: {response.text[:200]}"
            )
        if response.is_error:
            raise failure(detail=f"{self.backend_name} answered {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise failure(detail=f"{self.backend_name} returned a non-JSON body") from e


class StorageAdapterFactory:
    """Factory to initialize the storage adapter selected by the settings"""

    @staticmethod
    def get_storage_adapter(settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> BaseStorageAdapter:
        from rooms_api.adapters.cloudinary import CloudinaryStorage
        from rooms_api.adapters.uploadthing import UploadThingStorage

        adapter_classes = {
            "uploadthing": UploadThingStorage,
            "cloudinary": CloudinaryStorage,
        }

        backend = settings.storage_backend
        logger.info(f"Creating storage adapter for backend: {backend}")
        return adapter_classes[backend].from_settings(settings, http_client=http_client)


def build_storage_adapter(settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> BaseStorageAdapter:
    return StorageAdapterFactory.get_storage_adapter(settings, http_client=http_client)
