####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime, timezone
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


class FileRecord(BaseModel):
    """
    Logical file record shared by every storage backend.

    Field names are pythonic; the aliases are the names used on the wire so the
    JSON shape stays ``{public_id, secure_url, original_filename, format, bytes,
    created_at, roomId}`` whichever backend produced the record.
    """

    storage_key: str = Field(
        alias="public_id",
        description="Backend-native key, unique across the whole backend.",
        json_schema_extra={"example": "abc123__6f1c0e8a2b7d4c59a3e1f0d2c4b6a8e9"},
    )
    download_url: str = Field(
        alias="secure_url",
        description="Directly fetchable URL for the file content.",
    )
    original_filename: Optional[str] = Field(
        default=None,
        description="Human readable file name as uploaded.",
    )
    format: Optional[str] = Field(
        default=None,
        description="File format inferred from the filename extension.",
    )
    byte_size: int = Field(alias="bytes", ge=0)
    created_at: datetime = Field(description="Upload time reported by the backend.")
    room_id: str = Field(alias="roomId", min_length=1)
    file_key: Optional[str] = Field(
        default=None,
        description="Provider file key when it differs from the storage key.",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "example": {
                "public_id": "abc123__6f1c0e8a2b7d4c59a3e1f0d2c4b6a8e9",
                "secure_url": "https://utfs.io/f/Xk2f9sQ1",
                "original_filename": "notes.pdf",
                "format": "pdf",
                "bytes": 2048,
                "created_at": "2024-01-01T00:00:00Z",
                "roomId": "abc123",
            }
        },
    )

    @field_validator("created_at")
    @classmethod
    def assume_utc_when_naive(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_wire(self) -> dict:
        """Serialize with wire names, as returned by the HTTP API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CreateRoomResponse(BaseModel):
    """Response model for `POST /api/room/create`."""
    room_id: str = Field(alias="roomId")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {"roomId": "k3j9x0p2ma"}},
    )


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    error: str


class HealthResponse(BaseModel):
    """Response model for `GET /health`."""
    status: str
    storage_backend: str
