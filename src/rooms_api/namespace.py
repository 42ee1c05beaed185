"""
Room namespace policy.

Every stored object is tied to exactly one room:

* flat keyspace (UploadThing): the custom id is ``"<room_id>__<nonce>"``
* prefix keyspace (Cloudinary): the object lives under ``"rooms/<room_id>/"``

Room ids may not contain ``__``, ``/`` or a leading/trailing underscore, so no
room's prefix is ever a prefix of another room's keys.
"""

import re
import secrets
import string
import uuid
from typing import Optional
from urllib.parse import urlencode

from rooms_api.errors import ValidationError

ROOM_KEY_SEPARATOR = "__"
ROOM_FOLDER_ROOT = "rooms"
ROOM_ID_MAX_LENGTH = 64
ROOM_ID_LENGTH = 10
ROOM_ID_ALPHABET = string.ascii_lowercase + string.digits

_ROOM_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+(?:_[A-Za-z0-9-]+)*$")


def validate_room_id(room_id: Optional[str]) -> str:
    """Return ``room_id`` unchanged, or raise ``ValidationError`` if unusable."""
    if not isinstance(room_id, str) or not room_id:
        raise ValidationError("Missing room identifier")
    if len(room_id) > ROOM_ID_MAX_LENGTH:
        raise ValidationError(f"Room identifier longer than {ROOM_ID_MAX_LENGTH} characters")
    if not _ROOM_ID_PATTERN.match(room_id):
        raise ValidationError(f"Invalid room identifier: {room_id!r}")
    return room_id


def generate_room_id() -> str:
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))


def new_upload_nonce() -> str:
    return uuid.uuid4().hex


def room_key_prefix(room_id: str) -> str:
    return f"{validate_room_id(room_id)}{ROOM_KEY_SEPARATOR}"


def derive_storage_key(room_id: str, upload_nonce: str) -> str:
    """Flat keyspace key for one upload into ``room_id``."""
    if not upload_nonce:
        raise ValueError("upload_nonce must be non-empty")
    return f"{room_key_prefix(room_id)}{upload_nonce}"


def room_prefix(room_id: str) -> str:
    """Prefix keyspace folder path for ``room_id``, with a trailing slash."""
    return f"{ROOM_FOLDER_ROOT}/{validate_room_id(room_id)}/"


def room_folder(room_id: str) -> str:
    """Folder name passed to providers that append the slash themselves."""
    return room_prefix(room_id).rstrip("/")


def belongs_to_room(custom_id: Optional[str], room_id: str) -> bool:
    return bool(custom_id) and custom_id.startswith(room_key_prefix(room_id))


def infer_format(filename: Optional[str]) -> Optional[str]:
    # "archive.tar.gz" -> "gz", ".env" -> "env", "README" -> None
    if not filename or "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[1].strip().lower()
    return extension or None


def room_share_url(base_url: str, room_id: str) -> str:
    """Link another device opens to join ``room_id``."""
    return f"{base_url.rstrip('/')}/CreateRoom?{urlencode({'roomId': validate_room_id(room_id)})}"
