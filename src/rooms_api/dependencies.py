from fastapi import Request

from rooms_api.adapters.storage import BaseStorageAdapter
from rooms_api.settings import Settings


def get_storage(request: Request) -> BaseStorageAdapter:
    """Storage adapter selected when the app was created."""
    return request.app.state.storage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
