from contextlib import asynccontextmanager
from textwrap import dedent
import logging
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware

from rooms_api.adapters.storage import BaseStorageAdapter, build_storage_adapter
from rooms_api.errors import (
    RoomsError,
    handle_broad_exceptions,
    handle_pydantic_validation_errors,
    handle_rooms_errors,
)
from rooms_api.routers.files import router as files_router
from rooms_api.routers.rooms import router as rooms_router
from rooms_api.routers.health import router as health_router
from rooms_api.settings import Settings

# Set up logging
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, storage: Optional[BaseStorageAdapter] = None) -> FastAPI:
    """Create a FastAPI application.

    The storage backend is chosen here, once per process, from ``settings``;
    pass ``storage`` to run the app against a specific adapter instead.
    """
    settings = settings or Settings()
    storage = storage or build_storage_adapter(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving rooms with the {storage.backend_name} storage backend")
        yield
        await storage.aclose()

    app = FastAPI(
        title="Rooms API",
        summary="Share files through ephemeral rooms",
        version="v1",
        description=dedent(
            """\
        Create a room, upload files into it from any device and list them from
        any other device that knows the room id.

        | Endpoint | Notes |
        | --- | --- |
        | `POST /api/room/create` | issues a new room id |
        | `POST /api/upload` | multipart `file` + `roomId` |
        | `GET /api/files/{roomId}` | every file in the room, `[]` when empty |
        """
        ),
        docs_url="/",  # its easier to find the docs when they live on the base url
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.storage = storage

    app.include_router(rooms_router, prefix="/api", tags=["rooms"])
    app.include_router(files_router, prefix="/api", tags=["files"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(RoomsError, handle_rooms_errors)
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(RequestValidationError, handle_pydantic_validation_errors)
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
