# cli.py
import click
import logging
from rooms_api.settings import get_settings

# Configure logging
logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@click.group()
def cli():
    """CLI commands for the Rooms API server"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  App Name: {settings.app_name}")
    print(f"  Storage Backend: {settings.storage_backend}")
    if settings.uploadthing_enabled:
        print(f"  UploadThing API: {settings.uploadthing_api_url}")
        print(f"  UploadThing File URL Base: {settings.uploadthing_file_url_base}")
    else:
        print(f"  Cloudinary Cloud: {settings.cloudinary_cloud_name}")
        print(f"  Cloudinary Upload Preset: {settings.cloudinary_upload_preset}")
        print(f"  Cloudinary Credentials Set: {bool(settings.cloudinary_api_key and settings.cloudinary_api_secret)}")
    print(f"  CORS Origins: {', '.join(settings.cors_allow_origins)}")
    print(f"  Public Base URL: {settings.public_base_url}")
    print(f"  Log Level: {settings.log_level}")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on")
@click.option("--reload/--no-reload", default=False, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting Rooms API on {host}:{port} ({settings.storage_backend} backend)")

    uvicorn.run(
        "rooms_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
