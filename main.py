import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from file_gateway.api.buckets import router as buckets_router
from file_gateway.api.routes import router as api_router
from file_gateway.core.config import Settings, settings as default_settings
from file_gateway.core.errors import (
    GatewayError,
    handle_broad_exceptions,
    handle_gateway_error,
    handle_request_validation_error,
)
from file_gateway.core.logging_config import configure_logging
from file_gateway.services.buckets import BucketManager
from file_gateway.services.listing import ListingEngine
from file_gateway.services.resolver import build_resolver
from file_gateway.services.storage import StorageService, build_s3_client
from file_gateway.services.uploads import UploadOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.ENSURE_BUCKET_ON_STARTUP:
        try:
            app.state.buckets.ensure(settings.MINIO_BUCKET)
        except GatewayError as e:
            # Keep serving; the bucket is checked again on first upload
            logger.warning("Could not ensure bucket %s at startup: %s", settings.MINIO_BUCKET, e.message)
    yield


def create_app(settings: Optional[Settings] = None, storage: Optional[StorageService] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(title="MinIO File Gateway", lifespan=lifespan)

    # One backend client for the whole process, handed to every service
    storage = storage or StorageService(build_s3_client(settings), region=settings.MINIO_REGION)
    resolver = build_resolver(settings)
    buckets = BucketManager(storage)

    app.state.settings = settings
    app.state.storage = storage
    app.state.resolver = resolver
    app.state.buckets = buckets
    app.state.listing = ListingEngine(storage, resolver)
    app.state.uploads = UploadOrchestrator(storage, resolver, buckets, settings)

    app.include_router(buckets_router, tags=["Buckets"])
    app.include_router(api_router, tags=["Files"])

    app.add_exception_handler(GatewayError, handle_gateway_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.middleware("http")(handle_broad_exceptions)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    logger.info("File gateway ready (scheme=%s, bucket=%s)", settings.ADDRESSING_SCHEME, settings.MINIO_BUCKET)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3000)
