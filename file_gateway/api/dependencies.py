from fastapi import Request

from file_gateway.core.config import Settings
from file_gateway.services.buckets import BucketManager
from file_gateway.services.listing import ListingEngine
from file_gateway.services.resolver import FileIdResolver
from file_gateway.services.storage import StorageService
from file_gateway.services.uploads import UploadOrchestrator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_resolver(request: Request) -> FileIdResolver:
    return request.app.state.resolver


def get_bucket_manager(request: Request) -> BucketManager:
    return request.app.state.buckets


def get_listing_engine(request: Request) -> ListingEngine:
    return request.app.state.listing


def get_upload_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.uploads
