from fastapi import APIRouter, Depends

from file_gateway.api.dependencies import get_bucket_manager, get_storage
from file_gateway.api.routes import checked_bucket
from file_gateway.schemas.models import BucketListResponse, BucketResponse
from file_gateway.services.buckets import BucketManager
from file_gateway.services.storage import StorageService

router = APIRouter()


@router.get("/buckets", response_model=BucketListResponse)
def list_buckets(storage: StorageService = Depends(get_storage)):
    return BucketListResponse(buckets=storage.list_buckets())


@router.put("/buckets/{name}", response_model=BucketResponse)
def ensure_bucket(
    name: str,
    buckets: BucketManager = Depends(get_bucket_manager),
):
    """Create the bucket if it does not exist yet. Safe to call repeatedly."""
    buckets.ensure(checked_bucket(name))
    return BucketResponse(bucket=name, status="ready")
