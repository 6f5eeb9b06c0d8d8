from datetime import date
from typing import List, Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from file_gateway.api.dependencies import (
    get_listing_engine,
    get_resolver,
    get_settings,
    get_storage,
    get_upload_orchestrator,
)
from file_gateway.core.config import Settings
from file_gateway.core.errors import NotFound, ValidationError
from file_gateway.core.validation import (
    DEFAULT_MIMETYPE,
    decode_base64_item,
    validate_bucket_name,
    validate_date_range,
)
from file_gateway.models.file import UploadBatchOutcome, UploadItem
from file_gateway.schemas.models import (
    Base64UploadRequest,
    BatchUploadResponse,
    FileDeleteResponse,
    FileEntry,
    ListFilesQueryEcho,
    ListFilesResponse,
    UploadedFile,
    UploadErrorEntry,
    UploadResponse,
)
from file_gateway.services.listing import ListingEngine, ListingQuery
from file_gateway.services.resolver import FileIdResolver
from file_gateway.services.storage import FILENAME_META, StorageService
from file_gateway.services.uploads import UploadOrchestrator

router = APIRouter()


def listing_query(
    keyword: Optional[str] = Query(None),
    prefix: str = Query(""),
    limit: Optional[int] = Query(None, ge=1),
    marker: str = Query(""),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: Literal["filename", "size", "category", "lastModified"] = Query("lastModified", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    settings: Settings = Depends(get_settings),
) -> ListingQuery:
    limit = limit or settings.DEFAULT_PAGE_SIZE
    reasons = validate_date_range(start_date, end_date)
    if limit > settings.MAX_PAGE_SIZE:
        reasons.append(f"limit must not exceed {settings.MAX_PAGE_SIZE}")
    if reasons:
        raise ValidationError("Invalid query parameters", reasons)
    return ListingQuery(
        keyword=keyword or None,
        prefix=prefix,
        limit=limit,
        marker=marker,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def checked_bucket(bucket: str) -> str:
    reasons = validate_bucket_name(bucket)
    if reasons:
        raise ValidationError("Invalid bucket name", reasons)
    return bucket


def content_disposition(filename: str) -> str:
    # Only plain printable ASCII without quoting characters may sit in the quoted form
    if filename.isascii() and filename.isprintable() and not any(c in filename for c in '"\\'):
        return f'attachment; filename="{filename}"'
    return f"attachment; filename*=UTF-8''{quote(filename, safe='')}"


def _list_files(engine: ListingEngine, bucket: str, query: ListingQuery) -> ListFilesResponse:
    page = engine.list_page(bucket, query)
    return ListFilesResponse(
        files=[FileEntry(**f.model_dump()) for f in page.files],
        next_marker=page.next_marker,
        has_more=page.has_more,
        total_found=page.total_found,
        query=ListFilesQueryEcho(
            keyword=query.keyword,
            prefix=query.prefix,
            marker=query.marker,
            start_date=query.start_date.isoformat() if query.start_date else None,
            end_date=query.end_date.isoformat() if query.end_date else None,
            limit=query.limit,
            sort_by=query.sort_by,
            sort_order=query.sort_order,
        ),
    )


def _read_file(storage: StorageService, resolver: FileIdResolver, bucket: str, file_id: str) -> StreamingResponse:
    found = resolver.find(storage.list_all(bucket), bucket, file_id)
    if found is None:
        raise NotFound(f"File {file_id} not found")

    stored = storage.get(bucket, found.key)
    filename = stored.metadata.get(FILENAME_META) or found.filename
    headers = {"Content-Disposition": content_disposition(filename)}
    if stored.content_length is not None:
        headers["Content-Length"] = str(stored.content_length)
    return StreamingResponse(stored.body, media_type=stored.content_type, headers=headers)


def _delete_file(storage: StorageService, resolver: FileIdResolver, bucket: str, file_id: str) -> FileDeleteResponse:
    found = resolver.find(storage.list_all(bucket), bucket, file_id)
    if found is None:
        raise NotFound(f"File {file_id} not found")

    storage.delete(bucket, found.key)
    return FileDeleteResponse(
        message="File deleted successfully.",
        file_id=file_id,
        object_name=found.key,
    )


def _batch_response(outcome: UploadBatchOutcome) -> BatchUploadResponse:
    message = f"Uploaded {len(outcome.successes)} files successfully"
    if outcome.errors:
        message += f" with {len(outcome.errors)} errors"
    return BatchUploadResponse(
        message=message,
        successful=[
            UploadedFile(originalname=r.filename, **r.model_dump(exclude={"filename"}))
            for r in outcome.successes
        ],
        errors=[UploadErrorEntry(**e.model_dump()) for e in outcome.errors],
    )


@router.get("/files", response_model=ListFilesResponse)
def list_files(
    query: ListingQuery = Depends(listing_query),
    engine: ListingEngine = Depends(get_listing_engine),
    settings: Settings = Depends(get_settings),
):
    return _list_files(engine, settings.MINIO_BUCKET, query)


@router.get("/{bucket}/files", response_model=ListFilesResponse)
def list_bucket_files(
    bucket: str,
    query: ListingQuery = Depends(listing_query),
    engine: ListingEngine = Depends(get_listing_engine),
):
    return _list_files(engine, checked_bucket(bucket), query)


@router.get("/file/{file_id}")
def read_file(
    file_id: str,
    storage: StorageService = Depends(get_storage),
    resolver: FileIdResolver = Depends(get_resolver),
    settings: Settings = Depends(get_settings),
):
    return _read_file(storage, resolver, settings.MINIO_BUCKET, file_id)


@router.get("/{bucket}/file/{file_id}")
def read_bucket_file(
    bucket: str,
    file_id: str,
    storage: StorageService = Depends(get_storage),
    resolver: FileIdResolver = Depends(get_resolver),
):
    return _read_file(storage, resolver, checked_bucket(bucket), file_id)


@router.delete("/file/{file_id}", response_model=FileDeleteResponse)
def delete_file(
    file_id: str,
    storage: StorageService = Depends(get_storage),
    resolver: FileIdResolver = Depends(get_resolver),
    settings: Settings = Depends(get_settings),
):
    return _delete_file(storage, resolver, settings.MINIO_BUCKET, file_id)


@router.delete("/{bucket}/file/{file_id}", response_model=FileDeleteResponse)
def delete_bucket_file(
    bucket: str,
    file_id: str,
    storage: StorageService = Depends(get_storage),
    resolver: FileIdResolver = Depends(get_resolver),
):
    return _delete_file(storage, resolver, checked_bucket(bucket), file_id)


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    uploads: UploadOrchestrator = Depends(get_upload_orchestrator),
):
    item = UploadItem(
        filename=file.filename or "",
        mimetype=file.content_type or DEFAULT_MIMETYPE,
        buffer=await file.read(),
    )
    result = await uploads.upload_one(item, category)
    return UploadResponse(message="File uploaded successfully.", **result.model_dump())


@router.post("/upload/multiple", response_model=BatchUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_multiple_files(
    files: List[UploadFile] = File(...),
    category: Optional[str] = Form(None),
    uploads: UploadOrchestrator = Depends(get_upload_orchestrator),
    settings: Settings = Depends(get_settings),
):
    if not files:
        raise ValidationError("No files provided")
    if len(files) > settings.MAX_FILES_PER_REQUEST:
        raise ValidationError(
            "Too many files",
            [f"at most {settings.MAX_FILES_PER_REQUEST} files per request, got {len(files)}"],
        )

    items = [
        UploadItem(
            filename=f.filename or "",
            mimetype=f.content_type or DEFAULT_MIMETYPE,
            buffer=await f.read(),
        )
        for f in files
    ]
    outcome = await uploads.upload_batch(items, category)
    return _batch_response(outcome)


@router.post("/upload/base64", response_model=BatchUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_base64_files(
    request: Base64UploadRequest,
    uploads: UploadOrchestrator = Depends(get_upload_orchestrator),
):
    if not request.files:
        raise ValidationError("No files provided")

    items = [decode_base64_item(f.filename, f.content, f.mimetype) for f in request.files]
    outcome = await uploads.upload_batch(items, request.category)
    return _batch_response(outcome)
