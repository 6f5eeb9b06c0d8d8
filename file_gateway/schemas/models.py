from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileEntry(CamelModel):
    file_id: str
    key: str
    filename: str
    category: str
    bucket: str
    size: int
    last_modified: datetime
    etag: str


class ListFilesQueryEcho(CamelModel):
    keyword: Optional[str] = None
    prefix: str = ""
    marker: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    limit: int
    sort_by: str
    sort_order: str


class ListFilesResponse(CamelModel):
    files: List[FileEntry]
    next_marker: Optional[str]
    has_more: bool
    total_found: int
    query: ListFilesQueryEcho


class UploadResponse(CamelModel):
    message: str
    file_id: str
    bucket_name: str
    category: str
    key: str
    filename: str
    size: int
    mimetype: str


class UploadedFile(CamelModel):
    originalname: str
    file_id: str
    bucket_name: str
    category: str
    key: str
    size: int
    mimetype: str


class UploadErrorEntry(CamelModel):
    filename: str
    reason: str
    details: List[str] = Field(default_factory=list)


class BatchUploadResponse(CamelModel):
    message: str
    successful: List[UploadedFile]
    errors: List[UploadErrorEntry] = Field(default_factory=list)


class Base64File(BaseModel):
    filename: Optional[str] = None
    content: Optional[str] = None
    mimetype: Optional[str] = None


class Base64UploadRequest(BaseModel):
    files: List[Base64File]
    category: Optional[str] = None


class FileDeleteResponse(CamelModel):
    message: str
    file_id: str
    object_name: str


class BucketResponse(BaseModel):
    bucket: str
    status: str


class BucketListResponse(BaseModel):
    buckets: List[str]
