from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class ObjectRecord(BaseModel):
    """One entry of a backend listing."""
    key: str
    size: int
    last_modified: datetime
    etag: str = ""
    # Only present once the record has been described with a head request
    metadata: Optional[Dict[str, str]] = None


class ResolvedFile(BaseModel):
    file_id: str
    category: str
    filename: str
    bucket: str
    key: str
    size: int
    last_modified: datetime
    etag: str = ""


class Placement(BaseModel):
    """Where a new object goes."""
    bucket: str
    key: str
    file_id: str
    category: str


class UploadItem(BaseModel):
    filename: str = ""
    mimetype: str = "application/octet-stream"
    buffer: bytes = b""
    # Set when the payload could not be turned into bytes (bad base64)
    decode_error: Optional[str] = None


class UploadResult(BaseModel):
    file_id: str
    bucket_name: str
    category: str
    key: str
    filename: str
    size: int
    mimetype: str


class UploadFailure(BaseModel):
    filename: str
    reason: str
    details: List[str] = Field(default_factory=list)


class UploadBatchOutcome(BaseModel):
    successes: List[UploadResult] = Field(default_factory=list)
    errors: List[UploadFailure] = Field(default_factory=list)


class StoredObject(BaseModel):
    """An object body opened for reading, with its headers."""
    # Chunk iterator over the object body
    body: Any
    content_type: str = "application/octet-stream"
    content_length: Optional[int] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
