"""Input validation for uploads, bucket names and listing queries.

Every check returns a list of violation reasons; an empty list means the
input passed. Callers decide whether a failure is a request-level 400 or a
per-item batch error.
"""

import base64
import binascii
import re
from datetime import date
from typing import Optional

from file_gateway.core.config import Settings
from file_gateway.models.file import UploadItem

DEFAULT_MIMETYPE = "application/octet-stream"

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IP_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[^,]*)?;base64,", re.IGNORECASE)


def validate_bucket_name(name: str) -> list[str]:
    """S3 bucket naming rules: 3-63 chars of [a-z0-9.-], no IP-like names."""
    if not _BUCKET_RE.match(name or ""):
        return [f"bucket name {name!r} must be 3-63 lowercase letters, digits, '.' or '-'"]
    if _IP_RE.match(name):
        return [f"bucket name {name!r} must not look like an IP address"]
    if ".." in name:
        return [f"bucket name {name!r} must not contain '..'"]
    return []


def validate_upload(item: UploadItem, settings: Settings) -> list[str]:
    if item.decode_error:
        return [item.decode_error]

    reasons = []
    if not item.filename or not item.filename.strip():
        reasons.append("filename is required")
    if not item.buffer:
        reasons.append("file is empty")
    elif len(item.buffer) > settings.MAX_UPLOAD_SIZE:
        reasons.append(
            f"file size {len(item.buffer)} exceeds maximum of {settings.MAX_UPLOAD_SIZE} bytes"
        )
    if settings.ALLOWED_MIME_TYPES and item.mimetype not in settings.ALLOWED_MIME_TYPES:
        reasons.append(f"mimetype {item.mimetype!r} is not allowed")
    return reasons


def decode_base64_item(filename: Optional[str], content: Optional[str], mimetype: Optional[str]) -> UploadItem:
    """Turn a base64 payload into an UploadItem.

    A failed decode is recorded on the item rather than raised, so one bad
    payload never aborts a batch. A ``data:<mime>;base64,`` prefix is
    stripped and its mime type used when none was given.
    """
    filename = filename or ""
    if not content:
        return UploadItem(filename=filename, mimetype=mimetype or DEFAULT_MIMETYPE, decode_error="content is required")

    match = _DATA_URL_RE.match(content)
    if match:
        mimetype = mimetype or match.group("mime")
        content = content[match.end():]

    try:
        buffer = base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError):
        return UploadItem(
            filename=filename,
            mimetype=mimetype or DEFAULT_MIMETYPE,
            decode_error="content is not valid base64",
        )
    return UploadItem(filename=filename, mimetype=mimetype or DEFAULT_MIMETYPE, buffer=buffer)


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> list[str]:
    if start_date and end_date and start_date > end_date:
        return ["startDate must not be after endDate"]
    return []
