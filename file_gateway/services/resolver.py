"""Mapping between client-facing file ids and backend keys.

Two addressing schemes exist and a deployment uses exactly one of them:

* embedded: ``<category>/<fileId>-<filename>`` inside one configured bucket
* direct: the key *is* the file id, the bucket doubles as the category and
  the original filename lives in the object's ``filename`` metadata
"""

import re
import uuid
from typing import Iterable, Optional

from file_gateway.core.config import Settings
from file_gateway.core.errors import MalformedKey, ValidationError
from file_gateway.core.validation import validate_bucket_name
from file_gateway.models.file import ObjectRecord, Placement, ResolvedFile
from file_gateway.services.storage import FILENAME_META

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


class FileIdResolver:
    requires_metadata = False

    def resolve(self, record: ObjectRecord, bucket: str) -> ResolvedFile:
        raise NotImplementedError

    def placement(self, destination: Optional[str], filename: str) -> Placement:
        raise NotImplementedError

    def search_text(self, resolved: ResolvedFile) -> str:
        raise NotImplementedError

    def find(self, records: Iterable[ObjectRecord], bucket: str, file_id: str) -> Optional[ResolvedFile]:
        """Linear scan for a file id; None once the listing is exhausted."""
        for record in records:
            try:
                resolved = self.resolve(record, bucket)
            except MalformedKey:
                continue
            if resolved.file_id == file_id:
                return resolved
        return None


class EmbeddedResolver(FileIdResolver):
    def __init__(self, bucket: str, default_category: str):
        self.bucket = bucket
        self.default_category = default_category

    def encode_key(self, category: str, file_id: str, filename: str) -> str:
        return f"{category}/{file_id}-{filename}"

    def resolve(self, record: ObjectRecord, bucket: str) -> ResolvedFile:
        category, sep, remainder = record.key.partition("/")
        if not sep:
            raise MalformedKey(f"Key {record.key!r} has no category")
        match = UUID_PATTERN.match(remainder)
        if not match or remainder[match.end():match.end() + 1] != "-":
            raise MalformedKey(f"Key {record.key!r} has no embedded file id")
        return ResolvedFile(
            file_id=match.group(0),
            category=category,
            filename=remainder[match.end() + 1:],
            bucket=bucket,
            key=record.key,
            size=record.size,
            last_modified=record.last_modified,
            etag=record.etag,
        )

    def placement(self, destination: Optional[str], filename: str) -> Placement:
        category = destination or self.default_category
        if "/" in category:
            raise ValidationError("Invalid category", [f"category {category!r} must not contain '/'"])
        file_id = str(uuid.uuid4())
        return Placement(
            bucket=self.bucket,
            key=self.encode_key(category, file_id, filename),
            file_id=file_id,
            category=category,
        )

    def search_text(self, resolved: ResolvedFile) -> str:
        return f"{resolved.key} {resolved.category}"


class DirectResolver(FileIdResolver):
    # The filename is not part of the key
    requires_metadata = True

    def __init__(self, default_bucket: str):
        self.default_bucket = default_bucket

    def resolve(self, record: ObjectRecord, bucket: str) -> ResolvedFile:
        if not record.key:
            raise MalformedKey("Empty key")
        filename = (record.metadata or {}).get(FILENAME_META) or record.key
        return ResolvedFile(
            file_id=record.key,
            category=bucket,
            filename=filename,
            bucket=bucket,
            key=record.key,
            size=record.size,
            last_modified=record.last_modified,
            etag=record.etag,
        )

    def placement(self, destination: Optional[str], filename: str) -> Placement:
        bucket = (destination or self.default_bucket).lower()
        reasons = validate_bucket_name(bucket)
        if reasons:
            raise ValidationError("Invalid bucket name", reasons)
        file_id = str(uuid.uuid4())
        return Placement(bucket=bucket, key=file_id, file_id=file_id, category=bucket)

    def search_text(self, resolved: ResolvedFile) -> str:
        return f"{resolved.file_id} {resolved.filename} {resolved.category}"


def build_resolver(settings: Settings) -> FileIdResolver:
    if settings.ADDRESSING_SCHEME == "embedded":
        return EmbeddedResolver(settings.MINIO_BUCKET, settings.DEFAULT_CATEGORY)
    return DirectResolver(settings.MINIO_BUCKET)
