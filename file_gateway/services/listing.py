"""Paginated, filtered and sorted listings on top of an unordered object stream.

The backend can only stream a bucket from the start, in its own order, with
no filtering, sorting or cursor. A page is therefore built per request:

1. skip the stream up to and including the marker record
2. read a bounded window of raw records (twice the page size while a
   filter is active, to make up for what the filter drops)
3. resolve, filter, sort, and cut to the page size

Resuming relies on keys being immutable and the backend order being stable
between calls. Writers touching the bucket between two page requests can
cause skipped or repeated entries; this is not detected.
"""

import itertools
import logging
from datetime import date, datetime, time, timezone
from typing import Iterable, Iterator, List, Literal, Optional

from pydantic import BaseModel

from file_gateway.core.errors import MalformedKey, NotFound
from file_gateway.models.file import ObjectRecord, ResolvedFile
from file_gateway.services.resolver import FileIdResolver
from file_gateway.services.storage import StorageService

logger = logging.getLogger(__name__)

SortField = Literal["filename", "size", "category", "lastModified"]
SortOrder = Literal["asc", "desc"]

END_OF_DAY = time(23, 59, 59, 999000)


class ListingQuery(BaseModel):
    keyword: Optional[str] = None
    prefix: str = ""
    limit: int = 10
    marker: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sort_by: SortField = "lastModified"
    sort_order: SortOrder = "desc"

    @property
    def filtering(self) -> bool:
        return bool(self.keyword or self.start_date or self.end_date)


class ListingPage(BaseModel):
    files: List[ResolvedFile]
    next_marker: Optional[str]
    has_more: bool
    total_found: int


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def matches(resolved: ResolvedFile, query: ListingQuery, resolver: FileIdResolver) -> bool:
    """True when a file passes every active predicate of the query."""
    if query.keyword:
        if query.keyword.lower() not in resolver.search_text(resolved).lower():
            return False
    modified = _as_utc(resolved.last_modified)
    if query.start_date:
        if modified < datetime.combine(query.start_date, time.min, tzinfo=timezone.utc):
            return False
    if query.end_date:
        if modified > datetime.combine(query.end_date, END_OF_DAY, tzinfo=timezone.utc):
            return False
    return True


SORT_KEYS = {
    "filename": lambda f: f.filename.casefold(),
    "size": lambda f: f.size,
    "category": lambda f: f.category.casefold(),
    "lastModified": lambda f: _as_utc(f.last_modified),
}


def sort_files(files: Iterable[ResolvedFile], sort_by: str = "lastModified", sort_order: str = "desc") -> List[ResolvedFile]:
    # sorted() is stable in both directions, so ties keep backend order
    return sorted(files, key=SORT_KEYS[sort_by], reverse=sort_order == "desc")


def skip_past_marker(records: Iterator[ObjectRecord], marker: str, marker_matches) -> Optional[Iterator[ObjectRecord]]:
    """Advance the stream past the marker record.

    Returns the remaining stream, or None when the marker never shows up.
    """
    if not marker:
        return records
    for record in records:
        if marker_matches(record):
            return records
    return None


class ListingEngine:
    def __init__(self, storage: StorageService, resolver: FileIdResolver):
        self.storage = storage
        self.resolver = resolver

    def _marker_matcher(self, bucket: str, marker: str):
        def marker_matches(record: ObjectRecord) -> bool:
            if record.key == marker:
                return True
            try:
                return self.resolver.resolve(record, bucket).file_id == marker
            except MalformedKey:
                return False
        return marker_matches

    def _resolve_stream(self, bucket: str, records: Iterable[ObjectRecord]) -> Iterator[ResolvedFile]:
        """Yield resolvable files only, so dropped keys never count toward a window."""
        for record in records:
            if self.resolver.requires_metadata:
                try:
                    record = self.storage.describe(bucket, record)
                except NotFound:
                    # Deleted between the listing and the head request
                    continue
            try:
                yield self.resolver.resolve(record, bucket)
            except MalformedKey as e:
                logger.debug(
                    "Leaving %s out of listing: %s", record.key, e.message,
                    extra={"bucket": bucket, "key": record.key},
                )

    def list_page(self, bucket: str, query: ListingQuery) -> ListingPage:
        window_size = query.limit * 2 if query.filtering else query.limit

        stream = skip_past_marker(
            iter(self.storage.list_all(bucket, query.prefix)),
            query.marker,
            self._marker_matcher(bucket, query.marker),
        )
        if stream is None:
            logger.info("Marker %r not found in bucket %s", query.marker, bucket)
            return ListingPage(files=[], next_marker=None, has_more=False, total_found=0)

        candidates = list(itertools.islice(self._resolve_stream(bucket, stream), window_size))
        # Remember listing order so the marker can point at the furthest record served
        position = {f.key: index for index, f in enumerate(candidates)}

        found = [f for f in candidates if matches(f, query, self.resolver)]
        page = sort_files(found, query.sort_by, query.sort_order)[:query.limit]

        has_more = len(page) == query.limit
        next_marker = None
        if has_more:
            next_marker = max(page, key=lambda f: position[f.key]).key

        return ListingPage(
            files=page,
            next_marker=next_marker,
            has_more=has_more,
            total_found=len(found),
        )
