import logging
from typing import Set

from file_gateway.services.storage import StorageService

logger = logging.getLogger(__name__)


class BucketManager:
    """Makes sure a bucket exists before first use, once per name per process.

    The known-bucket set is not locked: two requests racing on a fresh name
    both reach the backend, and the storage layer treats the duplicate
    create as success. A failed ensure is not remembered so the next request
    tries again.
    """

    def __init__(self, storage: StorageService):
        self.storage = storage
        self._known: Set[str] = set()

    def ensure(self, bucket_name: str) -> None:
        if bucket_name in self._known:
            return
        if self.storage.ensure_bucket(bucket_name):
            logger.info("Bucket %s created on first use", bucket_name)
        self._known.add(bucket_name)
