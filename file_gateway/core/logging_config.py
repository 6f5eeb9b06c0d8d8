"""Logging setup for the gateway.

Storage and upload log calls pass the object they touch as ``extra``
(``bucket``, ``key``, ``file_id``); the JSON formatter lifts those into
top-level fields.
"""

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ("bucket", "key", "file_id")

# The S3 client stack logs every request at DEBUG/INFO
NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        })
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Route all gateway logging to stderr at the given level.

    Calling it again replaces the previous handler, so building several
    apps in one process does not duplicate lines.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
