"""
Logging Setup

Root handler for the CLI: plain text by default, or one JSON object per
line with the survey project and workflow stage attached.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Attributes the workflow passes through `extra=`
CONTEXT_FIELDS = ("project_id", "stage")

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Formats a record as a single-line JSON object."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: str = "INFO", json_output: bool = False):
    """
    Install one stdout handler on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO
        json_output: Use JSONFormatter instead of the text format
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # urllib3 and PIL log every request and decoder at DEBUG
    for name in ("urllib3", "PIL"):
        logging.getLogger(name).setLevel(logging.WARNING)
