"""
Logging setup: JSON lines in production, human-readable text locally.

setup_logging() is called once from the app's startup hook.
"""
import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = ("path", "method", "error_code", "collection", "email", "status_code")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    # uvicorn --reload re-imports the app; don't stack handlers
    for handler in list(root.handlers):
        if getattr(handler, "_scholarstream", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler._scholarstream = True
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
