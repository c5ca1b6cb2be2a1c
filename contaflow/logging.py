import json
import logging
import traceback
from datetime import UTC, datetime

# optional context passed through ``extra=`` by handlers and the webhook
EXTRA_FIELDS = ("chat_id", "user_id", "handler", "latency_ms", "error_id")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))
        # user text is mostly Portuguese, keep it readable in the log
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    # aiogram logs every update at INFO and httpx every request
    for noisy in ("aiogram.event", "httpx"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
