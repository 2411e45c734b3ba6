import json
import logging
from datetime import datetime, timezone

LOGGER_NAME = "lumina-api"

EXTRA_FIELDS = (
    "request_id",
    "path",
    "status",
    "latency_ms",
    "user_id",
    "retry_after",
    "store",
    "removed",
    "setting",
    "value",
    "item",
    "attempt",
    "max_retries",
    "error",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "ts": datetime.now(timezone.utc).isoformat(),
            "msg": record.getMessage(),
        }
        # extras
        for k in EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    logger.handlers = [handler]
    return logger
