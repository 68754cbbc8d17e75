"""JSON logging for the handoff service.

Every record is one JSON object on stdout. Records logged through a
conversation logger carry ``conversation_id`` at the top level so a whole
conversation can be followed with a single filter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping, TextIO

LOGGER_PREFIX = "handoff"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = dict(getattr(record, "context", None) or {})
        conversation_id = context.pop("conversation_id", None)
        if conversation_id:
            log_data["conversation_id"] = conversation_id
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", stream: TextIO = sys.stdout) -> None:
    """Replace root handlers with a single JSON handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


class ConversationLogger(logging.LoggerAdapter):
    """Binds conversation fields to every record.

    A ``context=`` keyword on a single call is merged over the bound fields.
    """

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        context = {**self.extra, **(kwargs.pop("context", None) or {})}
        kwargs["extra"] = {**(kwargs.get("extra") or {}), "context": context}
        return msg, kwargs


def conversation_logger(name: str, conversation_id: str, **fields: Any) -> ConversationLogger:
    return ConversationLogger(get_logger(name), {"conversation_id": conversation_id, **fields})
