from __future__ import annotations

import logging
import sys
from typing import Any, Dict

from pythonjsonlogger import jsonlogger


class _JsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("level"):
            log_record["level"] = record.levelname
        if record.exc_info and not log_record.get("exc_info"):
            log_record["exc_info"] = self.formatException(record.exc_info)


def setup_logging(level: str = "INFO", *, environment: str = "development") -> None:
    """Route every logger through one JSON handler on stdout.

    Each record carries the service name and deployment environment so lines
    from several workers can be told apart once aggregated.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        _JsonFormatter(
            "%(asctime)s %(level)s %(name)s %(message)s",
            static_fields={"service": "moodcast", "environment": environment},
        )
    )

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()
    root.addHandler(handler)

    for name in ("httpx", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)
