"""
Logging Configuration Module.

Sets up the application logger used by every other module. Records are written
as one JSON object per line to the console and to a rotating log file, so they
can be shipped to log aggregation tools without further parsing.

Call sites may log either plain strings or dictionaries:

    logger.info({"message": "Fetched commits", "repository": "octo/repo"})

Dictionary payloads are merged into the JSON record. Values whose key looks
like a credential are redacted before they reach any handler.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

SENSITIVE_KEY = re.compile(
    r"(^|_)(token|password|secret|api_key|apikey|authorization|private_token)$", re.IGNORECASE
)


def _redact(payload: Dict[str, Any]) -> Dict[str, Any]:
    redacted = {}
    for key, value in payload.items():
        if SENSITIVE_KEY.search(key):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = _redact(value)
        else:
            redacted[key] = value
    return redacted


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        if isinstance(record.msg, dict):
            data.update(_redact(record.msg))
        else:
            data["message"] = record.getMessage()

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, default=str, ensure_ascii=False)


class LogManager:
    """
    Build and own the application logger.

    Attributes:
        logger (logging.Logger): Configured logger instance.
    """

    def __init__(
        self,
        app_name: str,
        log_dir: str = "logs",
        development: bool = False,
        level: int = logging.INFO,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ):
        """Initialize handlers for the named application logger.

        Args:
            app_name (str): Logger name, also used for the log file name.
            log_dir (str): Directory for the rotating log file. Empty disables
                file logging.
            development (bool): Force DEBUG level when True.
            level (int): Logging level used outside development mode.
            max_bytes (int): Size at which the log file is rotated.
            backup_count (int): Number of rotated files kept.
        """
        self.logger = logging.getLogger(app_name)
        self.logger.setLevel(logging.DEBUG if development else level)
        self.logger.propagate = False

        # Re-initialization replaces handlers instead of duplicating output
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        formatter = JSONFormatter()

        console = logging.StreamHandler()
        console.setFormatter(formatter)
        self.logger.addHandler(console)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, f"{app_name}.log"),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
