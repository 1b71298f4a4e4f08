# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging setup for the ``finstack`` logger tree."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "finstack"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: str | int = "INFO", json_format: bool = False) -> logging.Logger:
    """Attach a single console handler to the ``finstack`` logger; safe to call twice."""
    resolved = _resolve_level(level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolved)
    # Keep propagating so test capture (caplog) still sees records.
    logger.propagate = True

    formatter: logging.Formatter = JsonFormatter() if json_format else logging.Formatter(CONSOLE_FORMAT)
    for handler in logger.handlers:
        if getattr(handler, "_finstack_console", False):
            handler.setLevel(resolved)
            handler.setFormatter(formatter)
            return logger

    handler = logging.StreamHandler()
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    handler._finstack_console = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
