"""Logging for kumo-controller.

Every module logger hangs off the ``kumo_controller`` package logger, whose
handlers are installed once from the KUMO_LOG_* settings:

    KUMO_LOG_FORMAT        human | json | both
    KUMO_LOG_JSON_FILE     JSON lines go here (stderr when unset)
    KUMO_LOG_HUMAN_OUTPUT  stdout | stderr | a file path

Call sites pass structured context with ``extra={...}``. The ``serial`` and
``transport`` keys are lifted out of it so that one zone's traffic can be
followed through a busy log, e.g.

    10/19/26 15:03:07.120 WARNING client [execute-3f9a01c2] 2534P0001@local > ... | attempt=1
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from typing_extensions import override

from kumo_controller.const import KUMO_DEBUG, KUMO_LOG_FORMAT, KUMO_LOG_HUMAN_OUTPUT, KUMO_LOG_JSON_FILE
from kumo_controller.correlation import current_correlation_id

__all__ = [
    "PACKAGE_LOGGER",
    "HumanReadableFormatter",
    "JSONFormatter",
    "KumoLogger",
    "configure_logging",
    "get_logger",
]

PACKAGE_LOGGER = "kumo_controller"
ZONE_KEYS = ("serial", "transport")

_installed: list[logging.Handler] = []


def _split_context(record: logging.LogRecord) -> tuple[dict[str, object], dict[str, object]]:
    """Split a record's context into (zone keys, everything else)."""
    raw = getattr(record, "kumo_context", None)
    context = dict(cast("Mapping[str, object]", raw)) if isinstance(raw, Mapping) else {}
    zone = {key: context.pop(key) for key in ZONE_KEYS if key in context}
    return zone, context


class JSONFormatter(logging.Formatter):
    """One JSON object per line; zone keys are top-level, the rest sits under ``context``."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        zone, context = _split_context(record)
        entry: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": current_correlation_id(),
            **zone,
            "message": record.getMessage(),
        }
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)-7s %(module)s [%(correlation_id)s]%(zone)s > %(message)s%(context)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        zone, context = _split_context(record)
        record.correlation_id = current_correlation_id() or "-"
        record.zone = " " + "@".join(str(value) for value in zone.values()) if zone else ""
        record.context = " | " + " ".join(f"{k}={v}" for k, v in context.items()) if context else ""
        return super().format(record)


class KumoLogger(logging.LoggerAdapter):  # pyright: ignore[reportMissingTypeArgument]
    """Module logger that carries ``extra={...}`` through as structured context.

    Usage:
        logger = get_logger(__name__)
        logger.warning("%s request failed: %s", lp, e, extra={"serial": serial, "transport": "local"})
    """

    @override
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        context = kwargs.pop("extra", None)
        if context:
            kwargs["extra"] = {"kumo_context": dict(context)}
        return msg, kwargs


def _stream_or_file(target: str | Path | None) -> logging.Handler:
    if target in (None, "", "stderr"):
        return logging.StreamHandler(sys.stderr)
    if target == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(target).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        print(f"kumo-controller: cannot open log file {path} ({e}), logging to stderr", file=sys.stderr)
        return logging.StreamHandler(sys.stderr)


def configure_logging(
    level: int | None = None,
    log_format: str = KUMO_LOG_FORMAT,
    json_file: str | Path | None = KUMO_LOG_JSON_FILE,
    human_output: str | Path | None = KUMO_LOG_HUMAN_OUTPUT,
) -> logging.Logger:
    """Install (or replace) the package handlers. Defaults come from the KUMO_LOG_* settings."""
    if log_format not in ("human", "json", "both"):
        log_format = "human"
    package = logging.getLogger(PACKAGE_LOGGER)
    while _installed:
        handler = _installed.pop()
        package.removeHandler(handler)
        handler.close()

    if level is None:
        level = logging.DEBUG if KUMO_DEBUG else logging.INFO
    package.setLevel(level)

    if log_format in ("human", "both"):
        human = _stream_or_file(human_output)
        human.setFormatter(HumanReadableFormatter())
        _installed.append(human)
    if log_format in ("json", "both"):
        structured = _stream_or_file(json_file)
        structured.setFormatter(JSONFormatter())
        _installed.append(structured)

    for handler in _installed:
        package.addHandler(handler)
    return package


def get_logger(name: str) -> KumoLogger:
    if not _installed:
        _ = configure_logging()
    return KumoLogger(logging.getLogger(name))
