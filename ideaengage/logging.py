"""Loguru configuration and per-request logging context.

Three context variables (``request_id``, ``user_id`` and ``operation``) ride
along with every record. The API middleware sets the first two for each
request and ``telemetry.operation_span`` sets the third around each core
operation. Human-readable output shows them inline; JSON output (the default
in production) emits them as top-level keys.

Example:
    >>> from ideaengage.logging import logger, set_request_context
    >>> set_request_context(request_id="req-1", user_id="u-42")
    >>> logger.info("Claim accepted", idea_id="idea-7")
"""

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from ideaengage.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

_CONTEXT_VARS = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "operation": operation_var,
}

# Key the patcher stores the inline context under; kept out of JSON output.
_CONTEXT_KEY = "ctx"

_HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<magenta>{extra[ctx]}</magenta><level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[ctx]}{message}"


def get_request_context() -> dict[str, str | None]:
    """Current values of the logging context variables."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


def set_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
    operation: str | None = None,
) -> None:
    """Set logging context for the current request; None leaves a value as is."""
    values = {"request_id": request_id, "user_id": user_id, "operation": operation}
    for name, value in values.items():
        if value is not None:
            _CONTEXT_VARS[name].set(value)


def clear_request_context() -> None:
    """Reset all context variables.

    Threadpool workers are reused across requests, so the middleware calls
    this once the response is out.
    """
    for var in _CONTEXT_VARS.values():
        var.set(None)


def serialize(record: dict[str, Any]) -> str:
    """Render a loguru record as one JSON line.

    Bound ``extra`` fields (``idea_id``, ``outcome`` and so on) become
    top-level keys alongside whichever context variables are set.
    """
    payload: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    payload.update({name: value for name, value in get_request_context().items() if value})
    payload.update(
        {key: value for key, value in record["extra"].items() if key != _CONTEXT_KEY}
    )

    exc = record["exception"]
    if exc:
        payload["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(payload, default=str)


def _inline_context(record: dict[str, Any]) -> None:
    parts = [f"{name}={value}" for name, value in get_request_context().items() if value]
    record["extra"][_CONTEXT_KEY] = f"[{' '.join(parts)}] " if parts else ""


def _json_sink(message: Any) -> None:
    sys.stdout.write(serialize(message.record) + "\n")
    sys.stdout.flush()


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Replace loguru's default handler with the service's sinks.

    Args:
        level: Minimum log level for every sink
        json_logs: Emit one JSON object per line on stdout
        log_file: Optional rotating log file, always plain text
        colorize: Colour the human-readable stdout format

    Returns:
        The patched logger that the rest of the package imports
    """
    loguru_logger.remove()
    patched = loguru_logger.patch(_inline_context)

    if json_logs:
        patched.add(_json_sink, level=level, format="{message}")
    else:
        patched.add(sys.stdout, level=level, format=_HUMAN_FORMAT, colorize=colorize)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched.add(
            log_file,
            level=level,
            format=_FILE_FORMAT,
            rotation="50 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )

    return patched


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.data_dir / "ideaengage.log" if settings.log_to_file else None,
    colorize=not settings.log_json,
)


__all__ = [
    "logger",
    "request_id_var",
    "user_id_var",
    "operation_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "serialize",
    "setup_logging",
]
