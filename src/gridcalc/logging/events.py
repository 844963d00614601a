"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Session lifecycle
    session_started = "session_started"
    session_ended = "session_ended"

    # Edits
    cell_set = "cell_set"
    cell_deleted = "cell_deleted"
    cell_rejected = "cell_rejected"
    cycle_rejected = "cycle_rejected"

    # Persistence
    sheet_saved = "sheet_saved"
    sheet_save_failed = "sheet_save_failed"
    sheet_loaded = "sheet_loaded"
    sheet_load_failed = "sheet_load_failed"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

INVALID_CELL_ID = "invalid_cell_id"
FORMULA_PARSE_ERROR = "formula_parse_error"
CYCLE_DETECTED = "cycle_detected"
SHEET_FORMAT_ERROR = "sheet_format_error"


_MAX_VALUE_LEN = 256


def _truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long string values truncated."""
    out: dict[str, Any] = {}
    for k, v in context.items():
        if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
            out[k] = v[:_MAX_VALUE_LEN] + "...[truncated]"
        else:
            out[k] = v
    return out


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class SheetEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_edit_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    cell_id: str,
    contents: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> SheetEvent:
    """Build an event with guaranteed cell attribution context."""
    ctx: dict[str, Any] = {"cell_id": cell_id}
    if contents is not None:
        ctx["contents"] = contents
    if extra:
        ctx.update(extra)
    return SheetEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_project_dir`` is called.
_sink: Any = None  # EventSink | None
_project_dir: Any = None


def set_project_dir(project_dir: Any) -> None:
    """Configure the module-level event sink for a project directory.

    This should be called early in a CLI command.  If it is never called,
    or the project sets ``logging_enabled: false``, ``emit()`` silently
    discards events.

    Reads ``logging_fsync`` and ``logging_tail_bytes`` from the project
    config (``gridcalc.yaml``) to configure the sink.
    """
    global _sink, _project_dir
    from pathlib import Path

    from gridcalc.logging.sink import EventSink
    from gridcalc.project import load_project_config

    _project_dir = project_dir

    try:
        cfg = load_project_config(Path(project_dir))
    except (OSError, ValueError) as exc:
        _stderr_warning(f"could not read project config: {exc}")
        cfg = {}

    if not cfg.get("logging_enabled", True):
        _sink = None
        return

    tb = cfg.get("logging_tail_bytes")
    _sink = EventSink(
        Path(project_dir),
        fsync=bool(cfg.get("logging_fsync", False)),
        tail_bytes=int(tb) if tb is not None else None,
    )


def reset_sink() -> None:
    """Detach the module-level sink; subsequent events are discarded."""
    global _sink, _project_dir
    _sink = None
    _project_dir = None


def _get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[gridcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: SheetEvent, *, session_id: str | None = None) -> None:
    """Write an event to the global log and optionally to a per-session log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = _get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": _truncate_context(event.context)})
        sink.write(event, session_id=session_id)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    session_id: str | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        SheetEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        ),
        session_id=session_id,
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    session_id: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        SheetEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        session_id=session_id,
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    session_id: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        SheetEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        session_id=session_id,
    )
