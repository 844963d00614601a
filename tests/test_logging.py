"""Tests for the gridcalc structured event logging system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a minimal project directory."""
    (tmp_path / "gridcalc.yaml").write_text("sheet_file: sheet.txt\n")
    return tmp_path


@pytest.fixture
def sink(project_dir: Path):
    from gridcalc.logging.sink import EventSink

    return EventSink(project_dir)


def _global_lines(project_dir: Path) -> list[dict]:
    path = project_dir / "logs" / "events.ndjson"
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# A) Event schema
# ---------------------------------------------------------------------------


class TestSheetEvent:
    def test_event_defaults(self):
        from gridcalc.logging.events import EventLevel, EventType, SheetEvent

        evt = SheetEvent(
            level=EventLevel.info,
            event_type=EventType.session_started,
            message="hello",
        )
        assert evt.schema_version == 1
        assert evt.ts.endswith("Z")
        assert evt.level == "info"
        assert evt.event_type == "session_started"
        assert evt.context == {}
        assert evt.error_code is None

    def test_all_event_types_exist(self):
        from gridcalc.logging.events import EventType

        expected = {
            "session_started",
            "session_ended",
            "cell_set",
            "cell_deleted",
            "cell_rejected",
            "cycle_rejected",
            "sheet_saved",
            "sheet_save_failed",
            "sheet_loaded",
            "sheet_load_failed",
        }
        assert {e.value for e in EventType} == expected

    def test_make_edit_event_context(self):
        from gridcalc.logging.events import CYCLE_DETECTED, EventLevel, EventType, make_edit_event

        evt = make_edit_event(
            EventType.cycle_rejected,
            EventLevel.warning,
            "cycle",
            cell_id="B1",
            contents="=A1",
            error_code=CYCLE_DETECTED,
            extra={"cycle_path": ["B1", "A1", "B1"]},
        )
        assert evt.context == {"cell_id": "B1", "contents": "=A1", "cycle_path": ["B1", "A1", "B1"]}
        assert evt.error_code == "cycle_detected"

    def test_make_edit_event_omits_missing_contents(self):
        from gridcalc.logging.events import EventLevel, EventType, make_edit_event

        evt = make_edit_event(EventType.cell_deleted, EventLevel.info, "gone", cell_id="A1")
        assert evt.context == {"cell_id": "A1"}


# ---------------------------------------------------------------------------
# B) Sink
# ---------------------------------------------------------------------------


class TestEventSink:
    def test_creates_log_dirs(self, sink, project_dir):
        assert (project_dir / "logs").is_dir()
        assert (project_dir / "logs" / "sessions").is_dir()

    def test_write_global_and_session(self, sink, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, SheetEvent

        evt = SheetEvent(level=EventLevel.info, event_type=EventType.sheet_saved, message="saved")
        sink.write(evt, session_id="abc123")

        lines = _global_lines(project_dir)
        assert len(lines) == 1
        assert lines[0]["event_type"] == "sheet_saved"
        assert sink.read_session_log("abc123")[0]["message"] == "saved"

    def test_session_id_traversal_rejected(self, sink, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, SheetEvent

        evt = SheetEvent(level=EventLevel.info, event_type=EventType.sheet_saved)
        sink.write(evt, session_id="../escape")
        assert not (project_dir / "logs" / "escape.ndjson").exists()
        assert sink.read_session_log("../escape") == []
        assert len(_global_lines(project_dir)) == 1

    def test_read_global_filters_and_order(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, make_edit_event

        sink.write(make_edit_event(EventType.cell_set, EventLevel.info, "first", cell_id="A1",
                                   extra={"session_id": "s1"}), session_id="s1")
        sink.write(make_edit_event(EventType.cell_rejected, EventLevel.warning, "second", cell_id="B1",
                                   extra={"session_id": "s2"}), session_id="s2")
        sink.write(make_edit_event(EventType.cell_set, EventLevel.info, "third", cell_id="A1",
                                   extra={"session_id": "s1"}), session_id="s1")

        assert [e["message"] for e in sink.read_global()] == ["third", "second", "first"]
        assert [e["message"] for e in sink.read_global(level="warning")] == ["second"]
        assert [e["message"] for e in sink.read_global(event_type="cell_set")] == ["third", "first"]
        assert [e["message"] for e in sink.read_global(session_id="s2")] == ["second"]
        assert [e["message"] for e in sink.read_global(cell_id="A1", limit=1)] == ["third"]

    def test_unparseable_lines_skipped(self, sink, project_dir):
        path = project_dir / "logs" / "events.ndjson"
        path.write_text('not json\n\n{"message": "ok"}\n')
        assert sink.read_global() == [{"message": "ok"}]

    def test_tail_read_drops_partial_line(self, project_dir):
        from gridcalc.logging.sink import EventSink

        small = EventSink(project_dir, tail_bytes=40)
        path = project_dir / "logs" / "events.ndjson"
        path.write_text('{"message": "aaaaaaaaaaaaaaaaaaaaaaaaaaaa"}\n{"message": "b"}\n')
        assert small.read_global() == [{"message": "b"}]

    def test_empty_log(self, sink):
        assert sink.read_global() == []


# ---------------------------------------------------------------------------
# C) Module-level emit
# ---------------------------------------------------------------------------


class TestEmit:
    def test_emit_without_sink_discards(self, project_dir):
        from gridcalc.logging import EventType, emit_info

        emit_info(EventType.session_started, "nobody listens")
        assert _global_lines(project_dir) == []

    def test_set_project_dir_attaches_sink(self, project_dir):
        from gridcalc.logging import EventType, emit_error, set_project_dir

        set_project_dir(project_dir)
        emit_error(EventType.sheet_load_failed, "bad file", {"path": "x"}, error_code="sheet_format_error")
        lines = _global_lines(project_dir)
        assert len(lines) == 1
        assert lines[0]["level"] == "error"
        assert lines[0]["error_code"] == "sheet_format_error"

    def test_logging_disabled(self, project_dir):
        from gridcalc.logging import EventType, emit_info, set_project_dir

        (project_dir / "gridcalc.yaml").write_text("logging_enabled: false\n")
        set_project_dir(project_dir)
        emit_info(EventType.session_started, "hi")
        assert _global_lines(project_dir) == []

    def test_long_context_truncated(self, project_dir):
        from gridcalc.logging import EventType, emit_warning, set_project_dir

        set_project_dir(project_dir)
        emit_warning(EventType.cell_rejected, "long", {"contents": "x" * 1000})
        ctx = _global_lines(project_dir)[0]["context"]
        assert ctx["contents"].endswith("...[truncated]")
        assert len(ctx["contents"]) < 300

    def test_emit_never_raises(self, project_dir, monkeypatch):
        import gridcalc.logging.events as mod
        from gridcalc.logging import EventType, emit_info, set_project_dir

        set_project_dir(project_dir)

        def boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(mod._sink, "write", boom)
        emit_info(EventType.session_started, "still fine")

    def test_reset_sink(self, project_dir):
        from gridcalc.logging import EventType, emit_info, reset_sink, set_project_dir

        set_project_dir(project_dir)
        reset_sink()
        emit_info(EventType.session_started, "dropped")
        assert _global_lines(project_dir) == []


# ---------------------------------------------------------------------------
# D) Session events
# ---------------------------------------------------------------------------


class TestSessionEvents:
    def test_edits_are_logged(self, project_dir):
        from gridcalc.logging import set_project_dir
        from gridcalc.logging.sink import EventSink
        from gridcalc.shell import Session

        set_project_dir(project_dir)
        session = Session(project_dir=project_dir)
        session.start()
        session.execute("set A1 5")
        session.execute("set B1 =A1*2")
        session.execute("set A1 =B1")
        session.execute("set C1 =1 +")
        session.execute("save")
        session.end()

        events = EventSink(project_dir).read_session_log(session.session_id)
        types = [e["event_type"] for e in events]
        assert types == [
            "session_started",
            "cell_set",
            "cell_set",
            "cycle_rejected",
            "cell_rejected",
            "sheet_saved",
            "session_ended",
        ]
        cycle = events[3]
        assert cycle["error_code"] == "cycle_detected"
        assert cycle["context"]["cycle_path"] == ["A1", "B1", "A1"]
        assert events[4]["error_code"] == "formula_parse_error"
        assert events[1]["context"]["updated"] == []
        assert events[2]["context"]["cell_id"] == "B1"

    def test_failed_save_logged_as_warning(self, project_dir):
        from gridcalc.logging import set_project_dir
        from gridcalc.logging.sink import EventSink
        from gridcalc.shell import Session

        set_project_dir(project_dir)
        session = Session(project_dir=project_dir)
        session.execute("set A1 one\ntwo")
        session.execute("save")

        events = EventSink(project_dir).read_global(session_id=session.session_id, level="warning")
        assert [e["event_type"] for e in events] == ["sheet_save_failed"]
        assert events[0]["error_code"] == "sheet_format_error"
        assert events[0]["context"]["path"].endswith("sheet.txt")
