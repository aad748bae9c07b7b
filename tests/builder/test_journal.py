"""Tests for builder journal writer and reader."""

import tempfile
from pathlib import Path

import pytest

from mason.builder.events import (
    BlockVerificationFailedEvent,
    BuildCompletedEvent,
    BuildStartedEvent,
    GateCompletedEvent,
    GuardianFailureEvent,
)
from mason.builder.journal import BuilderJournal, BuilderJournalReader


def test_builder_journal_write():
    """Test writing events to journal."""
    with tempfile.TemporaryDirectory() as tmpdir:
        logs_dir = Path(tmpdir)

        journal = BuilderJournal("build-123", logs_dir)
        journal.write(
            BuildStartedEvent(session_id="build-123", building_type="hut", total_blocks=98, phase="planning")
        )
        journal.write(GateCompletedEvent(session_id="build-123", gate="materials", passed=True))
        journal.close()

        journal_path = logs_dir / "build-123" / "events.jsonl"
        assert journal_path.exists()
        lines = journal_path.read_text().strip().split("\n")
        assert len(lines) == 2
        assert '"build.started"' in lines[0]
        assert '"gate.completed"' in lines[1]


def test_builder_journal_context_manager():
    """Test journal as context manager closes the file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with BuilderJournal("build-ctx", Path(tmpdir)) as journal:
            journal.write(BuildCompletedEvent(session_id="build-ctx", duration_seconds=1.5))

        # Writes after close are dropped
        journal.write(BuildCompletedEvent(session_id="build-ctx", duration_seconds=9.0))

        events = BuilderJournalReader(journal.journal_path).read_events()
        assert len(events) == 1
        assert events[0]["duration_seconds"] == 1.5


def test_builder_journal_appends_across_instances():
    """A resumed session appends to the same journal."""
    with tempfile.TemporaryDirectory() as tmpdir:
        for _ in range(2):
            with BuilderJournal("build-twice", Path(tmpdir)) as journal:
                journal.write(GateCompletedEvent(session_id="build-twice", gate="tools", passed=False))

        events = BuilderJournalReader(Path(tmpdir) / "build-twice" / "events.jsonl").read_events()
        assert len(events) == 2


def test_reader_typed_events():
    """Test reading events back into their models."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with BuilderJournal("build-typed", Path(tmpdir)) as journal:
            journal.write(
                GuardianFailureEvent(
                    session_id="build-typed",
                    action="place_block",
                    reason="no reference",
                    count=2,
                    context={"block_type": "oak_planks"},
                )
            )
            journal.write(
                BlockVerificationFailedEvent(
                    session_id="build-typed",
                    block_type="oak_planks",
                    position=(1, 2, 3),
                    reason="Block not placed (still air)",
                )
            )

        events = BuilderJournalReader(journal.journal_path).read_typed_events()

        assert isinstance(events[0], GuardianFailureEvent)
        assert events[0].context == {"block_type": "oak_planks"}
        assert isinstance(events[1], BlockVerificationFailedEvent)
        assert events[1].position == (1, 2, 3)


def test_reader_skips_corrupt_and_unknown_lines():
    """Test reader tolerates corrupt JSON and unknown event types."""
    with tempfile.TemporaryDirectory() as tmpdir:
        journal_path = Path(tmpdir) / "events.jsonl"
        journal_path.write_text(
            '{"event_type": "gate.completed", "gate": "terrain", "passed": true, "timestamp": "2025-01-01T00:00:00Z"}\n'
            "this is not json\n"
            "\n"
            '{"event_type": "teleport.done"}\n'
            '{"no_type": 1}\n'
        )

        reader = BuilderJournalReader(journal_path)

        assert len(reader.read_events()) == 3
        typed = reader.read_typed_events()
        assert len(typed) == 1
        assert typed[0].gate == "terrain"


def test_reader_missing_file():
    """Test reader raises on a missing journal."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(FileNotFoundError):
            BuilderJournalReader(Path(tmpdir) / "missing.jsonl").read_events()
