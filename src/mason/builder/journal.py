"""Build journal - append-only JSONL event log."""

import json
import logging
from pathlib import Path
from typing import Any

from mason.builder.events import EVENT_CLASSES, BaseBuildEvent, BuildEventType

logger = logging.getLogger(__name__)


class BuilderJournal:
    """Append-only journal for one build session.

    Writes events to <logs_dir>/<session_id>/events.jsonl
    One JSON object per line, in emission order. Every write is flushed
    so a crashed build still leaves a readable trail.

    Usage:
        journal = BuilderJournal(session_id="build-20250101-120000-abc123")
        bus.subscribe(journal.write)
        journal.close()
    """

    def __init__(self, session_id: str, logs_dir: Path | None = None) -> None:
        """Initialize journal writer.

        Args:
            session_id: Build session identifier
            logs_dir: Directory for journals (defaults to .mason/logs)
        """
        self.session_id = session_id

        if logs_dir is None:
            logs_dir = Path.cwd() / ".mason" / "logs"

        self.session_dir = logs_dir / session_id
        self.journal_path = self.session_dir / "events.jsonl"

        self.session_dir.mkdir(parents=True, exist_ok=True)
        self._file_handle = open(self.journal_path, "a", encoding="utf-8")

    def write(self, event: BaseBuildEvent) -> None:
        """Write event to journal with immediate flush."""
        if self._file_handle is None:
            logger.debug("Journal %s closed, dropping %s", self.session_id, event.event_type.value)
            return

        self._file_handle.write(event.model_dump_json() + "\n")
        self._file_handle.flush()

    def close(self) -> None:
        """Close the file; later writes are dropped."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self) -> "BuilderJournal":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class BuilderJournalReader:
    """Reader for journal files.

    Lines that are not JSON are logged and skipped.
    """

    def __init__(self, journal_path: Path) -> None:
        self.journal_path = journal_path

    def read_events(self) -> list[dict[str, Any]]:
        """Read all events as dictionaries.

        Raises:
            FileNotFoundError: If journal file doesn't exist
        """
        if not self.journal_path.exists():
            raise FileNotFoundError(f"Journal not found: {self.journal_path}")

        events: list[dict[str, Any]] = []

        with open(self.journal_path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning("Corrupt line %d in %s: %s", line_num, self.journal_path, e)
                    continue

        return events

    def read_typed_events(self) -> list[BaseBuildEvent]:
        """Read and parse events into their pydantic models.

        Unknown or invalid entries are skipped with a warning.
        """
        typed_events: list[BaseBuildEvent] = []

        for event_data in self.read_events():
            event_type_str = event_data.get("event_type")
            if not event_type_str:
                continue

            try:
                event_class = EVENT_CLASSES[BuildEventType(event_type_str)]
                typed_events.append(event_class.model_validate(event_data))
            except (KeyError, ValueError) as e:
                logger.warning("Invalid event data: %s", e)
                continue

        return typed_events
