"""Durable checkpoint storage for build sessions.

Layout under the sessions directory:

    {session_id}_checkpoint_{n}.json   one pretty-printed Checkpoint per file
    index.json                         session id -> ordered checkpoint files

Lookups are exact on session id. The index is authoritative when present;
a directory scan is the fallback for files written before the index
existed or an index lost in a crash.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mason.builder.blueprint import Blueprint
from mason.builder.phases import BuildProgress, Phase
from mason.exceptions import SessionNotFoundError
from mason.protocols.world import InventoryItem, Position

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
_MARKER = "_checkpoint_"


class Checkpoint(BaseModel):
    """Immutable snapshot that fully reconstructs a resumable session."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str
    sequence: int = Field(ge=1)
    phase: Phase
    progress: BuildProgress
    agent_position: Position | None = None
    agent_inventory: list[InventoryItem] = Field(default_factory=list)
    description: str = ""
    building_type: str
    blueprint: Blueprint


def checkpoint_filename(session_id: str, sequence: int) -> str:
    return f"{session_id}{_MARKER}{sequence}.json"


def parse_checkpoint_filename(name: str) -> tuple[str, int] | None:
    """Split a checkpoint file name into (session_id, sequence)."""
    if not name.endswith(".json") or _MARKER not in name:
        return None
    session_id, _, seq = name[: -len(".json")].rpartition(_MARKER)
    if not session_id or not seq.isdigit():
        return None
    return session_id, int(seq)


def _write_durable(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())


class CheckpointStore:
    """Reads and writes checkpoints in one directory."""

    def __init__(self, sessions_dir: Path) -> None:
        self.sessions_dir = sessions_dir

    @property
    def index_path(self) -> Path:
        return self.sessions_dir / INDEX_FILENAME

    def save(self, checkpoint: Checkpoint) -> Path:
        """Persist a checkpoint and record it in the index.

        Returns only after both files are flushed and fsynced.
        """
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

        name = checkpoint_filename(checkpoint.session_id, checkpoint.sequence)
        path = self.sessions_dir / name
        _write_durable(path, checkpoint.model_dump_json(indent=2))

        index = self._read_index()
        files = index.setdefault(checkpoint.session_id, [])
        if name not in files:
            files.append(name)
        self._write_index(index)

        logger.debug("Checkpoint %d for %s written to %s", checkpoint.sequence, checkpoint.session_id, path)
        return path

    def checkpoint_files(self, session_id: str) -> list[Path]:
        """Checkpoint files of one session, lowest sequence first."""
        if not self.sessions_dir.is_dir():
            return []

        names = self._read_index().get(session_id)
        if not names:
            names = [
                p.name
                for p in self.sessions_dir.iterdir()
                if (parsed := parse_checkpoint_filename(p.name)) is not None and parsed[0] == session_id
            ]

        entries = []
        for name in names:
            parsed = parse_checkpoint_filename(name)
            path = self.sessions_dir / name
            if parsed is None or not path.exists():
                continue
            entries.append((parsed[1], path))
        entries.sort(key=lambda e: e[0])
        return [path for _, path in entries]

    def load(self, path: Path) -> Checkpoint:
        return Checkpoint.model_validate_json(path.read_text(encoding="utf-8"))

    def latest(self, session_id: str) -> Checkpoint:
        """Load the checkpoint with the highest sequence for a session.

        Raises:
            SessionNotFoundError: If the directory or the session's checkpoints are absent
        """
        files = self.checkpoint_files(session_id)
        if not files:
            raise SessionNotFoundError(session_id, str(self.sessions_dir))
        return self.load(files[-1])

    def list_sessions(self) -> list[dict[str, Any]]:
        """List sessions, newest first.

        Returns:
            One dict per session with session_id, checkpoints (count),
            last_modified, and the phase/building type of the latest checkpoint
        """
        if not self.sessions_dir.is_dir():
            return []

        grouped: dict[str, list[tuple[int, Path]]] = {}
        for path in self.sessions_dir.iterdir():
            parsed = parse_checkpoint_filename(path.name)
            if parsed is None:
                continue
            grouped.setdefault(parsed[0], []).append((parsed[1], path))

        sessions = []
        for session_id, entries in grouped.items():
            entries.sort(key=lambda e: e[0])
            latest_path = entries[-1][1]
            info: dict[str, Any] = {
                "session_id": session_id,
                "checkpoints": len(entries),
                "last_modified": max(p.stat().st_mtime for _, p in entries),
                "phase": None,
                "building_type": None,
            }
            try:
                latest = self.load(latest_path)
                info["phase"] = latest.phase.value
                info["building_type"] = latest.building_type
            except (OSError, ValidationError) as e:
                logger.warning("Unreadable checkpoint %s: %s", latest_path, e)
            sessions.append(info)

        sessions.sort(key=lambda s: s["last_modified"], reverse=True)
        for session in sessions:
            session["last_modified"] = datetime.fromtimestamp(session["last_modified"], tz=timezone.utc)
        return sessions

    def _read_index(self) -> dict[str, list[str]]:
        if not self.index_path.exists():
            return {}
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session index %s: %s", self.index_path, e)
            return {}
        sessions = data.get("sessions", {})
        return {k: list(v) for k, v in sessions.items()} if isinstance(sessions, dict) else {}

    def _write_index(self, index: dict[str, list[str]]) -> None:
        tmp = self.index_path.with_suffix(".json.tmp")
        _write_durable(tmp, json.dumps({"sessions": index}, indent=2))
        os.replace(tmp, self.index_path)
