"""Per-principal notes storage."""

from __future__ import annotations

import enum
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from staff_portal.config import Settings
from staff_portal.errors import StorageUnavailable
from staff_portal.models import NOTES_ROW, NoteEntity

LOGGER = logging.getLogger("staff_portal.notes")


class NoteStatus(enum.Enum):
    FOUND = "found"
    # never saved, or the backend could not be read; callers cannot tell which
    NOT_FOUND_OR_UNAVAILABLE = "not_found_or_unavailable"


@dataclass(frozen=True)
class NoteRead:
    text: str
    status: NoteStatus

    @classmethod
    def empty(cls) -> "NoteRead":
        return cls("", NoteStatus.NOT_FOUND_OR_UNAVAILABLE)


class NotesBackend:
    """Capability interface for note storage."""

    kind = "none"

    def get(self, principal: str) -> NoteRead:
        raise NotImplementedError

    def put(self, principal: str, text: str) -> None:
        raise NotImplementedError


class NullNotesBackend(NotesBackend):
    """Stand-in when no storage is configured: always empty, refuses writes."""

    def get(self, principal: str) -> NoteRead:
        return NoteRead.empty()

    def put(self, principal: str, text: str) -> None:
        raise StorageUnavailable("notes storage not configured")


class TableNotesBackend(NotesBackend):
    kind = "table"

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._sessions = session_factory

    def get(self, principal: str) -> NoteRead:
        try:
            with self._sessions() as db:
                entity = (
                    db.query(NoteEntity)
                    .filter(NoteEntity.partition_key == principal, NoteEntity.row_key == NOTES_ROW)
                    .first()
                )
                if entity is None:
                    return NoteRead.empty()
                return NoteRead(entity.notes or "", NoteStatus.FOUND)
        except SQLAlchemyError:
            LOGGER.exception("Notes read failed; returning empty notes")
            return NoteRead.empty()

    def put(self, principal: str, text: str) -> None:
        try:
            with self._sessions() as db:
                db.merge(NoteEntity(partition_key=principal, row_key=NOTES_ROW, notes=text))
                db.commit()
        except SQLAlchemyError as exc:
            raise StorageUnavailable("notes table write failed") from exc


class FileNotesBackend(NotesBackend):
    """All notes in one JSON object keyed by principal."""

    kind = "file"

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        foreign = sorted(key for key, value in data.items() if not isinstance(value, str))
        if foreign:
            LOGGER.warning("Notes file %s has non-text entries, left untouched: %s", self._path, foreign)
        return data

    def get(self, principal: str) -> NoteRead:
        try:
            with self._lock:
                data = self._load()
        except (OSError, ValueError):
            LOGGER.exception("Notes file unreadable; returning empty notes")
            return NoteRead.empty()
        if not isinstance(data.get(principal), str):
            return NoteRead.empty()
        return NoteRead(data[principal], NoteStatus.FOUND)

    def put(self, principal: str, text: str) -> None:
        try:
            with self._lock:
                data = self._load()
                data[principal] = text
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".notes-", suffix=".json")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        json.dump(data, handle, indent=2, ensure_ascii=False)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    os.unlink(tmp_name)
                    raise
        except (OSError, ValueError) as exc:
            raise StorageUnavailable("notes file write failed") from exc


class NotesRepository:
    """Front for the selected backend; the only notes API handlers use."""

    def __init__(self, backend: NotesBackend) -> None:
        self.backend = backend

    def get(self, principal: str) -> NoteRead:
        return self.backend.get(principal)

    def put(self, principal: str, text: str) -> None:
        self.backend.put(principal, text)
        LOGGER.info("Saved notes (%d chars)", len(text), extra={"component": "NotesRepository"})


def select_notes_backend(
    settings: Settings, session_factory: Optional[Callable[[], Session]] = None
) -> NotesBackend:
    """Table if a database is configured, else the notes file, else the null store."""
    if session_factory is not None:
        backend: NotesBackend = TableNotesBackend(session_factory)
    elif settings.notes_file is not None:
        backend = FileNotesBackend(settings.notes_file)
    else:
        LOGGER.warning("No notes storage configured; notes will not be saved")
        backend = NullNotesBackend()
    LOGGER.info("Notes backend: %s", backend.kind)
    return backend
