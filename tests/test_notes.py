"""Unit tests for staff_portal.notes backends and selection."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from staff_portal.database import make_session_factory
from staff_portal.errors import StorageUnavailable
from staff_portal.models import NoteEntity
from staff_portal.notes import (
    FileNotesBackend,
    NoteStatus,
    NotesRepository,
    NullNotesBackend,
    TableNotesBackend,
    select_notes_backend,
)


class TestNullNotesBackend:
    def test_read_is_empty(self):
        read = NullNotesBackend().get("asha")
        assert read.text == ""
        assert read.status is NoteStatus.NOT_FOUND_OR_UNAVAILABLE

    def test_write_is_refused_every_time(self):
        backend = NullNotesBackend()
        for _ in range(2):
            with pytest.raises(StorageUnavailable):
                backend.put("asha", "hello")


class TestTableNotesBackend:
    @pytest.fixture
    def sessions(self, database_url):
        return make_session_factory(database_url)

    def test_missing_entry(self, sessions):
        read = TableNotesBackend(sessions).get("asha")
        assert read.text == ""
        assert read.status is NoteStatus.NOT_FOUND_OR_UNAVAILABLE

    def test_put_then_get(self, sessions):
        backend = TableNotesBackend(sessions)
        backend.put("asha", "grade lab 3")
        read = backend.get("asha")
        assert read.text == "grade lab 3"
        assert read.status is NoteStatus.FOUND

    def test_repeated_put_keeps_one_row(self, sessions):
        backend = TableNotesBackend(sessions)
        backend.put("asha", "x")
        backend.put("asha", "x")
        backend.put("asha", "y")
        with sessions() as db:
            rows = db.query(NoteEntity).filter(NoteEntity.partition_key == "asha").all()
        assert [(row.row_key, row.notes) for row in rows] == [("notes", "y")]

    def test_principals_are_isolated(self, sessions):
        backend = TableNotesBackend(sessions)
        backend.put("asha", "mine")
        assert backend.get("ravi").text == ""

    def test_read_error_is_masked(self, sessions):
        backend = TableNotesBackend(sessions)
        backend.put("asha", "mine")
        broken = mock.Mock(side_effect=OperationalError("select", {}, Exception("down")))
        read = TableNotesBackend(broken).get("asha")
        assert read.text == ""
        assert read.status is NoteStatus.NOT_FOUND_OR_UNAVAILABLE

    def test_write_error_is_surfaced(self):
        broken = mock.Mock(side_effect=OperationalError("insert", {}, Exception("down")))
        with pytest.raises(StorageUnavailable):
            TableNotesBackend(broken).put("asha", "mine")


class TestFileNotesBackend:
    def test_missing_file_reads_empty(self, tmp_path: Path):
        read = FileNotesBackend(tmp_path / "notes.json").get("asha")
        assert read.status is NoteStatus.NOT_FOUND_OR_UNAVAILABLE

    def test_put_then_get(self, tmp_path: Path):
        path = tmp_path / "data" / "notes.json"
        backend = FileNotesBackend(path)
        backend.put("asha", "first")
        backend.put("ravi", "second")
        backend.put("asha", "third")
        assert backend.get("asha").text == "third"
        assert backend.get("ravi").text == "second"
        assert json.loads(path.read_text(encoding="utf-8")) == {"asha": "third", "ravi": "second"}

    def test_survives_new_instance(self, tmp_path: Path):
        path = tmp_path / "notes.json"
        FileNotesBackend(path).put("asha", "kept")
        assert FileNotesBackend(path).get("asha").text == "kept"

    def test_corrupt_file_reads_empty_and_refuses_writes(self, tmp_path: Path):
        path = tmp_path / "notes.json"
        path.write_text("[1, 2", encoding="utf-8")
        backend = FileNotesBackend(path)
        assert backend.get("asha").text == ""
        with pytest.raises(StorageUnavailable):
            backend.put("asha", "x")
        assert path.read_text(encoding="utf-8") == "[1, 2"

    def test_no_temp_files_left_behind(self, tmp_path: Path):
        backend = FileNotesBackend(tmp_path / "notes.json")
        backend.put("asha", "x")
        assert [p.name for p in tmp_path.iterdir()] == ["notes.json"]

    def test_non_text_entries_are_kept(self, tmp_path: Path, caplog):
        path = tmp_path / "notes.json"
        path.write_text(json.dumps({"asha": "x", "meta": {"version": 1}}), encoding="utf-8")
        backend = FileNotesBackend(path)
        with caplog.at_level(logging.WARNING, logger="staff_portal.notes"):
            backend.put("ravi", "y")
        assert json.loads(path.read_text(encoding="utf-8")) == {"asha": "x", "meta": {"version": 1}, "ravi": "y"}
        assert backend.get("meta").status is NoteStatus.NOT_FOUND_OR_UNAVAILABLE
        assert "meta" in caplog.text


class TestRepositoryAndSelection:
    def test_repository_delegates(self, tmp_path: Path):
        repo = NotesRepository(FileNotesBackend(tmp_path / "notes.json"))
        repo.put("asha", "hello")
        assert repo.get("asha").text == "hello"

    def test_table_first(self, make_settings, database_url, tmp_path: Path):
        settings = make_settings(notes_file=tmp_path / "notes.json")
        backend = select_notes_backend(settings, make_session_factory(database_url))
        assert backend.kind == "table"

    def test_file_second(self, make_settings, tmp_path: Path):
        backend = select_notes_backend(make_settings(notes_file=tmp_path / "notes.json"))
        assert backend.kind == "file"

    def test_null_last(self, make_settings):
        assert isinstance(select_notes_backend(make_settings()), NullNotesBackend)
