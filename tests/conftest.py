"""Shared fixtures for staff portal tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from staff_portal.config import Settings
from staff_portal.main import create_app

ADMIN_PASSWORD = "cse-admin-test"


# ---------------------------------------------------------------------------
# Fixture: settings factory rooted in tmp_path
# ---------------------------------------------------------------------------

@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Return a factory for Settings that never touches the working directory."""

    def _make(**overrides) -> Settings:
        values = {
            "cookie_secret": "test-cookie-secret",
            "admin_password": ADMIN_PASSWORD,
            "staff_file": tmp_path / "no-staff.json",
            "static_dir": tmp_path / "no-public",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'portal.db'}"


@pytest.fixture
def staff_file(tmp_path: Path) -> Path:
    """A staff directory with two members."""
    path = tmp_path / "staff.json"
    path.write_text(
        json.dumps(
            [
                {
                    "email": "asha@college.edu",
                    "name": "Asha Rao",
                    "phone": "+919876543210",
                    "designation": "Assistant Professor",
                },
                {
                    "email": "ravi@college.edu",
                    "name": "Ravi Kumar",
                    "phone": "98450-12345",
                },
            ]
        ),
        encoding="utf-8",
    )
    return path


# ---------------------------------------------------------------------------
# Fixture: applications per backend
# ---------------------------------------------------------------------------

@pytest.fixture
def table_app(make_settings, database_url):
    """App backed by the SQL table store, with one staff user ``alice``."""
    app = create_app(make_settings(database_url=database_url))
    app.state.portal.staff.upsert("alice", name="Alice Mathew", phone="555-0100", password="s3cret")
    return app


@pytest.fixture
def directory_app(make_settings, staff_file, tmp_path):
    return create_app(make_settings(staff_file=staff_file, notes_file=tmp_path / "notes.json"))


@pytest.fixture
def client(table_app):
    with TestClient(table_app) as test_client:
        yield test_client


@pytest.fixture
def admin_client(table_app):
    with TestClient(table_app) as test_client:
        response = test_client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
        assert response.status_code == 200
        yield test_client
