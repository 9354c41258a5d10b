"""Staff and admin credential resolution.

Exactly one staff backend is active per deployment, chosen at startup by
:func:`select_staff_backend`:

* ``fixed``: one email/phone pair from the environment.
* ``directory``: a read-only JSON list of staff records on disk.
* ``table``: username/password records in the SQL table store, with
  argon2 password hashes.
* ``none``: nothing configured; every login fails.

All backends are read-only except the table backend, which also accepts
admin-driven upserts.
"""

from __future__ import annotations

import hmac
import json
import logging
import re
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from staff_portal.config import Settings
from staff_portal.errors import StorageUnavailable
from staff_portal.models import STAFF_PARTITION, StaffEntity

LOGGER = logging.getLogger("staff_portal.credentials")

_NON_DIGITS = re.compile(r"\D+")


@dataclass(frozen=True)
class StaffRecord:
    """Identity of one staff member."""

    identifier: str
    display_name: str
    phone: str = ""
    designation: str = ""
    password_hash: Optional[str] = None


def phone_matches(stored: str, supplied: str, country_code: str = "") -> bool:
    """Compare phone numbers: exact, then country-code prefixed, then digits only."""
    if stored == supplied:
        return True
    if country_code and stored == f"{country_code}{supplied}":
        return True
    stored_digits = _NON_DIGITS.sub("", stored)
    return bool(stored_digits) and stored_digits == _NON_DIGITS.sub("", supplied)


class StaffBackend:
    """Capability interface shared by every staff backend."""

    kind = "none"
    identifier_field = "email"
    login_fields: Tuple[str, ...] = ()

    def authenticate(self, credentials: Mapping[str, str]) -> Optional[StaffRecord]:
        return None

    def lookup(self, identifier: str) -> Optional[StaffRecord]:
        return None

    def upsert(self, username: str, *, name: str = "", phone: str = "", password: str) -> None:
        raise StorageUnavailable(f"{self.kind} staff backend is read-only")


class NullStaffBackend(StaffBackend):
    """Used when no staff source is configured."""


class FixedStaffBackend(StaffBackend):
    kind = "fixed"
    login_fields = ("email", "phone")

    def __init__(self, email: str, phone: str, name: str = "", designation: str = "") -> None:
        self._record = StaffRecord(
            identifier=email,
            display_name=name or email,
            phone=phone,
            designation=designation,
        )

    def authenticate(self, credentials: Mapping[str, str]) -> Optional[StaffRecord]:
        if credentials.get("email") == self._record.identifier and credentials.get("phone") == self._record.phone:
            return self._record
        return None

    def lookup(self, identifier: str) -> Optional[StaffRecord]:
        return self._record if identifier == self._record.identifier else None


class DirectoryStaffBackend(StaffBackend):
    """Staff list read from a JSON file of ``{email, name, phone, designation}`` rows."""

    kind = "directory"
    login_fields = ("email", "phone")

    def __init__(self, path: Path, country_code: str = "") -> None:
        self._path = Path(path)
        self._country_code = country_code

    def load(self) -> List[Dict[str, str]]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError):
            LOGGER.exception("Could not read staff directory %s", self._path)
            return []
        if not isinstance(data, list):
            LOGGER.warning("Staff directory %s is not a list; ignoring it", self._path)
            return []
        rows = []
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("email"):
                continue
            rows.append({key: str(value) for key, value in entry.items() if value is not None})
        return rows

    def _find(self, email: str) -> Optional[Dict[str, str]]:
        for row in self.load():
            if row["email"] == email:
                return row
        return None

    @staticmethod
    def _to_record(row: Dict[str, str]) -> StaffRecord:
        return StaffRecord(
            identifier=row["email"],
            display_name=row.get("name") or row["email"],
            phone=row.get("phone", ""),
            designation=row.get("designation", ""),
        )

    def authenticate(self, credentials: Mapping[str, str]) -> Optional[StaffRecord]:
        row = self._find(credentials.get("email", ""))
        if row is None:
            return None
        if not phone_matches(row.get("phone", ""), credentials.get("phone", ""), self._country_code):
            return None
        return self._to_record(row)

    def lookup(self, identifier: str) -> Optional[StaffRecord]:
        row = self._find(identifier)
        return self._to_record(row) if row else None


class TableStaffBackend(StaffBackend):
    """Username/password records stored in the ``staff`` table."""

    kind = "table"
    identifier_field = "username"
    login_fields = ("username", "password")

    def __init__(self, session_factory: Callable[[], Session], hasher: Optional[PasswordHasher] = None) -> None:
        self._sessions = session_factory
        self._hasher = hasher or PasswordHasher()
        # verified against when the user or hash is missing, so every failure costs one hash
        self._dummy_hash = self._hasher.hash(secrets.token_urlsafe(16))

    def _get(self, username: str) -> Optional[StaffRecord]:
        try:
            with self._sessions() as db:
                entity = (
                    db.query(StaffEntity)
                    .filter(StaffEntity.partition_key == STAFF_PARTITION, StaffEntity.row_key == username)
                    .first()
                )
                if entity is None:
                    return None
                return StaffRecord(
                    identifier=entity.row_key,
                    display_name=entity.name or entity.row_key,
                    phone=entity.phone or "",
                    designation=entity.designation or "",
                    password_hash=entity.password_hash,
                )
        except SQLAlchemyError:
            LOGGER.exception("Staff lookup failed")
            return None

    def authenticate(self, credentials: Mapping[str, str]) -> Optional[StaffRecord]:
        record = self._get(credentials.get("username", ""))
        stored_hash = record.password_hash if record else None
        try:
            self._hasher.verify(stored_hash or self._dummy_hash, credentials.get("password", ""))
        except (VerificationError, InvalidHash):
            return None
        if not stored_hash:
            return None
        return record

    def lookup(self, identifier: str) -> Optional[StaffRecord]:
        return self._get(identifier)

    def upsert(self, username: str, *, name: str = "", phone: str = "", password: str) -> None:
        password_hash = self._hasher.hash(password)
        try:
            with self._sessions() as db:
                entity = (
                    db.query(StaffEntity)
                    .filter(StaffEntity.partition_key == STAFF_PARTITION, StaffEntity.row_key == username)
                    .first()
                )
                if entity is None:
                    entity = StaffEntity(partition_key=STAFF_PARTITION, row_key=username, designation="")
                    db.add(entity)
                entity.name = name or username
                entity.phone = phone or ""
                entity.password_hash = password_hash
                db.commit()
        except SQLAlchemyError as exc:
            raise StorageUnavailable("staff table write failed") from exc
        LOGGER.info("Upserted staff record", extra={"component": "TableStaffBackend"})


class AdminGate:
    """Single shared-secret admin check."""

    def __init__(self, password: str) -> None:
        self._password = password.encode("utf-8")

    @property
    def enabled(self) -> bool:
        return bool(self._password)

    def check(self, password: Optional[str]) -> bool:
        if not self._password or not password:
            return False
        return hmac.compare_digest(password.encode("utf-8"), self._password)


def select_staff_backend(
    settings: Settings, session_factory: Optional[Callable[[], Session]] = None
) -> StaffBackend:
    """Pick the staff backend for this deployment.

    ``STAFF_AUTH_MODE`` wins when set; otherwise the table is preferred when a
    database is configured, then the directory file, then the fixed pair.
    """

    mode = settings.staff_auth_mode
    if not mode:
        if session_factory is not None:
            mode = "table"
        elif settings.staff_file.exists():
            mode = "directory"
        elif settings.has_fixed_staff:
            mode = "fixed"
        else:
            mode = "none"

    if mode == "table" and session_factory is None:
        LOGGER.warning("STAFF_AUTH_MODE=table but DATABASE_URL is not set; staff login disabled")
        mode = "none"
    if mode == "fixed" and not settings.has_fixed_staff:
        LOGGER.warning("STAFF_AUTH_MODE=fixed but STAFF_EMAIL/STAFF_PHONE are not set; staff login disabled")
        mode = "none"

    if mode == "table":
        backend: StaffBackend = TableStaffBackend(session_factory)
    elif mode == "directory":
        backend = DirectoryStaffBackend(settings.staff_file, settings.country_code)
    elif mode == "fixed":
        backend = FixedStaffBackend(
            settings.staff_email,
            settings.staff_phone,
            name=settings.staff_name,
            designation=settings.staff_designation,
        )
    else:
        LOGGER.warning("No staff credential source configured; staff login disabled")
        backend = NullStaffBackend()

    LOGGER.info("Staff backend: %s", backend.kind)
    return backend
