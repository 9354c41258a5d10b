"""Runtime configuration for the staff portal."""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

FORM_CATEGORIES = ("placement", "achievements", "coderizz")

STAFF_AUTH_MODES = {"fixed", "directory", "table", "none"}


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, loaded once at startup.

    Attributes
    ----------
    cookie_secret:
        Key used to sign session cookies. A random key is generated when the
        environment does not provide one; sessions then end with the process.
    admin_password:
        Shared admin secret. Empty disables admin login.
    database_url:
        SQLAlchemy URL of the remote table store. Empty disables the table
        backends for both staff records and notes.
    staff_auth_mode:
        Explicit staff backend (``fixed``, ``directory``, ``table`` or
        ``none``). Empty selects automatically.
    form_urls:
        Upstream URL per form category. Never sent to clients.
    """

    cookie_secret: str
    admin_password: str = ""
    database_url: str = ""
    staff_auth_mode: str = ""
    staff_email: str = ""
    staff_phone: str = ""
    staff_name: str = ""
    staff_designation: str = ""
    staff_file: Path = field(default_factory=lambda: Path("staff.json"))
    country_code: str = "+91"
    notes_file: Optional[Path] = None
    form_urls: Dict[str, str] = field(default_factory=dict)
    form_timeout: float = 10.0
    secure_cookies: bool = False
    static_dir: Path = field(default_factory=lambda: Path("public"))
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_format: str = "json"
    generated_secret: bool = False

    @property
    def has_fixed_staff(self) -> bool:
        return bool(self.staff_email and self.staff_phone)

    def form_url(self, category: str) -> str:
        return self.form_urls.get(category, "")


def _coerce_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _coerce_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _coerce_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from environment variables.

    Parameters
    ----------
    environ:
        Mapping to read instead of ``os.environ``; used by tests.
    """

    env = os.environ if environ is None else environ

    cookie_secret = env.get("COOKIE_SECRET", "")
    generated = not cookie_secret
    if generated:
        cookie_secret = secrets.token_urlsafe(32)

    mode = env.get("STAFF_AUTH_MODE", "").strip().lower()
    if mode not in STAFF_AUTH_MODES:
        mode = ""

    notes_file = env.get("NOTES_FILE", "").strip()

    # Azure App Service sets WEBSITE_SITE_NAME and terminates TLS in front of us.
    secure = bool(env.get("WEBSITE_SITE_NAME")) or _coerce_bool(env.get("COOKIE_SECURE"), False)

    timeout = _coerce_float(env.get("FORM_FETCH_TIMEOUT"), 10.0)
    if timeout <= 0:
        timeout = 10.0

    return Settings(
        cookie_secret=cookie_secret,
        admin_password=env.get("ADMIN_PASSWORD", ""),
        database_url=env.get("DATABASE_URL", "").strip(),
        staff_auth_mode=mode,
        staff_email=env.get("STAFF_EMAIL", "").strip(),
        staff_phone=env.get("STAFF_PHONE", "").strip(),
        staff_name=env.get("STAFF_NAME", "").strip(),
        staff_designation=env.get("STAFF_DESIGNATION", "").strip(),
        staff_file=Path(env.get("STAFF_FILE", "staff.json")),
        country_code=env.get("STAFF_COUNTRY_CODE", "+91").strip(),
        notes_file=Path(notes_file) if notes_file else None,
        form_urls={
            category: env.get(f"GFORM_{category.upper()}", "").strip()
            for category in FORM_CATEGORIES
        },
        form_timeout=timeout,
        secure_cookies=secure,
        static_dir=Path(env.get("STATIC_DIR", "public")),
        host=env.get("HOST", "0.0.0.0"),
        port=_coerce_int(env.get("PORT"), 8080),
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_format=env.get("LOG_FORMAT", "json").strip().lower(),
        generated_secret=generated,
    )
