"""Signed session cookies for staff and admin.

The two session kinds share nothing: separate cookie names and separate
itsdangerous salts, so a value signed for one never verifies as the other.
There is no server-side session table; logout only tells the client to drop
the cookie.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Response
from itsdangerous import BadData, URLSafeSerializer

STAFF_COOKIE = "auth"
ADMIN_COOKIE = "adminAuth"
ADMIN_MARKER = "true"

LOGGER = logging.getLogger("staff_portal.sessions")


class SessionIssuer:
    def __init__(self, secret: str, *, secure: bool = False) -> None:
        self._staff = URLSafeSerializer(secret, salt="staff-session")
        self._admin = URLSafeSerializer(secret, salt="admin-session")
        self._secure = secure

    def _set(self, response: Response, name: str, value: str) -> None:
        response.set_cookie(
            name,
            value,
            httponly=True,
            samesite="lax",
            secure=self._secure,
        )

    def issue_staff_session(self, response: Response, identifier: str) -> None:
        self._set(response, STAFF_COOKIE, self._staff.dumps(identifier))

    def issue_admin_session(self, response: Response) -> None:
        self._set(response, ADMIN_COOKIE, self._admin.dumps(ADMIN_MARKER))

    def verify_staff_session(self, cookie: Optional[str]) -> Optional[str]:
        """Return the signed identifier, or None for a missing or tampered cookie."""
        if not cookie:
            return None
        try:
            identifier = self._staff.loads(cookie)
        except BadData:
            LOGGER.info("Rejected staff cookie with bad signature")
            return None
        if not isinstance(identifier, str) or not identifier:
            return None
        return identifier

    def verify_admin_session(self, cookie: Optional[str]) -> bool:
        if not cookie:
            return False
        try:
            marker = self._admin.loads(cookie)
        except BadData:
            LOGGER.info("Rejected admin cookie with bad signature")
            return False
        return marker == ADMIN_MARKER

    def revoke(self, response: Response, name: str) -> None:
        response.delete_cookie(name, httponly=True, samesite="lax", secure=self._secure)
