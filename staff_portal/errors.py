"""Error taxonomy for the staff portal and its HTTP rendering."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

LOGGER = logging.getLogger("staff_portal.errors")


class PortalError(Exception):
    """Base class for errors rendered at the handler boundary."""


class Unauthorized(PortalError):
    """Missing or invalid staff session."""


class Forbidden(PortalError):
    """Missing or invalid admin session."""


class BadRequest(PortalError):
    """Required payload fields are missing."""


class StorageUnavailable(PortalError):
    """The backend for notes or staff records is not configured or unreachable."""


class FormNotConfigured(PortalError):
    """Unknown form category, or no upstream URL for it."""


class UpstreamFetchFailure(PortalError):
    """The outbound request for a form failed before a response arrived."""


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(Unauthorized)
    def _unauthorized(request: Request, exc: Unauthorized):
        return JSONResponse({"message": "Unauthorized"}, status_code=401)

    @app.exception_handler(Forbidden)
    def _forbidden(request: Request, exc: Forbidden):
        return JSONResponse({"error": "Forbidden"}, status_code=403)

    @app.exception_handler(BadRequest)
    def _bad_request(request: Request, exc: BadRequest):
        return JSONResponse({"success": False, "message": "Missing"}, status_code=400)

    @app.exception_handler(RequestValidationError)
    def _invalid_body(request: Request, exc: RequestValidationError):
        return JSONResponse({"success": False, "message": "Missing"}, status_code=400)

    @app.exception_handler(StorageUnavailable)
    def _storage(request: Request, exc: StorageUnavailable):
        LOGGER.error("%s %s: storage unavailable: %s", request.method, request.url.path, exc)
        return JSONResponse({"success": False}, status_code=503)

    @app.exception_handler(FormNotConfigured)
    def _form_missing(request: Request, exc: FormNotConfigured):
        return PlainTextResponse("Form not configured", status_code=404)

    @app.exception_handler(UpstreamFetchFailure)
    def _upstream(request: Request, exc: UpstreamFetchFailure):
        LOGGER.error("%s %s: upstream fetch failed: %s", request.method, request.url.path, exc)
        return PlainTextResponse("Form host unreachable", status_code=502)

    @app.exception_handler(Exception)
    def _unexpected(request: Request, exc: Exception):
        LOGGER.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse({"success": False}, status_code=500)
