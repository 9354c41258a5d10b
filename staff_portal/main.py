from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from starlette.background import BackgroundTask

from dataclasses import dataclass
from typing import Optional
import logging

from staff_portal.config import Settings, load_settings
from staff_portal.credentials import AdminGate, StaffBackend, StaffRecord, select_staff_backend
from staff_portal.database import make_session_factory
from staff_portal.errors import BadRequest, Forbidden, Unauthorized, register_error_handlers
from staff_portal.forms import FormGateway
from staff_portal.logging import configure_logging
from staff_portal.notes import NotesRepository, select_notes_backend
from staff_portal.sessions import ADMIN_COOKIE, STAFF_COOKIE, SessionIssuer

LOGGER = logging.getLogger("staff_portal.main")


# ---------------- COMPONENTS ----------------
@dataclass
class Portal:
    settings: Settings
    staff: StaffBackend
    admin: AdminGate
    sessions: SessionIssuer
    notes: NotesRepository
    forms: FormGateway


def build_portal(settings: Settings) -> Portal:
    if settings.generated_secret:
        LOGGER.warning("COOKIE_SECRET not set; using a random key, sessions end on restart")
    if not settings.admin_password:
        LOGGER.warning("ADMIN_PASSWORD not set; admin login disabled")

    session_factory = None
    if settings.database_url:
        try:
            session_factory = make_session_factory(settings.database_url)
        except SQLAlchemyError:
            LOGGER.exception("Table store unavailable at startup; falling back")

    forms = FormGateway(settings.form_urls, timeout=settings.form_timeout)
    if not forms.configured():
        LOGGER.warning("No GFORM_* URLs configured; secure forms unavailable")

    return Portal(
        settings=settings,
        staff=select_staff_backend(settings, session_factory),
        admin=AdminGate(settings.admin_password),
        sessions=SessionIssuer(settings.cookie_secret, secure=settings.secure_cookies),
        notes=NotesRepository(select_notes_backend(settings, session_factory)),
        forms=forms,
    )


# ---------------- REQUEST BODIES ----------------
class LoginPayload(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class NotesPayload(BaseModel):
    notes: str


class AdminLoginPayload(BaseModel):
    password: Optional[str] = None


class CreateUserPayload(BaseModel):
    username: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


# ---------------- AUTH ----------------
def get_portal(request: Request) -> Portal:
    return request.app.state.portal


def require_staff(request: Request, portal: Portal = Depends(get_portal)) -> StaffRecord:
    identifier = portal.sessions.verify_staff_session(request.cookies.get(STAFF_COOKIE))
    if identifier is None:
        raise Unauthorized()
    # re-resolve on every request so removed staff are locked out at once
    record = portal.staff.lookup(identifier)
    if record is None:
        raise Unauthorized()
    return record


def require_admin(request: Request, portal: Portal = Depends(get_portal)) -> None:
    if not portal.sessions.verify_admin_session(request.cookies.get(ADMIN_COOKIE)):
        raise Forbidden()


# ---------------- ROUTES ----------------
router = APIRouter()


@router.post("/api/login")
@router.post("/api/staff/login")
def login(payload: LoginPayload, response: Response, portal: Portal = Depends(get_portal)):
    credentials = {field: getattr(payload, field) for field in portal.staff.login_fields}
    if not all(credentials.values()):
        raise BadRequest()

    record = portal.staff.authenticate(credentials)
    if record is None:
        return JSONResponse({"success": False}, status_code=401)

    portal.sessions.issue_staff_session(response, record.identifier)
    LOGGER.info("Staff login", extra={"component": portal.staff.kind})
    return {"success": True}


@router.post("/api/logout")
def logout(response: Response, portal: Portal = Depends(get_portal)):
    portal.sessions.revoke(response, STAFF_COOKIE)
    return {"success": True}


@router.get("/api/me")
def me(staff: StaffRecord = Depends(require_staff), portal: Portal = Depends(get_portal)):
    return {
        "name": staff.display_name,
        portal.staff.identifier_field: staff.identifier,
        "phone": staff.phone,
        "designation": staff.designation,
    }


@router.get("/api/notes")
def read_notes(staff: StaffRecord = Depends(require_staff), portal: Portal = Depends(get_portal)):
    return {"notes": portal.notes.get(staff.identifier).text}


@router.post("/api/notes")
def save_notes(
    payload: NotesPayload,
    staff: StaffRecord = Depends(require_staff),
    portal: Portal = Depends(get_portal),
):
    portal.notes.put(staff.identifier, payload.notes)
    return {"success": True}


@router.post("/api/admin/login")
def admin_login(payload: AdminLoginPayload, response: Response, portal: Portal = Depends(get_portal)):
    if not payload.password:
        raise BadRequest()
    if not portal.admin.check(payload.password):
        return JSONResponse({"success": False}, status_code=401)
    portal.sessions.issue_admin_session(response)
    LOGGER.info("Admin login")
    return {"success": True}


@router.post("/api/admin/logout", dependencies=[Depends(require_admin)])
def admin_logout(response: Response, portal: Portal = Depends(get_portal)):
    portal.sessions.revoke(response, ADMIN_COOKIE)
    return {"success": True}


@router.post("/api/admin/create-user", dependencies=[Depends(require_admin)])
def create_user(payload: CreateUserPayload, portal: Portal = Depends(get_portal)):
    if not payload.username or not payload.password:
        raise BadRequest()
    portal.staff.upsert(
        payload.username,
        name=payload.name or "",
        phone=payload.phone or "",
        password=payload.password,
    )
    return {"success": True}


@router.get("/secure-form/{category}", dependencies=[Depends(require_admin)])
def secure_form(category: str, portal: Portal = Depends(get_portal)):
    form = portal.forms.fetch(category)
    return StreamingResponse(
        form.chunks,
        status_code=form.status_code,
        headers={"Content-Type": form.content_type},
        background=BackgroundTask(form.close),
    )


@router.get("/health")
def health(portal: Portal = Depends(get_portal)):
    return {
        "status": "ok",
        "staff_backend": portal.staff.kind,
        "notes_backend": portal.notes.backend.kind,
    }


# ---------------- APP ----------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.state.portal = build_portal(settings)
    register_error_handlers(app)
    app.include_router(router)

    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(settings.static_dir), html=True), name="static")
    return app


def run():
    """Console entry point; equivalent to ``uvicorn --factory staff_portal.main:create_app``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
