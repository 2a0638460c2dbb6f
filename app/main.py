"""FastAPI app for the form builder."""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path

from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

from app import accounts
from app.auth import JWT_EXPIRES_S, TOKEN_COOKIE, AuthMiddleware, request_token
from app.csv_export import export_filename, submissions_csv
from app.notifications import template_warnings
from app.submissions import MissingFieldsError, submit
from form_store import (
    DuplicateEmailError,
    FormStore,
    PackageNotFoundError,
    ShareKeyExhaustedError,
    StoreError,
)
from snapshot_store import JsonFileSnapshotStore

APP_ENV = os.getenv("APP_ENV", "dev").strip().lower() or "dev"
IS_DEV = APP_ENV == "dev"
LOG_LEVEL = os.getenv("FORMS_LOG_LEVEL", "INFO").strip().upper() or "INFO"
DB_PATH = Path(os.getenv("FORMS_DB_PATH", "").strip() or ROOT / "data" / "db.json")

logger = logging.getLogger("forms")
logging.basicConfig(level=LOG_LEVEL)

_LOCAL_CORS_ORIGINS = {
    "http://localhost:4000",
    "http://127.0.0.1:4000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
_EXTRA_CORS_ORIGINS = {
    origin.strip().rstrip("/")
    for origin in os.getenv("FORMS_CORS_ORIGINS", "").split(",")
    if origin.strip()
}
_CORS_ORIGINS = _LOCAL_CORS_ORIGINS | _EXTRA_CORS_ORIGINS
_LOCAL_CORS_REGEX = r"http://localhost:\d+|http://127\.0\.0\.1:\d+"

_STORE_ERROR_STATUS = {
    DuplicateEmailError: 409,
    ShareKeyExhaustedError: 409,
    PackageNotFoundError: 404,
}
_PUBLIC_FORM_KEYS = ("name", "description", "workspaceId", "slug", "isPublished", "visibility", "settings", "fields")


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _not_found(what: str) -> JSONResponse:
    return _error_response("NOT_FOUND", f"{what} not found", status=404)


async def _safe_json(request: Request) -> dict:
    try:
        body = await request.json()
    except Exception:
        return {}
    return body if isinstance(body, dict) else {}


def _store(request: Request) -> FormStore:
    return request.app.state.store


def _share_url(request: Request, share_key: str | None) -> str:
    return f"{str(request.base_url).rstrip('/')}/share/{share_key}"


def _form_response(request: Request, form: dict) -> dict:
    payload = dict(form)
    payload["shareUrl"] = _share_url(request, form.get("shareKey"))
    return payload


def _owned_form(request: Request, form_id: str) -> dict | None:
    form = _store(request).get_form(form_id)
    if form is None or form.get("workspaceId") != request.state.workspace["id"]:
        return None
    return form


def _own_workspace(request: Request, workspace_id: str) -> bool:
    return workspace_id == request.state.workspace["id"]


def _published_form(request: Request, share_key: str) -> dict | None:
    form = _store(request).get_form_by_share_key(share_key)
    if form is None or not form.get("isPublished") or form.get("visibility") == "private":
        return None
    return form


def _session_response(payload: dict, status: int = 200) -> JSONResponse:
    response = _ok_response(payload, status=status)
    response.set_cookie(TOKEN_COOKIE, payload["token"], httponly=True, samesite="lax", max_age=JWT_EXPIRES_S)
    return response


router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"ok": True, "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}


# --- auth ------------------------------------------------------------------


@router.post("/api/auth/signup")
async def auth_signup(request: Request):
    body = await _safe_json(request)
    return _session_response(accounts.signup(_store(request), body), status=201)


@router.post("/api/auth/login")
async def auth_login(request: Request):
    body = await _safe_json(request)
    return _session_response(accounts.login(_store(request), body.get("email"), body.get("password")))


@router.post("/api/auth/logout")
async def auth_logout() -> Response:
    response = Response(status_code=204)
    response.delete_cookie(TOKEN_COOKIE)
    return response


@router.get("/api/auth/me")
async def auth_me(request: Request):
    payload = accounts.session_payload(_store(request), request.state.user, token=request_token(request))
    return _ok_response(payload)


# --- packages and workspaces ----------------------------------------------


@router.get("/api/packages")
async def list_packages(request: Request):
    return _ok_response({"packages": _store(request).list_packages()})


@router.get("/api/workspaces")
async def list_workspaces(request: Request):
    return _ok_response({"workspaces": [request.state.workspace]})


@router.get("/api/workspaces/{workspace_id}")
async def get_workspace(request: Request, workspace_id: str):
    if not _own_workspace(request, workspace_id):
        return _not_found("Workspace")
    return _ok_response({"workspace": _store(request).get_workspace(workspace_id)})


@router.put("/api/workspaces/{workspace_id}")
async def update_workspace(request: Request, workspace_id: str):
    if not _own_workspace(request, workspace_id):
        return _not_found("Workspace")
    body = await _safe_json(request)
    updates = {key: body[key] for key in ("name", "slug", "color") if key in body}
    return _ok_response({"workspace": _store(request).update_workspace(workspace_id, updates)})


@router.get("/api/workspaces/{workspace_id}/forms")
async def list_workspace_forms(request: Request, workspace_id: str):
    if not _own_workspace(request, workspace_id):
        return _not_found("Workspace")
    return _ok_response({"forms": _store(request).list_forms_summary(workspace_id)})


@router.put("/api/workspaces/{workspace_id}/package")
async def assign_workspace_package(request: Request, workspace_id: str):
    if not _own_workspace(request, workspace_id):
        return _not_found("Workspace")
    body = await _safe_json(request)
    store = _store(request)
    workspace = store.assign_package(workspace_id, body.get("packageId"))
    return _ok_response({"workspace": workspace, "package": store.get_package(workspace["packageId"])})


@router.get("/api/workspaces/{workspace_id}/submissions/recent")
async def recent_submissions(request: Request, workspace_id: str, limit: int = 10):
    if not _own_workspace(request, workspace_id):
        return _not_found("Workspace")
    items = _store(request).list_recent_submissions(limit=limit, workspace_id=workspace_id)
    return _ok_response({"submissions": items})


# --- forms -----------------------------------------------------------------


@router.get("/api/forms")
async def list_forms(request: Request, includeStats: str = "true"):
    store = _store(request)
    workspace_id = request.state.workspace["id"]
    if includeStats == "false":
        forms = store.list_forms(workspace_id)
    else:
        forms = store.list_forms_summary(workspace_id)
    return _ok_response({"forms": [_form_response(request, form) for form in forms]})


@router.post("/api/forms")
async def create_form(request: Request):
    body = await _safe_json(request)
    if not body.get("name"):
        return _error_response("NAME_REQUIRED", "Form name is required", "name")
    payload = {key: body.get(key) for key in ("name", "description", "fields", "settings", "isPublished", "visibility")}
    payload["workspaceId"] = request.state.workspace["id"]
    form = _store(request).create_form(payload)
    logger.info("form_created form_id=%s workspace_id=%s", form["id"], form["workspaceId"])
    return _ok_response({"form": _form_response(request, form)}, warnings=template_warnings(form["settings"]), status=201)


@router.get("/api/forms/{form_id}")
async def get_form(request: Request, form_id: str):
    form = _owned_form(request, form_id)
    if form is None:
        return _not_found("Form")
    return _ok_response({"form": _form_response(request, form)})


@router.put("/api/forms/{form_id}")
async def update_form(request: Request, form_id: str):
    if _owned_form(request, form_id) is None:
        return _not_found("Form")
    body = await _safe_json(request)
    form = _store(request).update_form(form_id, body)
    if form is None:
        return _not_found("Form")
    return _ok_response({"form": _form_response(request, form)}, warnings=template_warnings(form["settings"]))


@router.delete("/api/forms/{form_id}")
async def delete_form(request: Request, form_id: str) -> Response:
    if _owned_form(request, form_id) is None:
        return _not_found("Form")
    _store(request).delete_form(form_id)
    return Response(status_code=204)


@router.post("/api/forms/{form_id}/share")
async def share_form(request: Request, form_id: str):
    form = _owned_form(request, form_id)
    if form is None:
        return _not_found("Form")
    if form.get("visibility") == "private":
        return _error_response("FORM_PRIVATE", "Private forms cannot generate share links", "visibility")
    share_key = _store(request).regenerate_share_key(form_id)
    return _ok_response({"shareKey": share_key, "shareUrl": _share_url(request, share_key)})


@router.post("/api/forms/{form_id}/publish")
async def publish_form(request: Request, form_id: str):
    if _owned_form(request, form_id) is None:
        return _not_found("Form")
    body = await _safe_json(request)
    form = _store(request).update_form(form_id, {"isPublished": bool(body.get("isPublished", True))})
    return _ok_response({"form": _form_response(request, form)})


@router.get("/api/forms/{form_id}/submissions")
async def list_form_submissions(request: Request, form_id: str):
    if _owned_form(request, form_id) is None:
        return _not_found("Form")
    return _ok_response({"submissions": _store(request).list_submissions(form_id)})


@router.post("/api/forms/{form_id}/submissions")
async def create_form_submission(request: Request, form_id: str):
    form = _owned_form(request, form_id)
    if form is None:
        return _not_found("Form")
    body = await _safe_json(request)
    submission = submit(_store(request), form, body, workspace=request.state.workspace)
    if submission is None:
        return _not_found("Form")
    return _ok_response({"submission": submission}, status=201)


@router.delete("/api/forms/{form_id}/submissions/{submission_id}")
async def delete_form_submission(request: Request, form_id: str, submission_id: str) -> Response:
    store = _store(request)
    submission = store.get_submission(submission_id)
    if _owned_form(request, form_id) is None or submission is None or submission.get("formId") != form_id:
        return _not_found("Submission")
    store.delete_submission(submission_id)
    return Response(status_code=204)


@router.get("/api/forms/{form_id}/export.csv")
async def export_form_csv(request: Request, form_id: str):
    form = _owned_form(request, form_id)
    if form is None:
        return _not_found("Form")
    if not form["settings"].get("allowCsvExport", True):
        return _error_response("EXPORT_DISABLED", "CSV export is disabled for this form", "settings.allowCsvExport", status=403)
    content = submissions_csv(form, _store(request).list_submissions(form_id))
    headers = {"Content-Disposition": f'attachment; filename="{export_filename(form)}"'}
    return Response(content=content, media_type="text/csv", headers=headers)


# --- public share links ----------------------------------------------------


@router.get("/api/public/forms/{share_key}")
async def public_form(request: Request, share_key: str):
    form = _published_form(request, share_key)
    if form is None:
        return _error_response("NOT_FOUND", "Form not found or not published", status=404)
    workspace = _store(request).get_workspace(form.get("workspaceId"))
    public = {key: form.get(key) for key in _PUBLIC_FORM_KEYS}
    brief = {key: workspace.get(key) for key in ("id", "name", "color")} if workspace else None
    return _ok_response({"form": public, "workspace": brief})


@router.post("/api/public/forms/{share_key}/submissions")
async def public_submission(request: Request, share_key: str):
    form = _published_form(request, share_key)
    if form is None:
        return _error_response("NOT_FOUND", "Form not found or not published", status=404)
    body = await _safe_json(request)
    submission = submit(_store(request), form, body)
    if submission is None:
        return _error_response("NOT_FOUND", "Form not found or not published", status=404)
    return _ok_response({"submission": {"id": submission["id"], "submittedAt": submission["submittedAt"]}}, status=201)


# --- app factory -----------------------------------------------------------


async def _store_error_handler(request: Request, exc: StoreError):
    status = _STORE_ERROR_STATUS.get(type(exc), 400)
    return _error_response(exc.code, exc.message, exc.path, status=status)


async def _auth_error_handler(request: Request, exc: accounts.AuthError):
    return _error_response(exc.code, exc.message, status=exc.status)


async def _missing_fields_handler(request: Request, exc: MissingFieldsError):
    return _error_response("MISSING_FIELDS", "Missing required fields", detail={"fields": exc.fields})


async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


def create_app(store: FormStore | None = None) -> FastAPI:
    """Build the API around ``store``; a JSON file store at FORMS_DB_PATH when omitted."""
    if store is None:
        store = FormStore(JsonFileSnapshotStore(DB_PATH))
    app = FastAPI(title="Forms")
    app.state.store = store

    @app.middleware("http")
    async def timing_middleware(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        total_ms = (time.perf_counter() - start) * 1000
        auth_ms = getattr(request.state, "auth_ms", 0.0)
        logger.info(
            "%s %s %s total_ms=%.1f auth_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            total_ms,
            auth_ms,
        )
        if IS_DEV:
            response.headers["X-Req-MS"] = f"{total_ms:.1f}"
        return response

    app.add_middleware(AuthMiddleware, store=store)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(_CORS_ORIGINS),
        allow_origin_regex=_LOCAL_CORS_REGEX,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StoreError, _store_error_handler)
    app.add_exception_handler(accounts.AuthError, _auth_error_handler)
    app.add_exception_handler(MissingFieldsError, _missing_fields_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
    app.include_router(router)
    logger.info("app_ready env=%s forms=%s", APP_ENV, len(store.list_forms()))
    return app
