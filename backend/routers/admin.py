import logging
from datetime import datetime, timezone
from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from db import get_db
from models import Registration
from schemas import (
    AdminLogin,
    PasswordChange,
    RegistrationOut,
    RegistrationStatusUpdate,
    RegistrationUpdate,
)
from security import (
    AdminPasswordNotConfigured,
    admin_required,
    check_admin_password,
    create_admin_token,
    store_admin_password,
)
from services.exports import export_filename, export_registrations_csv, export_registrations_xlsx
from services.kit_stats import build_kit_report
from services.registrations import (
    RegistrationError,
    all_registrations,
    delete_registration,
    is_registration_open,
    list_registrations,
    set_registration_open,
    update_registration,
)
from settings import settings
from storage import s3
from utils import NO_STORE_HEADERS, client_ip, no_store, write_audit

router = APIRouter(prefix="/api/admin", dependencies=[Depends(no_store)])
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize(registration: Registration) -> dict:
    return RegistrationOut.model_validate(registration).model_dump(mode="json")


def _get_registration_or_404(db: Session, registration_id: int) -> Registration:
    registration = db.get(Registration, registration_id)
    if registration is None:
        raise HTTPException(status_code=404, detail="Registration not found")
    return registration


def _remove_photo(photo_url: str | None) -> None:
    key = s3.key_from_public_url(photo_url)
    if not key:
        return
    try:
        s3.delete_object(key)
    except s3.S3StorageError as exc:
        logger.warning("photo_delete_failed", extra={"key": key, "error": str(exc)})


# =========================
# Session
# =========================

@router.post("")
def admin_login(payload: AdminLogin, request: Request, db: Session = Depends(get_db)):
    try:
        valid = check_admin_password(db, payload.password)
    except AdminPasswordNotConfigured as exc:
        logger.error("admin_password_not_configured")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if not valid:
        logger.warning("admin_login_failed", extra={"client_ip": client_ip(request)})
        raise HTTPException(status_code=401, detail="Invalid password")

    token = create_admin_token()
    response = JSONResponse({"success": True, "access_token": token}, headers=NO_STORE_HEADERS)
    response.set_cookie(
        settings.ADMIN_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.ENV not in {"dev", "test"},
        samesite="lax",
        max_age=settings.ADMIN_TOKEN_EXPIRE_MINUTES * 60,
    )
    return response


@router.post("/logout")
def admin_logout():
    response = JSONResponse({"success": True}, headers=NO_STORE_HEADERS)
    response.delete_cookie(settings.ADMIN_COOKIE_NAME)
    return response


@router.post("/change-password")
def change_password(
    payload: PasswordChange,
    request: Request,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    if not payload.current_password or not payload.new_password:
        raise HTTPException(status_code=400, detail="Current password and new password are required")
    if len(payload.new_password) < settings.ADMIN_PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.ADMIN_PASSWORD_MIN_LENGTH} characters long",
        )

    try:
        valid = check_admin_password(db, payload.current_password)
    except AdminPasswordNotConfigured as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if not valid:
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    store_admin_password(db, payload.new_password)
    write_audit(db, "admin_password_change", ip=client_ip(request))
    return {"success": True, "message": "Password changed successfully!"}


# =========================
# Registration window
# =========================

@router.get("/registration-status")
def get_registration_status(db: Session = Depends(get_db), _: str = Depends(admin_required)):
    return {"isOpen": is_registration_open(db)}


@router.post("/registration-status")
def update_registration_status(
    payload: RegistrationStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    if not isinstance(payload.is_open, bool):
        raise HTTPException(status_code=400, detail="isOpen must be a boolean")

    is_open = payload.is_open
    set_registration_open(db, is_open)
    write_audit(
        db,
        "registration_status_change",
        object_type="setting",
        meta={"isOpen": is_open},
        ip=client_ip(request),
    )
    logger.info("registration_status_changed", extra={"is_open": is_open})
    return {
        "success": True,
        "isOpen": is_open,
        "message": f"Registration {'opened' if is_open else 'closed'} successfully",
    }


# =========================
# Registrations
# =========================

@router.get("/registrations")
def admin_registrations(
    search: str = Query(""),
    page: int | None = Query(None, ge=1),
    page_size: int = Query(settings.REGISTRATION_PAGE_SIZE, ge=1, le=500),
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    result = list_registrations(db, search=search, page=page, page_size=page_size)
    return {
        "data": [_serialize(reg) for reg in result.items],
        "count": len(result.items),
        "total": result.total,
        "page": result.page,
        "pages": result.pages,
        "timestamp": _now_iso(),
    }


@router.get("/registrations/export.csv")
def admin_registrations_export_csv(
    request: Request,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    registrations = all_registrations(db)
    if not registrations:
        raise HTTPException(status_code=404, detail="No registrations to download.")

    filename = export_filename(settings.EXPORT_FILENAME_PREFIX, "csv")
    payload = export_registrations_csv(registrations)
    write_audit(
        db,
        "csv_export",
        object_type="registration",
        meta={"filename": filename, "rows": len(registrations)},
        ip=client_ip(request),
    )
    response = StreamingResponse(BytesIO(payload), media_type="text/csv; charset=utf-8")
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@router.get("/registrations/export.xlsx")
def admin_registrations_export_xlsx(
    request: Request,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    registrations = all_registrations(db)
    if not registrations:
        raise HTTPException(status_code=404, detail="No registrations to download.")

    filename = export_filename(settings.EXPORT_FILENAME_PREFIX, "xlsx")
    payload = export_registrations_xlsx(registrations)
    write_audit(
        db,
        "xlsx_export",
        object_type="registration",
        meta={"filename": filename, "rows": len(registrations)},
        ip=client_ip(request),
    )
    return StreamingResponse(
        BytesIO(payload),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/registrations/{registration_id}")
def admin_registration_detail(
    registration_id: int,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    return {"data": _serialize(_get_registration_or_404(db, registration_id))}


@router.put("/registrations/{registration_id}")
def admin_registration_update(
    registration_id: int,
    payload: RegistrationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    registration = _get_registration_or_404(db, registration_id)
    try:
        changes = update_registration(db, registration, payload)
    except RegistrationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    if changes:
        write_audit(
            db,
            "registration_update",
            object_type="registration",
            object_id=registration_id,
            meta={"fields": sorted(changes)},
            ip=client_ip(request),
        )
    return {"success": True, "data": _serialize(registration), "changed": sorted(changes)}


@router.delete("/registrations/{registration_id}")
def admin_registration_delete(
    registration_id: int,
    request: Request,
    db: Session = Depends(get_db),
    _: str = Depends(admin_required),
):
    registration = _get_registration_or_404(db, registration_id)
    deleted = _serialize(registration)
    delete_registration(db, registration)
    _remove_photo(deleted["photo_url"])

    write_audit(
        db,
        "registration_delete",
        object_type="registration",
        object_id=registration_id,
        meta={"kit_number": deleted["kit_number"]},
        ip=client_ip(request),
    )
    return {"success": True, "deleted": [deleted]}


# =========================
# Statistics
# =========================

@router.get("/kit-stats")
def admin_kit_stats(db: Session = Depends(get_db), _: str = Depends(admin_required)):
    registrations = all_registrations(db)
    report = build_kit_report(registrations)
    report["registrations"] = len(registrations)
    report["attending"] = sum(1 for reg in registrations if reg.is_attending)
    report["timestamp"] = _now_iso()
    return report
