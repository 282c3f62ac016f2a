from typing import Any

from fastapi import Request, Response
from sqlalchemy.orm import Session

from models import AppSetting, AuditLog


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return None


def load_setting(db: Session, key: str) -> str | None:
    obj = db.get(AppSetting, key)
    return obj.value if obj else None


def save_setting(db: Session, key: str, value: str) -> None:
    obj = db.get(AppSetting, key)
    if obj:
        obj.value = value
    else:
        db.add(AppSetting(key=key, value=value))
    db.commit()


def write_audit(
    db: Session,
    action: str,
    *,
    actor: str | None = "admin",
    object_type: str | None = None,
    object_id: int | None = None,
    meta: Any = None,
    ip: str | None = None,
) -> AuditLog:
    if meta is not None and not isinstance(meta, (dict, list)):
        meta_value = {"value": meta}
    else:
        meta_value = meta

    entry = AuditLog(
        actor=actor,
        action=action,
        object_type=object_type,
        object_id=object_id,
        ip=ip,
        meta_json=meta_value,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def no_store(response: Response) -> None:
    """Router dependency: registration data must never be served from a cache."""

    response.headers.update(NO_STORE_HEADERS)
