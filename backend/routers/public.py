import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from db import get_db
from metrics import registration_metrics
from schemas import KitCheckRequest, PhotoUploadRequest, RegistrationCreate
from services.kit_stats import classify_kit_number, is_valid_kit_number, normalize_kit_number
from services.registrations import (
    CLOSED_MESSAGE,
    NON_NUMERIC_MESSAGE,
    SUCCESS_MESSAGE,
    RegistrationError,
    create_registration,
    find_by_kit_number,
    is_registration_open,
)
from settings import settings
from storage import s3
from utils import NO_STORE_HEADERS, no_store

router = APIRouter(prefix="/api", dependencies=[Depends(no_store)])
logger = logging.getLogger(__name__)


@router.get("/registration-status")
def registration_status(db: Session = Depends(get_db)):
    return {"isOpen": is_registration_open(db)}


@router.post("/check-kit")
def check_kit(payload: KitCheckRequest, db: Session = Depends(get_db)):
    kit_number = normalize_kit_number(payload.kit_number)
    if not kit_number:
        raise HTTPException(status_code=400, detail="Kit number is required")
    if not is_valid_kit_number(kit_number):
        return JSONResponse(
            status_code=400,
            content={"error": NON_NUMERIC_MESSAGE, "available": False},
            headers=NO_STORE_HEADERS,
        )

    taken = find_by_kit_number(db, kit_number) is not None
    return {
        "available": not taken,
        "message": "This kit number is already registered" if taken else "Kit number is available",
    }


@router.post("/register")
def register(payload: RegistrationCreate, db: Session = Depends(get_db)):
    with registration_metrics() as mark:
        try:
            registration = create_registration(db, payload)
        except RegistrationError as exc:
            mark(exc.reason)
            raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
        mark("success", classify_kit_number(registration.kit_number))

    return {"success": True, "message": SUCCESS_MESSAGE}


@router.post("/photos/presign")
def presign_photo_upload(payload: PhotoUploadRequest, db: Session = Depends(get_db)):
    """Hand the browser a presigned POST so the photo goes straight to S3."""

    if not is_registration_open(db):
        raise HTTPException(status_code=403, detail=CLOSED_MESSAGE)

    content_type = payload.content_type.strip().lower()
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image uploads are allowed")

    key = s3.build_photo_key(payload.filename)
    try:
        upload = s3.generate_presigned_upload(
            key,
            expires_in=settings.PHOTO_UPLOAD_EXPIRES,
            content_type=content_type,
        )
    except s3.S3StorageError as exc:
        raise HTTPException(status_code=502, detail="Photo storage is unavailable") from exc

    logger.info("photo_upload_presigned", extra={"key": key, "content_type": content_type})
    return {
        "upload": upload,
        "key": key,
        "photo_url": s3.public_url(key),
        "max_bytes": settings.PHOTO_MAX_BYTES,
    }
