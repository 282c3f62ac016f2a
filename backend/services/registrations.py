from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Registration
from schemas import RegistrationCreate, RegistrationUpdate
from services.kit_stats import is_valid_kit_number, normalize_kit_number
from utils import load_setting, save_setting

logger = logging.getLogger(__name__)

REGISTRATION_OPEN_KEY = "registration_open"

REQUIRED_FIELDS: tuple[str, ...] = (
    "full_name",
    "kit_number",
    "email",
    "whatsapp_number",
    "house",
    "profession",
    "attend_gala",
    "morale",
    "excited_for_gala",
)
OPTIONAL_FIELDS: tuple[str, ...] = ("car_number_plate", "postal_address", "photo_url")
DEFAULT_CAR_NUMBER_PLATE = "N/A"

SEARCHABLE_COLUMNS = (
    Registration.full_name,
    Registration.kit_number,
    Registration.whatsapp_number,
    Registration.car_number_plate,
)

CLOSED_MESSAGE = "Registration is currently closed. The registration period has ended."
NON_NUMERIC_MESSAGE = "Kit number must contain only numbers (0-9)"
SUCCESS_MESSAGE = "Registration successful! We look forward to seeing you at the Gala."


class RegistrationError(Exception):
    """Domain validation failure carrying the HTTP status it maps to."""

    def __init__(self, message: str, status_code: int = 400, reason: str = "invalid") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason


def duplicate_message(kit_number: str) -> str:
    return (
        f"Kit number {kit_number} has already been registered! "
        "Each kit number can only be registered once."
    )


@dataclass(slots=True)
class RegistrationPage:
    items: Sequence[Registration]
    total: int
    page: int
    pages: int


# --- registration window ---

def is_registration_open(db: Session) -> bool:
    """Missing setting means open; otherwise only the literal ``"true"`` is open."""

    value = load_setting(db, REGISTRATION_OPEN_KEY)
    if value is None:
        return True
    return value == "true"


def set_registration_open(db: Session, is_open: bool) -> None:
    save_setting(db, REGISTRATION_OPEN_KEY, "true" if is_open else "false")


# --- kit numbers ---

def find_by_kit_number(db: Session, kit_number: str) -> Registration | None:
    return db.execute(
        select(Registration).where(Registration.kit_number == kit_number)
    ).scalar_one_or_none()


def is_kit_available(db: Session, kit_number: str, *, exclude_id: int | None = None) -> bool:
    existing = find_by_kit_number(db, kit_number)
    if existing is None:
        return True
    return exclude_id is not None and existing.id == exclude_id


def clean_kit_number(value: Any) -> str:
    kit_number = normalize_kit_number(value)
    if not kit_number:
        raise RegistrationError("kit_number is required")
    if not is_valid_kit_number(kit_number):
        raise RegistrationError(NON_NUMERIC_MESSAGE)
    return kit_number


# --- validation ---

def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _clean_email(value: str) -> str:
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise RegistrationError(f"email is invalid: {exc}") from exc


def _clean_fields(values: dict[str, Any], fields: Sequence[str]) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for name in fields:
        if name in REQUIRED_FIELDS:
            text = _text(values.get(name))
            if not text:
                raise RegistrationError(f"{name} is required")
            cleaned[name] = text
        else:
            cleaned[name] = _text(values.get(name))

    if "kit_number" in cleaned:
        cleaned["kit_number"] = clean_kit_number(cleaned["kit_number"])
    if "email" in cleaned:
        cleaned["email"] = _clean_email(cleaned["email"])
    if "car_number_plate" in cleaned and not cleaned["car_number_plate"]:
        cleaned["car_number_plate"] = DEFAULT_CAR_NUMBER_PLATE
    return cleaned


def validate_new_registration(payload: RegistrationCreate) -> dict[str, str]:
    """Check required fields and normalise a public submission."""

    return _clean_fields(payload.model_dump(), REQUIRED_FIELDS + OPTIONAL_FIELDS)


def validate_registration_update(payload: RegistrationUpdate) -> dict[str, str]:
    """Like :func:`validate_new_registration` but only for fields present in the body."""

    supplied = payload.model_dump(exclude_unset=True)
    fields = [name for name in REQUIRED_FIELDS + OPTIONAL_FIELDS if name in supplied]
    return _clean_fields(supplied, fields)


# --- persistence ---

def create_registration(db: Session, payload: RegistrationCreate) -> Registration:
    if not is_registration_open(db):
        raise RegistrationError(CLOSED_MESSAGE, status_code=403, reason="closed")

    values = validate_new_registration(payload)
    kit_number = values["kit_number"]
    if not is_kit_available(db, kit_number):
        raise RegistrationError(duplicate_message(kit_number), reason="duplicate")

    registration = Registration(**values)
    db.add(registration)
    try:
        db.commit()
    except IntegrityError as exc:
        # lost a race with a concurrent submission for the same kit number
        db.rollback()
        logger.info("registration_duplicate_kit", extra={"kit_number": kit_number})
        raise RegistrationError(duplicate_message(kit_number), reason="duplicate") from exc
    db.refresh(registration)

    logger.info(
        "registration_created",
        extra={"registration_id": registration.id, "kit_number": kit_number},
    )
    return registration


def update_registration(
    db: Session,
    registration: Registration,
    payload: RegistrationUpdate,
) -> dict[str, tuple[str, str]]:
    """Apply an admin edit and return the changed fields as ``{name: (old, new)}``."""

    values = validate_registration_update(payload)
    kit_number = values.get("kit_number")
    if kit_number and not is_kit_available(db, kit_number, exclude_id=registration.id):
        raise RegistrationError(duplicate_message(kit_number), reason="duplicate")

    changes: dict[str, tuple[str, str]] = {}
    for name, value in values.items():
        current = getattr(registration, name)
        if current != value:
            changes[name] = (current, value)
            setattr(registration, name, value)

    if not changes:
        return changes

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise RegistrationError(duplicate_message(kit_number or registration.kit_number), reason="duplicate") from exc
    db.refresh(registration)
    return changes


def delete_registration(db: Session, registration: Registration) -> None:
    db.delete(registration)
    db.commit()


def all_registrations(db: Session) -> list[Registration]:
    return list(
        db.execute(
            select(Registration).order_by(Registration.created_at.desc(), Registration.id.desc())
        ).scalars()
    )


def list_registrations(
    db: Session,
    *,
    search: str = "",
    page: int | None = None,
    page_size: int = 20,
) -> RegistrationPage:
    """Newest-first registrations, optionally filtered and paginated.

    ``search`` is a case-insensitive substring match over name, kit number,
    WhatsApp number and car plate. Without ``page`` every match is returned.
    """

    query = select(Registration)
    term = (search or "").strip().lower()
    if term:
        # "%" and "_" in the term are matched literally
        query = query.where(
            or_(*(func.lower(column).contains(term, autoescape=True) for column in SEARCHABLE_COLUMNS))
        )

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
    query = query.order_by(Registration.created_at.desc(), Registration.id.desc())

    if page is None:
        items = db.execute(query).scalars().all()
        return RegistrationPage(items=items, total=total, page=1, pages=1 if total else 0)

    page_size = max(1, page_size)
    pages = math.ceil(total / page_size)
    page = max(1, page)
    items = db.execute(query.offset((page - 1) * page_size).limit(page_size)).scalars().all()
    return RegistrationPage(items=items, total=total, page=page, pages=pages)


__all__ = [
    "CLOSED_MESSAGE",
    "NON_NUMERIC_MESSAGE",
    "REQUIRED_FIELDS",
    "SUCCESS_MESSAGE",
    "RegistrationError",
    "RegistrationPage",
    "all_registrations",
    "clean_kit_number",
    "create_registration",
    "delete_registration",
    "duplicate_message",
    "find_by_kit_number",
    "is_kit_available",
    "is_registration_open",
    "list_registrations",
    "set_registration_open",
    "update_registration",
    "validate_new_registration",
    "validate_registration_update",
]
