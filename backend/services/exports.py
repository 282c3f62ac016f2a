from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Iterable, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from models import Registration

EXPORT_COLUMNS: Sequence[tuple[str, str]] = (
    ("Full Name", "full_name"),
    ("Kit Number", "kit_number"),
    ("Email", "email"),
    ("WhatsApp Number", "whatsapp_number"),
    ("Car Number Plate", "car_number_plate"),
    ("House", "house"),
    ("Profession", "profession"),
    ("Postal Address", "postal_address"),
    ("Attending Gala", "attend_gala"),
    ("Morale", "morale"),
    ("Excited for Gala", "excited_for_gala"),
    ("Photo URL", "photo_url"),
    ("Registered On", "created_at"),
)

# Excel only detects UTF-8 CSV files when they start with a byte order mark.
_UTF8_BOM = "\ufeff"


def _format_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)


def _rows(registrations: Iterable[Registration]) -> Iterable[list[str]]:
    for registration in registrations:
        yield [_format_value(getattr(registration, attr, "")) for _, attr in EXPORT_COLUMNS]


def export_filename(prefix: str, extension: str, *, today: datetime | None = None) -> str:
    stamp = (today or datetime.utcnow()).strftime("%Y-%m-%d")
    return f"{prefix}-{stamp}.{extension}"


def export_registrations_csv(registrations: Iterable[Registration]) -> bytes:
    output = io.StringIO()
    output.write(_UTF8_BOM)
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in EXPORT_COLUMNS])
    writer.writerows(_rows(registrations))
    return output.getvalue().encode("utf-8")


def export_registrations_xlsx(registrations: Iterable[Registration]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Registrations"

    headers = [header for header, _ in EXPORT_COLUMNS]
    ws.append(headers)
    for row in _rows(registrations):
        ws.append(row)

    ws.freeze_panes = "A2"
    for index, header in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(index)].width = max(12, len(header) + 2)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


__all__ = [
    "EXPORT_COLUMNS",
    "export_filename",
    "export_registrations_csv",
    "export_registrations_xlsx",
]
