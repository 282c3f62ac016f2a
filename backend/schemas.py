from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegistrationCreate(BaseModel):
    """Raw public form payload.

    Every field is optional at the schema level so that missing or blank
    values are reported as ``"<field> is required"`` by the registration
    service instead of a generic 422.
    """

    full_name: str | None = None
    kit_number: str | int | None = None
    email: str | None = None
    whatsapp_number: str | None = None
    car_number_plate: str | None = None
    house: str | None = None
    profession: str | None = None
    postal_address: str | None = None
    attend_gala: str | None = None
    morale: str | None = None
    excited_for_gala: str | None = None
    photo_url: str | None = None


class RegistrationUpdate(RegistrationCreate):
    """Admin edit payload; only the supplied fields are changed."""


class RegistrationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    kit_number: str
    email: str
    whatsapp_number: str
    car_number_plate: str
    house: str
    profession: str
    postal_address: str
    attend_gala: str
    morale: str
    excited_for_gala: str
    photo_url: str
    created_at: datetime
    updated_at: datetime | None = None


class KitCheckRequest(BaseModel):
    kit_number: str | int | None = None


class AdminLogin(BaseModel):
    password: str = ""


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field("", alias="currentPassword")
    new_password: str = Field("", alias="newPassword")


class RegistrationStatusUpdate(BaseModel):
    # Left untyped so that "true"/1 are rejected explicitly instead of coerced.
    is_open: object = Field(None, alias="isOpen")


class PhotoUploadRequest(BaseModel):
    filename: str
    content_type: str = Field(..., alias="contentType")

    model_config = ConfigDict(populate_by_name=True)
