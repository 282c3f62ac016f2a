from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from models import AppSetting, Registration
from schemas import RegistrationCreate, RegistrationUpdate
from services.registrations import (
    CLOSED_MESSAGE,
    NON_NUMERIC_MESSAGE,
    RegistrationError,
    create_registration,
    duplicate_message,
    is_kit_available,
    is_registration_open,
    list_registrations,
    set_registration_open,
    update_registration,
    validate_new_registration,
)

from . import factories


def test_registration_open_by_default(db_session):
    assert is_registration_open(db_session) is True


def test_registration_status_round_trip(db_session):
    set_registration_open(db_session, False)
    assert is_registration_open(db_session) is False
    assert db_session.get(AppSetting, "registration_open").value == "false"

    set_registration_open(db_session, True)
    assert is_registration_open(db_session) is True


def test_unexpected_status_value_means_closed(db_session):
    db_session.add(AppSetting(key="registration_open", value="yes"))
    db_session.commit()

    assert is_registration_open(db_session) is False


@pytest.mark.parametrize("field", ["full_name", "kit_number", "email", "house", "excited_for_gala"])
def test_required_fields(field):
    payload = RegistrationCreate(**factories.registration_payload(**{field: "   "}))

    with pytest.raises(RegistrationError) as excinfo:
        validate_new_registration(payload)

    assert excinfo.value.message == f"{field} is required"
    assert excinfo.value.status_code == 400


def test_missing_field_is_required():
    data = factories.registration_payload()
    del data["morale"]

    with pytest.raises(RegistrationError, match="morale is required"):
        validate_new_registration(RegistrationCreate(**data))


def test_validation_trims_and_fills_defaults():
    payload = RegistrationCreate(
        **factories.registration_payload(
            kit_number=" 860 ",
            full_name="  Ali Khan ",
            car_number_plate="  ",
        )
    )
    payload.postal_address = None

    values = validate_new_registration(payload)

    assert values["kit_number"] == "860"
    assert values["full_name"] == "Ali Khan"
    assert values["car_number_plate"] == "N/A"
    assert values["postal_address"] == ""


def test_numeric_kit_number_from_json_is_accepted():
    payload = RegistrationCreate(**factories.registration_payload(kit_number=1025))

    assert validate_new_registration(payload)["kit_number"] == "1025"


@pytest.mark.parametrize("kit_number", ["12a", "1 2", "-1", "١٢"])
def test_non_numeric_kit_number_rejected(kit_number):
    payload = RegistrationCreate(**factories.registration_payload(kit_number=kit_number))

    with pytest.raises(RegistrationError) as excinfo:
        validate_new_registration(payload)

    assert excinfo.value.message == NON_NUMERIC_MESSAGE


def test_invalid_email_rejected():
    payload = RegistrationCreate(**factories.registration_payload(email="not-an-email"))

    with pytest.raises(RegistrationError, match="email is invalid"):
        validate_new_registration(payload)


def test_create_registration_persists(db_session):
    payload = RegistrationCreate(**factories.registration_payload(kit_number="186"))

    registration = create_registration(db_session, payload)

    stored = db_session.execute(select(Registration)).scalar_one()
    assert stored.id == registration.id
    assert stored.kit_number == "186"
    assert stored.created_at is not None


def test_create_registration_rejects_duplicate_kit(db_session):
    factories.create_registration(db_session, kit_number="186")
    payload = RegistrationCreate(
        **factories.registration_payload(kit_number=" 186", email="second@example.com")
    )

    with pytest.raises(RegistrationError) as excinfo:
        create_registration(db_session, payload)

    assert excinfo.value.message == duplicate_message("186")
    assert excinfo.value.reason == "duplicate"


def test_create_registration_when_closed(db_session):
    factories.set_registration_open(db_session, False)
    payload = RegistrationCreate(**factories.registration_payload())

    with pytest.raises(RegistrationError) as excinfo:
        create_registration(db_session, payload)

    assert excinfo.value.status_code == 403
    assert excinfo.value.message == CLOSED_MESSAGE
    assert db_session.execute(select(Registration)).first() is None


def test_is_kit_available_excludes_own_row(db_session):
    registration = factories.create_registration(db_session, kit_number="45")

    assert is_kit_available(db_session, "45") is False
    assert is_kit_available(db_session, "45", exclude_id=registration.id) is True
    assert is_kit_available(db_session, "46") is True


def test_update_registration_changes_only_supplied_fields(db_session):
    registration = factories.create_registration(db_session, kit_number="45", house="Iqbal")

    changes = update_registration(
        db_session,
        registration,
        RegistrationUpdate(full_name=" Sara Ahmed ", kit_number="860"),
    )

    assert sorted(changes) == ["full_name", "kit_number"]
    db_session.refresh(registration)
    assert registration.full_name == "Sara Ahmed"
    assert registration.kit_number == "860"
    assert registration.house == "Iqbal"


def test_update_registration_rejects_taken_kit(db_session):
    factories.create_registration(db_session, kit_number="45")
    other = factories.create_registration(db_session, kit_number="46")

    with pytest.raises(RegistrationError, match="already been registered"):
        update_registration(db_session, other, RegistrationUpdate(kit_number="45"))


def test_update_registration_rejects_blank_required_field(db_session):
    registration = factories.create_registration(db_session)

    with pytest.raises(RegistrationError, match="email is required"):
        update_registration(db_session, registration, RegistrationUpdate(email=""))


def test_update_registration_noop(db_session):
    registration = factories.create_registration(db_session, kit_number="45")

    assert update_registration(db_session, registration, RegistrationUpdate(kit_number="45")) == {}


def test_list_registrations_newest_first_with_search_and_pages(db_session):
    base = datetime(2025, 1, 1, 12, 0, 0)
    for index in range(25):
        factories.create_registration(
            db_session,
            kit_number=str(100 + index),
            full_name=f"Member {index}",
            created_at=base + timedelta(minutes=index),
        )
    factories.create_registration(
        db_session,
        kit_number="999",
        full_name="Zara Qureshi",
        car_number_plate="ABC-999",
        created_at=base - timedelta(days=1),
    )

    everything = list_registrations(db_session)
    assert everything.total == 26
    assert everything.items[0].kit_number == "124"
    assert everything.items[-1].kit_number == "999"

    second_page = list_registrations(db_session, page=2, page_size=20)
    assert second_page.pages == 2
    assert len(second_page.items) == 6

    by_name = list_registrations(db_session, search="zARA")
    assert [reg.kit_number for reg in by_name.items] == ["999"]

    by_plate = list_registrations(db_session, search="abc-9")
    assert by_plate.total == 1

    by_kit = list_registrations(db_session, search="12")
    assert {reg.kit_number for reg in by_kit.items} >= {"112", "120", "124"}


def test_list_registrations_empty(db_session):
    result = list_registrations(db_session, page=1)

    assert result.total == 0
    assert result.pages == 0
    assert list(result.items) == []


@pytest.mark.parametrize("term", ["%", "1_3", "_"])
def test_list_registrations_search_treats_wildcards_literally(db_session, term):
    factories.create_registration(db_session, kit_number="123", full_name="Ali Khan")
    factories.create_registration(db_session, kit_number="456", full_name="Sara Ahmed")

    result = list_registrations(db_session, search=term)

    assert result.total == 0
    assert list(result.items) == []


def test_list_registrations_search_matches_literal_underscore(db_session):
    factories.create_registration(db_session, kit_number="123", car_number_plate="LEA_77")
    factories.create_registration(db_session, kit_number="456", car_number_plate="LEAX77")

    result = list_registrations(db_session, search="a_7")

    assert [reg.kit_number for reg in result.items] == ["123"]
