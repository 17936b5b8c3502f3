"""Booking Service.

Bookings are inserted once and never changed. Listings embed the
counterpart account (``Doctors`` for a patient, ``Users`` for a
practitioner) and are ordered by appointment time, then id.

No slot-conflict or double-booking check is made: two callers may book the
same practitioner at the same time and both succeed.
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from . import client
from .errors import InvalidCategory, MissingField, NotFound
from .models import SERVICE_CATEGORIES, AccountKind, Booking

logger = logging.getLogger(__name__)

BOOKINGS_TABLE = "Bookings"
_PRACTITIONER_EMBED = "Doctors:doctor_id(id,name,specialisation)"
_PATIENT_EMBED = "Users:user_id(id,name,email,phone)"
_ORDER = ["appointment_time.asc", "id.asc"]


def list_service_categories() -> list[str]:
    return list(SERVICE_CATEGORIES)


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_appointment_time(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are read as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_booking(user_id, address, test_type, appointment_time) -> None:
    """Check booking inputs in a fixed order, raising on the first problem."""
    if _blank(user_id):
        raise MissingField("Missing required fields: user_id")
    if _blank(address):
        raise MissingField("Missing required fields: address")
    if _blank(test_type):
        raise MissingField("Missing required fields: test_type")
    if test_type not in SERVICE_CATEGORIES:
        raise InvalidCategory(f"Invalid test type: {test_type}")
    if _blank(appointment_time):
        raise MissingField("Missing required fields: appointment_time")
    try:
        parse_appointment_time(str(appointment_time))
    except ValueError:
        raise MissingField(f"Invalid appointment time: {appointment_time}") from None


async def _insert(user_id, doctor_id, address, test_type, appointment_time) -> Booking:
    row = await client.insert_row(
        BOOKINGS_TABLE,
        {
            "user_id": user_id,
            "doctor_id": None if _blank(doctor_id) else doctor_id,
            "address": address,
            "test_type": test_type,
            "appointment_time": appointment_time,
        },
    )
    booking = Booking(**row)
    logger.info("booking %s created for patient %s", booking.id, booking.user_id)
    return booking


async def create_booking(user_id, doctor_id, address, test_type, appointment_time) -> Booking:
    """Validate and insert a booking.

    ``doctor_id`` may be empty ("no preference"); when given it is stored
    without checking that the practitioner exists.
    """
    validate_booking(user_id, address, test_type, appointment_time)
    return await _insert(user_id, doctor_id, address, test_type, appointment_time)


async def create_booking_strict(user_id, doctor_id, address, test_type, appointment_time) -> Booking:
    """Like :func:`create_booking` but both account references must exist."""
    validate_booking(user_id, address, test_type, appointment_time)
    if await client.select_one(AccountKind.PATIENT.table, "id", {"id": user_id}) is None:
        raise NotFound(f"No patient with id {user_id}")
    if not _blank(doctor_id):
        if await client.select_one(AccountKind.PRACTITIONER.table, "id", {"id": doctor_id}) is None:
            raise NotFound(f"No doctor with id {doctor_id}")
    return await _insert(user_id, doctor_id, address, test_type, appointment_time)


def _sort_key(booking: Booking):
    try:
        when = parse_appointment_time(booking.appointment_time)
    except ValueError:
        when = datetime.max.replace(tzinfo=timezone.utc)
    booking_id = booking.id
    return (when, isinstance(booking_id, str), booking_id if isinstance(booking_id, int) else str(booking_id))


async def _list(embed: str, filters: dict) -> list[Booking]:
    rows = await client.select_rows(BOOKINGS_TABLE, f"*,{embed}", filters, order=_ORDER)
    return sorted((Booking(**row) for row in rows), key=_sort_key)


async def list_bookings_for_patient(user_id) -> list[Booking]:
    if _blank(user_id):
        raise MissingField("Missing required field: user_id")
    bookings = await _list(_PRACTITIONER_EMBED, {"user_id": user_id})
    logger.info("found %d bookings for patient %s", len(bookings), user_id)
    return bookings


async def list_bookings_for_practitioner(doctor_id) -> list[Booking]:
    if _blank(doctor_id):
        raise MissingField("Missing required field: doctor_id")
    bookings = await _list(_PATIENT_EMBED, {"doctor_id": doctor_id})
    logger.info("found %d bookings for doctor %s", len(bookings), doctor_id)
    return bookings


async def get_booking(booking_id) -> Booking:
    """Fetch one booking with both counterpart accounts embedded."""
    row = await client.select_one(
        BOOKINGS_TABLE, f"*,{_PRACTITIONER_EMBED},{_PATIENT_EMBED}", {"id": booking_id}
    )
    if row is None:
        raise NotFound(f"No booking with id {booking_id}")
    return Booking(**row)
