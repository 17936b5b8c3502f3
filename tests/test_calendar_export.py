from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

from telehealth_api.calendar_export import build_ics, calendar_links, ics_filename
from telehealth_api.models import AccountKind, Booking

BOOKING = Booking(
    id=12,
    user_id=1,
    doctor_id=9,
    address="12 Main St, Springfield",
    test_type="Blood pressure",
    appointment_time="2025-01-02T09:00:00Z",
    Doctors={"id": 9, "name": "Grey", "specialisation": "Cardiology"},
    Users={"id": 1, "name": "Alice", "email": "alice@x.com", "phone": "555-1111"},
)


def test_ics_event_fields():
    ics = build_ics(BOOKING, AccountKind.PATIENT, now=datetime(2024, 12, 1, tzinfo=timezone.utc))
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert "PRODID:-//Telehealth Companion//EN" in lines
    assert "UID:appointment-12@telehealthcompanion.com" in lines
    assert "DTSTAMP:20241201T000000Z" in lines
    assert "DTSTART:20250102T090000Z" in lines
    assert "DTEND:20250102T100000Z" in lines
    assert "SUMMARY:Blood pressure Appointment" in lines
    assert "LOCATION:12 Main St\\, Springfield" in lines
    assert "TRIGGER:-PT15M" in lines
    assert ics.endswith("END:VCALENDAR\r\n")


def test_ics_description_names_counterpart():
    patient_view = build_ics(BOOKING, AccountKind.PATIENT)
    doctor_view = build_ics(BOOKING, AccountKind.PRACTITIONER)

    assert "DESCRIPTION:Doctor: Grey\\nTest Type: Blood pressure" in patient_view
    assert "DESCRIPTION:Patient: Alice\\nTest Type: Blood pressure" in doctor_view


def test_no_preference_booking_uses_generic_provider():
    booking = BOOKING.model_copy(update={"doctor": None, "doctor_id": None})
    assert "Doctor: Healthcare Provider" in build_ics(booking, AccountKind.PATIENT)


def test_offset_times_are_converted_to_utc():
    booking = BOOKING.model_copy(update={"appointment_time": "2025-01-02T09:00:00+05:30"})
    assert "DTSTART:20250102T033000Z" in build_ics(booking, AccountKind.PATIENT)


def test_calendar_links():
    links = calendar_links(BOOKING, AccountKind.PATIENT)

    google = urlsplit(links.google)
    assert google.netloc == "calendar.google.com"
    query = parse_qs(google.query)
    assert query["action"] == ["TEMPLATE"]
    assert query["text"] == ["Blood pressure Appointment"]
    assert query["dates"] == ["20250102T090000Z/20250102T100000Z"]
    assert query["location"] == ["12 Main St, Springfield"]

    outlook = parse_qs(urlsplit(links.outlook).query)
    assert outlook["startdt"] == ["2025-01-02T09:00:00+00:00"]
    assert outlook["enddt"] == ["2025-01-02T10:00:00+00:00"]
    assert outlook["body"][0].startswith("Doctor: Grey")


def test_ics_filename():
    assert ics_filename(BOOKING) == "appointment-12.ics"


def test_long_lines_are_folded_at_75_octets():
    address = "Flat 4B, Rosewood Court, 1200 Long Avenue Extension, Südstadt Medical Quarter, Springfield"
    booking = BOOKING.model_copy(update={"address": address})
    ics = build_ics(booking, AccountKind.PATIENT)

    physical = ics.split("\r\n")
    assert all(len(line.encode("utf-8")) <= 75 for line in physical)
    assert any(line.startswith(" ") for line in physical)

    unfolded = ics.replace("\r\n ", "").split("\r\n")
    assert "LOCATION:Flat 4B\\, Rosewood Court\\, 1200 Long Avenue Extension\\, Südstadt Medical Quarter\\, Springfield" in unfolded
