"""Calendar export for a single booking: an .ics file and Google/Outlook links."""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, urlencode
from .bookings import parse_appointment_time
from .models import AccountKind, Booking, CalendarLinks

EVENT_LENGTH = timedelta(hours=1)
REMINDER = "-PT15M"
PRODID = "-//Telehealth Companion//EN"
UID_DOMAIN = "telehealthcompanion.com"


def event_window(booking: Booking) -> tuple[datetime, datetime]:
    start = parse_appointment_time(booking.appointment_time).astimezone(timezone.utc)
    return start, start + EVENT_LENGTH


def _basic_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _title(booking: Booking) -> str:
    return f"{booking.test_type} Appointment"


def _counterpart(booking: Booking, viewer: AccountKind) -> str:
    if viewer is AccountKind.PRACTITIONER:
        name = booking.patient.name if booking.patient and booking.patient.name else "Patient"
        return f"Patient: {name}"
    name = booking.doctor.name if booking.doctor and booking.doctor.name else "Healthcare Provider"
    return f"Doctor: {name}"


def _description(booking: Booking, viewer: AccountKind) -> str:
    return f"{_counterpart(booking, viewer)}\nTest Type: {booking.test_type}\nAddress: {booking.address}"


def _escape(text: str) -> str:
    # RFC 5545 TEXT escaping
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _fold(line: str, limit: int = 75) -> str:
    """Fold a content line into chunks of at most ``limit`` octets (RFC 5545 3.1)."""
    chunks, current, size = [], "", 0
    for ch in line:
        width = len(ch.encode("utf-8"))
        # continuation lines start with a space, which counts toward the limit
        if size + width > (limit if not chunks else limit - 1):
            chunks.append(current)
            current, size = "", 0
        current += ch
        size += width
    chunks.append(current)
    return "\r\n ".join(chunks)


def build_ics(booking: Booking, viewer: AccountKind, now: datetime | None = None) -> str:
    """Render the booking as a one-event VCALENDAR with a 15 minute reminder."""
    start, end = event_window(booking)
    stamp = now or datetime.now(timezone.utc)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:appointment-{booking.id}@{UID_DOMAIN}",
        f"DTSTAMP:{_basic_utc(stamp)}",
        f"DTSTART:{_basic_utc(start)}",
        f"DTEND:{_basic_utc(end)}",
        f"SUMMARY:{_escape(_title(booking))}",
        f"DESCRIPTION:{_escape(_description(booking, viewer))}",
        f"LOCATION:{_escape(booking.address)}",
        "BEGIN:VALARM",
        f"TRIGGER:{REMINDER}",
        "ACTION:DISPLAY",
        "DESCRIPTION:Appointment reminder",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(_fold(line) for line in lines) + "\r\n"


def ics_filename(booking: Booking) -> str:
    return f"appointment-{booking.id}.ics"


def calendar_links(booking: Booking, viewer: AccountKind) -> CalendarLinks:
    start, end = event_window(booking)
    title = _title(booking)
    description = _description(booking, viewer)
    google = "https://calendar.google.com/calendar/render?" + urlencode(
        {
            "action": "TEMPLATE",
            "text": title,
            "dates": f"{_basic_utc(start)}/{_basic_utc(end)}",
            "details": description,
            "location": booking.address,
        },
        quote_via=quote,
    )
    outlook = "https://outlook.live.com/calendar/0/deeplink/compose?" + urlencode(
        {
            "subject": title,
            "startdt": start.isoformat(),
            "enddt": end.isoformat(),
            "body": description,
            "location": booking.address,
        },
        quote_via=quote,
    )
    return CalendarLinks(google=google, outlook=outlook)
