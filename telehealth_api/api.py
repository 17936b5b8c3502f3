import logging
import os
from typing import Optional
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from . import accounts, bookings
from .calendar_export import build_ics, calendar_links, ics_filename
from .errors import Forbidden, SessionError, StoreError, TelehealthError
from .logging_config import setup_logging
from .models import (
    AccountKind,
    Booking,
    BookingRequest,
    CalendarLinks,
    EmailCheck,
    EmailCheckRequest,
    LoginRequest,
    PatientSignupRequest,
    PractitionerSignupRequest,
    PractitionerSummary,
    SessionClaims,
)
from .recaptcha import require_recaptcha
from .session import decode_session, issue_session, require_identity

setup_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

API_PREFIX = "/api"
# Unprefixed paths the old frontend still calls; redirected to API_PREFIX.
LEGACY_SEGMENTS = {"users", "doctors", "bookings", "check-email", "test-types"}
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:5173,https://telehealthcompanionlive.vercel.app"
).split(",")

# HTTPBearer scheme so Swagger-UI can attach the session token
auth_scheme = HTTPBearer(auto_error=False)

app = FastAPI(title="Telehealth Booking Service")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in CORS_ORIGINS if origin.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
router = APIRouter(prefix=API_PREFIX)


@app.exception_handler(TelehealthError)
async def telehealth_error_handler(request: Request, exc: TelehealthError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s malformed request: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Malformed request body"})


def current_session(credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)) -> SessionClaims:
    """Decode the Bearer session token issued at login."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise SessionError("Missing session token")
    return decode_session(credentials.credentials)


# Accounts -------------------------------------------------------------------

@router.post("/users/signup")
async def patient_signup(req: PatientSignupRequest):
    await require_recaptcha(req.recaptcha_token)
    return await accounts.register_patient(req.name, req.email, req.phone, req.password)


@router.post("/doctors/signup")
async def practitioner_signup(req: PractitionerSignupRequest):
    await require_recaptcha(req.recaptcha_token)
    return await accounts.register_practitioner(
        req.name, req.email, req.phone, req.specialisation, req.password
    )


async def _login(kind: AccountKind, req: LoginRequest) -> dict:
    await require_recaptcha(req.recaptcha_token)
    try:
        account = await accounts.authenticate(kind, req.email, req.password)
    except StoreError as exc:
        logger.error("%s login error: %s", kind.value, exc.message)
        raise StoreError("Server error") from exc
    return {**account.public(), "token": issue_session(account)}


@router.post("/users/login")
async def patient_login(req: LoginRequest):
    return await _login(AccountKind.PATIENT, req)


@router.post("/doctors/login")
async def practitioner_login(req: LoginRequest):
    return await _login(AccountKind.PRACTITIONER, req)


@router.post("/check-email", response_model=EmailCheck, response_model_exclude_none=True)
async def check_email(req: EmailCheckRequest):
    """Advisory: tells the signup form whether an email is already taken."""
    try:
        return await accounts.lookup_email(req.email)
    except StoreError as exc:
        raise StoreError("Server error checking email") from exc


@router.get("/doctors", response_model=list[PractitionerSummary])
async def list_doctors():
    return await accounts.list_practitioners()


@router.get("/doctors/{doctor_id}")
async def get_doctor(doctor_id: str):
    account = await accounts.get_account(AccountKind.PRACTITIONER, doctor_id)
    return account.public()


@router.get("/users/{user_id}")
async def get_user(user_id: str, session: SessionClaims = Depends(current_session)):
    require_identity(session, AccountKind.PATIENT, user_id)
    account = await accounts.get_account(AccountKind.PATIENT, user_id)
    return account.public()


# Bookings -------------------------------------------------------------------

@router.get("/test-types", response_model=list[str])
async def test_types():
    return bookings.list_service_categories()


async def _checked_booking_request(req: BookingRequest, session: SessionClaims) -> None:
    await require_recaptcha(req.recaptcha_token)
    bookings.validate_booking(req.user_id, req.address, req.test_type, req.appointment_time)
    require_identity(session, AccountKind.PATIENT, req.user_id)


@router.post("/bookings", status_code=201, response_model=Booking, response_model_exclude_unset=True)
async def create_booking(req: BookingRequest, session: SessionClaims = Depends(current_session)):
    await _checked_booking_request(req, session)
    return await bookings.create_booking(
        req.user_id, req.doctor_id, req.address, req.test_type, req.appointment_time
    )


@router.post("/bookings/strict", status_code=201, response_model=Booking, response_model_exclude_unset=True)
async def create_booking_strict(req: BookingRequest, session: SessionClaims = Depends(current_session)):
    """Create a booking only if the referenced patient and doctor exist."""
    await _checked_booking_request(req, session)
    return await bookings.create_booking_strict(
        req.user_id, req.doctor_id, req.address, req.test_type, req.appointment_time
    )


@router.get("/bookings/user/{user_id}", response_model=list[Booking], response_model_exclude_unset=True)
async def patient_bookings(user_id: str, session: SessionClaims = Depends(current_session)):
    require_identity(session, AccountKind.PATIENT, user_id)
    return await bookings.list_bookings_for_patient(user_id)


@router.get("/bookings/doctor/{doctor_id}", response_model=list[Booking], response_model_exclude_unset=True)
async def practitioner_bookings(doctor_id: str, session: SessionClaims = Depends(current_session)):
    require_identity(session, AccountKind.PRACTITIONER, doctor_id)
    return await bookings.list_bookings_for_practitioner(doctor_id)


async def _viewable_booking(booking_id: str, session: SessionClaims) -> Booking:
    booking = await bookings.get_booking(booking_id)
    owner = booking.user_id if session.kind is AccountKind.PATIENT else booking.doctor_id
    if owner is None or str(owner) != session.sub:
        raise Forbidden("Session does not grant access to this resource")
    return booking


@router.get("/bookings/{booking_id}/calendar.ics")
async def booking_ics(booking_id: str, session: SessionClaims = Depends(current_session)):
    booking = await _viewable_booking(booking_id, session)
    return Response(
        content=build_ics(booking, session.kind),
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="{ics_filename(booking)}"'},
    )


@router.get("/bookings/{booking_id}/calendar-links", response_model=CalendarLinks)
async def booking_calendar_links(booking_id: str, session: SessionClaims = Depends(current_session)):
    booking = await _viewable_booking(booking_id, session)
    return calendar_links(booking, session.kind)


app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}


async def legacy_alias(request: Request):
    """Redirect the old unprefixed routes to their /api equivalents."""
    target = request.url.replace(path=f"{API_PREFIX}{request.url.path}")
    return RedirectResponse(str(target), status_code=307)


for _segment in sorted(LEGACY_SEGMENTS):
    app.add_api_route(f"/{_segment}", legacy_alias, methods=["GET", "POST"], include_in_schema=False)
    app.add_api_route(f"/{_segment}/{{rest:path}}", legacy_alias, methods=["GET", "POST"], include_in_schema=False)
