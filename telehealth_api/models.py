from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

SERVICE_CATEGORIES = (
    "Urine",
    "Blood",
    "Blood pressure",
    "Vaccination",
    "General consultation",
    "General checkup",
)


class AccountKind(str, Enum):
    PATIENT = "patient"
    PRACTITIONER = "doctor"

    @property
    def table(self) -> str:
        return "Users" if self is AccountKind.PATIENT else "Doctors"


class Account(BaseModel):
    """A patient or practitioner row, without its credential."""
    id: Union[int, str]
    kind: AccountKind
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    specialisation: Optional[str] = None  # practitioners only
    created_at: Optional[str] = None

    def public(self) -> dict:
        exclude = {"kind"} if self.kind is AccountKind.PRACTITIONER else {"kind", "specialisation"}
        return self.model_dump(mode="json", exclude=exclude)


class PractitionerSummary(BaseModel):
    id: Union[int, str]
    name: Optional[str] = None
    specialisation: Optional[str] = None


class PatientSummary(BaseModel):
    id: Union[int, str]
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class EmailCheck(BaseModel):
    exists: bool
    type: Optional[AccountKind] = None


class Booking(BaseModel):
    id: Union[int, str]
    user_id: Union[int, str]
    doctor_id: Optional[Union[int, str]] = None
    address: str
    test_type: str
    appointment_time: str  # as stored, never re-formatted
    created_at: Optional[str] = None
    doctor: Optional[PractitionerSummary] = Field(None, alias="Doctors")
    patient: Optional[PatientSummary] = Field(None, alias="Users")

    model_config = {
        "populate_by_name": True
    }


# Request bodies. Fields are optional so that absent values reach the
# service validation and come back as 400 {error} instead of a 422.

class PatientSignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    recaptcha_token: Optional[str] = Field(None, alias="recaptchaToken")

    model_config = {
        "populate_by_name": True
    }


class PractitionerSignupRequest(PatientSignupRequest):
    specialisation: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    recaptcha_token: Optional[str] = Field(None, alias="recaptchaToken")

    model_config = {
        "populate_by_name": True
    }


class EmailCheckRequest(BaseModel):
    email: Optional[str] = None


class BookingRequest(BaseModel):
    user_id: Optional[Union[int, str]] = None
    doctor_id: Optional[Union[int, str]] = None
    address: Optional[str] = None
    test_type: Optional[str] = None
    appointment_time: Optional[str] = None
    recaptcha_token: Optional[str] = Field(None, alias="recaptchaToken")

    model_config = {
        "populate_by_name": True
    }


class CalendarLinks(BaseModel):
    google: str
    outlook: str


class SessionClaims(BaseModel):
    sub: str
    kind: AccountKind
    name: Optional[str] = None
