"""Account Store Gateway.

Patients live in ``Users`` and practitioners in ``Doctors``. Both share one
shape, so every operation takes an :class:`AccountKind` and the same
validation and authentication code serves both tables.

Credentials are stored and compared as plaintext. The comparison sits behind
:class:`CredentialVerifier` so it can be swapped for a hashing verifier
without touching callers.
"""
from __future__ import annotations
import hmac
import logging
from typing import Protocol
from . import client
from .errors import AuthFailure, MissingField, NotFound
from .models import Account, AccountKind, EmailCheck, PractitionerSummary

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
_SECRET_FIELD = "password"


class CredentialVerifier(Protocol):
    def verify(self, supplied: str, stored: str | None) -> bool: ...


class PlaintextVerifier:
    """Byte-for-byte equality of the supplied and stored secrets."""

    def verify(self, supplied: str, stored: str | None) -> bool:
        if stored is None:
            return False
        return hmac.compare_digest(supplied.encode("utf-8"), stored.encode("utf-8"))


DEFAULT_VERIFIER: CredentialVerifier = PlaintextVerifier()


def _require(**fields: object) -> None:
    for name, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingField(f"Missing required field: {name}")


def _to_account(kind: AccountKind, row: dict) -> Account:
    data = {k: v for k, v in row.items() if k != _SECRET_FIELD}
    return Account(kind=kind, **data)


async def _register(kind: AccountKind, row: dict) -> dict:
    created = await client.insert_row(kind.table, row)
    logger.info("registered %s account id=%s", kind.value, created.get("id"))
    # The created row is echoed back verbatim, credential column included.
    return created


async def register_patient(name: str | None, email: str | None, phone: str | None, password: str | None) -> dict:
    """Insert a new patient. Email uniqueness is left to the store's constraint."""
    _require(name=name, email=email, password=password)
    return await _register(
        AccountKind.PATIENT,
        {"name": name, "email": email, "phone": phone, "password": password},
    )


async def register_practitioner(
    name: str | None,
    email: str | None,
    phone: str | None,
    specialisation: str | None,
    password: str | None,
) -> dict:
    _require(name=name, email=email, specialisation=specialisation, password=password)
    return await _register(
        AccountKind.PRACTITIONER,
        {"name": name, "email": email, "phone": phone, "specialisation": specialisation, "password": password},
    )


async def authenticate(
    kind: AccountKind,
    email: str | None,
    password: str | None,
    verifier: CredentialVerifier = DEFAULT_VERIFIER,
) -> Account:
    """Return the account for ``email`` in ``kind``'s table if ``password`` matches.

    An unknown email and a wrong password raise the same :class:`AuthFailure`.
    Store problems propagate as :class:`StoreError`.
    """
    if not email or password is None:
        raise AuthFailure(INVALID_CREDENTIALS)

    row = await client.select_one(kind.table, "*", {"email": email})
    if row is None or not verifier.verify(password, row.get(_SECRET_FIELD)):
        logger.info("authentication failed for %s account", kind.value)
        raise AuthFailure(INVALID_CREDENTIALS)
    return _to_account(kind, row)


async def lookup_email(email: str | None) -> EmailCheck:
    """Advisory signup pre-check; patients are searched before practitioners."""
    if not email:
        return EmailCheck(exists=False)
    for kind in (AccountKind.PATIENT, AccountKind.PRACTITIONER):
        if await client.select_one(kind.table, "id", {"email": email}) is not None:
            return EmailCheck(exists=True, type=kind)
    return EmailCheck(exists=False)


async def list_practitioners() -> list[PractitionerSummary]:
    rows = await client.select_rows(AccountKind.PRACTITIONER.table, "id,name,specialisation")
    logger.info("found %d practitioners", len(rows))
    return [PractitionerSummary(**row) for row in rows]


async def get_account(kind: AccountKind, account_id: int | str) -> Account:
    if account_id is None or str(account_id) == "":
        raise MissingField("Missing required field: id")
    row = await client.select_one(kind.table, "*", {"id": account_id})
    if row is None:
        raise NotFound(f"No {kind.value} with id {account_id}")
    return _to_account(kind, row)
