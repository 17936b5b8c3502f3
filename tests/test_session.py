from datetime import timedelta

import pytest

from telehealth_api.errors import Forbidden, SessionError
from telehealth_api.models import Account, AccountKind
from telehealth_api.session import decode_session, issue_session, require_identity

ALICE = Account(id=1, kind=AccountKind.PATIENT, name="Alice", email="alice@x.com")


def test_issued_session_round_trips():
    claims = decode_session(issue_session(ALICE))
    assert claims.sub == "1"
    assert claims.kind is AccountKind.PATIENT
    assert claims.name == "Alice"


def test_expired_session_is_rejected():
    token = issue_session(ALICE, expires_delta=timedelta(seconds=-5))
    with pytest.raises(SessionError):
        decode_session(token)


def test_tampered_session_is_rejected():
    token = issue_session(ALICE)
    header, payload, signature = token.split(".")
    forged = ".".join([header, payload, signature[::-1]])
    with pytest.raises(SessionError):
        decode_session(forged)


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_missing_or_garbage_session(token):
    with pytest.raises(SessionError):
        decode_session(token)


def test_require_identity():
    claims = decode_session(issue_session(ALICE))
    require_identity(claims, AccountKind.PATIENT, 1)
    with pytest.raises(Forbidden):
        require_identity(claims, AccountKind.PATIENT, 2)
    with pytest.raises(Forbidden):
        require_identity(claims, AccountKind.PRACTITIONER, 1)


def test_zero_lifetime_is_honoured():
    from jose import jwt

    claims = jwt.get_unverified_claims(issue_session(ALICE, expires_delta=timedelta(0)))
    assert claims["exp"] == claims["iat"]
