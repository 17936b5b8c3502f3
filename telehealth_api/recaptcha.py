"""reCAPTCHA verification for signup, login and booking requests."""
from __future__ import annotations
import logging
import os
import httpx
from dotenv import load_dotenv
from .errors import VerificationFailure

load_dotenv()

_SECRET_KEY = os.getenv("RECAPTCHA_SECRET_KEY")
_VERIFY_URL = os.getenv("RECAPTCHA_VERIFY_URL", "https://www.google.com/recaptcha/api/siteverify")

FAILURE_MESSAGE = "reCAPTCHA verification failed. Please try again."

logger = logging.getLogger(__name__)


async def verify_recaptcha(token: str | None) -> bool:
    """Return True only when the verification service accepts ``token``."""
    if not token:
        logger.info("no reCAPTCHA token provided")
        return False
    if not _SECRET_KEY:
        logger.error("RECAPTCHA_SECRET_KEY is not configured")
        return False

    try:
        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.post(_VERIFY_URL, data={"secret": _SECRET_KEY, "response": token})
            resp.raise_for_status()
            result = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("reCAPTCHA verification error: %s", exc)
        return False

    success = bool(result.get("success")) if isinstance(result, dict) else False
    if not success:
        logger.info("reCAPTCHA rejected token: %s", result.get("error-codes") if isinstance(result, dict) else result)
    return success


async def require_recaptcha(token: str | None) -> None:
    if not await verify_recaptcha(token):
        raise VerificationFailure(FAILURE_MESSAGE)
