import logging
from typing import Optional

import httpx

from session_auth import config

logger = logging.getLogger("session_auth.captcha")


class CaptchaServiceError(Exception):
    """The verification service could not be reached or answered badly."""


def captcha_enabled() -> bool:
    return bool(config.RECAPTCHA_SECRET_KEY)


async def verify_recaptcha(token: str, client: Optional[httpx.AsyncClient] = None) -> bool:
    """
    Checks a reCAPTCHA response token against Google's siteverify endpoint.
    Returns True only when the service reports success.
    Raises CaptchaServiceError on transport or HTTP errors.
    """
    data = {"secret": config.RECAPTCHA_SECRET_KEY, "response": token}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=config.RECAPTCHA_TIMEOUT) as own_client:
                response = await own_client.post(config.RECAPTCHA_VERIFY_URL, data=data)
        else:
            response = await client.post(config.RECAPTCHA_VERIFY_URL, data=data)
        response.raise_for_status()
        result = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"reCAPTCHA verification error: {e}")
        raise CaptchaServiceError(str(e)) from e

    if result.get("success") is not True:
        logger.info(f"reCAPTCHA rejected token: {result.get('error-codes', [])}")
        return False
    return True
