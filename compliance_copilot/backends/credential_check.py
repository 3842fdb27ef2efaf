# compliance_copilot/backends/credential_check.py

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

_log = logging.getLogger(__name__)

MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"


@dataclass(frozen=True)
class CredentialCheck:
    valid: bool
    error: Optional[str] = None


async def validate_credential(
    credential: Optional[str],
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 10.0,
) -> CredentialCheck:
    """
    Check a Gemini API key by listing the available models.

    The key is sent in the x-goog-api-key header, never in the URL.
    """
    if not credential or not credential.strip():
        return CredentialCheck(valid=False, error="API key is missing.")

    headers = {"x-goog-api-key": credential.strip()}
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.get(MODELS_URL, headers=headers, params={"pageSize": 1})
    except httpx.HTTPError as exc:
        _log.error("Credential check could not reach the model service: %s", type(exc).__name__)
        return CredentialCheck(valid=False, error=f"Could not reach the model service ({type(exc).__name__}).")
    finally:
        if owns_client:
            await http.aclose()

    if response.is_success:
        _log.info("API key accepted by the model service.")
        return CredentialCheck(valid=True)

    message = _error_message(response)
    _log.warning("API key rejected (HTTP %s).", response.status_code)
    return CredentialCheck(valid=False, error=message)


def _error_message(response: httpx.Response) -> str:
    fallback = "The provided API key is invalid or does not have the required permissions."
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return fallback
