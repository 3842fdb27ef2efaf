# compliance_copilot/boot/env_vars.py

import os
import logging
from typing import Optional

_log = logging.getLogger(__name__)

API_KEY_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY")


class EnvConfig:
    """
    Environment variable accessor.

    - Reads the Gemini API key from GOOGLE_API_KEY (or GEMINI_API_KEY).
    - A missing key is logged, not fatal: the session reports it on first use.
    """

    def __init__(self) -> None:
        api_key: Optional[str] = None
        for var in API_KEY_VARS:
            value = os.getenv(var)
            if value:
                api_key = value.strip()
                _log.info("API key detected in %s.", var)
                break
        if not api_key:
            _log.warning("No API key found in %s.", " / ".join(API_KEY_VARS))
        self.google_api_key: Optional[str] = api_key
