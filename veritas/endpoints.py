# veritas/endpoints.py
import logging
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .failures import Failure

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_GEMINI_URL = f"{GEMINI_BASE_URL}/gemini-2.5-flash:generateContent"
DEFAULT_PRIMARY_GEMINI_URL = f"{GEMINI_BASE_URL}/gemini-3.0-flash:generateContent"

# Substrings (lowercase) that mark a failure as quota / rate-limit exhaustion.
QUOTA_ERROR_MARKERS: Tuple[str, ...] = (
    "quota",
    "rate limit",
    "resource has been exhausted",
    "exceeded",
)


class EndpointConfig(BaseModel):
    """Ordered model endpoints plus credentials. Built once at startup, never mutated."""
    model_config = ConfigDict(frozen=True)

    primary_urls: Tuple[str, ...] = ()
    secondary_urls: Tuple[str, ...] = ()
    primary_default_url: Optional[str] = DEFAULT_PRIMARY_GEMINI_URL
    default_url: str = DEFAULT_GEMINI_URL
    api_key: str = Field(default="", repr=False)
    request_timeout: float = Field(default=30.0, gt=0, description="Per-call timeout in seconds.")

    def resolved_primary_urls(self) -> Tuple[str, ...]:
        if self.primary_urls:
            return self.primary_urls
        return (self.primary_default_url or self.default_url,)

    def resolved_secondary_urls(self) -> Tuple[str, ...]:
        if self.secondary_urls:
            return self.secondary_urls
        return (self.default_url,)


def is_quota_error(failure: Optional[Failure]) -> bool:
    """True when a failure looks like quota or rate-limit exhaustion (message markers or HTTP 429)."""
    if failure is None:
        return False
    if failure.status == 429:
        return True
    message = (failure.message or "").lower()
    return any(marker in message for marker in QUOTA_ERROR_MARKERS)
