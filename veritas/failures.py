# veritas/failures.py
"""
Failure values returned by the transport, failover and parsing layers.

Pipeline stages return either their result or a ``Failure`` instead of raising,
so callers can branch on ``failure.kind`` (and the quota rule in
``endpoints.is_quota_error``) without inspecting exception types.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"
    CONTENT_BLOCKED = "content_blocked"
    EMPTY_RESPONSE = "empty_response"
    ABNORMAL_STOP = "abnormal_stop"
    NO_CONTENT = "no_content"
    NO_CONTENT_PARTS = "no_content_parts"
    NO_TEXT_CONTENT = "no_text_content"
    EMPTY_TEXT = "empty_text"
    PARSE_FAILURE = "parse_failure"
    VALIDATION_FAILURE = "validation_failure"
    ALL_ENDPOINTS_FAILED = "all_endpoints_failed"
    TEXT_TOO_SHORT = "text_too_short"
    TEXT_TOO_LONG = "text_too_long"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    status: Optional[int] = None
    categories: Tuple[str, ...] = field(default_factory=tuple)
    missing_field: Optional[str] = None

    def __str__(self) -> str:
        return self.message
