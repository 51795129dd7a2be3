# veritas/gemini_utils.py

import logging
import time
from typing import Any, Dict, List, Union

import httpx

from .failures import Failure, FailureKind
from .settings import AnalyzerSettings

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
# Only high-probability harm is blocked
SAFETY_THRESHOLD = "BLOCK_ONLY_HIGH"
BLOCKING_FINISH_REASONS = ("SAFETY", "RECITATION")


def create_http_client(settings: AnalyzerSettings) -> httpx.AsyncClient:
    """Shared client for all Gemini calls; per-request timeouts are passed on each call."""
    return httpx.AsyncClient(
        headers={"Content-Type": "application/json"},
        timeout=settings.endpoints.request_timeout + 10, # Client timeout slightly higher than request timeout
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )


def build_request_body(prompt: str, max_output_tokens: int, settings: AnalyzerSettings) -> Dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": settings.temperature,
            "topK": settings.top_k,
            "topP": settings.top_p,
            "maxOutputTokens": max_output_tokens,
        },
        "safetySettings": [
            {"category": category, "threshold": SAFETY_THRESHOLD} for category in SAFETY_CATEGORIES
        ],
    }


def _blocked_categories(candidate: Dict[str, Any]) -> List[str]:
    ratings = candidate.get("safetyRatings") or []
    if not isinstance(ratings, list):
        return []
    return [str(r.get("category", "UNKNOWN")) for r in ratings if isinstance(r, dict) and r.get("blocked")]


def _blocked_failure(categories: List[str], reason: str) -> Failure:
    detail = f" Blocked categories: {', '.join(categories)}." if categories else ""
    return Failure(
        FailureKind.CONTENT_BLOCKED,
        f"API blocked the response due to {reason}.{detail} The content may have triggered safety filters.",
        categories=tuple(categories),
    )


def extract_response_text(data: Any) -> Union[str, Failure]:
    """
    Validates a generateContent response envelope and returns its text.

    Checks run in a fixed order so that safety blocks are reported as such
    rather than as a generic missing-field error.
    """
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not isinstance(candidates, list) or len(candidates) == 0:
        feedback = data.get("promptFeedback") if isinstance(data, dict) else None
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            return Failure(
                FailureKind.CONTENT_BLOCKED,
                f"API blocked the request: {block_reason}. The content may have triggered safety filters.",
            )
        logger.warning(f"Gemini response has no candidates. Keys: {list(data.keys()) if isinstance(data, dict) else type(data).__name__}")
        return Failure(FailureKind.EMPTY_RESPONSE, "Invalid response format from API: No candidates found")

    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    finish_reason = candidate.get("finishReason")
    blocked = _blocked_categories(candidate)

    if finish_reason in BLOCKING_FINISH_REASONS:
        return _blocked_failure(blocked, finish_reason)
    if blocked:
        return _blocked_failure(blocked, "safety ratings")
    if finish_reason == "OTHER":
        return Failure(FailureKind.ABNORMAL_STOP, "API returned an error finish reason. Please try again or adjust your content.")
    # MAX_TOKENS and STOP are fine; truncated JSON is repaired by the parser

    content = candidate.get("content")
    if not isinstance(content, dict):
        logger.warning(f"Candidate has no content. finishReason={finish_reason}, keys={list(candidate.keys())}")
        return Failure(FailureKind.NO_CONTENT, "Invalid response format from API: No content found in candidate")

    parts = content.get("parts")
    if not isinstance(parts, list) or len(parts) == 0:
        if blocked:
            return _blocked_failure(blocked, "safety ratings")
        return Failure(FailureKind.NO_CONTENT_PARTS, "Invalid response format from API: No content parts found")

    text_part = next(
        (part for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"]),
        None,
    )
    if text_part is None:
        return Failure(FailureKind.NO_TEXT_CONTENT, "Invalid response format from API: No text content found in parts")

    text = text_part["text"].strip()
    if not text:
        return Failure(FailureKind.EMPTY_TEXT, "Invalid response format from API: Text content is empty")
    return text


def _http_error_failure(response: httpx.Response) -> Failure:
    status = response.status_code
    upstream_message = ""
    try:
        error_details = response.json()
        if isinstance(error_details, dict) and isinstance(error_details.get("error"), dict):
            upstream_message = str(error_details["error"].get("message") or "")
    except ValueError:
        upstream_message = response.text or ""
    upstream_message = upstream_message or response.reason_phrase or "Unknown error"

    if "model" in upstream_message.lower() and status in (400, 404):
        message = f"API model error: {upstream_message}. Please check that the configured model URL is valid."
    elif status == 403:
        message = f"API access denied (403): {upstream_message}. Please check your API key permissions."
    elif status == 400:
        message = f"API request error (400): {upstream_message}. Please check your request format."
    else:
        message = f"API request failed: {status} - {upstream_message}"
    return Failure(FailureKind.TRANSPORT_ERROR, message, status=status)


class GeminiClient:
    """Single-endpoint transport: one POST, one classified outcome. No retries."""

    def __init__(self, settings: AnalyzerSettings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    async def send(self, endpoint_url: str, prompt: str, max_output_tokens: int) -> Union[str, Failure]:
        timeout = self.settings.endpoints.request_timeout
        payload = build_request_body(prompt, max_output_tokens, self.settings)
        try:
            request_start_time = time.monotonic()
            logger.debug(f"Sending request to {endpoint_url}. Prompt: '{prompt[:100]}...'")
            response = await self.http_client.post(
                endpoint_url,
                params={"key": self.settings.endpoints.api_key},
                json=payload,
                timeout=timeout,
            )
            request_duration = time.monotonic() - request_start_time
            logger.debug(f"Gemini response received in {request_duration:.3f}s. Status: {response.status_code}")
        except httpx.TimeoutException:
            logger.warning(f"Gemini request to {endpoint_url} timed out after {timeout}s.")
            return Failure(FailureKind.TIMEOUT, f"Request timeout - API took longer than {timeout}s to respond")
        except httpx.RequestError as req_err:
            logger.error(f"Network error contacting {endpoint_url}: {req_err}")
            return Failure(FailureKind.TRANSPORT_ERROR, f"Network error contacting Gemini: {req_err}")

        if not 200 <= response.status_code < 300:
            failure = _http_error_failure(response)
            logger.warning(f"Gemini API error from {endpoint_url}: {failure.message}")
            return failure

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Gemini returned a non-JSON body (status {response.status_code}): {response.text[:200]}")
            return Failure(
                FailureKind.TRANSPORT_ERROR,
                "Invalid response format from API: body is not JSON",
                status=response.status_code,
            )
        return extract_response_text(data)

