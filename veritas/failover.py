# veritas/failover.py
import json
import logging
from typing import Any, Dict, Optional, Union

from .endpoints import EndpointConfig, is_quota_error
from .failures import Failure, FailureKind
from .gemini_utils import GeminiClient

logger = logging.getLogger(__name__)

CONNECTION_TEST_PROMPT = 'Respond with exactly this JSON: {"test": "success", "message": "API connection working"}'


class FailoverController:
    """
    Walks the configured endpoints until one returns usable text.

    Primary endpoints are tried in order and any failure moves on to the next.
    Secondary endpoints are only advanced past on quota exhaustion; any other
    failure there is returned to the caller straight away.
    """

    def __init__(self, client: GeminiClient, endpoints: EndpointConfig):
        self.client = client
        self.endpoints = endpoints

    async def obtain_text(self, label: Any, prompt: str, max_output_tokens: int) -> Union[str, Failure]:
        label = getattr(label, "value", label)
        last_failure: Optional[Failure] = None

        primary_urls = self.endpoints.resolved_primary_urls()
        for i, url in enumerate(primary_urls, start=1):
            logger.debug(f"{label}: trying primary endpoint {i}/{len(primary_urls)}.")
            outcome = await self.client.send(url, prompt, max_output_tokens)
            if not isinstance(outcome, Failure):
                if i > 1:
                    logger.info(f"{label}: primary endpoint {i} succeeded after {i - 1} failure(s).")
                return outcome
            last_failure = outcome
            logger.warning(f"{label}: primary endpoint {i} failed ({outcome.kind.value}): {outcome.message}")

        secondary_urls = self.endpoints.resolved_secondary_urls()
        for i, url in enumerate(secondary_urls, start=1):
            logger.debug(f"{label}: trying secondary endpoint {i}/{len(secondary_urls)}.")
            outcome = await self.client.send(url, prompt, max_output_tokens)
            if not isinstance(outcome, Failure):
                logger.info(f"{label}: secondary endpoint {i} succeeded.")
                return outcome
            last_failure = outcome
            if not is_quota_error(outcome):
                logger.warning(f"{label}: secondary endpoint {i} failed with a non-quota error, giving up: {outcome.message}")
                return outcome
            logger.warning(f"{label}: secondary endpoint {i} quota exhausted, moving on.")

        if last_failure is not None:
            logger.error(f"{label}: all endpoints exhausted. Last error: {last_failure.message}")
            return last_failure
        return Failure(FailureKind.ALL_ENDPOINTS_FAILED, "All Gemini API endpoints failed")

    async def test_connection(self, max_output_tokens: int) -> Dict[str, Any]:
        """Sends a minimal prompt through the chain and reports whether any endpoint answered sensibly."""
        if not self.endpoints.api_key:
            return {"success": False, "message": "API connection failed: Gemini API key not configured",
                    "error": "Gemini API key not configured"}

        outcome = await self.obtain_text("connection_test", CONNECTION_TEST_PROMPT, max_output_tokens)
        if isinstance(outcome, Failure):
            logger.error(f"Gemini connection test failed: {outcome.message}")
            return {"success": False, "message": f"API connection failed: {outcome.message}", "error": outcome.message}

        try:
            result = json.loads(outcome)
            if not isinstance(result, dict):
                result = {"response": result}
        except json.JSONDecodeError:
            lowered = outcome.lower()
            if "success" not in lowered and "working" not in lowered:
                logger.error(f"Unexpected connection test response: {outcome[:200]}")
                return {"success": False, "message": "API connection failed: unexpected response to test prompt",
                        "error": outcome[:200]}
            result = {"test": "success", "message": "API connection working"}
        return {"success": True, "message": "API connection successful", "data": result}
