# veritas/analyzer.py
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Union

import httpx

from .failover import FailoverController
from .failures import Failure, FailureKind
from .fallbacks import get_fallback_result
from .models import AnalysisData, AnalysisOutcome, AnalysisReport, ParsedAnalysisResult, UrlInfo
from .prompts import URL_ANALYSIS_TYPES, AnalysisType, max_output_tokens_for, parse_analysis_types, render_prompt
from .response_parser import parse_analysis_response
from .scoring import calculate_overall_score, get_credibility_level, select_weights
from .settings import AnalyzerSettings
from .url_extractor import build_url_analysis_text, extract_url_content
from .utils import ConfigurationError, InputValidationError

logger = logging.getLogger(__name__)


class CredibilityAnalyzer:
    """
    Runs every requested analysis type against one text and merges the results.

    Each type is an independent pipeline (prompt, endpoint failover, response
    parsing). A failed pipeline never fails the request: its type gets neutral
    fallback data and the failure message is recorded in the report outcomes.
    """

    def __init__(self, settings: AnalyzerSettings, failover: FailoverController):
        self.settings = settings
        self.failover = failover

    # --- Input checks ---
    def _require_api_key(self):
        if not self.settings.endpoints.api_key:
            logger.error("Analysis requested but no Gemini API key is configured.")
            raise ConfigurationError("Gemini API key not configured. Set GEMINI_API_KEY in the environment.")

    def _validate_text(self, text: str):
        if not isinstance(text, str):
            raise InputValidationError("Text is required and must be a string")
        if len(text.strip()) < self.settings.min_text_length:
            raise InputValidationError(
                f"Text too short for analysis (minimum {self.settings.min_text_length} characters)",
                kind=FailureKind.TEXT_TOO_SHORT,
            )
        if len(text) > self.settings.max_text_length:
            raise InputValidationError(
                f"Text too long for analysis (maximum {self.settings.max_text_length} characters)",
                kind=FailureKind.TEXT_TOO_LONG,
            )

    def _resolve_types(self, analysis_types: Optional[Sequence[str]]) -> List[AnalysisType]:
        try:
            return parse_analysis_types(analysis_types)
        except ValueError as e:
            raise InputValidationError(str(e))

    # --- Pipelines ---
    async def _run_single_analysis(self, analysis_type: AnalysisType, text: str) -> Union[AnalysisData, Failure]:
        prompt = render_prompt(analysis_type, text)
        max_tokens = max_output_tokens_for(
            analysis_type, self.settings.default_max_output_tokens, self.settings.extended_max_output_tokens
        )
        raw = await self.failover.obtain_text(analysis_type, prompt, max_tokens)
        if isinstance(raw, Failure):
            return raw
        return parse_analysis_response(raw, analysis_type)

    def _to_parsed_result(self, analysis_type: AnalysisType, result, log_prefix: str = "") -> ParsedAnalysisResult:
        """Wraps one pipeline outcome; failures get fallback data and keep their message."""
        if isinstance(result, AnalysisData):
            return ParsedAnalysisResult(type=analysis_type, success=True, data=result)

        if isinstance(result, Failure):
            error_message = result.message
            logger.warning(f"{log_prefix}Analysis failed for {analysis_type.value} ({result.kind.value}), using fallback result: {error_message}")
        elif isinstance(result, Exception):
            error_message = f"Unexpected error: {result}"
            logger.error(f"{log_prefix}Unexpected error in {analysis_type.value} pipeline, using fallback result: {result}", exc_info=result)
        else:
            # BaseException such as CancelledError: never absorbed
            raise result
        return ParsedAnalysisResult(
            type=analysis_type, success=False, data=get_fallback_result(analysis_type), error=error_message,
        )

    def _preview(self, text: str) -> str:
        limit = self.settings.preview_length
        return text[:limit] + "..." if len(text) > limit else text

    async def analyze(self, text: str, analysis_types: Optional[Sequence[str]] = None, request_id: Optional[str] = None) -> AnalysisReport:
        """
        Analyzes ``text`` under each requested type (all types when omitted).

        Raises:
            ConfigurationError: If no API key is configured.
            InputValidationError: For text outside the length bounds or unknown type identifiers.
        """
        log_prefix = f"[ReqID: {request_id}] " if request_id else ""
        self._require_api_key()
        self._validate_text(text)
        types = self._resolve_types(analysis_types)

        logger.info(f"{log_prefix}Starting analysis of {len(text)} chars with types: {[t.value for t in types]}")
        start_time = time.perf_counter()
        results = await asyncio.gather(
            *(self._run_single_analysis(analysis_type, text) for analysis_type in types),
            return_exceptions=True,
        )
        duration = time.perf_counter() - start_time

        parsed = [
            self._to_parsed_result(analysis_type, result, log_prefix)
            for analysis_type, result in zip(types, results)
        ]
        per_type: Dict[AnalysisType, AnalysisData] = {p.type: p.data for p in parsed}
        outcomes = {p.type: AnalysisOutcome(success=p.success, error=p.error) for p in parsed}

        weights = select_weights(types)
        overall_score = calculate_overall_score(per_type, weights)
        succeeded = sum(1 for p in parsed if p.success)
        logger.info(
            f"{log_prefix}Analysis finished in {duration:.2f}s: {succeeded}/{len(types)} types succeeded, "
            f"overall score {overall_score}."
        )

        return AnalysisReport(
            overall_score=overall_score,
            credibility_level=get_credibility_level(overall_score),
            per_type_results={t: data.model_dump(exclude_unset=True) for t, data in per_type.items()},
            outcomes=outcomes,
            analyzed_text_preview=self._preview(text),
            timestamp=datetime.now(timezone.utc),
            analysis_path="url" if AnalysisType.URL_CONTENT in types else "text",
        )

    async def analyze_url(self, url: str, http_client: httpx.AsyncClient, request_id: Optional[str] = None) -> AnalysisReport:
        """
        Fetches a page, renders its content as analysis text and runs the URL analysis types.

        Raises:
            ConfigurationError: If no API key is configured.
            ContentExtractionError: If the page cannot be fetched or parsed.
            InputValidationError: If the extracted text is outside the length bounds.
        """
        self._require_api_key()
        extracted = await extract_url_content(
            http_client, url,
            max_words=self.settings.max_url_content_words,
            timeout=self.settings.url_fetch_timeout,
            max_bytes=self.settings.max_url_content_bytes,
            max_redirects=self.settings.max_url_redirects,
        )
        text = build_url_analysis_text(extracted, original_url=url)
        report = await self.analyze(text, [t.value for t in URL_ANALYSIS_TYPES], request_id=request_id)
        return report.model_copy(update={
            "analysis_path": "url",
            "url_info": UrlInfo(
                original_url=url,
                title=extracted.title,
                source=extracted.source,
                description=extracted.description or None,
                word_count=extracted.word_count,
            ),
        })
