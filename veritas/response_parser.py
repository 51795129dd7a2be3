# veritas/response_parser.py
import json
import logging
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from .failures import Failure, FailureKind
from .json_utils import (
    extract_fenced_block, extract_partial_fields,
    extract_widest_object, loads_with_repair, scan_top_level_object,
)
from .models import ANALYSIS_DATA_MODELS, AnalysisData
from .prompts import AnalysisType

logger = logging.getLogger(__name__)

# Types accepted with only their score present; listed keys are defaulted to []
LENIENT_LIST_DEFAULTS: Dict[AnalysisType, Tuple[str, ...]] = {
    AnalysisType.FACT_CHECK: ("claims",),
    AnalysisType.URL_CONTENT: ("credibility_indicators", "red_flags", "recommendations"),
}


def validate_analysis_data(parsed: Any, analysis_type: AnalysisType) -> Union[AnalysisData, Failure]:
    """Checks a decoded object against its type's required fields and wraps it in the typed model."""
    if not isinstance(parsed, dict):
        return Failure(FailureKind.PARSE_FAILURE, "Parsed response is not an object")

    model = ANALYSIS_DATA_MODELS[analysis_type]
    missing = next((name for name in model.required_fields if name not in parsed), None)
    if missing is not None:
        if analysis_type not in LENIENT_LIST_DEFAULTS or parsed.get(model.score_field) is None:
            return Failure(
                FailureKind.VALIDATION_FAILURE,
                f"Missing required field: {missing}",
                missing_field=missing,
            )
        logger.debug(f"Accepting {analysis_type.value} response with only '{model.score_field}' (missing '{missing}').")
        parsed = dict(parsed)
        for name in LENIENT_LIST_DEFAULTS[analysis_type]:
            if not isinstance(parsed.get(name), list):
                parsed[name] = []

    try:
        return model.model_validate(parsed)
    except ValidationError as e:
        return Failure(FailureKind.VALIDATION_FAILURE, f"Response failed validation for {analysis_type.value}: {e}")


def isolate_json_candidate(text: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Finds the substring most likely to be the model's JSON object.

    Returns ``(candidate, strategy_name)``; ``(None, None)`` only when the text
    has no ``{`` at all, so no later strategy could find an object either.
    """
    fenced = extract_fenced_block(text)
    if fenced is not None:
        return fenced, "code fence"

    balanced, open_start = scan_top_level_object(text)
    if balanced is not None:
        return balanced, "balanced braces"
    if open_start is not None:
        return text[open_start:], "truncated object"

    widest = extract_widest_object(text)
    if widest is not None:
        return widest, "regex match"
    return None, None


def _partial_or_failure(text: str, analysis_type: AnalysisType, failure: Failure) -> Union[AnalysisData, Failure]:
    partial = extract_partial_fields(text, analysis_type)
    if partial is None:
        return failure
    logger.info(f"Using partial field extraction for {analysis_type.value}.")
    return validate_analysis_data(partial, analysis_type)


def parse_analysis_response(raw_text: str, analysis_type: AnalysisType) -> Union[AnalysisData, Failure]:
    """
    Turns a model's free-form response into validated data for one analysis type.

    Never raises for bad model output: every problem comes back as a Failure.
    Pure function of its inputs.
    """
    if not raw_text or not isinstance(raw_text, str):
        return Failure(FailureKind.PARSE_FAILURE, "Invalid response text")
    analysis_type = AnalysisType(analysis_type)
    logger.debug(f"Parsing {analysis_type.value} response ({len(raw_text)} chars): {raw_text[:200]!r}")

    candidate, strategy = isolate_json_candidate(raw_text)

    if candidate is None:
        logger.warning(f"No JSON found in {analysis_type.value} response ({len(raw_text)} chars).")
        return _partial_or_failure(
            raw_text, analysis_type,
            Failure(FailureKind.PARSE_FAILURE, "No JSON found in response. The API returned plain text instead of JSON format."),
        )

    logger.debug(f"Isolated JSON candidate for {analysis_type.value} using {strategy}.")
    try:
        parsed, repaired = loads_with_repair(candidate)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON repair failed for {analysis_type.value}: {e}")
        return _partial_or_failure(
            candidate, analysis_type,
            Failure(FailureKind.PARSE_FAILURE, f"Invalid JSON format: {e}. The response may be incomplete."),
        )

    result = validate_analysis_data(parsed, analysis_type)
    if isinstance(result, Failure) and repaired:
        # Repair may have cut away required fields that are still readable in the raw span
        return _partial_or_failure(candidate, analysis_type, result)
    return result
