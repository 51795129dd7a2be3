# veritas/scoring.py
import logging
import math
from typing import Dict, Iterable, Mapping, Optional

from .models import AnalysisData
from .prompts import AnalysisType

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50

TEXT_PATH_WEIGHTS: Dict[AnalysisType, float] = {
    AnalysisType.FACT_CHECK: 0.35,
    AnalysisType.SOURCE_VERIFICATION: 0.30,
    AnalysisType.LANGUAGE_ANALYSIS: 0.20,
    AnalysisType.BIAS_DETECTION: 0.10,
    AnalysisType.EMOTIONAL_MANIPULATION: 0.05,
}

URL_PATH_WEIGHTS: Dict[AnalysisType, float] = {
    AnalysisType.URL_CONTENT: 0.40,
    **TEXT_PATH_WEIGHTS,
}

# Credibility bands, highest first
CREDIBILITY_LEVELS = (
    (85, "High Credibility"),
    (70, "Moderate Credibility"),
    (50, "Low Credibility"),
)
LOWEST_CREDIBILITY_LEVEL = "Very Low Credibility"


def select_weights(analysis_types: Iterable[AnalysisType]) -> Dict[AnalysisType, float]:
    """URL weights when page content was analyzed, text weights otherwise. Unlisted types weigh 0."""
    if AnalysisType.URL_CONTENT in set(analysis_types):
        return URL_PATH_WEIGHTS
    return TEXT_PATH_WEIGHTS


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_overall_score(
    results: Mapping[AnalysisType, AnalysisData],
    weights: Optional[Mapping[AnalysisType, float]] = None,
) -> int:
    """
    Weighted mean of the per-type credibility scores.

    Only types with a positive weight and a finite score contribute; each score
    is clamped to [0, 100] first. Weights are renormalised over the contributing
    types. Returns 50 when nothing contributes.
    """
    if not results:
        return DEFAULT_SCORE
    weights = weights if weights is not None else select_weights(results.keys())

    weighted_sum = 0.0
    total_weight = 0.0
    for analysis_type, data in results.items():
        weight = weights.get(analysis_type, 0.0)
        if weight <= 0 or data is None:
            continue
        score = data.credibility_score()
        if score is None:
            logger.debug(f"No usable score for {analysis_type.value}; excluded from overall score.")
            continue
        weighted_sum += max(0.0, min(100.0, score)) * weight
        total_weight += weight

    if total_weight <= 0:
        return DEFAULT_SCORE
    return max(0, min(100, _round_half_up(weighted_sum / total_weight)))


def get_credibility_level(score: float) -> str:
    for threshold, level in CREDIBILITY_LEVELS:
        if score >= threshold:
            return level
    return LOWEST_CREDIBILITY_LEVEL
