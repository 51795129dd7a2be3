# veritas/fallbacks.py
"""Neutral stand-in data used when an analysis pipeline fails."""
import copy
from typing import Any, Dict

from .models import ANALYSIS_DATA_MODELS, AnalysisData
from .prompts import AnalysisType

FALLBACK_RESULTS: Dict[AnalysisType, Dict[str, Any]] = {
    AnalysisType.FACT_CHECK: {
        "overall_score": 50,
        "credibility_level": "moderate",
        "card_description": "Fact-check analysis unavailable. Verify claims independently.",
        "summary": "Analysis unavailable - please verify information independently",
        "claims": [],
        "recommendations": ["Verify information from multiple sources", "Check for recent updates"],
    },
    AnalysisType.SOURCE_VERIFICATION: {
        "source_score": 50,
        "source_quality": "unknown",
        "questions_to_ask": ["What is the source of this information?", "Can this be verified elsewhere?"],
        "suggested_sources": [],
        "red_flags": [],
        "recommendations": ["Verify from official sources", "Check multiple news outlets"],
    },
    AnalysisType.LANGUAGE_ANALYSIS: {
        "language_score": 50,
        "language_quality": "unknown",
        "emotional_tone": "unknown",
        "bias_indicators": [],
        "manipulation_techniques": [],
        "recommendations": ["Read critically", "Look for emotional language"],
    },
    AnalysisType.BIAS_DETECTION: {
        "bias_score": 50,
        "overall_bias_level": "unknown",
        "bias_types": [],
        "recommendations": ["Consider multiple perspectives", "Check for confirmation bias"],
    },
    AnalysisType.EMOTIONAL_MANIPULATION: {
        "manipulation_score": 50,
        "manipulation_level": "unknown",
        "techniques_used": [],
        "emotional_triggers": [],
        "recommendations": ["Stay objective", "Look for emotional appeals"],
    },
    AnalysisType.URL_SAFETY: {
        "safety_score": 50,
        "safety_level": "unknown",
        "card_description": "URL safety analysis unavailable. Verify URL before accessing.",
        "url_analysis": {
            "domain_reputation": "unknown",
            "ssl_certificate": "unknown",
            "redirect_chain": [],
            "suspicious_patterns": [],
        },
        "security_flags": [],
        "recommendations": ["Exercise caution", "Verify the URL before accessing"],
    },
    AnalysisType.URL_CONTENT: {
        "content_score": 50,
        "content_quality": "unknown",
        "card_description": "Content analysis unavailable. Please verify independently.",
        "content_preview": {
            "title": "Unknown",
            "description": "Unable to analyze content",
            "main_topics": [],
            "content_type": "unknown",
        },
        "credibility_indicators": [],
        "red_flags": [],
        "recommendations": ["Verify content from multiple sources", "Check the source website directly"],
    },
    AnalysisType.CLICKBAIT_DETECTION: {
        "clickbait_score": 50,
        "clickbait_level": "unknown",
        "card_description": "Clickbait analysis unavailable. Exercise caution with headlines.",
        "manipulation_techniques": [],
        "emotional_triggers": [],
        "misleading_elements": [],
        "recommendations": ["Be cautious of sensational headlines", "Read the full content before sharing"],
    },
}


def get_fallback_result(analysis_type: AnalysisType) -> AnalysisData:
    """Fresh fallback data for one type; callers may not share nested lists between reports."""
    analysis_type = AnalysisType(analysis_type)
    data = copy.deepcopy(FALLBACK_RESULTS[analysis_type])
    return ANALYSIS_DATA_MODELS[analysis_type].model_validate(data)
