# veritas/prompts.py
import logging
from enum import Enum
from typing import Dict, List

from .utils import ConfigurationError

logger = logging.getLogger(__name__)


class AnalysisType(str, Enum):
    FACT_CHECK = "fact_check"
    SOURCE_VERIFICATION = "source_verification"
    LANGUAGE_ANALYSIS = "language_analysis"
    BIAS_DETECTION = "bias_detection"
    EMOTIONAL_MANIPULATION = "emotional_manipulation"
    URL_SAFETY = "url_safety"
    URL_CONTENT = "url_content"
    CLICKBAIT_DETECTION = "clickbait_detection"


ALL_ANALYSIS_TYPES: List[AnalysisType] = list(AnalysisType)

URL_ANALYSIS_TYPES: List[AnalysisType] = [
    AnalysisType.URL_CONTENT,
    AnalysisType.FACT_CHECK,
    AnalysisType.URL_SAFETY,
    AnalysisType.CLICKBAIT_DETECTION,
]

# Types whose JSON tends to run long enough to hit the default output budget
EXTENDED_OUTPUT_TYPES = frozenset({AnalysisType.URL_CONTENT, AnalysisType.FACT_CHECK})

_JSON_ONLY = """IMPORTANT: Return ONLY the JSON object, no explanations, no markdown, no code blocks, just the raw JSON."""

_SHORT_CARD = """CRITICAL: card_description must be ONE short sentence (max 20 words) - NOT a paragraph. Keep it concise."""

ANALYSIS_PROMPTS: Dict[AnalysisType, str] = {
    AnalysisType.FACT_CHECK: f"""You are a fact-checking assistant. Analyze the following text for potential misinformation and provide your response ONLY as valid JSON, with no additional text before or after the JSON.

{_JSON_ONLY}

Required JSON format:
{{
    "overall_score": <number between 0-100 where 0=completely false, 50=unverifiable, 100=completely true>,
    "credibility_level": "<high/moderate/low>",
    "card_description": "<ONE short sentence (max 20 words) describing fact-check results and claim verification status>",
    "summary": "<brief summary of findings>",
    "claims": [
        {{
            "claim": "<specific claim found>",
            "red_flags": ["<red flag 1>", "<red flag 2>"],
            "verification_status": "<verified/unverified/suspicious>",
            "explanation": "<detailed explanation>"
        }}
    ],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}}

{_SHORT_CARD} Focus on claim verification, not content quality.

Scoring Guidelines:
- 90-100: Highly credible, well-sourced, factually accurate
- 70-89: Generally credible with minor issues
- 50-69: Mixed credibility, some verifiable claims
- 30-49: Low credibility, many red flags
- 0-29: Very low credibility, likely misinformation

Focus on identifying sensationalist language, missing reputable sources, logical fallacies, emotional manipulation, unverifiable claims and biased language.

Remember: Return ONLY valid JSON, nothing else.

Text to analyze:""",

    AnalysisType.SOURCE_VERIFICATION: """Analyze the following text for source credibility and verification. Your response should be in JSON format:

{
    "source_score": <number between 0-100>,
    "source_quality": "<excellent/good/poor>",
    "questions_to_ask": ["<critical question 1>", "<critical question 2>"],
    "suggested_sources": [
        {
            "source": "<source name>",
            "type": "<government/academic/news/ngo>",
            "reliability": "<high/medium/low>",
            "verification_method": "<how to verify>"
        }
    ],
    "red_flags": ["<red flag 1>", "<red flag 2>"],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}

Focus on source credibility, verification methods, credible sources to consult (government bodies, academic institutions, established news outlets) and the questions a critical reader should ask.

Text to analyze:""",

    AnalysisType.LANGUAGE_ANALYSIS: """Analyze the language and writing style of the following text for potential manipulation or bias. Your response should be in JSON format:

{
    "language_score": <number between 0-100>,
    "language_quality": "<neutral/biased/manipulative>",
    "emotional_tone": "<neutral/emotional/manipulative>",
    "card_description": "<A concise 1-2 sentence summary of the language analysis findings>",
    "bias_indicators": [
        {
            "type": "<confirmation bias/selection bias/etc>",
            "example": "<specific example from text>",
            "impact": "<how it affects credibility>"
        }
    ],
    "manipulation_techniques": [
        {
            "technique": "<technique name>",
            "example": "<specific example>",
            "severity": "<high/medium/low>"
        }
    ],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}

Focus on emotional manipulation, biased language, logical fallacies, persuasive techniques and neutrality of tone.

Text to analyze:""",

    AnalysisType.BIAS_DETECTION: """Detect various types of bias in the following text. Your response should be in JSON format:

{
    "bias_score": <number between 0-100 where 0=no bias, 100=extremely biased>,
    "overall_bias_level": "<low/medium/high>",
    "card_description": "<A concise 1-2 sentence summary of the bias types found and their severity>",
    "bias_types": [
        {
            "type": "<confirmation bias/selection bias/etc>",
            "severity": "<low/medium/high>",
            "examples": ["<example 1>", "<example 2>"],
            "explanation": "<detailed explanation>"
        }
    ],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}

Focus on confirmation, selection, availability, anchoring, political and cultural bias.

Text to analyze:""",

    AnalysisType.EMOTIONAL_MANIPULATION: """Analyze the following text for emotional manipulation techniques. Your response should be in JSON format:

{
    "manipulation_score": <number between 0-100 where 0=no manipulation, 100=heavily manipulative>,
    "manipulation_level": "<low/medium/high>",
    "techniques_used": [
        {
            "technique": "<technique name>",
            "example": "<specific example from text>",
            "impact": "<how it affects the reader>",
            "severity": "<low/medium/high>"
        }
    ],
    "emotional_triggers": ["<trigger 1>", "<trigger 2>"],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}

Focus on fear-mongering, emotional appeals, guilt-tripping, bandwagon effects, scarcity tactics and appeals to authority.

Text to analyze:""",

    AnalysisType.URL_SAFETY: f"""Analyze the following URL for safety and security indicators. Your response should be in JSON format:

{{
    "safety_score": <number between 0-100>,
    "safety_level": "<safe/suspicious/dangerous>",
    "card_description": "<ONE short sentence (max 20 words) describing URL safety and security status>",
    "url_analysis": {{
        "domain_reputation": "<excellent/good/poor/unknown>",
        "ssl_certificate": "<valid/invalid/unknown>",
        "redirect_chain": ["<redirect 1>", "<redirect 2>"],
        "suspicious_patterns": ["<pattern 1>", "<pattern 2>"]
    }},
    "security_flags": [
        {{
            "flag": "<flag name>",
            "severity": "<high/medium/low>",
            "description": "<explanation>"
        }}
    ],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}}

{_SHORT_CARD}

Focus on domain reputation and history, SSL certificate validity, suspicious URL patterns, known malicious domains, redirect chains, URL shorteners and phishing indicators.

URL to analyze:""",

    AnalysisType.URL_CONTENT: f"""You are a content analysis assistant. Analyze the following URL content and provide your response ONLY as valid JSON, with no additional text before or after the JSON.

{_JSON_ONLY}

Required JSON format:
{{
    "content_score": <number between 0-100>,
    "content_quality": "<excellent/good/moderate/poor>",
    "card_description": "<ONE short sentence (max 20 words) describing content quality and credibility>",
    "content_preview": {{
        "title": "<page title>",
        "description": "<page description>",
        "main_topics": ["<topic 1>", "<topic 2>"],
        "content_type": "<news/blog/social media/article/etc>"
    }},
    "credibility_indicators": [
        {{
            "indicator": "<indicator name>",
            "present": <true/false>,
            "impact": "<positive/negative/neutral>"
        }}
    ],
    "red_flags": ["<red flag 1>", "<red flag 2>"],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}}

{_SHORT_CARD}

Scoring Guidelines:
- 90-100: Excellent content quality, highly credible
- 70-89: Good content quality, generally credible
- 50-69: Moderate content quality, mixed credibility
- 30-49: Poor content quality, low credibility
- 0-29: Very poor content quality, very low credibility

Focus on content accuracy, source credibility, factual claims, author expertise, publication standards and recency.

Remember: Return ONLY valid JSON, nothing else.

Content to analyze:""",

    AnalysisType.CLICKBAIT_DETECTION: f"""Analyze this URL for clickbait and manipulative content. Your response should be in JSON format:

{{
    "clickbait_score": <number between 0-100>,
    "clickbait_level": "<low/medium/high>",
    "card_description": "<ONE short sentence (max 20 words) describing clickbait detection results>",
    "manipulation_techniques": [
        {{
            "technique": "<technique name>",
            "example": "<specific example>",
            "severity": "<high/medium/low>",
            "impact": "<how it affects the reader>"
        }}
    ],
    "emotional_triggers": ["<trigger 1>", "<trigger 2>"],
    "misleading_elements": ["<element 1>", "<element 2>"],
    "recommendations": ["<recommendation 1>", "<recommendation 2>"]
}}

{_SHORT_CARD}

Focus on sensationalist or misleading headlines, emotional manipulation, false urgency, exaggerated claims and tabloid-style content.

URL to analyze:""",
}


def render_prompt(analysis_type: AnalysisType, text: str) -> str:
    """Builds the full prompt for one analysis type: instruction template, blank line, input text."""
    try:
        template = ANALYSIS_PROMPTS[AnalysisType(analysis_type)]
    except (KeyError, ValueError):
        logger.error(f"No prompt template registered for analysis type '{analysis_type}'.")
        raise ConfigurationError(f"Unknown analysis type: {analysis_type}")
    return template + "\n\n" + text


def max_output_tokens_for(analysis_type: AnalysisType, default_tokens: int, extended_tokens: int) -> int:
    return extended_tokens if analysis_type in EXTENDED_OUTPUT_TYPES else default_tokens


def parse_analysis_types(identifiers) -> List[AnalysisType]:
    """
    Converts caller-supplied identifiers into AnalysisType members.

    Duplicates collapse with the first occurrence's position kept. ``None`` or an
    empty list means every known type.

    Raises:
        ValueError: If an identifier is not a known analysis type.
    """
    if not identifiers:
        return list(ALL_ANALYSIS_TYPES)
    resolved: List[AnalysisType] = []
    for identifier in identifiers:
        try:
            analysis_type = AnalysisType(identifier)
        except ValueError:
            raise ValueError(f"Unknown analysis type: {identifier}")
        if analysis_type not in resolved:
            resolved.append(analysis_type)
    return resolved
