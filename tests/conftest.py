import asyncio
import json
from typing import Dict, List, Optional, Tuple, Union

import pytest

from veritas import url_extractor
from veritas.endpoints import EndpointConfig
from veritas.failures import Failure, FailureKind
from veritas.prompts import AnalysisType
from veritas.settings import AnalyzerSettings

PRIMARY_URLS = ("https://models.test/primary-1:generateContent", "https://models.test/primary-2:generateContent")
SECONDARY_URLS = (
    "https://models.test/secondary-1:generateContent",
    "https://models.test/secondary-2:generateContent",
    "https://models.test/secondary-3:generateContent",
)

# Address every test hostname resolves to unless a test maps it elsewhere
PUBLIC_TEST_ADDRESS = "93.184.216.34"

SAMPLE_TEXT = (
    "A new study published this week claims that drinking three cups of coffee a day "
    "reduces the risk of heart disease by 40 percent, according to researchers."
)

# One well-formed model answer per type
MODEL_ANSWERS: Dict[AnalysisType, dict] = {
    AnalysisType.FACT_CHECK: {"overall_score": 80, "credibility_level": "high", "summary": "Mostly accurate.", "claims": []},
    AnalysisType.SOURCE_VERIFICATION: {"source_score": 60, "source_quality": "medium", "red_flags": []},
    AnalysisType.LANGUAGE_ANALYSIS: {"language_score": 75, "language_quality": "good"},
    AnalysisType.BIAS_DETECTION: {"bias_score": 20, "overall_bias_level": "low", "bias_types": []},
    AnalysisType.EMOTIONAL_MANIPULATION: {"manipulation_score": 10, "manipulation_level": "low"},
    AnalysisType.URL_SAFETY: {"safety_score": 90, "safety_level": "safe"},
    AnalysisType.URL_CONTENT: {"content_score": 70, "content_quality": "good", "red_flags": []},
    AnalysisType.CLICKBAIT_DETECTION: {"clickbait_score": 15, "clickbait_level": "low"},
}


def gemini_envelope(text: Optional[str] = None, finish_reason: str = "STOP", **candidate_fields) -> dict:
    """A generateContent response body with a single candidate."""
    candidate = {"finishReason": finish_reason, **candidate_fields}
    if text is not None:
        candidate["content"] = {"parts": [{"text": text}], "role": "model"}
    return {"candidates": [candidate]}


class ScriptedClient:
    """Stands in for GeminiClient.send: returns queued outcomes per endpoint URL and records calls."""

    def __init__(self, outcomes: Dict[str, Union[str, Failure]]):
        self.outcomes = outcomes
        self.calls: List[str] = []

    async def send(self, endpoint_url: str, prompt: str, max_output_tokens: int):
        self.calls.append(endpoint_url)
        return self.outcomes[endpoint_url]


class ScriptedFailover:
    """Stands in for FailoverController: answers per analysis type, optionally after a delay."""

    def __init__(self, answers: Dict[AnalysisType, Union[str, Failure, Exception]], delay: float = 0.0):
        self.answers = answers
        self.delay = delay
        self.calls: List[Tuple[AnalysisType, int]] = []

    async def obtain_text(self, analysis_type, prompt: str, max_output_tokens: int):
        self.calls.append((analysis_type, max_output_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        answer = self.answers.get(analysis_type, Failure(FailureKind.EMPTY_RESPONSE, "no scripted answer"))
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def test_connection(self, max_output_tokens: int):
        return {"success": True, "message": "API connection successful", "data": {"test": "success"}}


@pytest.fixture
def settings() -> AnalyzerSettings:
    return AnalyzerSettings(
        endpoints=EndpointConfig(
            primary_urls=PRIMARY_URLS,
            secondary_urls=SECONDARY_URLS,
            api_key="test-key",
            request_timeout=5,
        ),
    )


@pytest.fixture
def json_answers() -> Dict[AnalysisType, str]:
    return {analysis_type: json.dumps(answer) for analysis_type, answer in MODEL_ANSWERS.items()}


@pytest.fixture(autouse=True)
def dns_table(monkeypatch) -> Dict[str, Union[List[str], OSError]]:
    """Host resolution for page fetches; unmapped hosts resolve to a public address."""
    table: Dict[str, Union[List[str], OSError]] = {}

    async def resolve(hostname: str, port: int) -> List[str]:
        answer = table.get(hostname, [PUBLIC_TEST_ADDRESS])
        if isinstance(answer, OSError):
            raise answer
        return answer

    monkeypatch.setattr(url_extractor, "resolve_host", resolve)
    return table
