# veritas/models.py
import math
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .prompts import AnalysisType


# --- Per-type analysis data ---
class AnalysisData(BaseModel):
    """
    Model output for one analysis type.

    Subclasses declare the fields scoring and validation rely on; anything else
    the model returned is kept as extra data and passed through untouched.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    analysis_type: ClassVar[AnalysisType]
    score_field: ClassVar[str]
    # Raw score measures a negative trait (more bias = less credible)
    inverted: ClassVar[bool] = False
    # Keys a model response must carry to be accepted for this type
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def raw_score(self) -> Optional[float]:
        """The canonical score field as a finite float, or None when absent or non-numeric."""
        value = getattr(self, self.score_field, None)
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    def credibility_score(self) -> Optional[float]:
        """Score oriented so that higher means more credible."""
        raw = self.raw_score()
        if raw is None:
            return None
        return 100 - raw if self.inverted else raw


class FactCheckData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.FACT_CHECK
    score_field: ClassVar[str] = "overall_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("overall_score", "credibility_level")
    overall_score: Any
    credibility_level: Any = None


class SourceVerificationData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.SOURCE_VERIFICATION
    score_field: ClassVar[str] = "source_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("source_score", "source_quality")
    source_score: Any
    source_quality: Any


class LanguageAnalysisData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.LANGUAGE_ANALYSIS
    score_field: ClassVar[str] = "language_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("language_score", "language_quality")
    language_score: Any
    language_quality: Any


class BiasDetectionData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.BIAS_DETECTION
    score_field: ClassVar[str] = "bias_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("bias_score", "overall_bias_level")
    inverted: ClassVar[bool] = True
    bias_score: Any
    overall_bias_level: Any


class EmotionalManipulationData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.EMOTIONAL_MANIPULATION
    score_field: ClassVar[str] = "manipulation_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("manipulation_score", "manipulation_level")
    inverted: ClassVar[bool] = True
    manipulation_score: Any
    manipulation_level: Any


class UrlSafetyData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.URL_SAFETY
    score_field: ClassVar[str] = "safety_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("safety_score", "safety_level")
    safety_score: Any
    safety_level: Any


class UrlContentData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.URL_CONTENT
    score_field: ClassVar[str] = "content_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("content_score", "content_quality")
    content_score: Any
    content_quality: Any = None


class ClickbaitDetectionData(AnalysisData):
    analysis_type: ClassVar[AnalysisType] = AnalysisType.CLICKBAIT_DETECTION
    score_field: ClassVar[str] = "clickbait_score"
    required_fields: ClassVar[Tuple[str, ...]] = ("clickbait_score", "clickbait_level")
    clickbait_score: Any
    clickbait_level: Any


ANALYSIS_DATA_MODELS: Dict[AnalysisType, Type[AnalysisData]] = {
    model.analysis_type: model
    for model in (
        FactCheckData, SourceVerificationData, LanguageAnalysisData, BiasDetectionData,
        EmotionalManipulationData, UrlSafetyData, UrlContentData, ClickbaitDetectionData,
    )
}


class ParsedAnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AnalysisType
    success: bool
    data: AnalysisData
    error: Optional[str] = None


# --- API models (camelCase on the wire) ---
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(CamelModel):
    text: str = Field(..., description="The text to check for credibility.")
    analysis_types: Optional[List[str]] = Field(None, description="Analysis type identifiers; all types when omitted.")


class AnalyzeUrlRequest(CamelModel):
    url: str = Field(..., min_length=1, description="Web page to extract and analyze.")


class AnalysisOutcome(CamelModel):
    success: bool
    error: Optional[str] = None


class UrlInfo(CamelModel):
    original_url: str
    title: str
    source: str
    word_count: int
    description: Optional[str] = None


class AnalysisReport(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    overall_score: int = Field(..., ge=0, le=100)
    credibility_level: str
    per_type_results: Dict[AnalysisType, Dict[str, Any]]
    outcomes: Dict[AnalysisType, AnalysisOutcome]
    analyzed_text_preview: str
    timestamp: datetime
    analysis_path: Literal["text", "url"] = "text"
    url_info: Optional[UrlInfo] = None


class AnalyzeResponse(CamelModel):
    success: bool = True
    data: AnalysisReport


class ConnectionTestResponse(CamelModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class StatusResponse(CamelModel):
    status: str = "OK"
    version: str = Field(default="1.0.0", description="API version")
    api_key_configured: bool
    primary_endpoints: int
    secondary_endpoints: int


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    error: str
    request_id: Optional[str] = None
