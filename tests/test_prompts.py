import pytest

from veritas.models import ANALYSIS_DATA_MODELS
from veritas.prompts import (
    ALL_ANALYSIS_TYPES, ANALYSIS_PROMPTS, URL_ANALYSIS_TYPES, AnalysisType, max_output_tokens_for,
    parse_analysis_types, render_prompt,
)
from veritas.utils import ConfigurationError


def test_every_type_has_a_template_naming_its_score_field():
    assert set(ANALYSIS_PROMPTS) == set(AnalysisType)
    for analysis_type, template in ANALYSIS_PROMPTS.items():
        assert f'"{ANALYSIS_DATA_MODELS[analysis_type].score_field}"' in template


def test_render_prompt_appends_text_after_blank_line():
    prompt = render_prompt(AnalysisType.BIAS_DETECTION, "Some article text.")
    assert prompt == ANALYSIS_PROMPTS[AnalysisType.BIAS_DETECTION] + "\n\nSome article text."


def test_render_prompt_accepts_identifier_strings():
    assert render_prompt("fact_check", "x") == render_prompt(AnalysisType.FACT_CHECK, "x")


def test_render_prompt_unknown_type_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        render_prompt("horoscope", "text")


@pytest.mark.parametrize("analysis_type, expected", [
    (AnalysisType.FACT_CHECK, 4096),
    (AnalysisType.URL_CONTENT, 4096),
    (AnalysisType.SOURCE_VERIFICATION, 2048),
    (AnalysisType.CLICKBAIT_DETECTION, 2048),
])
def test_max_output_tokens(analysis_type, expected):
    assert max_output_tokens_for(analysis_type, 2048, 4096) == expected


def test_parse_analysis_types_defaults_to_all_in_order():
    assert parse_analysis_types(None) == list(AnalysisType)
    assert parse_analysis_types([]) == ALL_ANALYSIS_TYPES
    assert ALL_ANALYSIS_TYPES[0] == AnalysisType.FACT_CHECK
    assert ALL_ANALYSIS_TYPES[-1] == AnalysisType.CLICKBAIT_DETECTION


def test_parse_analysis_types_collapses_duplicates_keeping_first_position():
    result = parse_analysis_types(["bias_detection", "fact_check", "bias_detection"])
    assert result == [AnalysisType.BIAS_DETECTION, AnalysisType.FACT_CHECK]


def test_parse_analysis_types_rejects_unknown_identifiers():
    with pytest.raises(ValueError, match="Unknown analysis type"):
        parse_analysis_types(["fact_check", "astrology"])


def test_url_analysis_types():
    assert URL_ANALYSIS_TYPES == [
        AnalysisType.URL_CONTENT, AnalysisType.FACT_CHECK, AnalysisType.URL_SAFETY, AnalysisType.CLICKBAIT_DETECTION,
    ]
