import pytest
from pydantic import ValidationError

from veritas.endpoints import DEFAULT_GEMINI_URL, DEFAULT_PRIMARY_GEMINI_URL
from veritas.settings import SecuritySettings, load_security_settings, load_settings
from veritas.utils import ConfigurationError, build_logging_config, load_config_file


def test_defaults_with_empty_config():
    settings = load_settings(config={}, env={})
    assert settings.endpoints.api_key == ""
    assert settings.endpoints.resolved_primary_urls() == (DEFAULT_PRIMARY_GEMINI_URL,)
    assert settings.endpoints.resolved_secondary_urls() == (DEFAULT_GEMINI_URL,)
    assert settings.endpoints.request_timeout == 30
    assert (settings.temperature, settings.top_k, settings.top_p) == (0.1, 1, 0.8)
    assert (settings.min_text_length, settings.max_text_length) == (50, 10000)


def test_config_sections_are_applied():
    config = {
        "gemini": {
            "primary_api_urls": ["https://p1", "https://p2"],
            "secondary_api_urls": ["https://s1"],
            "request_timeout": 12,
            "extended_max_output_tokens": 8192,
        },
        "analysis": {"min_text_length": 20, "analysis_timeout": None},
        "url_extraction": {"max_content_words": 300},
    }
    settings = load_settings(config=config, env={"GEMINI_API_KEY": "abc"})
    assert settings.endpoints.primary_urls == ("https://p1", "https://p2")
    assert settings.endpoints.secondary_urls == ("https://s1",)
    assert settings.endpoints.request_timeout == 12
    assert settings.endpoints.api_key == "abc"
    assert settings.extended_max_output_tokens == 8192
    assert settings.min_text_length == 20
    assert settings.analysis_timeout is None
    assert settings.max_url_content_words == 300


def test_environment_overrides_endpoint_lists():
    config = {"gemini": {"secondary_api_urls": ["https://from-config"]}}
    env = {"GEMINI_API_KEY": "k", "GEMINI_SECONDARY_API_URLS": "https://a, https://b,"}
    settings = load_settings(config=config, env=env)
    assert settings.endpoints.secondary_urls == ("https://a", "https://b")


@pytest.mark.parametrize("gemini_config", [{"request_timeout": "soon"}, {"request_timeout": 0}, {"top_k": "many"}])
def test_invalid_values_raise_configuration_error(gemini_config):
    with pytest.raises(ConfigurationError):
        load_settings(config={"gemini": gemini_config}, env={})


def test_settings_are_frozen():
    settings = load_settings(config={}, env={})
    with pytest.raises(ValidationError):
        settings.min_text_length = 1


def test_load_config_file_handles_missing_and_malformed_files(tmp_path):
    assert load_config_file(str(tmp_path / "missing.yaml")) == {}

    malformed = tmp_path / "bad.yaml"
    malformed.write_text("gemini: [unclosed\n")
    assert load_config_file(str(malformed)) == {}

    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- a\n- b\n")
    assert load_config_file(str(not_a_mapping)) == {}

    good = tmp_path / "good.yaml"
    good.write_text("analysis:\n  min_text_length: 10\n")
    assert load_config_file(str(good)) == {"analysis": {"min_text_length": 10}}


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "alt.yaml"
    path.write_text("api:\n  port: 9000\n")
    monkeypatch.setenv("VERITAS_CONFIG_PATH", str(path))
    assert load_config_file() == {"api": {"port": 9000}}


def test_logging_config_from_section(tmp_path):
    log_file = tmp_path / "logs" / "veritas.log"
    config = {"logging": {"level": "debug", "file_path": str(log_file), "levels": {"httpx": "info"}}}

    logging_config = build_logging_config(config)

    assert set(logging_config["handlers"]) == {"console", "file"}
    assert logging_config["handlers"]["file"]["filename"] == str(log_file)
    assert log_file.parent.is_dir()
    assert logging_config["loggers"][""]["level"] == "DEBUG"
    assert logging_config["loggers"]["httpx"]["level"] == "INFO"
    assert logging_config["loggers"]["uvicorn.access"]["level"] == "WARNING"


def test_logging_config_without_file():
    logging_config = build_logging_config({"logging": {"file_path": ""}})
    assert list(logging_config["handlers"]) == ["console"]
    assert logging_config["loggers"]["uvicorn.error"]["handlers"] == ["console"]


def test_security_settings_from_config_and_environment():
    security = load_security_settings(config={"security": {"enable_api_key_auth": True}}, env={"INTERNAL_API_KEY": "k1"})
    assert security.enable_api_key_auth is True
    assert security.internal_api_key == "k1"

    assert load_security_settings(config={}, env={}) == SecuritySettings()


def test_invalid_security_flag_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        load_security_settings(config={"security": {"enable_api_key_auth": "maybe"}}, env={})


def test_url_extraction_limits_are_configurable():
    settings = load_settings(config={"url_extraction": {"max_content_bytes": 4096, "max_redirects": 0}}, env={})
    assert settings.max_url_content_bytes == 4096
    assert settings.max_url_redirects == 0
    with pytest.raises(ConfigurationError):
        load_settings(config={"url_extraction": {"max_content_bytes": 0}}, env={})
