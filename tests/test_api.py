import pytest
from fastapi.testclient import TestClient

from conftest import SAMPLE_TEXT, ScriptedFailover
from veritas.analyzer import CredibilityAnalyzer
from veritas.endpoints import EndpointConfig
from veritas.main import create_app
from veritas.settings import AnalyzerSettings, SecuritySettings, load_security_settings
from veritas.utils import load_config_file


def _client(settings, failover, security=None) -> TestClient:
    return TestClient(create_app(analyzer=CredibilityAnalyzer(settings, failover), security=security or SecuritySettings()))


@pytest.fixture
def client(settings, json_answers):
    with _client(settings, ScriptedFailover(json_answers)) as test_client:
        yield test_client


def test_analyze_returns_camel_case_report(client):
    response = client.post("/api/analyze", json={"text": SAMPLE_TEXT, "analysisTypes": ["fact_check", "bias_detection"]})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert set(data["perTypeResults"]) == {"fact_check", "bias_detection"}
    assert data["outcomes"]["fact_check"] == {"success": True, "error": None}
    assert 0 <= data["overallScore"] <= 100
    assert data["credibilityLevel"]
    assert data["analyzedTextPreview"] == SAMPLE_TEXT
    assert data["analysisPath"] == "text"


def test_analyze_accepts_snake_case_field_names(client):
    response = client.post("/api/analyze", json={"text": SAMPLE_TEXT, "analysis_types": ["language_analysis"]})
    assert response.status_code == 200
    assert list(response.json()["data"]["perTypeResults"]) == ["language_analysis"]


@pytest.mark.parametrize("payload", [{}, {"text": None}, {"text": 123}])
def test_missing_or_invalid_text_is_400(client, payload):
    response = client.post("/api/analyze", json=payload)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Text is required and must be a string", "error": "Bad Request"}


def test_short_text_is_400(client):
    response = client.post("/api/analyze", json={"text": "too short"})
    assert response.status_code == 400
    assert "too short" in response.json()["message"].lower()


def test_unknown_analysis_type_is_400(client):
    response = client.post("/api/analyze", json={"text": SAMPLE_TEXT, "analysisTypes": ["astrology"]})
    assert response.status_code == 400
    assert "astrology" in response.json()["message"]


def test_other_methods_are_405(client):
    response = client.get("/api/analyze")
    assert response.status_code == 405
    assert response.json()["success"] is False


def test_missing_api_key_is_500(json_answers):
    settings = AnalyzerSettings(endpoints=EndpointConfig(api_key=""))
    with _client(settings, ScriptedFailover(json_answers)) as test_client:
        response = test_client.post("/api/analyze", json={"text": SAMPLE_TEXT})
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert "API key" in body["error"]


def test_slow_analysis_is_504(json_answers):
    settings = AnalyzerSettings(endpoints=EndpointConfig(api_key="k"), analysis_timeout=0.05)
    with _client(settings, ScriptedFailover(json_answers, delay=2)) as test_client:
        response = test_client.post("/api/analyze", json={"text": SAMPLE_TEXT, "analysisTypes": ["fact_check"]})
    assert response.status_code == 504
    assert response.json()["success"] is False


def test_analyze_url_rejects_invalid_url(client):
    response = client.post("/api/analyze-url", json={"url": "http://"})
    assert response.status_code == 400
    assert response.json()["message"].startswith("Failed to extract content from URL")


def test_status(client):
    response = client.get("/status")
    assert response.status_code == 200
    assert response.json() == {
        "status": "OK", "version": "1.0.0", "apiKeyConfigured": True, "primaryEndpoints": 2, "secondaryEndpoints": 3,
    }


def test_gemini_connection_check(client):
    response = client.get("/api/test-gemini")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "API connection successful", "data": {"test": "success"}}


# --- API key protection ---
PROTECTED_CALLS = [
    ("post", "/api/analyze", {"text": SAMPLE_TEXT, "analysisTypes": ["fact_check"]}),
    ("post", "/api/analyze-url", {"url": "https://news.test/story"}),
    ("get", "/api/test-gemini", None),
]


@pytest.fixture
def protected_client(settings, json_answers):
    security = SecuritySettings(enable_api_key_auth=True, internal_api_key="s3cret")
    with _client(settings, ScriptedFailover(json_answers), security) as test_client:
        yield test_client


def _call(test_client, method, path, payload, headers=None):
    if method == "post":
        return test_client.post(path, json=payload, headers=headers)
    return test_client.get(path, headers=headers)


@pytest.mark.parametrize("method, path, payload", PROTECTED_CALLS)
def test_protected_routes_require_api_key(protected_client, method, path, payload):
    response = _call(protected_client, method, path, payload)
    assert response.status_code == 401
    assert response.json() == {
        "success": False, "message": "API Key required via X-API-Key header.", "error": "Unauthorized",
    }


@pytest.mark.parametrize("method, path, payload", PROTECTED_CALLS)
def test_wrong_api_key_is_rejected(protected_client, method, path, payload):
    response = _call(protected_client, method, path, payload, headers={"X-API-Key": "guess"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid API Key."


def test_correct_api_key_is_accepted(protected_client):
    response = protected_client.post(
        "/api/analyze", json={"text": SAMPLE_TEXT, "analysisTypes": ["fact_check"]}, headers={"X-API-Key": "s3cret"},
    )
    assert response.status_code == 200
    assert protected_client.get("/api/test-gemini", headers={"X-API-Key": "s3cret"}).status_code == 200


def test_status_stays_open_when_auth_enabled(protected_client):
    assert protected_client.get("/status").status_code == 200


def test_auth_enabled_without_server_key_is_500(settings, json_answers):
    security = SecuritySettings(enable_api_key_auth=True, internal_api_key="")
    with _client(settings, ScriptedFailover(json_answers), security) as test_client:
        response = test_client.get("/api/test-gemini", headers={"X-API-Key": "anything"})
    assert response.status_code == 500
    assert response.json()["error"] == "Configuration Error"


def test_auth_is_disabled_by_default(client):
    assert load_security_settings(config={}, env={}).enable_api_key_auth is False
    assert load_security_settings(config=load_config_file(), env={}).enable_api_key_auth is False
    response = client.post("/api/analyze", json={"text": SAMPLE_TEXT, "analysisTypes": ["fact_check"]})
    assert response.status_code == 200
