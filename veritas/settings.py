# veritas/settings.py
import logging
import os
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .endpoints import DEFAULT_GEMINI_URL, DEFAULT_PRIMARY_GEMINI_URL, EndpointConfig
from .utils import ConfigurationError, get_config

logger = logging.getLogger(__name__)


class AnalyzerSettings(BaseModel):
    """Everything the analysis core needs, resolved once when the process starts."""
    model_config = ConfigDict(frozen=True)

    endpoints: EndpointConfig = Field(default_factory=EndpointConfig)

    # Generation parameters sent with every request
    temperature: float = 0.1
    top_k: int = 1
    top_p: float = 0.8
    default_max_output_tokens: int = 2048
    extended_max_output_tokens: int = 4096

    # Input bounds (characters)
    min_text_length: int = 50
    max_text_length: int = 10000
    preview_length: int = 200

    # Whole-request budget; None disables it
    analysis_timeout: Optional[float] = 120.0

    # URL content extraction
    max_url_content_words: int = 500
    url_fetch_timeout: float = 30.0
    max_url_content_bytes: int = Field(default=2 * 1024 * 1024, gt=0)
    max_url_redirects: int = Field(default=5, ge=0)


def _as_url_tuple(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(url.strip() for url in value.split(",") if url.strip())
    return tuple(str(url).strip() for url in value if url and str(url).strip())


def load_settings(config: Optional[Dict[str, Any]] = None, env: Optional[Mapping[str, str]] = None) -> AnalyzerSettings:
    """
    Builds AnalyzerSettings from the YAML config and the environment.

    Non-secret settings come from the ``gemini``, ``analysis`` and
    ``url_extraction`` sections of the config; the API key is read from
    ``GEMINI_API_KEY``. ``GEMINI_PRIMARY_API_URLS`` / ``GEMINI_SECONDARY_API_URLS``
    (comma separated) override the configured endpoint lists.

    Raises:
        ConfigurationError: If the config holds values of the wrong type.
    """
    if env is None:
        load_dotenv()
        env = os.environ
    config = config if config is not None else get_config()
    gemini_config = config.get('gemini', {}) or {}
    analysis_config = config.get('analysis', {}) or {}
    url_config = config.get('url_extraction', {}) or {}

    primary_urls = _as_url_tuple(env.get("GEMINI_PRIMARY_API_URLS") or gemini_config.get('primary_api_urls'))
    secondary_urls = _as_url_tuple(env.get("GEMINI_SECONDARY_API_URLS") or gemini_config.get('secondary_api_urls'))

    try:
        endpoints = EndpointConfig(
            primary_urls=primary_urls,
            secondary_urls=secondary_urls,
            primary_default_url=gemini_config.get('primary_api_url', DEFAULT_PRIMARY_GEMINI_URL),
            default_url=gemini_config.get('api_url', DEFAULT_GEMINI_URL),
            api_key=env.get("GEMINI_API_KEY", ""),
            request_timeout=gemini_config.get('request_timeout', 30),
        )
        overrides = {
            'temperature': gemini_config.get('temperature'),
            'top_k': gemini_config.get('top_k'),
            'top_p': gemini_config.get('top_p'),
            'default_max_output_tokens': gemini_config.get('default_max_output_tokens'),
            'extended_max_output_tokens': gemini_config.get('extended_max_output_tokens'),
            'min_text_length': analysis_config.get('min_text_length'),
            'max_text_length': analysis_config.get('max_text_length'),
            'preview_length': analysis_config.get('preview_length'),
            'max_url_content_words': url_config.get('max_content_words'),
            'url_fetch_timeout': url_config.get('request_timeout'),
            'max_url_content_bytes': url_config.get('max_content_bytes'),
            'max_url_redirects': url_config.get('max_redirects'),
        }
        settings_kwargs = {key: value for key, value in overrides.items() if value is not None}
        if 'analysis_timeout' in analysis_config:
            settings_kwargs['analysis_timeout'] = analysis_config.get('analysis_timeout')
        settings = AnalyzerSettings(endpoints=endpoints, **settings_kwargs)
    except ValidationError as e:
        logger.error(f"Invalid analyzer configuration: {e}")
        raise ConfigurationError(f"Invalid analyzer configuration: {e}")

    if not settings.endpoints.api_key:
        logger.error("GEMINI_API_KEY not found in environment variables. Analysis requests will be rejected.")
    logger.info(
        f"Analyzer settings loaded: {len(settings.endpoints.resolved_primary_urls())} primary and "
        f"{len(settings.endpoints.resolved_secondary_urls())} secondary endpoint(s), "
        f"timeout {settings.endpoints.request_timeout}s."
    )
    return settings


class SecuritySettings(BaseModel):
    """Optional shared-key protection of the analysis endpoints."""
    model_config = ConfigDict(frozen=True)

    enable_api_key_auth: bool = False
    internal_api_key: str = ""


def load_security_settings(config: Optional[Dict[str, Any]] = None, env: Optional[Mapping[str, str]] = None) -> SecuritySettings:
    """Reads ``security.enable_api_key_auth`` from the config and the key itself from ``INTERNAL_API_KEY``."""
    if env is None:
        load_dotenv()
        env = os.environ
    config = config if config is not None else get_config()
    security_config = config.get('security', {}) or {}
    try:
        security = SecuritySettings(
            enable_api_key_auth=security_config.get('enable_api_key_auth', False),
            internal_api_key=env.get("INTERNAL_API_KEY", ""),
        )
    except ValidationError as e:
        logger.error(f"Invalid security configuration: {e}")
        raise ConfigurationError(f"Invalid security configuration: {e}")

    if security.enable_api_key_auth:
        logger.info("API key authentication enabled (X-API-Key header).")
        if not security.internal_api_key:
            logger.error("API key authentication enabled but INTERNAL_API_KEY is not set. Protected requests will be denied.")
    return security
