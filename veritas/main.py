# veritas/main.py

import asyncio
import logging
import secrets
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security.api_key import APIKeyHeader
from starlette.exceptions import HTTPException as StarletteHTTPException

from .analyzer import CredibilityAnalyzer
from .failover import FailoverController
from .gemini_utils import GeminiClient, create_http_client
from .models import (
    AnalyzeRequest, AnalyzeResponse, AnalyzeUrlRequest, ConnectionTestResponse, ErrorResponse, StatusResponse,
)
from .settings import AnalyzerSettings, SecuritySettings, load_security_settings, load_settings
from .utils import (
    ApiException, ConfigurationError, ContentExtractionError, InputValidationError, get_config, setup_logging,
)

# --- Basic Setup ---
setup_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

ERROR_RESPONSES = {
    400: {"description": "Bad Request", "model": ErrorResponse},
    401: {"description": "Unauthorized", "model": ErrorResponse},
    500: {"description": "Internal Server Error", "model": ErrorResponse},
    504: {"description": "Analysis Timed Out", "model": ErrorResponse},
}


def _error_response(status_code: int, message: str, error: str, request_id: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(message=message, error=error, request_id=request_id)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


# --- API Key Security ---
API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)

async def get_api_key(request: Request, key: Optional[str] = Security(api_key_header)):
    """Dependency to validate the API Key if security is enabled."""
    security: SecuritySettings = request.app.state.security
    if not security.enable_api_key_auth:
        logger.debug("API Key auth disabled.")
        return None
    if not key:
        logger.info("Request rejected: API Key required via X-API-Key header.")
        raise HTTPException(status_code=401, detail={"error": "Unauthorized", "message": "API Key required via X-API-Key header."})
    if not security.internal_api_key:
        logger.error("API Key security enabled, but INTERNAL_API_KEY not set. Denying request.")
        raise HTTPException(status_code=500, detail={"error": "Configuration Error", "message": "API Key authentication is misconfigured on the server."})
    if not secrets.compare_digest(key.encode(), security.internal_api_key.encode()):
        logger.warning("Request rejected: Invalid API Key provided.")
        raise HTTPException(status_code=401, detail={"error": "Unauthorized", "message": "Invalid API Key."})
    logger.debug("API Key validated successfully.")
    return key


# --- App Lifespan Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup initiated...")
    if app.state.settings is None:
        app.state.settings = load_settings()
    settings: AnalyzerSettings = app.state.settings

    # Shared client for Gemini calls and page fetches
    app.state.http_client = create_http_client(settings)
    if app.state.analyzer is None:
        gemini_client = GeminiClient(settings, app.state.http_client)
        failover = FailoverController(gemini_client, settings.endpoints)
        app.state.analyzer = CredibilityAnalyzer(settings, failover)
    logger.info("Application startup complete.")
    yield  # API is now running

    logger.info("Application shutdown initiated...")
    await app.state.http_client.aclose()
    logger.info("Shared HTTP client closed. Application shutdown complete.")


def create_app(
    settings: Optional[AnalyzerSettings] = None,
    analyzer: Optional[CredibilityAnalyzer] = None,
    security: Optional[SecuritySettings] = None,
) -> FastAPI:
    """Builds the API. ``settings`` / ``analyzer`` are resolved during startup when not given; ``security`` is read from config now."""
    app = FastAPI(
        title="Veritas Analyzer API",
        description="Content credibility analysis using parallel Gemini prompts with endpoint failover.",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings if settings is not None else (analyzer.settings if analyzer else None)
    app.state.analyzer = analyzer
    app.state.http_client = None
    app.state.security = security if security is not None else load_security_settings()

    # --- CORS Configuration ---
    allowed_origins = get_config().get("api", {}).get("cors_allowed_origins", ["*"])
    logger.info(f"Configuring CORS for origins: {allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception Handlers ---
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            return _error_response(
                exc.status_code,
                str(exc.detail.get("message", "Request failed")),
                str(exc.detail.get("error", exc.status_code)),
                exc.detail.get("request_id"),
            )
        if exc.status_code == 405:
            return _error_response(405, "Method not allowed", "Method Not Allowed")
        return _error_response(exc.status_code, str(exc.detail), str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        if location == "text":
            message = "Text is required and must be a string"
        else:
            message = f"Invalid request: {location or 'body'} {first.get('msg', 'is invalid')}".strip()
        logger.info(f"Rejected request to {request.url.path}: {message}")
        return _error_response(400, message, "Bad Request")

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        return _error_response(500, "Internal server error", str(exc))

    @app.exception_handler(InputValidationError)
    async def input_exception_handler(request: Request, exc: InputValidationError):
        return _error_response(400, str(exc), "Bad Request")

    @app.exception_handler(ContentExtractionError)
    async def extraction_exception_handler(request: Request, exc: ContentExtractionError):
        return _error_response(400, f"Failed to extract content from URL: {exc}", "Content Extraction Failed")

    @app.exception_handler(ApiException)
    async def api_exception_handler(request: Request, exc: ApiException):
        return _error_response(500, "Internal server error", str(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        return _error_response(500, "Internal server error", str(exc) or type(exc).__name__)

    # --- API Endpoints ---
    async def _run_with_budget(request_id: str, coro):
        timeout = app.state.settings.analysis_timeout
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"[ReqID: {request_id}] Analysis exceeded the {timeout}s budget.")
            raise HTTPException(status_code=504, detail={
                "request_id": request_id, "error": "Gateway Timeout",
                "message": f"Analysis did not complete within {timeout} seconds.",
            })

    @app.get("/status", response_model=StatusResponse, tags=["General"])
    async def get_status():
        """Service status and endpoint configuration summary."""
        settings: AnalyzerSettings = app.state.settings
        return StatusResponse(
            version=API_VERSION,
            api_key_configured=bool(settings.endpoints.api_key),
            primary_endpoints=len(settings.endpoints.resolved_primary_urls()),
            secondary_endpoints=len(settings.endpoints.resolved_secondary_urls()),
        )

    @app.post("/api/analyze", response_model=AnalyzeResponse, tags=["Analysis"], responses=ERROR_RESPONSES, dependencies=[Depends(get_api_key)])
    async def analyze_text(request: AnalyzeRequest):
        """Runs the requested analysis types (all when omitted) and returns the merged credibility report."""
        request_id = str(uuid.uuid4())
        start_time = time.perf_counter()
        logger.info(f"[ReqID: {request_id}] Received analysis request for: '{request.text[:100]}...'")

        report = await _run_with_budget(
            request_id, app.state.analyzer.analyze(request.text, request.analysis_types, request_id=request_id)
        )
        processing_time = round((time.perf_counter() - start_time) * 1000, 2)
        logger.info(f"[ReqID: {request_id}] Analysis completed in {processing_time:.2f} ms. Score: {report.overall_score} ({report.credibility_level})")
        return AnalyzeResponse(data=report)

    @app.post("/api/analyze-url", response_model=AnalyzeResponse, tags=["Analysis"], responses=ERROR_RESPONSES, dependencies=[Depends(get_api_key)])
    async def analyze_url(request: AnalyzeUrlRequest):
        """Extracts a web page's content and analyzes it for content quality, facts, safety and clickbait."""
        request_id = str(uuid.uuid4())
        start_time = time.perf_counter()
        logger.info(f"[ReqID: {request_id}] Received URL analysis request for: {request.url}")

        report = await _run_with_budget(
            request_id, app.state.analyzer.analyze_url(request.url, app.state.http_client, request_id=request_id)
        )
        processing_time = round((time.perf_counter() - start_time) * 1000, 2)
        logger.info(f"[ReqID: {request_id}] URL analysis completed in {processing_time:.2f} ms. Score: {report.overall_score}")
        return AnalyzeResponse(data=report)

    @app.get("/api/test-gemini", response_model=ConnectionTestResponse, response_model_exclude_none=True, tags=["General"],
             dependencies=[Depends(get_api_key)])
    async def test_gemini():
        """Sends a minimal prompt through the endpoint chain to confirm the API key and endpoints work."""
        settings: AnalyzerSettings = app.state.settings
        result = await app.state.analyzer.failover.test_connection(settings.default_max_output_tokens)
        return ConnectionTestResponse(**result)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    api_config = get_config().get("api", {})
    uvicorn.run(
        "veritas.main:app",
        host=api_config.get("host", "0.0.0.0"),
        port=int(api_config.get("port", 8000)),
        reload=False,
    )
