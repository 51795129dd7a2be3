import logging
import logging.config
import yaml
import os
from urllib.parse import urlparse, urlunparse


# --- Custom Exceptions ---
class ApiException(Exception):
    """Base exception for errors surfaced to API callers."""
    pass

class ConfigurationError(ApiException):
    """Raised when the service is missing required configuration (API key, unknown prompt type)."""
    pass

class InputValidationError(ApiException):
    """Raised when a request is rejected before any model call is made."""

    def __init__(self, message: str, kind=None):
        super().__init__(message)
        self.kind = kind

class ContentExtractionError(ApiException):
    """Raised when page content cannot be fetched or extracted from a URL."""
    pass


# --- Config Loading ---
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), '..', 'config', 'config.yaml')

def load_config_file(config_path: str = None) -> dict:
    """Reads the YAML config. Missing or malformed files yield an empty dict."""
    config_path = config_path or os.getenv("VERITAS_CONFIG_PATH") or DEFAULT_CONFIG_PATH
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
        if config is None: config = {} # Handle empty file
        if not isinstance(config, dict):
            logging.error(f"Configuration file {config_path} does not contain a mapping. Using empty config.")
            config = {}
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {config_path}. Using empty config.")
        config = {}
    except yaml.YAMLError as e:
        logging.error(f"Error parsing configuration file {config_path}: {e}. Using empty config.")
        config = {}
    return config

_config = None
def get_config():
    global _config
    if _config is None:
        _config = load_config_file()
    return _config

# --- Logging Setup ---
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] - %(message)s'
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5
# Third-party loggers kept quieter than the app; `logging.levels` in config overrides these
DEFAULT_LOGGER_LEVELS = {
    'uvicorn.error': 'INFO',
    'uvicorn.access': 'WARNING',
    'httpx': 'WARNING',
}

_logging_configured = False
def build_logging_config(config: dict) -> dict:
    """dictConfig schema for the `logging` config section: console always, rotating file when a path is set."""
    log_section = config.get('logging') or {}
    log_level = str(log_section.get('level', 'INFO')).upper()
    log_file_path = log_section.get('file_path', os.path.join('logs', 'api.log'))

    handlers = {
        'console': {
            'level': log_level,
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'stream': 'ext://sys.stdout',
        },
    }
    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers['file'] = {
            'level': log_level,
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'standard',
            'filename': log_file_path,
            'maxBytes': LOG_MAX_BYTES,
            'backupCount': LOG_BACKUP_COUNT,
            'encoding': 'utf8',
        }
    handler_names = list(handlers)

    logger_levels = {**DEFAULT_LOGGER_LEVELS, **(log_section.get('levels') or {})}
    loggers = {'': {'handlers': handler_names, 'level': log_level, 'propagate': False}}
    for name, level in logger_levels.items():
        loggers[name] = {'handlers': handler_names, 'level': str(level).upper(), 'propagate': False}

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': log_section.get('format', LOG_FORMAT),
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
        },
        'handlers': handlers,
        'loggers': loggers,
    }

def setup_logging(config: dict = None):
    global _logging_configured
    if _logging_configured: return

    config = config if config is not None else get_config()
    logging_config = build_logging_config(config)
    try:
         logging.config.dictConfig(logging_config)
         logging.info(f"Logging configured at level {logging_config['loggers']['']['level']}.")
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as e:
         logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
         logging.error(f"Failed to configure logging from dictConfig: {e}. Using basicConfig.")
    _logging_configured = True


# --- URL Utilities ---
def is_valid_url(url: str) -> bool:
    """Checks if a string is a potentially valid HTTP/HTTPS URL structure."""
    if not isinstance(url, str): return False
    try:
        result = urlparse(url)
        return all([result.scheme in ['http', 'https'], result.netloc]) and not any(c.isspace() for c in result.netloc)
    except ValueError:
        return False


def sanitize_url(url: str) -> str:
     """Prepares a URL for fetching (removes fragments and common tracking params)."""
     try:
          parsed = urlparse(url.strip())
          parsed = parsed._replace(fragment="")
          query_params = [p for p in parsed.query.split('&') if p and not p.lower().startswith(('utm_', 'fbclid=', 'gclid='))]
          parsed = parsed._replace(query="&".join(query_params))

          clean_url = urlunparse(parsed)
          if not clean_url.startswith(('http://', 'https://')):
               if clean_url.startswith('//'): # Protocol-relative URL
                   clean_url = 'https:' + clean_url
               elif urlparse(f"https://{clean_url}").netloc:
                     clean_url = f"https://{clean_url}"
               else:
                    logging.warning(f"Could not confidently add scheme to URL: {url}")
                    return url
          return clean_url
     except ValueError as e:
          logging.error(f"Error sanitizing URL '{url}': {e}")
          return url


def get_hostname(url: str) -> str:
    """Hostname of a URL without a leading 'www.', or 'Unknown'."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "Unknown"
    if not hostname:
        return "Unknown"
    return hostname[4:] if hostname.startswith("www.") else hostname
