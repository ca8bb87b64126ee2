"""
Client Configuration

Loads configuration from environment variables with sensible defaults.
All endpoints, timeouts and retry settings used by the client are defined here.
"""

import os
from dotenv import load_dotenv

# Load .env file if it exists (system env vars win over .env values)
load_dotenv()

# =============================================================================
# BACKEND API
# =============================================================================

API_BASE_URL = os.getenv("CORIO_API_BASE_URL", "https://dermaai-1d9i.onrender.com")

# Bearer token attached to every request when set (login flow lives elsewhere)
API_TOKEN = os.getenv("CORIO_API_TOKEN", "")

# =============================================================================
# TIMEOUTS (seconds)
# =============================================================================

# Ordinary CRUD calls
API_TIMEOUT = float(os.getenv("CORIO_API_TIMEOUT", "30"))

# AI analysis and comparison calls fan out to several providers server-side
ANALYSIS_TIMEOUT = float(os.getenv("CORIO_ANALYSIS_TIMEOUT", "120"))

# =============================================================================
# IMAGE UPLOAD
# =============================================================================

UPLOAD_MAX_ATTEMPTS = int(os.getenv("CORIO_UPLOAD_MAX_ATTEMPTS", "3"))

# Backoff base delay; attempt n waits base * 2^(n-1) before retrying
UPLOAD_RETRY_BASE_DELAY = float(os.getenv("CORIO_UPLOAD_RETRY_BASE_DELAY", "1.0"))

MAX_IMAGES = int(os.getenv("CORIO_MAX_IMAGES", "3"))

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

# =============================================================================
# LANGUAGE
# =============================================================================

SUPPORTED_LANGUAGES = ("en", "tr")

DEFAULT_LANGUAGE = os.getenv("CORIO_DEFAULT_LANGUAGE", "en")
if DEFAULT_LANGUAGE not in SUPPORTED_LANGUAGES:
    DEFAULT_LANGUAGE = "en"

# =============================================================================
# READ CACHE (seconds a cached read stays fresh)
# =============================================================================

CASES_STALE_SECONDS = float(os.getenv("CORIO_CASES_STALE_SECONDS", "300"))
TRACKINGS_STALE_SECONDS = float(os.getenv("CORIO_TRACKINGS_STALE_SECONDS", "300"))
TRACKING_DETAIL_STALE_SECONDS = float(os.getenv("CORIO_TRACKING_DETAIL_STALE_SECONDS", "120"))

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
LOG_OUTPUT = os.getenv("LOG_OUTPUT", "stdout")
LOG_FILE = os.getenv("LOG_FILE", "logs/corio_client.json.log")
SERVICE_NAME = "corio-client"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
