"""
Application settings and configuration values.

This module centralizes all configuration values including:
- Model credentials and generation parameters
- Intent/routing thresholds
- Executor retry and timeout policy
- Sandbox policies for the filesystem, web and process tools

Environment variables are loaded via python-dotenv.
"""

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# ============================================================================
# PATHS
# ============================================================================

BASE_DIR = Path(__file__).parent.parent
WORKSPACE_DIR = Path(os.getenv("WORKSPACE_DIR", str(Path.cwd())))

# ============================================================================
# LLM CONFIGURATION
# ============================================================================

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

if not GOOGLE_API_KEY:
    logger.info("ℹ️  GOOGLE_API_KEY not set - intent parsing runs on heuristics only")

TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "2048"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
LLM_RETRY_DELAY = float(os.getenv("LLM_RETRY_DELAY", "1.0"))  # seconds

# ============================================================================
# INTENT & ROUTING
# ============================================================================

CONFIDENCE_THRESHOLD = float(os.getenv("CONFIDENCE_THRESHOLD", "0.6"))
PREFER_DIRECT_EXECUTION = _env_bool("PREFER_DIRECT_EXECUTION", True)

# ============================================================================
# EXECUTOR
# ============================================================================

EXECUTOR_MAX_RETRIES = int(os.getenv("EXECUTOR_MAX_RETRIES", "3"))
EXECUTOR_BASE_DELAY_MS = int(os.getenv("EXECUTOR_BASE_DELAY_MS", "1000"))
EXECUTOR_TIMEOUT_MS = int(os.getenv("EXECUTOR_TIMEOUT_MS", "30000"))

# Finished tasks older than this are dropped from the state store
TASK_MAX_AGE_MS = int(os.getenv("TASK_MAX_AGE_MS", "3600000"))

# ============================================================================
# TOOL POLICIES
# ============================================================================

# Filesystem
FS_ALLOW_ROOTS = _env_list("FS_ALLOW_ROOTS", str(WORKSPACE_DIR))
FS_DENY_PATTERNS = _env_list("FS_DENY_PATTERNS", "**/.env,**/.git/**,**/*.pem,**/id_rsa*")
FS_MAX_FILE_SIZE = int(os.getenv("FS_MAX_FILE_SIZE", str(5 * 1024 * 1024)))  # bytes

# Web
WEB_ALLOWED_HOSTS = _env_list("WEB_ALLOWED_HOSTS", "*")
WEB_RATE_LIMIT_REQUESTS = int(os.getenv("WEB_RATE_LIMIT_REQUESTS", "30"))
WEB_RATE_LIMIT_WINDOW = float(os.getenv("WEB_RATE_LIMIT_WINDOW", "60"))  # seconds
WEB_TIMEOUT = float(os.getenv("WEB_TIMEOUT", "20"))  # seconds
WEB_MAX_RESPONSE_CHARS = int(os.getenv("WEB_MAX_RESPONSE_CHARS", "200000"))

# Process
PROCESS_WHITELIST = _env_list("PROCESS_WHITELIST", "ls,cat,echo,pwd,git,grep,wc,head,tail,date,python,pytest")
PROCESS_TIMEOUT = float(os.getenv("PROCESS_TIMEOUT", "30"))  # seconds
PROCESS_MAX_OUTPUT_CHARS = int(os.getenv("PROCESS_MAX_OUTPUT_CHARS", "100000"))

# ============================================================================
# DEVELOPMENT / DEBUG SETTINGS
# ============================================================================

DEBUG = _env_bool("DEBUG", False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

if DEBUG:
    logger.debug(
        f"🔧 Settings: model={GEMINI_MODEL}, threshold={CONFIDENCE_THRESHOLD}, "
        f"retries={EXECUTOR_MAX_RETRIES}, timeout={EXECUTOR_TIMEOUT_MS}ms, "
        f"fs_roots={FS_ALLOW_ROOTS}"
    )
