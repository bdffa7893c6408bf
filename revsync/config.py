"""Shared configuration loaded from .env"""

import logging
import os
import warnings
from pathlib import Path
from dotenv import load_dotenv

# Make environment loading explicit with opt-out mechanism
if os.getenv("REVSYNC_AUTO_LOAD_DOTENV", "true").lower() == "true":
    load_dotenv()


def _get_int(env_var: str, default: int, name: str) -> int:
    """Safely convert environment variable to int with fallback.

    Args:
        env_var: Environment variable name
        default: Default value if env var is not set or invalid
        name: Human-readable name for error messages

    Returns:
        Integer value from env var or default
    """
    value = os.getenv(env_var, str(default))
    try:
        result = int(value)
        if result < 0:
            warnings.warn(f"{name} must be non-negative, got {result}. Using default {default}.")
            return default
        return result
    except ValueError:
        warnings.warn(f"Invalid {env_var} value '{value}', using default {default}")
        return default


def _parse_list_env(value: str | None) -> list[str]:
    """Parse comma-separated environment variable into list.

    Args:
        value: Environment variable value (may be None or empty string)

    Returns:
        List of non-empty stripped strings, or empty list
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def configure_logging(level: str | None = None) -> None:
    """Apply LOG_LEVEL to the root logger."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Workspace
WORKSPACE_ROOT = Path(os.getenv("REVSYNC_WORKSPACE", os.getcwd()))
STORE_FILENAME = os.getenv("REVSYNC_STORE_FILE", ".review-annotations.json")
STORE_VERSION = "1.0"

# Remote repository backend: "gh" (GitHub CLI) or "github" (REST API)
REMOTE_BACKEND = os.getenv("REVSYNC_REMOTE", "gh")
GH_BINARY = os.getenv("GH_BINARY", "gh")
GIT_BINARY = os.getenv("GIT_BINARY", "git")

# GitHub API configuration
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
GITHUB_API_BASE = os.getenv("GITHUB_API_BASE", "https://api.github.com")
GITHUB_WEB_BASE = os.getenv("GITHUB_WEB_BASE", "https://github.com")
DEFAULT_TIMEOUT = 30.0
DEFAULT_PER_PAGE = 100

# Review conventions
DEFAULT_LOCALE = os.getenv("REVSYNC_LOCALE", "ko")
DOC_EXTENSIONS = _parse_list_env(os.getenv("DOC_EXTENSIONS")) or [".md"]
REVIEW_BODY = os.getenv("REVIEW_BODY", "Translation review")
SLUG_MAX_LENGTH = 50
DEFAULT_AUTHOR = "You"

# API Server configuration
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = _get_int("API_PORT", 8000, "API_PORT")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
