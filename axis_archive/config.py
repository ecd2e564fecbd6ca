"""Configuration management for Axis-Archive."""

import os
from typing import Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_RELAY_URL = "https://api.allorigins.win/raw?url="


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, "").lower()
    return value in ("true", "1", "yes", "on") if value else default


def get_str_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get string environment variable."""
    return os.getenv(key, default)


def get_int_env(key: str, default: int) -> int:
    """Get positive integer environment variable."""
    value = get_str_env(key, "")
    return int(value) if value and value.isdigit() and int(value) > 0 else default


def get_float_env(key: str, default: float) -> float:
    """Get positive float environment variable."""
    try:
        value = float(get_str_env(key, "") or default)
    except ValueError:
        return default
    return value if value > 0 else default


class Config:
    """Configuration class for Axis-Archive."""

    def __init__(self):
        # Required
        self.site_url: Optional[str] = get_str_env("SITE_URL")

        # Output
        self.output_dir: str = get_str_env("OUTPUT_DIR", "./output")

        # Transport: empty RELAY_URL fetches targets directly
        self.relay_url: str = get_str_env("RELAY_URL", DEFAULT_RELAY_URL)
        self.user_agent: str = get_str_env(
            "USER_AGENT", "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
        )
        self.max_workers: int = get_int_env("MAX_WORKERS", 8)
        self.fetch_timeout: float = get_float_env("FETCH_TIMEOUT", 15.0)

        # Diagnostics
        self.log_max_entries: int = get_int_env("LOG_MAX_ENTRIES", 200)
        self.preview_chars: int = get_int_env("PREVIEW_CHARS", 2500)
        self.verbose: bool = get_bool_env("VERBOSE", True)

        # Optional optimization of the archived files
        self.optimize_html: bool = get_bool_env("OPTIMIZE_HTML", False)
        self.optimize_images: bool = get_bool_env("OPTIMIZE_IMAGES", False)
        self.minify_js: bool = get_bool_env("MINIFY_JS", False)
        self.minify_css: bool = get_bool_env("MINIFY_CSS", False)

    def validate(self) -> Tuple[bool, Optional[str]]:
        """Validate configuration."""
        if not self.site_url:
            return False, "SITE_URL environment variable is required"
        parsed = urlparse(self.site_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False, f"SITE_URL must be an absolute http(s) URL: {self.site_url}"
        return True, None

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(site_url={self.site_url}, output_dir={self.output_dir})"
