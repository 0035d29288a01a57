"""
Configuration management for screencompare.
"""

import os
from pathlib import Path

from dotenv import load_dotenv


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "off", "")


class Config:
    """Configuration management with .env file and environment variable support."""

    def __init__(self):
        self.load_config()

    def load_config(self):
        """Load configuration from .env file and environment variables."""
        # Try to load .env file from the project directory or current directory
        script_dir = Path(__file__).parent.parent
        env_files = [
            script_dir / ".env",
            Path.cwd() / ".env",
        ]

        for env_file in env_files:
            if env_file.exists():
                load_dotenv(env_file)
                break

        # Configuration values (env vars override .env file)
        self.threshold = float(os.getenv("SCREENCOMPARE_THRESHOLD", "0.1"))
        self.include_aa = _env_flag("SCREENCOMPARE_INCLUDE_AA", "0")
        self.errors_log = os.getenv("SCREENCOMPARE_ERRORS_LOG", "browserstack.errors.log")
        self.error_prefix = os.getenv("SCREENCOMPARE_ERROR_PREFIX", "Error detected in image:")

        if not 0 <= self.threshold <= 1:
            raise ValueError(f"SCREENCOMPARE_THRESHOLD must be between 0 and 1, got: {self.threshold}")

    def print_config(self):
        """Print current configuration."""
        print("=== screencompare Configuration ===")
        print(f"Threshold: {self.threshold}")
        print(f"Include anti-aliasing: {'yes' if self.include_aa else 'no'}")
        print(f"Errors log: {self.errors_log}")
        print(f"Error prefix: {self.error_prefix}")
        print()
