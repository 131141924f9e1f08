"""Handles all user-facing configuration actions."""

import json
import os

from parley.globals import CONFIG_FILE

# Process-level override for the API base URL
API_URL_ENV = "PARLEY_API_URL"


class Config:
    """User-facing configuration variables"""

    def __init__(self):
        # Default values
        self.api_url: str = "http://localhost:8000/api"
        self.google_client_id: str = ""
        self.request_timeout: float = 30.0
        self.stats_refresh_rate: int = 30
        self.rich_code_theme: str = "monokai"
        self.log_level: str = "ERROR"

    def save(self):
        """Saves any config changes to the config file."""
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(self.__dict__, f, indent=2)

    def load(self):
        """Loads the config file."""
        if not os.path.exists(CONFIG_FILE):
            self.save()
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, val in data.items():
            if hasattr(self, key):
                setattr(self, key, val)

    @property
    def base_url(self) -> str:
        """Returns the API root, honoring the environment override"""
        return (os.getenv(API_URL_ENV) or self.api_url).rstrip("/")
