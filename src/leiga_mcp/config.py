"""Settings for the Leiga MCP server."""

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "https://app.leiga.com"
DEFAULT_API_PREFIX = "/openapi/api"
DEFAULT_CONFIG_DIR = Path.home() / ".leiga"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class LeigaSettings(BaseModel):
    """Connection settings for one Leiga client identity."""

    client_id: str = Field(default="", description="Leiga API client ID")
    secret: str = Field(default="", description="Leiga API secret")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Leiga host")
    api_prefix: str = Field(default=DEFAULT_API_PREFIX)
    config_dir: Path = Field(
        default=DEFAULT_CONFIG_DIR,
        description="Directory holding cached access tokens",
    )
    debug: bool = False

    @property
    def api_url(self) -> str:
        return self.base_url.rstrip("/") + "/" + self.api_prefix.strip("/")

    @classmethod
    def from_env(cls) -> "LeigaSettings":
        """Build settings from LEIGA_* environment variables."""
        values: dict[str, object] = {
            "client_id": os.environ.get("LEIGA_CLIENT_ID", ""),
            "secret": os.environ.get("LEIGA_SECRET", ""),
            "debug": os.environ.get("LEIGA_DEBUG", "").lower() in _TRUTHY,
        }
        if base_url := os.environ.get("LEIGA_BASE_URL"):
            values["base_url"] = base_url
        if config_dir := os.environ.get("LEIGA_CONFIG_DIR"):
            values["config_dir"] = Path(config_dir).expanduser()
        return cls(**values)
