"""
Leiga MCP - Leiga project management tools for AI agents

- LeigaClient: async OpenAPI client with cached access tokens
- fields.update_issue: update issues by display name instead of internal IDs
"""

from .client import LeigaClient
from .config import LeigaSettings
from .server import main

__all__ = ["LeigaClient", "LeigaSettings", "main"]
