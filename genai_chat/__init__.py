"""Generative AI chat backend - DynamoDB persistence, sharing, token usage and MCP client."""

from .api import app, create_app
from .chat import ChatService
from .version import __version__

__all__ = [
    "ChatService",
    "__version__",
    "app",
    "create_app",
]
