"""Client for the streaming MCP endpoint and the chat API."""

from .api import ChatApiClient
from .auth import cognito_credential_provider, sign_request
from .session import ChatSession, McpClient, SessionMessage
from .stream import LineBuffer, iter_chunks

__all__ = [
    "ChatApiClient",
    "ChatSession",
    "LineBuffer",
    "McpClient",
    "SessionMessage",
    "cognito_credential_provider",
    "iter_chunks",
    "sign_request",
]
