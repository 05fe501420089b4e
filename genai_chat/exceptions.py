"""Domain-specific exceptions for the chat backend."""


class ChatAPIError(Exception):
    """Base exception for all chat backend errors."""


class StorageError(ChatAPIError):
    """Error related to DynamoDB operations."""


class ValidationError(ChatAPIError):
    """Error related to input validation (not Pydantic)."""


class ConfigurationError(ChatAPIError):
    """Error related to configuration issues."""


class NotFoundError(ChatAPIError):
    """Requested chat, system context or share does not exist."""


class ForbiddenError(ChatAPIError):
    """Resource exists but belongs to another user."""


class AuthenticationError(ChatAPIError):
    """Caller identity could not be established."""


class McpStreamError(ChatAPIError):
    """MCP endpoint refused or broke the stream."""
