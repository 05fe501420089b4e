"""Storage module with factories for the DynamoDB repositories."""

from loguru import logger

from ..config import Settings, settings as default_settings
from .dynamodb import DynamoDBChatRepository
from .protocols import ChatRepository, TokenUsageRepository
from .schema import create_tables
from .token_usage import DynamoDBTokenUsageRepository


def create_token_usage_repository(settings: Settings | None = None) -> DynamoDBTokenUsageRepository:
    """Create the token usage repository from settings."""
    settings = settings or default_settings
    logger.info("Creating DynamoDB token usage repository")
    return DynamoDBTokenUsageRepository(
        settings.token_usage_table_name,
        settings.token_usage_by_usecase_table_name,
        settings.token_usage_by_model_table_name,
        region=settings.aws_region,
        endpoint_url=settings.dynamodb_endpoint_url,
        max_days=settings.token_usage_max_days,
    )


def create_chat_repository(
    token_usage: TokenUsageRepository | None = None,
    settings: Settings | None = None,
) -> DynamoDBChatRepository:
    """Create the chat repository, wired to the token usage repository."""
    settings = settings or default_settings
    logger.info(f"Creating DynamoDB chat repository: {settings.table_name}")
    return DynamoDBChatRepository(
        settings.table_name,
        region=settings.aws_region,
        endpoint_url=settings.dynamodb_endpoint_url,
        token_usage=token_usage,
        page_size=settings.chats_page_size,
    )


__all__ = [
    "ChatRepository",
    "DynamoDBChatRepository",
    "DynamoDBTokenUsageRepository",
    "TokenUsageRepository",
    "create_chat_repository",
    "create_tables",
    "create_token_usage_repository",
]
