"""Shared test fixtures."""

import os
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from moto import mock_aws

# Set test environment before the settings singleton is created
os.environ["RATE_LIMIT"] = "1000/minute"
os.environ["LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

from genai_chat.chat import ChatService  # noqa: E402
from genai_chat.config import Settings  # noqa: E402
from genai_chat.middleware import create_token  # noqa: E402
from genai_chat.storage import (  # noqa: E402
    DynamoDBChatRepository,
    DynamoDBTokenUsageRepository,
    create_chat_repository,
    create_tables,
    create_token_usage_repository,
)


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def test_settings() -> Settings:
    """Settings pointing at test table names."""
    return Settings(
        aws_region="us-east-1",
        table_name="test-chat",
        token_usage_table_name="test-token-usage",
        token_usage_by_usecase_table_name="test-token-usage-by-usecase",
        token_usage_by_model_table_name="test-token-usage-by-model",
        chats_page_size=100,
    )


@pytest.fixture
def dynamodb_tables(aws_credentials: None, test_settings: Settings) -> Generator[Settings, None, None]:
    """Mocked DynamoDB with every table created."""
    with mock_aws():
        create_tables(test_settings)
        yield test_settings


@pytest_asyncio.fixture
async def token_usage_repository(
    dynamodb_tables: Settings,
) -> AsyncGenerator[DynamoDBTokenUsageRepository, None]:
    repository = create_token_usage_repository(dynamodb_tables)
    await repository.startup()
    yield repository
    await repository.shutdown()


@pytest_asyncio.fixture
async def chat_repository(
    dynamodb_tables: Settings,
    token_usage_repository: DynamoDBTokenUsageRepository,
) -> AsyncGenerator[DynamoDBChatRepository, None]:
    repository = create_chat_repository(token_usage=token_usage_repository, settings=dynamodb_tables)
    await repository.startup()
    yield repository
    await repository.shutdown()


@pytest.fixture
def chat_service(
    chat_repository: DynamoDBChatRepository,
    token_usage_repository: DynamoDBTokenUsageRepository,
) -> ChatService:
    return ChatService(chat_repository, token_usage_repository)


@pytest_asyncio.fixture
async def client(chat_service: ChatService) -> AsyncGenerator[AsyncClient, None]:
    """API client backed by the real service on mocked DynamoDB."""
    from genai_chat import app

    app.state.chat_service = chat_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.chat_service = None


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer token for user ``alice``."""
    return {"Authorization": f"Bearer {create_token('alice')}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    """Bearer token for user ``bob``."""
    return {"Authorization": f"Bearer {create_token('bob')}"}


@pytest.fixture
def usage_metadata() -> dict:
    return {
        "usage": {
            "inputTokens": 100,
            "outputTokens": 50,
            "cacheReadInputTokens": 10,
            "cacheWriteInputTokens": 5,
        }
    }
