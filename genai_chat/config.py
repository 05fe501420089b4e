"""Configuration using pydantic-settings."""

import os

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation and constants.

    Table names are read from the same variables the Lambda functions are
    deployed with (``TABLE_NAME``, ``TOKEN_USAGE_TABLE_NAME``, ...).
    """

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 8000
    log_level: str = "INFO"
    log_file: str | None = None

    aws_region: str = "us-east-1"
    dynamodb_endpoint_url: str | None = None

    table_name: str = "generative-ai-chat"
    token_usage_table_name: str = "generative-ai-token-usage"
    token_usage_by_usecase_table_name: str = "generative-ai-token-usage-by-usecase"
    token_usage_by_model_table_name: str = "generative-ai-token-usage-by-model"
    feedback_index_name: str = "FeedbackIndex"

    chats_page_size: int = 100
    token_usage_default_days: int = 7
    token_usage_max_days: int = 366

    rate_limit: str = "120/minute"

    # JWT settings (local development only, API Gateway verifies Cognito tokens)
    secret_key: str = "your-secret-key-change-in-production"  # noqa: S105
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 30

    # MCP client settings
    mcp_endpoint: str | None = None
    user_pool_id: str | None = None
    identity_pool_id: str | None = None

    @property
    def is_lambda_environment(self) -> bool:
        """Check if running in AWS Lambda."""
        return bool(os.getenv("AWS_LAMBDA_FUNCTION_NAME"))

    @model_validator(mode="after")
    def validate_page_size(self) -> "Settings":
        """DynamoDB rejects a query Limit below 1."""
        if self.chats_page_size < 1:
            raise ValueError("CHATS_PAGE_SIZE must be a positive integer")
        if self.token_usage_default_days < 1:
            raise ValueError("TOKEN_USAGE_DEFAULT_DAYS must be a positive integer")
        if self.token_usage_max_days < self.token_usage_default_days:
            raise ValueError("TOKEN_USAGE_MAX_DAYS must not be below TOKEN_USAGE_DEFAULT_DAYS")
        return self

    class Config:
        """Pydantic config."""

        env_file = ".env"
        extra = "ignore"


settings = Settings()
