"""Test settings loading."""

import pytest
from pydantic import ValidationError

from genai_chat.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TABLE_NAME", raising=False)
    config = Settings(_env_file=None)

    assert config.table_name == "generative-ai-chat"
    assert config.feedback_index_name == "FeedbackIndex"
    assert config.chats_page_size == 100
    assert config.token_usage_default_days == 7
    assert config.token_usage_max_days == 366


def test_table_names_from_deployment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TABLE_NAME", "prod-chat")
    monkeypatch.setenv("TOKEN_USAGE_TABLE_NAME", "prod-usage")
    monkeypatch.setenv("TOKEN_USAGE_BY_MODEL_TABLE_NAME", "prod-usage-model")

    config = Settings(_env_file=None)

    assert config.table_name == "prod-chat"
    assert config.token_usage_table_name == "prod-usage"
    assert config.token_usage_by_model_table_name == "prod-usage-model"


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValidationError, match="CHATS_PAGE_SIZE"):
        Settings(_env_file=None, chats_page_size=0)


def test_default_days_must_be_positive() -> None:
    with pytest.raises(ValidationError, match="TOKEN_USAGE_DEFAULT_DAYS"):
        Settings(_env_file=None, token_usage_default_days=0)


def test_lambda_detection(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AWS_LAMBDA_FUNCTION_NAME", raising=False)
    assert Settings(_env_file=None).is_lambda_environment is False

    monkeypatch.setenv("AWS_LAMBDA_FUNCTION_NAME", "chat-api")
    assert Settings(_env_file=None).is_lambda_environment is True


def test_max_days_cannot_be_below_default_window() -> None:
    with pytest.raises(ValidationError, match="TOKEN_USAGE_MAX_DAYS"):
        Settings(_env_file=None, token_usage_default_days=30, token_usage_max_days=7)
