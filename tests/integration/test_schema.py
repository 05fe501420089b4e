"""Test local table creation."""

import boto3

from genai_chat.config import Settings
from genai_chat.storage import create_tables
from genai_chat.storage.schema import table_definitions


def test_table_definitions(test_settings: Settings) -> None:
    definitions = {d["TableName"]: d for d in table_definitions(test_settings)}

    assert set(definitions) == {
        "test-chat",
        "test-token-usage",
        "test-token-usage-by-usecase",
        "test-token-usage-by-model",
    }
    [index] = definitions["test-chat"]["GlobalSecondaryIndexes"]
    assert index["IndexName"] == "FeedbackIndex"
    assert definitions["test-token-usage-by-model"]["KeySchema"][1]["AttributeName"] == "dateModel"


def test_create_tables_is_idempotent(dynamodb_tables: Settings) -> None:
    # Tables already exist from the fixture
    assert create_tables(dynamodb_tables) == []

    client = boto3.client("dynamodb", region_name="us-east-1")
    assert "test-chat" in client.list_tables()["TableNames"]
