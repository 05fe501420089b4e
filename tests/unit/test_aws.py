"""Test AWS Lambda handler."""

from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from genai_chat.aws import lambda_handler


@pytest.fixture
def lambda_context() -> MagicMock:
    """Mock Lambda context."""
    context = MagicMock()
    context.request_id = "test-request-id"
    context.function_name = "genai-chat-api"
    context.memory_limit_in_mb = 256
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:genai-chat-api"
    return context


@pytest.fixture
def rest_api_event() -> dict[str, Any]:
    """API Gateway REST event with Cognito authorizer claims."""
    return {
        "resource": "/chats",
        "path": "/chats",
        "httpMethod": "GET",
        "headers": {"content-type": "application/json"},
        "queryStringParameters": None,
        "requestContext": {
            "accountId": "123456789012",
            "requestId": "request-id",
            "stage": "api",
            "authorizer": {"claims": {"cognito:username": "alice"}},
        },
        "body": None,
        "isBase64Encoded": False,
    }


@pytest.fixture
def http_api_event() -> dict[str, Any]:
    """API Gateway HTTP API (payload 2.0) event."""
    return {
        "version": "2.0",
        "routeKey": "GET /health",
        "rawPath": "/health",
        "rawQueryString": "",
        "headers": {},
        "requestContext": {"http": {"method": "GET", "path": "/health"}},
        "isBase64Encoded": False,
    }


def test_lambda_handler_success(rest_api_event: dict[str, Any], lambda_context: MagicMock) -> None:
    with patch("genai_chat.aws.handler") as mock_handler:
        mock_handler.return_value = {
            "statusCode": 200,
            "headers": {"content-type": "application/json"},
            "body": '{"data": []}',
        }

        response = lambda_handler(rest_api_event, lambda_context)

        assert response["statusCode"] == 200
        mock_handler.assert_called_once_with(rest_api_event, lambda_context)


def test_lambda_handler_http_api_event(
    http_api_event: dict[str, Any], lambda_context: MagicMock
) -> None:
    with patch("genai_chat.aws.handler") as mock_handler:
        mock_handler.return_value = {"statusCode": 200, "body": '{"status": "healthy"}'}

        response = lambda_handler(http_api_event, lambda_context)

        assert "healthy" in response["body"]


def test_lambda_handler_error(rest_api_event: dict[str, Any], lambda_context: MagicMock) -> None:
    with patch("genai_chat.aws.handler") as mock_handler:
        mock_handler.side_effect = Exception("Handler error")

        with pytest.raises(Exception, match="Handler error"):
            lambda_handler(rest_api_event, lambda_context)


def test_lifespan_is_off() -> None:
    from genai_chat.aws import handler

    assert handler.lifespan == "off"
