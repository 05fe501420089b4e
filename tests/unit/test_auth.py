"""Test identity pool credentials and SigV4 signing."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.credentials import Credentials
from botocore.exceptions import ClientError

from genai_chat.client.auth import cognito_credential_provider, resolve_credentials, sign_request
from genai_chat.exceptions import AuthenticationError

ENDPOINT = "https://abc123.lambda-url.us-east-1.on.aws/"


@pytest.fixture
def credentials() -> Credentials:
    return Credentials("AKIDEXAMPLE", "secret", "session-token")


def test_sign_request_adds_sigv4_headers(credentials: Credentials) -> None:
    headers = sign_request(ENDPOINT, b'{"userPrompt": "hi"}', credentials, "us-east-1")

    assert headers["Authorization"].startswith("AWS4-HMAC-SHA256 ")
    assert "Credential=AKIDEXAMPLE/" in headers["Authorization"]
    assert "/us-east-1/lambda/aws4_request" in headers["Authorization"]
    assert headers["X-Amz-Security-Token"] == "session-token"
    assert "X-Amz-Date" in headers
    assert headers["host"] == "abc123.lambda-url.us-east-1.on.aws"


def test_signature_depends_on_body(credentials: Credentials) -> None:
    first = sign_request(ENDPOINT, b'{"a": 1}', credentials, "us-east-1")
    second = sign_request(ENDPOINT, b'{"a": 2}', credentials, "us-east-1")

    assert first["Authorization"] != second["Authorization"]


@pytest.mark.asyncio
async def test_resolve_credentials_requires_token(credentials: Credentials) -> None:
    with pytest.raises(AuthenticationError, match="Not authenticated"):
        await resolve_credentials(lambda token: credentials, None)


@pytest.mark.asyncio
async def test_resolve_credentials_calls_provider(credentials: Credentials) -> None:
    provider = MagicMock(return_value=credentials)

    result = await resolve_credentials(provider, "id-token")

    assert result is credentials
    provider.assert_called_once_with("id-token")


def test_cognito_provider_exchanges_id_token() -> None:
    client = MagicMock()
    client.get_id.return_value = {"IdentityId": "us-east-1:identity"}
    client.get_credentials_for_identity.return_value = {
        "Credentials": {"AccessKeyId": "AK", "SecretKey": "SK", "SessionToken": "ST"}
    }

    with patch("genai_chat.client.auth.boto3.client", return_value=client):
        provide = cognito_credential_provider("us-east-1", "us-east-1_pool", "us-east-1:idpool")
        creds = provide("id-token")

    logins = {"cognito-idp.us-east-1.amazonaws.com/us-east-1_pool": "id-token"}
    client.get_id.assert_called_once_with(IdentityPoolId="us-east-1:idpool", Logins=logins)
    client.get_credentials_for_identity.assert_called_once_with(
        IdentityId="us-east-1:identity", Logins=logins
    )
    assert (creds.access_key, creds.secret_key, creds.token) == ("AK", "SK", "ST")


def test_cognito_provider_wraps_client_errors() -> None:
    client = MagicMock()
    client.get_id.side_effect = ClientError(
        {"Error": {"Code": "NotAuthorizedException", "Message": "Invalid login token"}}, "GetId"
    )

    with patch("genai_chat.client.auth.boto3.client", return_value=client):
        provide = cognito_credential_provider("us-east-1", "pool", "idpool")
        with pytest.raises(AuthenticationError):
            provide("expired")
