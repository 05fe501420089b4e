"""Cognito identity pool credentials and SigV4 request signing."""

import asyncio
from collections.abc import Callable
from urllib.parse import urlparse

import boto3
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import ClientError
from loguru import logger

from ..exceptions import AuthenticationError

CredentialProvider = Callable[[str], Credentials]

SIGNING_SERVICE = "lambda"


def cognito_credential_provider(
    region: str, user_pool_id: str, identity_pool_id: str
) -> CredentialProvider:
    """Build a provider exchanging a user pool id token for AWS credentials."""
    login_provider = f"cognito-idp.{region}.amazonaws.com/{user_pool_id}"

    def provide(id_token: str) -> Credentials:
        client = boto3.client("cognito-identity", region_name=region)
        logins = {login_provider: id_token}
        try:
            identity = client.get_id(IdentityPoolId=identity_pool_id, Logins=logins)
            response = client.get_credentials_for_identity(
                IdentityId=identity["IdentityId"], Logins=logins
            )
        except ClientError as e:
            raise AuthenticationError(f"Could not obtain identity pool credentials: {e}") from e

        creds = response["Credentials"]
        logger.debug(f"Obtained credentials for identity {identity['IdentityId']}")
        return Credentials(creds["AccessKeyId"], creds["SecretKey"], creds["SessionToken"])

    return provide


async def resolve_credentials(
    provider: CredentialProvider, id_token: str | None
) -> Credentials:
    if not id_token:
        raise AuthenticationError("Not authenticated")
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, provider, id_token)


def sign_request(
    url: str,
    body: bytes,
    credentials: Credentials,
    region: str,
    service: str = SIGNING_SERVICE,
) -> dict[str, str]:
    """SigV4-sign a JSON POST and return the headers to send with it.

    The exact same body bytes must be sent, the payload hash is part of
    the signature.
    """
    hostname = urlparse(url).hostname or ""
    request = AWSRequest(
        method="POST",
        url=url,
        data=body,
        headers={"host": hostname, "content-type": "application/json"},
    )
    SigV4Auth(credentials, service, region).add_auth(request)
    return dict(request.headers.items())
