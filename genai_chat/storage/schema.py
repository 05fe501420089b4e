"""Table definitions for local development (DynamoDB Local, moto).

Deployed stacks provision these tables themselves; this mirrors their key
schema so the repositories can run against an empty local endpoint.
"""

from typing import Any

import boto3
from botocore.exceptions import ClientError
from loguru import logger

from ..config import Settings, settings as default_settings


def _string_attrs(*names: str) -> list[dict[str, str]]:
    return [{"AttributeName": name, "AttributeType": "S"} for name in names]


def table_definitions(settings: Settings) -> list[dict[str, Any]]:
    """``create_table`` arguments for the main table and the usage tables."""
    return [
        {
            "TableName": settings.table_name,
            "KeySchema": [
                {"AttributeName": "id", "KeyType": "HASH"},
                {"AttributeName": "createdDate", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": _string_attrs("id", "createdDate", "feedback"),
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": settings.feedback_index_name,
                    "KeySchema": [{"AttributeName": "feedback", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        *(
            {
                "TableName": name,
                "KeySchema": [
                    {"AttributeName": "userId", "KeyType": "HASH"},
                    {"AttributeName": sort_key, "KeyType": "RANGE"},
                ],
                "AttributeDefinitions": _string_attrs("userId", sort_key),
                "BillingMode": "PAY_PER_REQUEST",
            }
            for name, sort_key in (
                (settings.token_usage_table_name, "date"),
                (settings.token_usage_by_usecase_table_name, "dateUsecase"),
                (settings.token_usage_by_model_table_name, "dateModel"),
            )
        ),
    ]


def create_tables(settings: Settings | None = None) -> list[str]:
    """Create any missing table and wait until it is active.

    Returns:
        Names of the tables that were created.
    """
    settings = settings or default_settings
    client = boto3.client(
        "dynamodb", region_name=settings.aws_region, endpoint_url=settings.dynamodb_endpoint_url
    )
    created = []
    for definition in table_definitions(settings):
        name = definition["TableName"]
        try:
            client.create_table(**definition)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                raise
            logger.debug(f"Table {name} already exists")
            continue
        client.get_waiter("table_exists").wait(TableName=name)
        logger.info(f"Created table {name}")
        created.append(name)
    return created
