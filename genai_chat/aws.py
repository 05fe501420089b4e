"""AWS Lambda handler for the chat API."""

from typing import Any

from loguru import logger
from mangum import Mangum

from .api import app, configure_logging

configure_logging()
# The chat service is built on the first request and reused by the container.
handler = Mangum(app, lifespan="off")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """AWS Lambda entry point.

    Args:
        event: Lambda event dictionary containing request information.
        context: Lambda context object with runtime information.

    Returns:
        Response dictionary with statusCode, headers, and body.

    """
    logger.info(
        "Lambda request: {} {}",
        event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method"),
        event.get("path") or event.get("rawPath"),
    )
    response = handler(event, context)
    logger.info("Lambda response status: {}", response.get("statusCode"))

    return response  # type: ignore[no-any-return]
