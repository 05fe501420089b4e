"""Conversion between Python values and DynamoDB resource items."""

import json
from decimal import Decimal
from typing import Any


def to_item(value: dict[str, Any]) -> dict[str, Any]:
    """Prepare a dict for ``put_item``.

    The resource API rejects floats, so they are re-read as Decimal, and
    ``None`` attributes are dropped rather than stored as NULL.
    """
    clean = {k: v for k, v in value.items() if v is not None}
    return json.loads(json.dumps(clean), parse_float=Decimal)


def from_item(value: Any) -> Any:
    """Turn the Decimals boto3 returns back into int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_item(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_item(v) for v in value]
    return value
