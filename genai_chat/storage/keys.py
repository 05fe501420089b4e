"""Key construction for the single-table layout.

Every partition key is a type prefix joined to an id with ``#``.
"""

import time
import uuid
from datetime import UTC, datetime

USER_PREFIX = "user#"
CHAT_PREFIX = "chat#"
SYSTEM_CONTEXT_PREFIX = "systemContext#"
SHARE_PREFIX = "share#"


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def chat_key(chat_id: str) -> str:
    return f"{CHAT_PREFIX}{chat_id}"


def system_context_key(id: str) -> str:
    return f"{SYSTEM_CONTEXT_PREFIX}{id}"


def share_key(share_id: str) -> str:
    return f"{SHARE_PREFIX}{share_id}"


def share_owner_key(user_id: str, chat_id: str) -> str:
    """Partition key of the item mapping a chat to its share id."""
    return f"{user_key(user_id)}_{chat_key(chat_id)}"


def new_id() -> str:
    return str(uuid.uuid4())


def now_millis() -> int:
    return int(time.time() * 1000)


def strip_user_prefix(value: str) -> str:
    """Drop only the leading ``user#`` segment.

    SAML user ids may themselves contain ``#``, e.g.
    ``user#EntraID_example.com#EXT#@example.onmicrosoft.com``.
    """
    return "#".join(value.split("#")[1:])


def strip_chat_prefix(value: str) -> str:
    return value.split("#")[1]


def usage_date(created_date: str) -> str:
    """UTC ``YYYY-MM-DD`` of a ``<epoch-ms>[#n]`` sort key."""
    millis = int(created_date.split("#")[0])
    return datetime.fromtimestamp(millis / 1000, tz=UTC).strftime("%Y-%m-%d")
