"""DynamoDB repository for chats, messages, system contexts and shares."""

import asyncio
import base64
import binascii
import json
from collections.abc import Callable
from functools import partial
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr, Key
from loguru import logger

from ..exceptions import NotFoundError, ValidationError
from ..models import ToBeRecordedMessage, UpdateFeedbackRequest
from ..retry import with_storage_retry
from ..types import (
    Chat,
    ListChatsResponse,
    RecordedMessage,
    ShareId,
    ShareResult,
    SystemContext,
    UserIdAndChatId,
)
from . import keys
from .items import from_item, to_item
from .protocols import TokenUsageRepository


def encode_start_key(last_evaluated_key: dict[str, Any]) -> str:
    """Opaque pagination cursor handed to the client."""
    return base64.b64encode(json.dumps(last_evaluated_key).encode()).decode()


def decode_start_key(cursor: str) -> dict[str, Any]:
    try:
        decoded = json.loads(base64.b64decode(cursor, validate=True).decode())
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid exclusiveStartKey") from e
    if not isinstance(decoded, dict):
        raise ValidationError("Invalid exclusiveStartKey")
    return decoded


class DynamoDBChatRepository:
    """Single-table repository.

    All records share one table keyed by ``id`` / ``createdDate``; the
    record type is encoded in the ``id`` prefix (see ``storage.keys``).
    Recording messages also feeds the token usage tables when a token
    usage repository is attached.
    """

    def __init__(
        self,
        table_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        token_usage: TokenUsageRepository | None = None,
        page_size: int = 100,
    ):
        self.table_name = table_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.token_usage = token_usage
        self.page_size = page_size
        self.table: Any = None

    async def startup(self) -> None:
        """Initialize DynamoDB connection."""
        resource = boto3.resource(
            "dynamodb", region_name=self.region, endpoint_url=self.endpoint_url
        )
        self.table = resource.Table(self.table_name)
        logger.info(f"Connected to DynamoDB table: {self.table_name} in {self.region}")

    async def shutdown(self) -> None:
        """No cleanup needed for DynamoDB."""
        pass

    async def health_check(self) -> bool:
        """Check if the table is accessible."""
        try:
            status = await self._run(lambda: self.table.table_status)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"DynamoDB health check failed: {e}")
            return False
        return status == "ACTIVE"

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking boto3 call in the default executor."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def _query_first(self, **query: Any) -> dict[str, Any] | None:
        """First matching item, following pages when a filter drops items."""
        while True:
            response = await self._run(self.table.query, **query)
            items = response.get("Items", [])
            if items:
                return from_item(items[0])
            if "LastEvaluatedKey" not in response:
                return None
            query["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    async def _query_all(self, **query: Any) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        while True:
            response = await self._run(self.table.query, **query)
            items.extend(from_item(item) for item in response.get("Items", []))
            if "LastEvaluatedKey" not in response:
                return items
            query["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    # Chats

    @with_storage_retry("create_chat")
    async def create_chat(self, user_id: str) -> Chat:
        item: Chat = {
            "id": keys.user_key(user_id),
            "createdDate": str(keys.now_millis()),
            "chatId": keys.chat_key(keys.new_id()),
            "usecase": "",
            "title": "",
            "updatedDate": "",
        }
        await self._run(self.table.put_item, Item=item)
        return item

    @with_storage_retry("find_chat_by_id")
    async def find_chat_by_id(self, user_id: str, chat_id: str) -> Chat | None:
        return await self._query_first(  # type: ignore[return-value]
            KeyConditionExpression=Key("id").eq(keys.user_key(user_id)),
            FilterExpression=Attr("chatId").eq(keys.chat_key(chat_id)),
        )

    @with_storage_retry("list_chats")
    async def list_chats(
        self, user_id: str, exclusive_start_key: str | None = None
    ) -> ListChatsResponse:
        """One page of the user's chats, newest first."""
        query: dict[str, Any] = {
            "KeyConditionExpression": Key("id").eq(keys.user_key(user_id)),
            "ScanIndexForward": False,
            "Limit": self.page_size,
        }
        if exclusive_start_key:
            query["ExclusiveStartKey"] = decode_start_key(exclusive_start_key)

        response = await self._run(self.table.query, **query)
        result: ListChatsResponse = {
            "data": [from_item(item) for item in response.get("Items", [])],
        }
        if "LastEvaluatedKey" in response:
            result["lastEvaluatedKey"] = encode_start_key(from_item(response["LastEvaluatedKey"]))
        return result

    @with_storage_retry("set_chat_title")
    async def set_chat_title(self, id: str, created_date: str, title: str) -> Chat:
        response = await self._run(
            self.table.update_item,
            Key={"id": id, "createdDate": created_date},
            UpdateExpression="set title = :title",
            ExpressionAttributeValues={":title": title},
            ReturnValues="ALL_NEW",
        )
        return from_item(response["Attributes"])

    @with_storage_retry("delete_chat")
    async def delete_chat(self, user_id: str, chat_id: str) -> None:
        """Delete the chat header and every message recorded under it."""
        chat = await self.find_chat_by_id(user_id, chat_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")

        await self._run(
            self.table.delete_item,
            Key={"id": chat["id"], "createdDate": chat["createdDate"]},
        )

        messages = await self.list_messages(chat_id)
        if not messages:
            return

        def _delete_messages() -> None:
            with self.table.batch_writer() as batch:
                for m in messages:
                    batch.delete_item(Key={"id": m["id"], "createdDate": m["createdDate"]})

        await self._run(_delete_messages)
        logger.debug(f"Deleted chat {chat_id} with {len(messages)} messages")

    # Messages

    @with_storage_retry("list_messages")
    async def list_messages(self, chat_id: str) -> list[RecordedMessage]:
        return await self._query_all(  # type: ignore[return-value]
            KeyConditionExpression=Key("id").eq(keys.chat_key(chat_id)),
        )

    @with_storage_retry("batch_create_messages")
    async def batch_create_messages(
        self, messages: list[ToBeRecordedMessage], user_id: str, chat_id: str
    ) -> list[RecordedMessage]:
        """Record messages and add their usage to the token usage tables.

        Messages without an explicit ``createdDate`` get ``<now + i>#0`` so
        that their order within the batch is preserved.
        """
        created_date = keys.now_millis()
        items: list[RecordedMessage] = [
            to_item(
                {
                    "id": keys.chat_key(chat_id),
                    "createdDate": m.created_date or f"{created_date + i}#0",
                    "messageId": m.message_id,
                    "role": m.role,
                    "content": m.content,
                    "trace": m.trace,
                    "extraData": m.extra_data,
                    "userId": keys.user_key(user_id),
                    "feedback": "none",
                    "usecase": m.usecase,
                    "llmType": m.llm_type or "",
                    "metadata": m.metadata,
                }
            )
            for i, m in enumerate(messages)
        ]
        if not items:
            return []

        def _put_messages() -> None:
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.put_item(Item=item)

        await self._run(_put_messages)

        recorded = [from_item(item) for item in items]
        if self.token_usage is not None:
            await asyncio.gather(*(self.token_usage.update_token_usage(m) for m in recorded))
        return recorded

    @with_storage_retry("update_feedback")
    async def update_feedback(self, chat_id: str, feedback: UpdateFeedbackRequest) -> RecordedMessage:
        update_expression = "set feedback = :feedback"
        values: dict[str, Any] = {":feedback": feedback.feedback}

        if feedback.reasons:
            update_expression += ", reasons = :reasons"
            values[":reasons"] = feedback.reasons

        if feedback.detailed_feedback:
            update_expression += ", detailedFeedback = :detailedFeedback"
            values[":detailedFeedback"] = feedback.detailed_feedback

        response = await self._run(
            self.table.update_item,
            Key={"id": keys.chat_key(chat_id), "createdDate": feedback.created_date},
            UpdateExpression=update_expression,
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )
        return from_item(response["Attributes"])

    # System contexts

    @with_storage_retry("find_system_context_by_id")
    async def find_system_context_by_id(
        self, user_id: str, system_context_id: str
    ) -> SystemContext | None:
        return await self._query_first(  # type: ignore[return-value]
            KeyConditionExpression=Key("id").eq(keys.system_context_key(user_id)),
            FilterExpression=Attr("systemContextId").eq(
                keys.system_context_key(system_context_id)
            ),
        )

    @with_storage_retry("list_system_contexts")
    async def list_system_contexts(self, user_id: str) -> list[SystemContext]:
        return await self._query_all(  # type: ignore[return-value]
            KeyConditionExpression=Key("id").eq(keys.system_context_key(user_id)),
            ScanIndexForward=False,
        )

    @with_storage_retry("create_system_context")
    async def create_system_context(
        self, user_id: str, title: str, system_context: str
    ) -> SystemContext:
        item: SystemContext = {
            "id": keys.system_context_key(user_id),
            "createdDate": str(keys.now_millis()),
            "systemContextId": keys.system_context_key(keys.new_id()),
            "systemContext": system_context,
            "systemContextTitle": title,
        }
        await self._run(self.table.put_item, Item=item)
        return item

    @with_storage_retry("update_system_context_title")
    async def update_system_context_title(
        self, user_id: str, system_context_id: str, title: str
    ) -> SystemContext:
        system_context = await self.find_system_context_by_id(user_id, system_context_id)
        if system_context is None:
            raise NotFoundError(f"System context {system_context_id} not found")

        response = await self._run(
            self.table.update_item,
            Key={"id": system_context["id"], "createdDate": system_context["createdDate"]},
            UpdateExpression="set systemContextTitle = :systemContextTitle",
            ExpressionAttributeValues={":systemContextTitle": title},
            ReturnValues="ALL_NEW",
        )
        return from_item(response["Attributes"])

    @with_storage_retry("delete_system_context")
    async def delete_system_context(self, user_id: str, system_context_id: str) -> None:
        system_context = await self.find_system_context_by_id(user_id, system_context_id)
        if system_context is None:
            raise NotFoundError(f"System context {system_context_id} not found")

        await self._run(
            self.table.delete_item,
            Key={"id": system_context["id"], "createdDate": system_context["createdDate"]},
        )

    # Shares

    @with_storage_retry("create_share_id")
    async def create_share_id(self, user_id: str, chat_id: str) -> ShareResult:
        """Write both share lookups in a single transaction."""
        created_date = str(keys.now_millis())
        share_id = keys.share_key(keys.new_id())

        item_share_id: ShareId = {
            "id": keys.share_owner_key(user_id, chat_id),
            "createdDate": created_date,
            "shareId": share_id,
        }
        item_user_id_and_chat_id: UserIdAndChatId = {
            "id": share_id,
            "createdDate": created_date,
            "userId": keys.user_key(user_id),
            "chatId": keys.chat_key(chat_id),
        }

        await self._run(
            self.table.meta.client.transact_write_items,
            TransactItems=[
                {"Put": {"TableName": self.table_name, "Item": item_share_id}},
                {"Put": {"TableName": self.table_name, "Item": item_user_id_and_chat_id}},
            ],
        )
        return {"shareId": item_share_id, "userIdAndChatId": item_user_id_and_chat_id}

    @with_storage_retry("find_user_id_and_chat_id")
    async def find_user_id_and_chat_id(self, share_id: str) -> UserIdAndChatId | None:
        return await self._query_first(  # type: ignore[return-value]
            KeyConditionExpression=Key("id").eq(keys.share_key(share_id)),
        )

    @with_storage_retry("find_share_id")
    async def find_share_id(self, user_id: str, chat_id: str) -> ShareId | None:
        return await self._query_first(  # type: ignore[return-value]
            KeyConditionExpression=Key("id").eq(keys.share_owner_key(user_id, chat_id)),
        )

    @with_storage_retry("delete_share_id")
    async def delete_share_id(self, share_id: str) -> None:
        """Remove both share lookups in a single transaction."""
        user_id_and_chat_id = await self.find_user_id_and_chat_id(share_id)
        if user_id_and_chat_id is None:
            raise NotFoundError(f"Share {share_id} not found")

        share = await self.find_share_id(
            keys.strip_user_prefix(user_id_and_chat_id["userId"]),
            keys.strip_chat_prefix(user_id_and_chat_id["chatId"]),
        )
        if share is None:
            raise NotFoundError(f"Share {share_id} not found")

        await self._run(
            self.table.meta.client.transact_write_items,
            TransactItems=[
                {
                    "Delete": {
                        "TableName": self.table_name,
                        "Key": {"id": share["id"], "createdDate": share["createdDate"]},
                    }
                },
                {
                    "Delete": {
                        "TableName": self.table_name,
                        "Key": {
                            "id": user_id_and_chat_id["id"],
                            "createdDate": user_id_and_chat_id["createdDate"],
                        },
                    }
                },
            ],
        )
