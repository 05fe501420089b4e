"""Chat service: ownership checks and orchestration over the repositories."""

from loguru import logger

from .exceptions import ForbiddenError, NotFoundError, StorageError
from .models import CreateSystemContextRequest, ToBeRecordedMessage, UpdateFeedbackRequest
from .storage import ChatRepository, TokenUsageRepository, keys
from .types import (
    Chat,
    HealthStatus,
    ListChatsResponse,
    RecordedMessage,
    ShareId,
    SharedChat,
    SystemContext,
    TokenUsageStats,
)


def _safe(user_id: str) -> str:
    return user_id[:8] + "..." if len(user_id) > 8 else user_id


class ChatService:
    """Chat service handling per-user chat, sharing and usage requests."""

    def __init__(
        self,
        repository: ChatRepository,
        token_usage: TokenUsageRepository,
        token_usage_default_days: int = 7,
    ) -> None:
        """Initialize with injected dependencies."""
        self.repository = repository
        self.token_usage = token_usage
        self.token_usage_default_days = token_usage_default_days

    async def _get_own_chat(self, user_id: str, chat_id: str) -> Chat:
        chat = await self.repository.find_chat_by_id(user_id, chat_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")
        return chat

    # Chats

    async def create_chat(self, user_id: str) -> Chat:
        chat = await self.repository.create_chat(user_id)
        logger.debug("Chat created", extra={"user_id": _safe(user_id), "chat_id": chat["chatId"]})
        return chat

    async def list_chats(
        self, user_id: str, exclusive_start_key: str | None = None
    ) -> ListChatsResponse:
        return await self.repository.list_chats(user_id, exclusive_start_key)

    async def get_chat(self, user_id: str, chat_id: str) -> Chat:
        return await self._get_own_chat(user_id, chat_id)

    async def delete_chat(self, user_id: str, chat_id: str) -> None:
        await self.repository.delete_chat(user_id, chat_id)
        logger.info("Chat deleted", extra={"user_id": _safe(user_id), "chat_id": chat_id})

    async def update_title(self, user_id: str, chat_id: str, title: str) -> Chat:
        chat = await self._get_own_chat(user_id, chat_id)
        return await self.repository.set_chat_title(chat["id"], chat["createdDate"], title)

    # Messages

    async def list_messages(self, user_id: str, chat_id: str) -> list[RecordedMessage]:
        await self._get_own_chat(user_id, chat_id)
        return await self.repository.list_messages(chat_id)

    async def create_messages(
        self, user_id: str, chat_id: str, messages: list[ToBeRecordedMessage]
    ) -> list[RecordedMessage]:
        """Record messages in a chat the caller owns."""
        await self._get_own_chat(user_id, chat_id)
        recorded = await self.repository.batch_create_messages(messages, user_id, chat_id)
        logger.debug(
            "Messages recorded",
            extra={"user_id": _safe(user_id), "chat_id": chat_id, "count": len(recorded)},
        )
        return recorded

    async def update_feedback(
        self, user_id: str, chat_id: str, feedback: UpdateFeedbackRequest
    ) -> RecordedMessage:
        await self._get_own_chat(user_id, chat_id)
        return await self.repository.update_feedback(chat_id, feedback)

    # System contexts

    async def list_system_contexts(self, user_id: str) -> list[SystemContext]:
        return await self.repository.list_system_contexts(user_id)

    async def create_system_context(
        self, user_id: str, request: CreateSystemContextRequest
    ) -> SystemContext:
        return await self.repository.create_system_context(
            user_id, request.system_context_title, request.system_context
        )

    async def update_system_context_title(
        self, user_id: str, system_context_id: str, title: str
    ) -> SystemContext:
        return await self.repository.update_system_context_title(user_id, system_context_id, title)

    async def delete_system_context(self, user_id: str, system_context_id: str) -> None:
        await self.repository.delete_system_context(user_id, system_context_id)

    # Shares

    async def create_share(self, user_id: str, chat_id: str) -> ShareId:
        """Share a chat, returning the existing share when there is one."""
        await self._get_own_chat(user_id, chat_id)
        existing = await self.repository.find_share_id(user_id, chat_id)
        if existing is not None:
            return existing
        result = await self.repository.create_share_id(user_id, chat_id)
        logger.info("Chat shared", extra={"user_id": _safe(user_id), "chat_id": chat_id})
        return result["shareId"]

    async def find_share(self, user_id: str, chat_id: str) -> ShareId | None:
        await self._get_own_chat(user_id, chat_id)
        return await self.repository.find_share_id(user_id, chat_id)

    async def get_shared_chat(self, share_id: str) -> SharedChat:
        """Resolve a share id to the chat and its messages.

        Any authenticated user may read a shared chat.
        """
        target = await self.repository.find_user_id_and_chat_id(share_id)
        if target is None:
            raise NotFoundError(f"Share {share_id} not found")

        owner_id = keys.strip_user_prefix(target["userId"])
        chat_id = keys.strip_chat_prefix(target["chatId"])
        chat = await self.repository.find_chat_by_id(owner_id, chat_id)
        if chat is None:
            raise NotFoundError(f"Shared chat {chat_id} no longer exists")

        messages = await self.repository.list_messages(chat_id)
        return {"chat": chat, "messages": messages}

    async def delete_share(self, user_id: str, share_id: str) -> None:
        target = await self.repository.find_user_id_and_chat_id(share_id)
        if target is None:
            raise NotFoundError(f"Share {share_id} not found")
        if keys.strip_user_prefix(target["userId"]) != user_id:
            raise ForbiddenError("Only the owner can delete a share")
        await self.repository.delete_share_id(share_id)

    # Token usage

    async def get_token_usage(
        self,
        user_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[TokenUsageStats]:
        """Daily usage for a date range, or for the recent default window."""
        if start_date and end_date:
            return await self.token_usage.aggregate_token_usage(start_date, end_date, [user_id])
        return await self.token_usage.get_recent_token_usage(
            self.token_usage_default_days, user_id
        )

    async def health_check(self) -> HealthStatus:
        """Check health of both repositories."""
        logger.debug("Performing health checks")
        return {
            "table": await self._check(self.repository),
            "token_usage": await self._check(self.token_usage),
        }

    async def _check(self, repository: ChatRepository | TokenUsageRepository) -> bool:
        try:
            return await repository.health_check()
        except StorageError as e:
            logger.error(f"Storage health check failed: {e}")
            return False
