"""Storage protocol definitions using typing.Protocol."""

from typing import Protocol

from ..models import ToBeRecordedMessage, UpdateFeedbackRequest
from ..types import (
    Chat,
    ListChatsResponse,
    RecordedMessage,
    ShareId,
    ShareResult,
    SystemContext,
    TokenUsageStats,
    UserIdAndChatId,
)


class ChatRepository(Protocol):
    """Repository protocol for chats, messages, system contexts and shares."""

    async def startup(self) -> None: ...
    async def shutdown(self) -> None: ...
    async def health_check(self) -> bool: ...

    async def create_chat(self, user_id: str) -> Chat: ...
    async def find_chat_by_id(self, user_id: str, chat_id: str) -> Chat | None: ...
    async def list_chats(
        self, user_id: str, exclusive_start_key: str | None = None
    ) -> ListChatsResponse: ...
    async def set_chat_title(self, id: str, created_date: str, title: str) -> Chat: ...
    async def delete_chat(self, user_id: str, chat_id: str) -> None: ...

    async def list_messages(self, chat_id: str) -> list[RecordedMessage]: ...
    async def batch_create_messages(
        self, messages: list[ToBeRecordedMessage], user_id: str, chat_id: str
    ) -> list[RecordedMessage]: ...
    async def update_feedback(
        self, chat_id: str, feedback: UpdateFeedbackRequest
    ) -> RecordedMessage: ...

    async def find_system_context_by_id(
        self, user_id: str, system_context_id: str
    ) -> SystemContext | None: ...
    async def list_system_contexts(self, user_id: str) -> list[SystemContext]: ...
    async def create_system_context(
        self, user_id: str, title: str, system_context: str
    ) -> SystemContext: ...
    async def update_system_context_title(
        self, user_id: str, system_context_id: str, title: str
    ) -> SystemContext: ...
    async def delete_system_context(self, user_id: str, system_context_id: str) -> None: ...

    async def create_share_id(self, user_id: str, chat_id: str) -> ShareResult: ...
    async def find_user_id_and_chat_id(self, share_id: str) -> UserIdAndChatId | None: ...
    async def find_share_id(self, user_id: str, chat_id: str) -> ShareId | None: ...
    async def delete_share_id(self, share_id: str) -> None: ...


class TokenUsageRepository(Protocol):
    """Repository protocol for daily token usage counters."""

    async def startup(self) -> None: ...
    async def shutdown(self) -> None: ...
    async def health_check(self) -> bool: ...

    async def update_token_usage(self, message: RecordedMessage) -> None: ...
    async def get_recent_token_usage(
        self, days: int = 7, user_id: str | None = None
    ) -> list[TokenUsageStats]: ...
    async def aggregate_token_usage(
        self, start_date: str, end_date: str, user_ids: list[str] | None = None
    ) -> list[TokenUsageStats]: ...
