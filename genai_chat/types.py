"""Type definitions for items stored in DynamoDB.

Keys keep the attribute names used on the wire and in the tables, which is
why they are camelCase.
"""

from typing import Any, Literal

from typing_extensions import NotRequired, TypedDict

Role = Literal["system", "user", "assistant"]


class Chat(TypedDict):
    """Chat header item, ``id`` is ``user#<userId>``."""

    id: str
    createdDate: str
    chatId: str
    usecase: str
    title: str
    updatedDate: str


class TokenUsage(TypedDict, total=False):
    """Token usage reported by the model for one message."""

    inputTokens: int
    outputTokens: int
    cacheReadInputTokens: int
    cacheWriteInputTokens: int


class RecordedMessage(TypedDict):
    """Message item, ``id`` is ``chat#<chatId>``."""

    id: str
    createdDate: str
    messageId: str
    role: Role
    content: str
    trace: NotRequired[str | None]
    extraData: NotRequired[list[dict[str, Any]] | None]
    userId: str
    feedback: str
    usecase: NotRequired[str | None]
    llmType: str
    metadata: NotRequired[dict[str, Any] | None]
    reasons: NotRequired[list[str]]
    detailedFeedback: NotRequired[str]


class SystemContext(TypedDict):
    """System prompt preset, ``id`` is ``systemContext#<userId>``."""

    id: str
    createdDate: str
    systemContextId: str
    systemContext: str
    systemContextTitle: str


class ShareId(TypedDict):
    """Share lookup by owner, ``id`` is ``user#<userId>_chat#<chatId>``."""

    id: str
    createdDate: str
    shareId: str


class UserIdAndChatId(TypedDict):
    """Share lookup by token, ``id`` is ``share#<uuid>``."""

    id: str
    createdDate: str
    userId: str
    chatId: str


class ShareResult(TypedDict):
    """Both items written when a chat is shared."""

    shareId: ShareId
    userIdAndChatId: UserIdAndChatId


class ListChatsResponse(TypedDict):
    """One page of chats."""

    data: list[Chat]
    lastEvaluatedKey: NotRequired[str]


class SharedChat(TypedDict):
    """A chat resolved through its share id."""

    chat: Chat
    messages: list[RecordedMessage]


class UsageCounters(TypedDict):
    """Per use case or per model counters."""

    executions: int
    inputTokens: int
    outputTokens: int
    cacheReadInputTokens: int
    cacheWriteInputTokens: int


class TokenUsageStats(TypedDict):
    """Daily token usage for one user."""

    date: str
    userId: str
    totalExecutions: int
    totalInputTokens: int
    totalOutputTokens: int
    totalCacheReadInputTokens: int
    totalCacheWriteInputTokens: int
    usecaseStats: dict[str, UsageCounters]
    modelStats: dict[str, UsageCounters]


class HealthStatus(TypedDict):
    """Health status of system components."""

    table: bool
    token_usage: bool
