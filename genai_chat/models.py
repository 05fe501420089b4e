"""Request and stream payload models using Pydantic.

Payloads travel as camelCase JSON, the models accept either spelling.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump with camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ToBeRecordedMessage(CamelModel):
    """Message sent by the client to be persisted."""

    message_id: str = Field(..., min_length=1)
    role: Literal["system", "user", "assistant"]
    content: str
    trace: str | None = None
    extra_data: list[dict[str, Any]] | None = None
    usecase: str | None = None
    llm_type: str | None = None
    metadata: dict[str, Any] | None = None
    created_date: str | None = None

    @field_validator("created_date")
    @classmethod
    def validate_created_date(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not value.split("#")[0].isdigit():
            raise PydanticCustomError(
                "invalid_created_date",
                "createdDate must start with an epoch milliseconds timestamp",
                {"input": value},
            )
        return value


class CreateMessagesRequest(CamelModel):
    """Batch of messages for one chat."""

    messages: list[ToBeRecordedMessage]


class UpdateTitleRequest(CamelModel):
    """New chat or system context title."""

    title: str = Field(..., max_length=500)


class UpdateFeedbackRequest(CamelModel):
    """Feedback on a single message, addressed by its ``createdDate``."""

    created_date: str = Field(..., min_length=1)
    feedback: str = Field(..., min_length=1)
    reasons: list[str] | None = None
    detailed_feedback: str | None = None


class CreateSystemContextRequest(CamelModel):
    """New system prompt preset."""

    system_context_title: str = Field(..., max_length=500)
    system_context: str

    @field_validator("system_context", mode="before")
    @classmethod
    def validate_system_context(cls, value: str) -> str:
        if not value or not str(value).strip():
            raise PydanticCustomError(
                "empty_system_context", "System context cannot be empty", {"input": value}
            )
        return value


class McpRequest(CamelModel):
    """Body posted to the MCP endpoint."""

    user_prompt: str = Field(..., min_length=1)
    system_prompt: str | None = None
    messages: list[dict[str, Any]] | None = None


class StreamingChunk(CamelModel):
    """One newline-delimited JSON record streamed back by the MCP endpoint."""

    text: str = ""
    trace: str | None = None
