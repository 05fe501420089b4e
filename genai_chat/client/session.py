"""Local chat state and the streaming MCP request."""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from ..config import Settings
from ..exceptions import ChatAPIError, ConfigurationError, McpStreamError
from ..models import McpRequest, ToBeRecordedMessage
from ..types import RecordedMessage, Role
from .api import ChatApiClient
from .auth import (
    CredentialProvider,
    cognito_credential_provider,
    resolve_credentials,
    sign_request,
)
from .stream import iter_chunks


@dataclass
class SessionMessage:
    """A message as held by the client, recorded or not."""

    role: Role
    content: str
    trace: str | None = None
    message_id: str | None = None
    created_date: str | None = None
    llm_type: str | None = None
    usecase: str | None = None
    metadata: dict[str, Any] | None = None
    extra_data: list[dict[str, Any]] | None = None

    @property
    def recorded(self) -> bool:
        return self.created_date is not None

    @classmethod
    def from_recorded(cls, item: RecordedMessage) -> "SessionMessage":
        return cls(
            role=item["role"],
            content=item["content"],
            trace=item.get("trace"),
            message_id=item["messageId"],
            created_date=item["createdDate"],
            llm_type=item.get("llmType") or None,
            usecase=item.get("usecase"),
            metadata=item.get("metadata"),
            extra_data=item.get("extraData"),
        )


@dataclass
class ChatSession:
    """Conversation state for one chat, recorded through the chat API."""

    api: ChatApiClient
    chat_id: str | None = None
    usecase: str = "/mcp"
    llm_type: str | None = None
    messages: list[SessionMessage] = field(default_factory=list)
    loading: bool = False

    def push_message(self, role: Role, content: str) -> SessionMessage:
        message = SessionMessage(
            role=role, content=content, llm_type=self.llm_type, usecase=self.usecase
        )
        self.messages.append(message)
        return message

    def add_chunk_to_assistant_message(self, text: str, trace: str | None = None) -> None:
        if not self.messages or self.messages[-1].role != "assistant":
            raise McpStreamError("No assistant message to append to")
        message = self.messages[-1]
        message.content += text
        if trace:
            message.trace = (message.trace or "") + trace

    async def load_messages(self) -> None:
        """Replace local state with the chat's recorded messages."""
        if self.chat_id is None:
            self.messages = []
            return
        recorded = await self.api.list_messages(self.chat_id)
        self.messages = [SessionMessage.from_recorded(item) for item in recorded]

    async def create_chat_if_not_exist(self) -> str:
        if self.chat_id is None:
            chat = await self.api.create_chat()
            self.chat_id = chat["chatId"].split("#")[1]
            logger.debug(f"Created chat {self.chat_id}")
        return self.chat_id

    def add_message_ids_to_unrecorded_messages(self) -> list[ToBeRecordedMessage]:
        """Assign ids to messages not yet recorded and return them for recording."""
        unrecorded = []
        for message in self.messages:
            if message.recorded:
                continue
            message.message_id = message.message_id or str(uuid.uuid4())
            unrecorded.append(
                ToBeRecordedMessage(
                    message_id=message.message_id,
                    role=message.role,
                    content=message.content,
                    trace=message.trace,
                    extra_data=message.extra_data,
                    usecase=message.usecase,
                    llm_type=message.llm_type,
                    metadata=message.metadata,
                )
            )
        return unrecorded

    def replace_messages(self, recorded: list[RecordedMessage]) -> None:
        """Swap local copies for their recorded versions, matched by message id."""
        by_id = {item["messageId"]: item for item in recorded}
        self.messages = [
            SessionMessage.from_recorded(by_id[m.message_id]) if m.message_id in by_id else m
            for m in self.messages
        ]


class McpClient:
    """Streams an MCP request and records the exchange in a chat session."""

    def __init__(
        self,
        endpoint: str,
        region: str,
        credential_provider: CredentialProvider,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint
        self.region = region
        self.credential_provider = credential_provider
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0, read=None))

    @classmethod
    def from_settings(cls, settings: Settings) -> "McpClient":
        """Client for the configured endpoint using Cognito identity pool credentials."""
        if not (settings.mcp_endpoint and settings.user_pool_id and settings.identity_pool_id):
            raise ConfigurationError(
                "MCP_ENDPOINT, USER_POOL_ID and IDENTITY_POOL_ID must be set to use the MCP client"
            )
        return cls(
            settings.mcp_endpoint,
            settings.aws_region,
            cognito_credential_provider(
                settings.aws_region, settings.user_pool_id, settings.identity_pool_id
            ),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def stream(self, request: McpRequest, id_token: str | None, session: ChatSession) -> None:
        """POST the signed request and apply chunks as they arrive."""
        credentials = await resolve_credentials(self.credential_provider, id_token)
        body = json.dumps(request.to_wire()).encode()
        headers = sign_request(self.endpoint, body, credentials, self.region)

        async with self.client.stream("POST", self.endpoint, headers=headers, content=body) as response:
            if not response.is_success:
                raise McpStreamError(f"Failed to start mcp streaming: {response.status_code}")
            async for chunk in iter_chunks(response.aiter_text()):
                session.add_chunk_to_assistant_message(chunk.text, chunk.trace)

    async def post_message(
        self, request: McpRequest, id_token: str | None, session: ChatSession
    ) -> list[RecordedMessage]:
        """Run one user turn: stream the answer, then record both messages.

        Errors are logged and re-raised; ``session.loading`` is reset
        either way.
        """
        session.loading = True
        try:
            session.push_message("user", request.user_prompt)
            session.push_message("assistant", "")

            await self.stream(request, id_token, session)

            chat_id = await session.create_chat_if_not_exist()
            to_be_recorded = session.add_message_ids_to_unrecorded_messages()
            recorded = await session.api.create_messages(chat_id, to_be_recorded)
            session.replace_messages(recorded)
            return recorded
        except (ChatAPIError, httpx.HTTPError) as e:
            logger.error(f"MCP request failed: {e}")
            raise
        finally:
            session.loading = False
