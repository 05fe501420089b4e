"""HTTP client for the chat API."""

from typing import Any

import httpx
from loguru import logger

from ..exceptions import AuthenticationError, ChatAPIError, NotFoundError
from ..models import ToBeRecordedMessage
from ..types import Chat, RecordedMessage


class ChatApiClient:
    """Async client for the chat endpoints used by a chat session."""

    def __init__(self, base_url: str, id_token: str, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.id_token = id_token
        self.client = client or httpx.AsyncClient(timeout=30)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.client.request(
            method,
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bearer {self.id_token}"},
            **kwargs,
        )
        if response.status_code == 401:
            raise AuthenticationError("Chat API rejected the id token")
        if response.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if response.is_error:
            logger.error(f"{method} {path} failed: {response.status_code} {response.text}")
            raise ChatAPIError(f"{method} {path} failed with status {response.status_code}")
        return response.json() if response.content else None

    async def create_chat(self) -> Chat:
        return (await self._request("POST", "/chats"))["chat"]

    async def create_messages(
        self, chat_id: str, messages: list[ToBeRecordedMessage]
    ) -> list[RecordedMessage]:
        body = {"messages": [m.to_wire() for m in messages]}
        return (await self._request("POST", f"/chats/{chat_id}/messages", json=body))["messages"]

    async def list_messages(self, chat_id: str) -> list[RecordedMessage]:
        return (await self._request("GET", f"/chats/{chat_id}/messages"))["messages"]

    async def aclose(self) -> None:
        await self.client.aclose()
