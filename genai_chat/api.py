"""FastAPI application and route handlers."""

import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .chat import ChatService
from .config import settings
from .exceptions import (
    AuthenticationError,
    ChatAPIError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .middleware import add_request_id, get_current_user
from .models import (
    CreateMessagesRequest,
    CreateSystemContextRequest,
    UpdateFeedbackRequest,
    UpdateTitleRequest,
)
from .storage import create_chat_repository, create_token_usage_repository
from .types import ListChatsResponse, ShareId, SharedChat, SystemContext, TokenUsageStats
from .version import __version__


def configure_logging() -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=settings.is_lambda_environment,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=[settings.rate_limit],
)


async def build_chat_service() -> ChatService:
    """Create the repositories and the service on top of them."""
    token_usage = create_token_usage_repository()
    repository = create_chat_repository(token_usage=token_usage)

    await token_usage.startup()
    await repository.startup()

    return ChatService(
        repository=repository,
        token_usage=token_usage,
        token_usage_default_days=settings.token_usage_default_days,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    configure_logging()

    service = await build_chat_service()
    app.state.chat_service = service
    logger.info("Application started successfully")

    yield

    await service.repository.shutdown()
    await service.token_usage.shutdown()
    app.state.chat_service = None
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Generative AI Chat API",
    version=__version__,
    description="Chat, system context, sharing and token usage backend",
    lifespan=lifespan,
)

app.middleware("http")(add_request_id)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter  # Required by slowapi
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors with clean messages."""
    error_messages = []

    for error in exc.errors():  # type: ignore[attr-defined]
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        error_messages.append(message)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "message": "; ".join(error_messages),
            "details": error_messages,
        },
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


@app.exception_handler(ChatAPIError)
async def chat_api_exception_handler(request: Request, exc: ChatAPIError) -> JSONResponse:
    """Handle domain-specific errors."""
    match exc:
        case ValidationError():
            status_code = status.HTTP_400_BAD_REQUEST
        case AuthenticationError():
            status_code = status.HTTP_401_UNAUTHORIZED
        case ForbiddenError():
            status_code = status.HTTP_403_FORBIDDEN
        case NotFoundError():
            status_code = status.HTTP_404_NOT_FOUND
        case StorageError():
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        case _:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if status_code >= 500:
        logger.error(f"Chat API error: {exc}")
    else:
        logger.warning(f"Chat API error: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "type": exc.__class__.__name__},
        headers={"X-Request-ID": getattr(request.state, "request_id", "")},
    )


async def get_chat_service(request: Request) -> ChatService:
    """Get the chat service, building it once when no lifespan ran (Lambda)."""
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        service = await build_chat_service()
        request.app.state.chat_service = service
        logger.info("Chat service initialized")
    return service


Service = Annotated[ChatService, Depends(get_chat_service)]
UserId = Annotated[str, Depends(get_current_user)]


# Chats


@app.post("/chats", tags=["chats"], status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit)
async def create_chat_endpoint(request: Request, service: Service, user_id: UserId) -> dict[str, Any]:
    """Create an empty chat."""
    return {"chat": await service.create_chat(user_id)}


@app.get("/chats", tags=["chats"])
async def list_chats_endpoint(
    service: Service,
    user_id: UserId,
    exclusive_start_key: str | None = Query(None, alias="exclusiveStartKey"),
) -> ListChatsResponse:
    """List the caller's chats, newest first."""
    return await service.list_chats(user_id, exclusive_start_key)


@app.get("/chats/{chat_id}", tags=["chats"])
async def find_chat_endpoint(chat_id: str, service: Service, user_id: UserId) -> dict[str, Any]:
    return {"chat": await service.get_chat(user_id, chat_id)}


@app.delete("/chats/{chat_id}", tags=["chats"], status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat_endpoint(chat_id: str, service: Service, user_id: UserId) -> Response:
    """Delete a chat together with its messages."""
    await service.delete_chat(user_id, chat_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/chats/{chat_id}/title", tags=["chats"])
async def update_title_endpoint(
    chat_id: str, body: UpdateTitleRequest, service: Service, user_id: UserId
) -> dict[str, Any]:
    return {"chat": await service.update_title(user_id, chat_id, body.title)}


# Messages


@app.get("/chats/{chat_id}/messages", tags=["messages"])
async def list_messages_endpoint(
    chat_id: str, service: Service, user_id: UserId
) -> dict[str, Any]:
    return {"messages": await service.list_messages(user_id, chat_id)}


@app.post("/chats/{chat_id}/messages", tags=["messages"])
@limiter.limit(settings.rate_limit)
async def create_messages_endpoint(
    request: Request,
    chat_id: str,
    body: CreateMessagesRequest,
    service: Service,
    user_id: UserId,
) -> dict[str, Any]:
    """Record a batch of messages and update token usage."""
    return {"messages": await service.create_messages(user_id, chat_id, body.messages)}


@app.post("/chats/{chat_id}/feedbacks", tags=["messages"])
async def update_feedback_endpoint(
    chat_id: str, body: UpdateFeedbackRequest, service: Service, user_id: UserId
) -> dict[str, Any]:
    return {"message": await service.update_feedback(user_id, chat_id, body)}


# System contexts


@app.get("/systemcontexts", tags=["system contexts"])
async def list_system_contexts_endpoint(service: Service, user_id: UserId) -> list[SystemContext]:
    return await service.list_system_contexts(user_id)


@app.post("/systemcontexts", tags=["system contexts"], status_code=status.HTTP_201_CREATED)
async def create_system_context_endpoint(
    body: CreateSystemContextRequest, service: Service, user_id: UserId
) -> SystemContext:
    return await service.create_system_context(user_id, body)


@app.put("/systemcontexts/{system_context_id}/title", tags=["system contexts"])
async def update_system_context_title_endpoint(
    system_context_id: str, body: UpdateTitleRequest, service: Service, user_id: UserId
) -> SystemContext:
    return await service.update_system_context_title(user_id, system_context_id, body.title)


@app.delete(
    "/systemcontexts/{system_context_id}",
    tags=["system contexts"],
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_system_context_endpoint(
    system_context_id: str, service: Service, user_id: UserId
) -> Response:
    await service.delete_system_context(user_id, system_context_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Shares


@app.get("/shares/chat/{chat_id}", tags=["shares"])
async def find_share_endpoint(chat_id: str, service: Service, user_id: UserId) -> ShareId | None:
    """Share of a chat, ``null`` when the chat is not shared."""
    return await service.find_share(user_id, chat_id)


@app.post("/shares/chat/{chat_id}", tags=["shares"], status_code=status.HTTP_201_CREATED)
async def create_share_endpoint(chat_id: str, service: Service, user_id: UserId) -> ShareId:
    return await service.create_share(user_id, chat_id)


@app.get("/shares/share/{share_id}", tags=["shares"])
async def get_shared_chat_endpoint(share_id: str, service: Service, user_id: UserId) -> SharedChat:
    """Read a shared chat; any signed-in user may do so."""
    return await service.get_shared_chat(share_id)


@app.delete("/shares/share/{share_id}", tags=["shares"], status_code=status.HTTP_204_NO_CONTENT)
async def delete_share_endpoint(share_id: str, service: Service, user_id: UserId) -> Response:
    await service.delete_share(user_id, share_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Token usage


@app.get("/token-usage", tags=["token usage"])
async def token_usage_endpoint(
    service: Service,
    user_id: UserId,
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
) -> list[TokenUsageStats]:
    """Daily usage for ``startDate``..``endDate``, or the last week."""
    if bool(start_date) != bool(end_date):
        raise ValidationError("startDate and endDate must be given together")
    return await service.get_token_usage(user_id, start_date, end_date)


# Health


@app.get("/health", tags=["health"])
async def health_endpoint(response: Response, service: Service) -> dict[str, Any]:
    """Check health status of the tables."""
    services = await service.health_check()
    all_healthy = all(services.values())

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": services,
    }


app.openapi_tags = [
    {"name": "chats", "description": "Chat operations"},
    {"name": "messages", "description": "Message recording and feedback"},
    {"name": "system contexts", "description": "System prompt presets"},
    {"name": "shares", "description": "Chat sharing"},
    {"name": "token usage", "description": "Daily token usage"},
    {"name": "health", "description": "Health checks"},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    return app
