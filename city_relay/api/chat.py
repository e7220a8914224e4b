from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Request

from city_relay.container import ServiceContainer
from city_relay.schemas import ChatRequest, ChatResponse, ErrorResponse
from city_relay.services.validation import validate_message

router = APIRouter(tags=["chat"])
_LOGGER = logging.getLogger(__name__)


def _get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def resolve_caller_id(request: Request, *, trust_proxy: bool) -> str:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def chat(req: ChatRequest, request: Request) -> ChatResponse:
    container = _get_container(request)
    settings = container.settings
    trace_id = getattr(request.state, "trace_id", str(uuid4()))
    caller_id = resolve_caller_id(request, trust_proxy=settings.trust_proxy)

    message = validate_message(req.message, max_chars=settings.max_message_chars)
    container.rate_limiter.acquire(caller_id)
    _LOGGER.info(
        "chat_request trace_id=%s caller=%s chars=%s",
        trace_id,
        caller_id,
        len(message),
    )

    result = container.relay.relay(message, trace_id=trace_id)
    return ChatResponse(reply=result.reply)
