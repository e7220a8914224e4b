from typing import Any

from pydantic import BaseModel

AVAILABLE_ENDPOINTS = ["/", "/health", "/chat"]


class ChatRequest(BaseModel):
    # validated by the relay so bad input maps to 400 instead of 422
    message: Any = None


class ChatResponse(BaseModel):
    reply: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ServiceInfoResponse(BaseModel):
    status: str
    timestamp: str
    endpoints: list[str]


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
