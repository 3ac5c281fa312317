"""Agents that talk to the model: request building, generation, chat, amendment."""

from __future__ import annotations

from .amender import AmendmentResult, ReviewAmender
from .chat_session import ChatContext, ChatSession, ChatTurn, SessionState
from .request_builder import ReviewRequestBuilder
from .review_generator import ReviewGenerator

__all__ = [
    "AmendmentResult",
    "ChatContext",
    "ChatSession",
    "ChatTurn",
    "ReviewAmender",
    "ReviewGenerator",
    "ReviewRequestBuilder",
    "SessionState",
]
