"""
Call review pipeline: the entry points front-ends call.

Flow Overview
-------------
1. **Request**: :class:`ReviewRequestBuilder` validates the reviewer's input
   and derives the conversation duration.
2. **Generation**: :class:`ReviewGenerator` makes the model call, validates
   the reply and computes the weighted overall score.
3. **Discussion**: :func:`chat_about_review` answers one question about a
   review. If the model proposes an amendment, the merged review is returned
   as a *preview*; adopting it is the caller's decision.

The functions are stateless: history and the current review are owned by the
caller (the CLI keeps a :class:`ChatSession`, the HTTP API receives both with
every request).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from callsage.agents.amender import ReviewAmender
from callsage.agents.chat_session import ChatContext, request_chat_reply
from callsage.agents.request_builder import ReviewRequestBuilder
from callsage.agents.review_generator import ReviewGenerator
from callsage.core.contracts.chat import AmendmentProposal, ChatMessage
from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.request import AudioPayload, ReviewRequest
from callsage.core.contracts.review import Review
from callsage.core.settings import get_logger
from callsage.llm.client import LLMClient

logger = get_logger("callsage.pipeline")


@dataclass(frozen=True, slots=True)
class ChatAnswer:
    """Result of :func:`chat_about_review`.

    ``amended_review`` and ``proposal`` are set together, only when the model
    proposed an amendment.
    """

    answer: str
    amended_review: Review | None = None
    proposal: AmendmentProposal | None = None


def generate_review(
    request: ReviewRequest,
    *,
    llm: LLMClient | None = None,
    model_alias: str | None = None,
) -> Review:
    """Generate the review for a validated request.

    Raises
    ------
    GenerationError
        If generation fails (``EmptyMatrixError`` for an empty matrix).
    """
    generator = ReviewGenerator(llm, model_alias=model_alias)
    review = generator.generate(request)
    logger.info(
        "Review generated for %r: overall score %.2f over %d criteria",
        review.agent_name,
        review.overall_score,
        len(review.scores),
    )
    return review


def review_call(
    agent_name: str,
    scoring_matrix: ScoringMatrix | Iterable[ScoringCriterion],
    *,
    transcript: str | None = None,
    audio: AudioPayload | None = None,
    conversation_id: str | None = None,
    conversation_duration: str | None = None,
    llm: LLMClient | None = None,
    model_alias: str | None = None,
) -> tuple[ReviewRequest, Review]:
    """Build the request from raw input, then generate its review.

    Returns the request too, because chat sessions need its transcript and
    matrix snapshot.

    Raises
    ------
    ValidationError
        If the input is incomplete.
    GenerationError
        If generation fails.
    """
    request = ReviewRequestBuilder().build(
        agent_name,
        scoring_matrix,
        transcript=transcript,
        audio=audio,
        conversation_id=conversation_id,
        conversation_duration=conversation_duration,
    )
    return request, generate_review(request, llm=llm, model_alias=model_alias)


def _as_messages(history: Iterable[ChatMessage | Mapping[str, str]]) -> list[ChatMessage]:
    return [m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in history]


def chat_about_review(
    history: Sequence[ChatMessage | Mapping[str, str]],
    question: str,
    context: ChatContext,
    *,
    llm: LLMClient | None = None,
    model_alias: str | None = None,
) -> ChatAnswer:
    """Answer one question about ``context.review``.

    Raises
    ------
    ChatError
        If the model call fails or returns nothing usable.
    """
    reply = request_chat_reply(
        _as_messages(history),
        question,
        context,
        llm=llm,
        model_alias=model_alias,
    )
    if isinstance(reply, AmendmentProposal):
        result = ReviewAmender.merge(
            context.review, reply, context.scoring_matrix, context.duration_bound
        )
        return ChatAnswer(answer=result.explanation, amended_review=result.review, proposal=reply)
    return ChatAnswer(answer=reply.text)


__all__ = ["ChatAnswer", "ChatContext", "chat_about_review", "generate_review", "review_call"]
