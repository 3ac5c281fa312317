"""
Chat session: discuss a generated review and negotiate corrections to it.

State machine
-------------
::

    IDLE --ask()--> AWAITING_RESPONSE --plain answer--> IDLE
                                      \\--amend_review--> IDLE_WITH_AMENDMENT
    IDLE_WITH_AMENDMENT --apply_pending() / discard_pending()--> IDLE

Every turn sends the system instructions, a context block (transcript,
current review JSON, scoring matrix JSON), the full history and the new
question, together with an ``amend_review`` tool declaration. The model is
told to get the reviewer's permission in conversation before calling the tool.

A tool call never changes the review by itself. It is parsed into an
:class:`AmendmentProposal` and held as ``pending_amendment``; the caller
decides whether to :meth:`ChatSession.apply_pending` it. Malformed tool
arguments degrade to a plain answer.

A failing turn does not break the session: the apology message is appended
to the history, the state returns to idle and the next question works as
usual.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import ValidationError as SchemaError

from callsage.agents.amender import AmendmentResult, ReviewAmender
from callsage.core.contracts.base import Contract
from callsage.core.contracts.chat import (
    AmendmentProposal,
    ChatHistory,
    ChatMessage,
    ChatReply,
    PlainAnswer,
    ReviewUpdates,
)
from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.review import Review
from callsage.core.errors import AmendmentError, ChatError, ValidationError
from callsage.core.settings import get_logger, load_settings
from callsage.core.timecode import is_valid_timestamp, last_marker, normalise_timestamp
from callsage.llm.client import (
    LLMClient,
    ModelReply,
    ModelServiceError,
    ToolCall,
    ToolSpec,
    get_default_client,
)
from callsage.llm.schema import model_schema

logger = get_logger("callsage.chat")

AMEND_TOOL_NAME = "amend_review"
APOLOGY_MESSAGE = "Sorry, I encountered an error. Please try again."
UNREADABLE_AMENDMENT_MESSAGE = (
    "I tried to prepare a change to the review but could not express it properly. "
    "Could you restate the correction you would like?"
)


class SessionState(StrEnum):
    """Where a :class:`ChatSession` is in its turn cycle."""

    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    IDLE_WITH_AMENDMENT = "idle_with_amendment"


class AmendReviewArguments(Contract):
    """Arguments of the ``amend_review`` tool."""

    updates: ReviewUpdates
    explanation: str


@dataclass(frozen=True, slots=True)
class ChatContext:
    """What the chat model may ground its answers in."""

    review: Review
    scoring_matrix: ScoringMatrix
    transcript: str | None = None
    conversation_duration: str | None = None

    @property
    def duration_bound(self) -> str | None:
        """Upper bound for amended timestamps: explicit duration, else last transcript marker."""
        if self.conversation_duration and is_valid_timestamp(self.conversation_duration):
            return normalise_timestamp(self.conversation_duration)
        return last_marker(self.transcript)


@dataclass(frozen=True, slots=True)
class ChatTurn:
    """Outcome of one :meth:`ChatSession.ask` call.

    ``answer`` is the text appended to the history as the model message. On
    failure it is the apology and ``error`` carries the diagnostic detail.
    """

    question: str
    answer: str
    proposal: AmendmentProposal | None = None
    failed: bool = False
    error: str | None = None


def amend_review_tool() -> ToolSpec:
    """Declaration of the tool the chat model calls to propose a correction."""
    return ToolSpec(
        name=AMEND_TOOL_NAME,
        description=(
            "Propose a correction to the call review. Only call this after the user "
            "has agreed to the change in conversation. Include only the fields that "
            "change; scores are matched by their exact criterion name."
        ),
        parameters=model_schema(AmendReviewArguments),
    )


def _as_matrix(matrix: ScoringMatrix | Iterable[ScoringCriterion]) -> ScoringMatrix:
    if isinstance(matrix, ScoringMatrix):
        return matrix
    return ScoringMatrix(list(matrix))


def build_system_prompt(context: ChatContext) -> str:
    """Instructions plus the context block for a review chat."""
    transcript = context.transcript.strip() if context.transcript else ""
    return (
        'You are "Call Sage", a friendly and helpful AI Quality Management assistant. '
        "Your role is to discuss a call review that has already been generated. Be "
        "concise and helpful, and refer to the specific data in the context below.\n\n"
        "Rules:\n"
        "1. The call transcript is your primary source of truth. When the user asks for "
        "a specific detail, such as a timestamp, find it in the transcript.\n"
        "2. Use British English spelling and grammar at all times (e.g. 'summarise', "
        "'behaviour', 'centre').\n"
        "3. Refer to the agent by their first name.\n"
        "4. Stay on topic. If asked for something outside the call data, politely say "
        "you can only answer questions about this call.\n"
        f"5. You may correct the review with the `{AMEND_TOOL_NAME}` tool, but you MUST "
        "first ask the user's permission in conversation, and only call the tool once "
        "they agree. Never add new criteria; only correct existing ones. Never set an "
        "overall score; it is recalculated automatically.\n\n"
        "**Call Transcript:**\n"
        + (transcript or "(No transcript available; the review was based on audio.)")
        + "\n\n**Review Context:**\n```json\n"
        + context.review.model_dump_json(by_alias=True, indent=2)
        + "\n```\n\n**Scoring Matrix Context:**\n```json\n"
        + context.scoring_matrix.model_dump_json(by_alias=True, indent=2)
        + "\n```"
    )


def build_chat_messages(
    history: Sequence[ChatMessage],
    question: str,
    context: ChatContext,
) -> list[dict[str, str]]:
    """System prompt, prior turns and the new question, in order."""
    messages = [{"role": "system", "content": build_system_prompt(context)}]
    messages.extend({"role": m.role, "content": m.content} for m in history)
    messages.append({"role": "user", "content": question})
    return messages


def parse_amendment(call: ToolCall) -> AmendmentProposal:
    """Turn ``amend_review`` tool arguments into a proposal.

    Raises
    ------
    AmendmentError
        If the arguments are not a JSON object of the expected shape.
    """
    if not isinstance(call.arguments, Mapping):
        raise AmendmentError(f"{AMEND_TOOL_NAME} arguments are not a JSON object")
    try:
        args = AmendReviewArguments.model_validate(call.arguments)
    except SchemaError as exc:
        raise AmendmentError(f"Invalid {AMEND_TOOL_NAME} arguments: {exc}") from exc
    return AmendmentProposal(updates=args.updates, explanation=args.explanation)


def interpret_reply(reply: ModelReply) -> ChatReply:
    """Dispatch a raw model reply onto the :data:`ChatReply` variants.

    Raises
    ------
    ChatError
        If the reply carries neither text nor a usable tool call.
    """
    call = next((c for c in reply.tool_calls if c.name == AMEND_TOOL_NAME), None)
    if call is not None:
        try:
            proposal = parse_amendment(call)
        except AmendmentError as exc:
            logger.warning("Ignoring malformed amendment: %s", exc)
            explanation = ""
            if isinstance(call.arguments, Mapping):
                explanation = str(call.arguments.get("explanation") or "")
            return PlainAnswer(
                text=reply.text.strip() or explanation.strip() or UNREADABLE_AMENDMENT_MESSAGE
            )
        if proposal.updates.is_empty():
            logger.info("Amendment carried no changes; treating it as a plain answer.")
            return PlainAnswer(text=proposal.explanation or reply.text.strip() or UNREADABLE_AMENDMENT_MESSAGE)
        if not proposal.explanation.strip() and reply.text.strip():
            proposal = proposal.model_copy(update={"explanation": reply.text.strip()})
        return proposal

    if not reply.text.strip():
        raise ChatError("The AI service returned an empty response.")
    return PlainAnswer(text=reply.text.strip())


def request_chat_reply(
    history: Sequence[ChatMessage],
    question: str,
    context: ChatContext,
    *,
    llm: LLMClient | None = None,
    model_alias: str | None = None,
    temperature: float | None = None,
) -> ChatReply:
    """Ask the chat model one question about a review.

    Raises
    ------
    ChatError
        On any service failure or an empty reply.
    """
    client = llm if llm is not None else get_default_client()
    try:
        reply = client.generate(
            build_chat_messages(history, question, context),
            model=model_alias or load_settings().chat_model,
            temperature=temperature,
            tools=[amend_review_tool()],
        )
    except ModelServiceError as exc:
        raise ChatError(str(exc)) from exc
    return interpret_reply(reply)


@dataclass(slots=True)
class ChatSession:
    """Conversation about one review, with amendment negotiation.

    Parameters
    ----------
    llm:
        Model client; ``None`` uses the process-wide client.
    review:
        The review under discussion. Replaced when an amendment is applied.
    scoring_matrix:
        Matrix the review was generated with.
    transcript:
        Call transcript, when one exists.
    conversation_duration:
        Length of the call (``HH:MM:SS``). Amended timestamps beyond it are
        dropped; without it the last transcript marker is the bound.
    """

    llm: LLMClient | None
    review: Review
    scoring_matrix: ScoringMatrix
    transcript: str | None = None
    conversation_duration: str | None = None
    model_alias: str | None = None
    temperature: float | None = None
    history: ChatHistory = field(default_factory=ChatHistory)
    pending_amendment: AmendmentProposal | None = None
    state: SessionState = SessionState.IDLE

    def __post_init__(self) -> None:
        self.scoring_matrix = _as_matrix(self.scoring_matrix)
        if self.llm is None:
            self.llm = get_default_client()

    @property
    def context(self) -> ChatContext:
        """Current grounding context (reflects applied amendments)."""
        return ChatContext(
            review=self.review,
            scoring_matrix=self.scoring_matrix,
            transcript=self.transcript,
            conversation_duration=self.conversation_duration,
        )

    def greeting(self) -> str:
        """Opening message shown when a chat about the review starts."""
        return (
            f"Hey! If you would like to discuss {self.review.agent_first_name}'s review, "
            "let me know..."
        )

    def ask(self, question: str) -> ChatTurn:
        """Send one question and record the exchange.

        A pending amendment survives plain answers (the reviewer may ask about
        it before deciding) and is replaced by a newer proposal.

        Raises
        ------
        ValidationError
            If ``question`` is blank (nothing is recorded).
        """
        text = question.strip()
        if not text:
            raise ValidationError("Question must not be empty.")

        prior = self.history.messages()
        self.history.append("user", text)
        self.state = SessionState.AWAITING_RESPONSE

        try:
            reply = request_chat_reply(
                prior,
                text,
                self.context,
                llm=self.llm,
                model_alias=self.model_alias,
                temperature=self.temperature,
            )
        except ChatError as exc:
            logger.error("Chat turn failed: %s", exc)
            self.history.append("model", APOLOGY_MESSAGE)
            self._settle()
            return ChatTurn(question=text, answer=APOLOGY_MESSAGE, failed=True, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during chat turn")
            self.history.append("model", APOLOGY_MESSAGE)
            self._settle()
            return ChatTurn(question=text, answer=APOLOGY_MESSAGE, failed=True, error=str(exc))

        if isinstance(reply, AmendmentProposal):
            self.pending_amendment = reply
            self.history.append("model", reply.explanation)
            self._settle()
            return ChatTurn(question=text, answer=reply.explanation, proposal=reply)

        self.history.append("model", reply.text)
        self._settle()
        return ChatTurn(question=text, answer=reply.text)

    def apply_pending(self) -> AmendmentResult:
        """Merge the pending amendment into :attr:`review`.

        Raises
        ------
        RuntimeError
            If no amendment is pending.
        """
        if self.pending_amendment is None:
            raise RuntimeError("There is no pending amendment to apply.")
        result = ReviewAmender.merge(
            self.review,
            self.pending_amendment,
            self.scoring_matrix,
            self.context.duration_bound,
        )
        self.review = result.review
        self.pending_amendment = None
        self._settle()
        return result

    def discard_pending(self) -> bool:
        """Drop the pending amendment; return False if there was none."""
        had_pending = self.pending_amendment is not None
        self.pending_amendment = None
        self._settle()
        return had_pending

    def reset(
        self,
        review: Review,
        scoring_matrix: ScoringMatrix | Iterable[ScoringCriterion] | None = None,
        transcript: str | None = None,
        conversation_duration: str | None = None,
    ) -> None:
        """Start over for a newly generated review (history is cleared)."""
        self.review = review
        if scoring_matrix is not None:
            self.scoring_matrix = _as_matrix(scoring_matrix)
        self.transcript = transcript
        self.conversation_duration = conversation_duration
        self.history.clear()
        self.pending_amendment = None
        self._settle()

    def _settle(self) -> None:
        self.state = (
            SessionState.IDLE_WITH_AMENDMENT
            if self.pending_amendment is not None
            else SessionState.IDLE
        )


__all__ = [
    "AMEND_TOOL_NAME",
    "APOLOGY_MESSAGE",
    "AmendReviewArguments",
    "ChatContext",
    "ChatSession",
    "ChatTurn",
    "SessionState",
    "amend_review_tool",
    "build_chat_messages",
    "build_system_prompt",
    "interpret_reply",
    "parse_amendment",
    "request_chat_reply",
]
