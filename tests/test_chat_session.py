"""ChatSession turns, amendment negotiation and the stateless chat entry point."""

from __future__ import annotations

import pytest
from conftest import FakeLLMClient

from callsage.agents.chat_session import (
    AMEND_TOOL_NAME,
    APOLOGY_MESSAGE,
    ChatContext,
    ChatSession,
    SessionState,
    interpret_reply,
)
from callsage.core.contracts.chat import AmendmentProposal, PlainAnswer
from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.contracts.review import Review
from callsage.core.errors import ChatError, ValidationError
from callsage.llm.client import ModelReply, ModelServiceError, ToolCall
from callsage.pipelines.call_review import chat_about_review

TRANSCRIPT = "[00:00:02] Agent: Hello, Jo speaking.\n[00:01:23] Agent: Goodbye."


def _amend_reply(updates: dict[str, object], explanation: str = "I have lowered the score.") -> ModelReply:
    return ModelReply(
        tool_calls=(
            ToolCall(name=AMEND_TOOL_NAME, arguments={"updates": updates, "explanation": explanation}),
        )
    )


def _session(llm: FakeLLMClient, review: Review, matrix: ScoringMatrix) -> ChatSession:
    return ChatSession(llm, review, matrix, transcript=TRANSCRIPT)  # type: ignore[arg-type]


def test_greeting_uses_first_name(review: Review, matrix: ScoringMatrix) -> None:
    session = _session(FakeLLMClient(), review, matrix)
    assert session.greeting().startswith("Hey! If you would like to discuss Jo's review")
    assert session.state is SessionState.IDLE


def test_plain_answer_is_recorded(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient("The agent greeted the caller at 00:00:02.")
    session = _session(llm, review, matrix)

    turn = session.ask("  When did the greeting happen?  ")

    assert turn.answer == "The agent greeted the caller at 00:00:02."
    assert turn.proposal is None
    assert [(m.role, m.content) for m in session.history] == [
        ("user", "When did the greeting happen?"),
        ("model", "The agent greeted the caller at 00:00:02."),
    ]
    assert session.state is SessionState.IDLE


def test_every_turn_carries_context_history_and_tool(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient("First answer.", "Second answer.")
    session = _session(llm, review, matrix)
    session.ask("First?")
    session.ask("Second?")

    messages = llm.calls[1]["messages"]
    system = messages[0]["content"]
    assert messages[0]["role"] == "system"
    assert TRANSCRIPT in system
    assert '"agentName": "Jo Read"' in system
    assert '"criterion": "Resolution"' in system
    assert "permission" in system
    assert [m["role"] for m in messages[1:]] == ["user", "model", "user"]
    assert messages[-1]["content"] == "Second?"
    assert llm.calls[1]["tools"][0].name == AMEND_TOOL_NAME


def test_amendment_is_held_until_applied(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"scores": [{"criterion": "Resolution", "score": 2}]}))
    session = _session(llm, review, matrix)

    turn = session.ask("Yes, please lower the resolution score to 2.")

    assert isinstance(turn.proposal, AmendmentProposal)
    assert turn.answer == "I have lowered the score."
    assert session.state is SessionState.IDLE_WITH_AMENDMENT
    assert session.review is review

    result = session.apply_pending()

    # (3*10 + 2*20) / 150 * 100
    assert result.review.overall_score == 46.67
    assert session.review.score_for("Resolution").score == 2  # type: ignore[union-attr]
    assert session.pending_amendment is None
    assert session.state is SessionState.IDLE


def test_amendment_can_be_discarded(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"quickSummary": "Rewritten."}))
    session = _session(llm, review, matrix)
    session.ask("Rewrite the summary, please.")

    assert session.discard_pending() is True
    assert session.discard_pending() is False
    assert session.review.quick_summary == review.quick_summary
    with pytest.raises(RuntimeError):
        session.apply_pending()


def test_applied_amendment_timestamps_bounded_by_transcript(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"goodPoints": [{"text": "Great close", "timestamp": "05:00:00"}]}))
    session = _session(llm, review, matrix)
    session.ask("Add the close as a strength.")

    result = session.apply_pending()

    assert session.context.duration_bound == "00:01:23"
    assert result.review.good_points[0].text == "Great close"
    assert result.review.good_points[0].timestamp is None


def test_explicit_duration_takes_precedence(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"goodPoints": [{"text": "Great close", "timestamp": "00:05:00"}]}))
    session = ChatSession(llm, review, matrix, TRANSCRIPT, conversation_duration="00:10:00")  # type: ignore[arg-type]
    session.ask("Add the close as a strength.")

    result = session.apply_pending()

    assert result.review.good_points[0].timestamp == "00:05:00"


def test_pending_amendment_survives_plain_answer(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"quickSummary": "Rewritten."}), "It only changes the summary.")
    session = _session(llm, review, matrix)
    session.ask("Rewrite the summary, please.")
    session.ask("What would that change?")

    assert session.pending_amendment is not None
    assert session.state is SessionState.IDLE_WITH_AMENDMENT
    assert session.apply_pending().review.quick_summary == "Rewritten."


def test_malformed_amendment_degrades_to_plain_answer() -> None:
    reply = ModelReply(
        text="Let me fix that.",
        tool_calls=(ToolCall(name=AMEND_TOOL_NAME, arguments="{not json"),),
    )
    result = interpret_reply(reply)
    assert isinstance(result, PlainAnswer)
    assert result.text == "Let me fix that."

    bad_shape = ModelReply(
        tool_calls=(
            ToolCall(name=AMEND_TOOL_NAME, arguments={"updates": {"scores": "lots"}, "explanation": "Done."}),
        )
    )
    assert interpret_reply(bad_shape) == PlainAnswer(text="Done.")


def test_empty_reply_is_a_chat_error() -> None:
    with pytest.raises(ChatError):
        interpret_reply(ModelReply())


def test_failed_turn_apologises_and_session_continues(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(ModelServiceError("LLM HTTP error 503: unavailable", status=503), "Back again.")
    session = _session(llm, review, matrix)

    failed = session.ask("Anything?")
    assert failed.failed
    assert failed.answer == APOLOGY_MESSAGE
    assert "503" in (failed.error or "")
    assert session.state is SessionState.IDLE

    ok = session.ask("Try again?")
    assert ok.answer == "Back again."
    assert [m.content for m in session.history][-3:] == [APOLOGY_MESSAGE, "Try again?", "Back again."]


def test_unexpected_failure_still_returns_to_idle(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(ConnectionResetError(104, "Connection reset by peer"), "Still here.")
    session = _session(llm, review, matrix)

    failed = session.ask("Anything?")

    assert failed.failed
    assert failed.answer == APOLOGY_MESSAGE
    assert "reset by peer" in (failed.error or "")
    assert session.state is SessionState.IDLE
    assert session.ask("Hello?").answer == "Still here."


def test_blank_question_is_rejected(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient("unused")
    session = _session(llm, review, matrix)

    with pytest.raises(ValidationError):
        session.ask("   ")
    assert len(session.history) == 0
    assert llm.call_count == 0


def test_reset_clears_history_and_pending(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"quickSummary": "Rewritten."}))
    session = _session(llm, review, matrix)
    session.ask("Rewrite the summary, please.")

    other = review.model_copy(update={"agent_name": "Sam Lee"})
    session.reset(other, transcript=None)

    assert len(session.history) == 0
    assert session.pending_amendment is None
    assert session.review.agent_name == "Sam Lee"
    assert "Sam's review" in session.greeting()


def test_chat_about_review_returns_amended_preview(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"scores": [{"criterion": "Greeting", "score": 5}]}, "Raised it."))
    context = ChatContext(review=review, scoring_matrix=matrix, transcript=TRANSCRIPT)
    history = [{"role": "user", "content": "Greeting was perfect."}, {"role": "model", "content": "Shall I raise it?"}]

    answer = chat_about_review(history, "Yes.", context, llm=llm)  # type: ignore[arg-type]

    assert answer.answer == "Raised it."
    assert answer.amended_review is not None
    # (5*10 + 4*20) / 150 * 100
    assert answer.amended_review.overall_score == 86.67
    assert review.score_for("Greeting").score == 3  # type: ignore[union-attr]
    assert [m["role"] for m in llm.calls[0]["messages"]] == ["system", "user", "model", "user"]


def test_chat_about_review_preview_drops_late_timestamps(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(_amend_reply({"areasForImprovement": [{"text": "Long hold", "timestamp": "00:02:00"}]}))
    context = ChatContext(review=review, scoring_matrix=matrix, conversation_duration="00:01:30")

    answer = chat_about_review([], "Flag the hold.", context, llm=llm)  # type: ignore[arg-type]

    assert answer.amended_review is not None
    assert answer.amended_review.areas_for_improvement[0].timestamp is None


def test_chat_about_review_raises_chat_error(review: Review, matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(ModelServiceError("LLM request failed: timed out"))
    context = ChatContext(review=review, scoring_matrix=matrix)

    with pytest.raises(ChatError):
        chat_about_review([], "Hello?", context, llm=llm)  # type: ignore[arg-type]
