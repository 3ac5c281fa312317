# tests/test_cli.py
"""
Tests for the Call Sage command-line interface (CLI).

Scope
-----
1.  **Command Registration**: `review`, `chat` and `matrix` appear in --help.
2.  **Argument Validation**: Typer's `exists=True` checks and our own input
    validation (exit code 2).
3.  **Review Flow**: A scripted fake model replaces `_get_llm_client`, so the
    rendering and the saved review file can be checked end to end.
4.  **Chat Flow**: Amendments are applied only after confirmation and are
    written back to the review file.
5.  **Profiles**: `matrix save` / `matrix list` against a temporary directory.

Result assertions check `result.output`, which mixes stdout and stderr.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import FakeLLMClient, review_json
from typer.testing import CliRunner

from callsage import cli
from callsage.cli import app
from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.settings import load_settings
from callsage.llm.client import ModelReply, ModelServiceError, ToolCall

TRANSCRIPT = "[00:00:02] Agent: Hello, Jo speaking.\n[00:01:23] Agent: Goodbye."


@pytest.fixture  # type: ignore[misc]
def runner() -> CliRunner:
    """Fresh CliRunner per test."""
    return CliRunner()


@pytest.fixture  # type: ignore[misc]
def call_files(tmp_path: Path, matrix: ScoringMatrix) -> tuple[Path, Path]:
    """A transcript file and a matrix file for the three-criterion matrix."""
    transcript = tmp_path / "call.txt"
    transcript.write_text(TRANSCRIPT, encoding="utf-8")
    matrix_file = tmp_path / "matrix.json"
    matrix_file.write_text(matrix.model_dump_json(by_alias=True), encoding="utf-8")
    return transcript, matrix_file


def _use_llm(monkeypatch: pytest.MonkeyPatch, llm: FakeLLMClient) -> None:
    monkeypatch.setattr(cli, "_get_llm_client", lambda: llm)


def test_cli_help_shows_usage(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0, f"Help failed: {result.output}"
    assert "Call Sage" in result.output
    for command in ("review", "chat", "matrix"):
        assert command in result.output


def test_review_fails_on_missing_transcript_file(runner: CliRunner) -> None:
    result = runner.invoke(app, ["review", "--agent", "Jo", "--transcript", "ghost.txt"])
    assert result.exit_code != 0
    assert "does not exist" in result.output


def test_review_happy_path(
    runner: CliRunner,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    call_files: tuple[Path, Path],
) -> None:
    transcript, matrix_file = call_files
    llm = FakeLLMClient(review_json())
    _use_llm(monkeypatch, llm)
    out = tmp_path / "reviews" / "jo.json"

    result = runner.invoke(
        app,
        [
            "review",
            "--agent", "Jo Read",
            "--transcript", str(transcript),
            "--matrix", str(matrix_file),
            "--conversation-id", "CONV-1",
            "--output", str(out),
        ],
    )

    assert result.exit_code == 0, f"CLI Failed with Output:\n{result.output}"
    assert "Complete!" in result.output
    assert "73.33%" in result.output
    assert "Resolution" in result.output
    assert llm.call_count == 1

    saved = json.loads(out.read_text(encoding="utf-8"))
    assert saved["review"]["overallScore"] == 73.33
    assert saved["review"]["conversationId"] == "CONV-1"
    assert saved["transcript"] == TRANSCRIPT
    assert saved["conversationDuration"] == "00:01:23"
    assert [c["criterion"] for c in saved["scoringMatrix"]] == ["Greeting", "Small Talk", "Resolution"]


def test_review_rejects_blank_agent(
    runner: CliRunner, monkeypatch: pytest.MonkeyPatch, call_files: tuple[Path, Path]
) -> None:
    transcript, _ = call_files
    llm = FakeLLMClient(review_json())
    _use_llm(monkeypatch, llm)

    result = runner.invoke(app, ["review", "--agent", " ", "--transcript", str(transcript)])

    assert result.exit_code == 2
    assert "Invalid input" in result.output
    assert llm.call_count == 0


def test_review_rejects_non_wav_audio(
    runner: CliRunner, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    recording = tmp_path / "call.mp3"
    recording.write_bytes(b"ID3\x04\x00\x00\x00")
    _use_llm(monkeypatch, FakeLLMClient(review_json()))

    result = runner.invoke(app, ["review", "--agent", "Jo", "--audio", str(recording)])

    assert result.exit_code == 2
    assert "WAV" in result.output


def test_review_handles_service_failure(
    runner: CliRunner, monkeypatch: pytest.MonkeyPatch, call_files: tuple[Path, Path]
) -> None:
    transcript, matrix_file = call_files
    _use_llm(monkeypatch, FakeLLMClient(ModelServiceError("LLM HTTP error 400: API key not valid", status=400)))

    result = runner.invoke(
        app,
        ["review", "--agent", "Jo", "--transcript", str(transcript), "--matrix", str(matrix_file)],
    )

    # 1 = handled runtime failure, 2 = bad arguments
    assert result.exit_code == 1, f"Expected 1, got {result.exit_code}. Output:\n{result.output}"
    assert "Review failed" in result.output
    assert "AI_REQUEST_FAILED" in result.output


def test_chat_applies_confirmed_amendment(
    runner: CliRunner,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    call_files: tuple[Path, Path],
) -> None:
    transcript, matrix_file = call_files
    out = tmp_path / "jo.json"
    _use_llm(monkeypatch, FakeLLMClient(review_json()))
    first = runner.invoke(
        app,
        ["review", "-a", "Jo Read", "-t", str(transcript), "-M", str(matrix_file), "-o", str(out)],
    )
    assert first.exit_code == 0, first.output

    amendment = ModelReply(
        tool_calls=(
            ToolCall(
                name="amend_review",
                arguments={
                    "updates": {"scores": [{"criterion": "Resolution", "score": 2}]},
                    "explanation": "I have lowered the resolution score.",
                },
            ),
        )
    )
    llm = FakeLLMClient(amendment)
    _use_llm(monkeypatch, llm)

    result = runner.invoke(app, ["chat", str(out)], input="Please lower resolution to 2.\ny\nexit\n")

    assert result.exit_code == 0, f"CLI Failed with Output:\n{result.output}"
    assert "discuss Jo's review" in result.output
    assert "Proposed amendment" in result.output
    assert llm.call_count == 1
    saved = json.loads(out.read_text(encoding="utf-8"))
    assert saved["review"]["overallScore"] == 46.67


def test_chat_discarded_amendment_leaves_file(
    runner: CliRunner,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    call_files: tuple[Path, Path],
) -> None:
    transcript, matrix_file = call_files
    out = tmp_path / "jo.json"
    _use_llm(monkeypatch, FakeLLMClient(review_json()))
    runner.invoke(app, ["review", "-a", "Jo Read", "-t", str(transcript), "-M", str(matrix_file), "-o", str(out)])
    before = out.read_text(encoding="utf-8")

    amendment = ModelReply(
        tool_calls=(
            ToolCall(
                name="amend_review",
                arguments={"updates": {"quickSummary": "Rewritten."}, "explanation": "Rewritten."},
            ),
        )
    )
    _use_llm(monkeypatch, FakeLLMClient(amendment))

    result = runner.invoke(app, ["chat", str(out)], input="Rewrite the summary.\nn\nexit\n")

    assert result.exit_code == 0, result.output
    assert "Amendment discarded" in result.output
    assert out.read_text(encoding="utf-8") == before


def test_chat_rejects_unreadable_file(runner: CliRunner, tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{}", encoding="utf-8")

    result = runner.invoke(app, ["chat", str(broken)])

    assert result.exit_code == 1
    assert "Cannot read review file" in result.output


def test_matrix_show_default(runner: CliRunner) -> None:
    result = runner.invoke(app, ["matrix", "show"])
    assert result.exit_code == 0, result.output
    assert "Default Matrix" in result.output
    assert "Total weight: 100" in result.output
    assert "Scoring Criteria" not in result.output

    full = runner.invoke(app, ["matrix", "show", "--full"])
    assert full.exit_code == 0, full.output
    assert "Scoring" in full.output


def test_matrix_save_and_list(runner: CliRunner, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CALLSAGE_PROFILE_DIR", str(tmp_path / "profiles"))
    load_settings.cache_clear()

    empty = runner.invoke(app, ["matrix", "list"])
    assert "No saved profiles" in empty.output

    saved = runner.invoke(app, ["matrix", "save", "Service Desk"])
    assert saved.exit_code == 0, saved.output
    assert (tmp_path / "profiles" / "service-desk.json").exists()

    listed = runner.invoke(app, ["matrix", "list"])
    assert "service-desk" in listed.output

    shown = runner.invoke(app, ["matrix", "show", "--profile", "Service Desk"])
    assert shown.exit_code == 0, shown.output
    assert "Profile: Service Desk" in shown.output
