# src/callsage/cli.py
"""
Call Sage Command Line Interface (CLI).

This module implements the reviewer-facing terminal interface using `typer`
and `rich`.

Features
--------
- **Status Spinners**: Visual feedback while the model listens to the call.
- **Rich Rendering**: Score table with red/amber/green bands, summaries and
  timestamped points.
- **Review Files**: Every review is saved with its matrix and transcript to
  `artifacts/reviews/`, so it can be discussed later with `callsage chat`.
- **Amendments**: During a chat the model may propose a correction; it is
  shown and applied only after confirmation.
- **Profiles**: Save and reuse named scoring matrices.

Usage
-----
    # Review a transcript against the default matrix, then discuss it
    $ callsage review --agent "Jo Read" --transcript call.txt --chat

    # Review a recording against a saved profile
    $ callsage review --agent "Jo Read" --audio call.wav --profile service-desk

    # Resume a discussion
    $ callsage chat artifacts/reviews/20250101_120000_jo-read.json
"""

from __future__ import annotations

import json
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, Prompt
from rich.table import Table

from callsage.agents.chat_session import ChatSession
from callsage.agents.request_builder import ReviewRequestBuilder
from callsage.core.contracts.chat import AmendmentProposal
from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.contracts.request import AudioPayload
from callsage.core.contracts.review import Review, TimestampedPoint
from callsage.core.defaults import default_matrix
from callsage.core.errors import CallSageError
from callsage.core.profiles import ProfileStore, load_matrix_file, profile_slug
from callsage.core.scoring import score_band
from callsage.llm.client import LLMClient, get_default_client
from callsage.pipelines.call_review import generate_review

# Ensure provider keys are loaded before any logic runs
load_dotenv()

app = typer.Typer(
    help="Call Sage: weighted, explainable reviews of customer-service calls.",
    rich_markup_mode="markdown",
)
matrix_app = typer.Typer(help="Inspect and manage scoring matrices.")
app.add_typer(matrix_app, name="matrix")
console = Console()

_REVIEWS_DIR = Path("artifacts/reviews")
_BAND_STYLES = {"red": "bold red", "amber": "bold yellow", "green": "bold green"}
_EXIT_WORDS = frozenset({"exit", "quit", "q", ":q"})


def _get_llm_client() -> LLMClient:
    """Return the model client used by CLI commands.

    Kept separate so tests can monkeypatch it with a fake client.
    """
    return get_default_client()


# --------------------------------------------------------------------------- #
# Helpers: Rendering
# --------------------------------------------------------------------------- #


def _headline(description: str) -> str:
    """First non-blank line of a rubric, without its "- Description:" label."""
    for line in description.splitlines():
        text = line.strip()
        if text:
            return text.removeprefix("- Description:").strip()
    return ""


def _render_matrix(
    matrix: ScoringMatrix, title: str = "Scoring Matrix", full: bool = False
) -> None:
    table = Table(title=title, show_lines=full)
    table.add_column("Id", style="dim")
    table.add_column("Criterion", style="bold")
    table.add_column("Weight", justify="right")
    table.add_column("Description")
    for item in matrix:
        weight = f"{item.weight:g}" if item.weight > 0 else "[dim]0 (info)[/dim]"
        description = item.description if full else _headline(item.description)
        table.add_row(item.id, item.criterion, weight, description)
    console.print(table)
    console.print(f"[dim]Total weight: {matrix.total_weight:g}[/dim]")


def _render_points(title: str, points: list[TimestampedPoint], style: str) -> None:
    if not points:
        return
    console.print(f"[{style}]{title}[/{style}]")
    for point in points:
        stamp = f"[dim][{point.timestamp.strip('[]')}][/dim] " if point.timestamp else ""
        console.print(f" • {stamp}{point.text}")
    console.print("")


def _render_review(review: Review, matrix: ScoringMatrix) -> None:
    """Render a review: header, score table, summary and points."""
    header = f"[bold]{review.agent_name}[/bold]"
    if review.conversation_id:
        header += f"  [dim]({review.conversation_id})[/dim]"
    console.print(
        Panel(
            f"{header}\nOverall score: [bold cyan]{review.overall_score:.2f}%[/bold cyan]\n\n"
            f"{review.quick_summary}",
            title="Call Review",
            border_style="cyan",
        )
    )

    weights = matrix.weights()
    table = Table(show_lines=True)
    table.add_column("Criterion", style="bold")
    table.add_column("Weight", justify="right")
    table.add_column("Score", justify="center")
    table.add_column("Justification")
    for entry in review.scores:
        style = _BAND_STYLES[score_band(entry.score)]
        weight = weights.get(entry.criterion)
        table.add_row(
            entry.criterion,
            "-" if weight is None else f"{weight:g}",
            f"[{style}]{entry.score}/5[/{style}]",
            entry.justification,
        )
    console.print(table)

    console.print("[bold]Overall Summary[/bold]")
    console.print(review.overall_summary)
    console.print("")
    _render_points("Good Points", review.good_points, "bold green")
    _render_points("Areas for Improvement", review.areas_for_improvement, "bold yellow")


def _render_proposal(proposal: AmendmentProposal) -> None:
    lines: list[str] = []
    updates = proposal.updates
    for entry in updates.scores or []:
        parts = [f"score → {entry.score}"] if entry.score is not None else []
        if entry.justification is not None:
            parts.append("new justification")
        lines.append(f"• {entry.criterion}: {', '.join(parts) or 'no change'}")
    for name in ("quick_summary", "overall_summary", "good_points", "areas_for_improvement"):
        if getattr(updates, name) is not None:
            lines.append(f"• {name.replace('_', ' ')} rewritten")
    console.print(
        Panel("\n".join(lines) or "(no changes)", title="Proposed amendment", border_style="magenta")
    )


# --------------------------------------------------------------------------- #
# Helpers: Review files
# --------------------------------------------------------------------------- #


def _save_review_file(
    review: Review,
    matrix: ScoringMatrix,
    transcript: str | None,
    path: Path | None = None,
    duration: str | None = None,
) -> Path:
    """Write review + matrix + transcript (+ call length) to JSON and return the path."""
    if path is None:
        _REVIEWS_DIR.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = _REVIEWS_DIR / f"{stamp}_{profile_slug(review.agent_name)}.json"
    else:
        path.parent.mkdir(parents=True, exist_ok=True)

    payload: dict[str, Any] = {
        "meta": {"savedAt": datetime.now().isoformat(timespec="seconds")},
        "review": review.model_dump(by_alias=True),
        "scoringMatrix": matrix.model_dump(by_alias=True),
        "transcript": transcript,
        "conversationDuration": duration,
    }
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def _load_review_file(path: Path) -> tuple[Review, ScoringMatrix, str | None, str | None]:
    """Reverse of :func:`_save_review_file`."""
    data = json.loads(path.read_text(encoding="utf-8"))
    review = Review.model_validate(data["review"])
    matrix = ScoringMatrix.model_validate(data.get("scoringMatrix") or [])
    return review, matrix, data.get("transcript"), data.get("conversationDuration")


def _resolve_matrix(matrix_file: Path | None, profile: str | None) -> ScoringMatrix:
    if matrix_file is not None:
        return load_matrix_file(matrix_file)
    if profile:
        return ProfileStore().load(profile)
    return default_matrix()


# --------------------------------------------------------------------------- #
# Chat loop
# --------------------------------------------------------------------------- #


def _chat_loop(session: ChatSession, save_path: Path) -> None:
    """Interactive Q&A about a review until the reviewer types `exit`."""
    console.rule("[bold magenta]Review Chat[/bold magenta]")
    console.print(f"[magenta]Call Sage:[/magenta] {session.greeting()}")
    console.print("[dim]Type 'exit' to finish.[/dim]\n")

    while True:
        question = Prompt.ask("[bold]You[/bold]", default="exit", show_default=False).strip()
        if not question or question.lower() in _EXIT_WORDS:
            break

        with console.status("[magenta]Thinking...", spinner="dots"):
            turn = session.ask(question)

        style = "red" if turn.failed else "magenta"
        console.print(f"[{style}]Call Sage:[/{style}] {turn.answer}\n")

        if turn.proposal is None:
            continue

        _render_proposal(turn.proposal)
        if Confirm.ask("Apply this amendment?", default=False):
            result = session.apply_pending()
            _render_review(result.review, session.scoring_matrix)
            _save_review_file(
                result.review,
                session.scoring_matrix,
                session.transcript,
                save_path,
                session.conversation_duration,
            )
            console.print(f"[dim]Updated review saved to: {save_path}[/dim]\n")
        else:
            session.discard_pending()
            console.print("[dim]Amendment discarded.[/dim]\n")


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def review(
    agent: Annotated[str, typer.Option("--agent", "-a", help="Name of the agent under review.")],
    transcript: Annotated[
        Path | None,
        typer.Option(
            "--transcript",
            "-t",
            exists=True,
            dir_okay=False,
            readable=True,
            help="Text transcript of the call (with [HH:MM:SS] markers if available).",
        ),
    ] = None,
    audio: Annotated[
        Path | None,
        typer.Option(
            "--audio",
            exists=True,
            dir_okay=False,
            readable=True,
            help="Call recording (WAV). Takes priority over the transcript.",
        ),
    ] = None,
    conversation_id: Annotated[
        str | None, typer.Option("--conversation-id", "-c", help="Conversation identifier.")
    ] = None,
    duration: Annotated[
        str | None,
        typer.Option("--duration", "-d", help="Call length as HH:MM:SS (derived if omitted)."),
    ] = None,
    matrix_file: Annotated[
        Path | None,
        typer.Option("--matrix", "-M", exists=True, dir_okay=False, help="Scoring matrix JSON file."),
    ] = None,
    profile: Annotated[
        str | None, typer.Option("--profile", "-p", help="Saved scoring profile to use.")
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Override the reviewer model alias (e.g. 'fast')."),
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Where to save the review JSON.")
    ] = None,
    chat: Annotated[
        bool, typer.Option("--chat/--no-chat", help="Discuss the review once it is ready.")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show full error tracebacks for debugging.")
    ] = False,
) -> None:
    """
    Review a call against a scoring matrix.

    The review is rendered, saved as JSON, and optionally discussed in an
    interactive chat where corrections can be negotiated.
    """
    console.print(
        Panel.fit(
            f"[bold cyan]Call Sage[/bold cyan]\nReviewing: [u]{agent}[/u]",
            border_style="cyan",
        )
    )

    try:
        matrix = _resolve_matrix(matrix_file, profile)
        text = transcript.read_text(encoding="utf-8") if transcript else None
        payload = AudioPayload.from_file(audio) if audio else None
        if payload is not None and payload.mime_type != "audio/wav":
            raise ValueError(f"Only WAV recordings are supported, got {payload.mime_type}.")
        request = ReviewRequestBuilder().build(
            agent,
            matrix,
            transcript=text,
            audio=payload,
            conversation_id=conversation_id,
            conversation_duration=duration,
        )
    except (OSError, ValueError) as e:
        console.print(f"\n[bold red]❌ Invalid input:[/bold red] {e}")
        raise typer.Exit(code=2) from e

    llm = _get_llm_client()
    start_time = time.time()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            source = "recording" if request.audio_is_authoritative else "transcript"
            progress.add_task(f"[yellow]Reviewing the {source}...", total=None)
            result = generate_review(request, llm=llm, model_alias=model)
    except CallSageError as e:
        console.print(f"\n[bold red]❌ Review failed:[/bold red] {e}")
        if verbose:
            traceback.print_exc()
        raise typer.Exit(code=1) from e

    console.print(f"\n[bold green]✅ Complete![/bold green] (took {time.time() - start_time:.1f}s)\n")
    _render_review(result, request.matrix)

    saved = _save_review_file(
        result, request.matrix, request.call_transcript, output, request.conversation_duration
    )
    console.print(f"[dim]Review saved to: {saved}[/dim]")

    if chat:
        session = ChatSession(
            llm,
            result,
            request.matrix,
            request.call_transcript,
            conversation_duration=request.conversation_duration,
        )
        _chat_loop(session, saved)


@app.command("chat")  # type: ignore[misc]
def chat_command(
    review_file: Annotated[
        Path,
        typer.Argument(
            exists=True,
            dir_okay=False,
            readable=True,
            help="Review JSON saved by `callsage review` (in artifacts/reviews/).",
        ),
    ],
) -> None:
    """Discuss a saved review; accepted amendments are written back to the file."""
    try:
        saved_review, matrix, transcript, duration = _load_review_file(review_file)
    except (OSError, ValueError, KeyError) as e:
        console.print(f"\n[bold red]❌ Cannot read review file:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    _render_review(saved_review, matrix)
    session = ChatSession(
        _get_llm_client(), saved_review, matrix, transcript, conversation_duration=duration
    )
    _chat_loop(session, review_file)


@matrix_app.command("show")  # type: ignore[misc]
def matrix_show(
    profile: Annotated[
        str | None, typer.Option("--profile", "-p", help="Show a saved profile instead.")
    ] = None,
    full: Annotated[
        bool, typer.Option("--full", help="Print every criterion's complete scoring rubric.")
    ] = False,
) -> None:
    """Print the default matrix, or a saved profile."""
    try:
        matrix = ProfileStore().load(profile) if profile else default_matrix()
    except (OSError, ValueError) as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        raise typer.Exit(code=1) from e
    _render_matrix(
        matrix, title=f"Profile: {profile}" if profile else "Default Matrix", full=full
    )


@matrix_app.command("save")  # type: ignore[misc]
def matrix_save(
    name: Annotated[str, typer.Argument(help="Profile name.")],
    source: Annotated[
        Path | None,
        typer.Option("--from", exists=True, dir_okay=False, help="Matrix JSON file to store."),
    ] = None,
) -> None:
    """Save a scoring profile (the default matrix unless --from is given)."""
    try:
        matrix = load_matrix_file(source) if source else default_matrix()
        path = ProfileStore().save(name, matrix)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Saved profile[/green] [bold]{name}[/bold] → {path}")


@matrix_app.command("list")  # type: ignore[misc]
def matrix_list() -> None:
    """List saved scoring profiles."""
    names = ProfileStore().names()
    if not names:
        console.print("[dim]No saved profiles.[/dim]")
        return
    for name in names:
        console.print(f" • {name}")


if __name__ == "__main__":
    app()
