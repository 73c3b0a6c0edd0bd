"""Interactive CLI application."""
import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from quizapp.attempts import AttemptStateMachine, CompletedAttempt
from quizapp.clock import SystemClock
from quizapp.dashboard import (
    get_leaderboard, get_recent_best_scores, get_score_color, get_score_label, get_user_stats,
)
from quizapp.db import DEFAULT_DB_PATH, get_connection, init_db
from quizapp.errors import ConflictError, QuizAppError
from quizapp.exporter import export_bundle
from quizapp.flashcards import ReviewSession
from quizapp.gateway import SqliteGateway
from quizapp.importer import import_bundle
from quizapp.models import (
    ChoiceResponse, MatchingResponse, Question, QuestionType, Quiz, ReviewOutcome, TextResponse,
)
from quizapp.seed import is_seeded, seed_all
from quizapp.settings import exam_default_time_limit, srs_intervals
from quizapp.srs import SRSScheduler
from quizapp.sweep import sweep_overdue

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")
OUTCOME_KEYS = {"a": ReviewOutcome.AGAIN, "h": ReviewOutcome.HARD, "g": ReviewOutcome.GOOD}


class SessionExitRequested(Exception):
    """Raised when the user leaves a quiz or review session early."""


def configure_logging(level: str = None) -> None:
    level = level or os.environ.get("QUIZAPP_LOG_LEVEL", "WARNING")
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    answer = session_prompt(prompt, choices=choices + list(EXIT_WORDS), show_choices=False)
    return int(answer)


def show_welcome():
    console.print(Panel(
        "[bold]QuizApp[/bold]\n[dim]Quizzes and spaced-repetition flashcards[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("quiz", "Take a quiz"),
        ("flashcards", "Review due flashcards"),
        ("stats", "Your results"),
        ("leaderboard", "Top players"),
        ("import", "Import a quiz/flashcard bundle"),
        ("export", "Export everything to a bundle"),
        ("sweep", "Close attempts past their time limit"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_response(question: Question):
    """Prompt for a response matching the question type."""
    qtype = question.question_type
    if qtype in (QuestionType.SINGLE, QuestionType.MULTIPLE):
        for i, opt in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {opt.text}")
        numbers = [str(i) for i in range(1, len(question.options) + 1)]
        if qtype == QuestionType.SINGLE:
            picked = session_int_prompt("\nYour answer", choices=numbers)
            return ChoiceResponse.of(question.options[picked - 1].id)
        raw = session_prompt("\nYour answers (comma separated)")
        picked = {int(p) for p in raw.replace(" ", "").split(",") if p in numbers}
        return ChoiceResponse(frozenset(question.options[i - 1].id for i in picked))
    if qtype == QuestionType.MATCHING:
        rights = sorted({p.right for p in question.pairs})
        for i, right in enumerate(rights, 1):
            console.print(f"  [cyan]{i})[/cyan] {right}")
        mapping = {}
        for pair in question.pairs:
            picked = session_int_prompt(f"{pair.left} →", choices=[str(i) for i in range(1, len(rights) + 1)])
            mapping[pair.left] = rights[picked - 1]
        return MatchingResponse(mapping)
    return TextResponse(session_prompt("\nYour answer"))


def show_results(quiz: Quiz, done: CompletedAttempt) -> None:
    report = done.report
    table = Table(title=f"{quiz.title} — results")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Result")
    for i, q in enumerate(quiz.questions, 1):
        result = report.results[q.id]
        if not result.is_graded:
            verdict = "[dim]not auto-graded[/dim]"
        elif result.is_correct:
            verdict = "[green]correct[/green]"
        elif result.matched_fraction:
            verdict = f"[yellow]{result.matched_fraction:.0%} matched[/yellow]"
        else:
            verdict = "[red]incorrect[/red]"
        table.add_row(str(i), q.content, verdict)
    console.print(table)
    for q in quiz.questions:
        if q.explanation:
            console.print(f"[dim]{q.content} — {q.explanation}[/dim]")
    color = get_score_color(report.percentage)
    console.print(
        f"\n[bold]Score: {report.score}/{report.auto_graded} auto-graded "
        f"of {report.total_questions}[/bold] [{color}]{get_score_label(report.percentage)}[/{color}]"
    )
    if done.overtime:
        console.print("[yellow]Completed after the time limit.[/yellow]")


def run_quiz_session(machine: AttemptStateMachine, quiz: Quiz, user_id: int) -> CompletedAttempt | None:
    """Run one attempt. Leaving early keeps the attempt open for later."""
    try:
        attempt = machine.start(user_id, quiz.id)
    except ConflictError:
        console.print("[yellow]Resuming your attempt in progress.[/yellow]")
        attempt = machine.gateway.find_live_attempt(user_id, quiz.id)
    answered = {a.question_id for a in machine.gateway.load_answers(attempt.id)}
    console.print(f"\n[bold]{quiz.title}[/bold] — {len(quiz.questions)} questions\n")
    for i, q in enumerate(quiz.questions, 1):
        if q.id in answered:
            continue
        console.print(f"[bold]Q{i}.[/bold] {q.content}\n")
        machine.record_answer(attempt, q.id, ask_response(q))
        console.print()
    done = machine.complete(attempt)
    show_results(quiz, done)
    return done


def run_flashcard_session(session: ReviewSession, cards: list) -> int:
    if not cards:
        console.print("[yellow]No flashcards due right now![/yellow]")
        return 0
    console.print(f"\n[bold]Flashcard Session[/bold] — {len(cards)} cards\n")
    for i, card in enumerate(cards, 1):
        console.print(Panel(card.front, title=f"Card {i}/{len(cards)} · {card.difficulty.value}", border_style="cyan"))
        session_prompt("[dim]Press Enter to reveal answer[/dim]", default="")
        console.print(Panel(card.back, border_style="green"))
        key = session_prompt("Again, Hard or Good", choices=list(OUTCOME_KEYS) + list(EXIT_WORDS))
        updated = session.review(card.id, OUTCOME_KEYS[key])
        console.print(f"[dim]→ {updated.difficulty.value}[/dim]\n")
    return len(cards)


def cmd_quiz(db_path: str, machine: AttemptStateMachine, user_id: int):
    conn = get_connection(db_path)
    quizzes = conn.execute("SELECT id, title, time_limit, is_exam_mode FROM quizzes ORDER BY id").fetchall()
    conn.close()
    if not quizzes:
        console.print("[yellow]No quizzes available![/yellow]")
        return
    for q in quizzes:
        flags = " [red](exam)[/red]" if q["is_exam_mode"] else ""
        limit = f" [dim]{q['time_limit']} min[/dim]" if q["time_limit"] else ""
        console.print(f"  [cyan]{q['id']}[/cyan]) {q['title']}{limit}{flags}")
    quiz_id = IntPrompt.ask("Select quiz", choices=[str(q["id"]) for q in quizzes])
    run_quiz_session(machine, machine.gateway.load_quiz(quiz_id), user_id)


def cmd_flashcards(session: ReviewSession, user_id: int):
    console.print("\n[bold]Flashcard Review[/bold]")
    run_flashcard_session(session, session.due_cards(user_id, limit=15))


def cmd_stats(db_path: str, user_id: int):
    stats = get_user_stats(db_path, user_id)
    console.print(f"\n  Attempts: [bold]{stats['total_attempts']}[/bold]  |  "
                  f"Average: [bold]{stats['average_score']}%[/bold]  |  "
                  f"Best: [bold]{stats['best_score']}%[/bold]  |  "
                  f"Reviews: [bold]{stats['flashcards_reviewed']}[/bold]")
    table = Table(title="Flashcards by level")
    table.add_column("Level", style="cyan")
    table.add_column("Cards", justify="right")
    for level, n in stats["flashcards"].items():
        table.add_row(level, str(n))
    console.print(table)
    if stats["recent_attempts"]:
        recent = Table(title="Recent attempts")
        recent.add_column("Quiz", style="cyan")
        recent.add_column("Score", justify="right")
        recent.add_column("Completed")
        for a in stats["recent_attempts"]:
            recent.add_row(a["quiz_title"], f"{a['percentage']}%", a["completed_at"][:16].replace("T", " "))
        console.print(recent)


def cmd_leaderboard(db_path: str):
    rows = get_leaderboard(db_path)
    if not rows:
        console.print("[yellow]No completed attempts yet.[/yellow]")
        return
    table = Table(title="Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("Player", style="cyan")
    table.add_column("Average", justify="right")
    table.add_column("Best", justify="right")
    table.add_column("Attempts", justify="right")
    for r in rows:
        table.add_row(str(r["rank"]), r["name"], f"{r['average_score']}%", f"{r['best_score']}%", str(r["total_attempts"]))
    console.print(table)
    best = get_recent_best_scores(db_path, period_days=7, limit=5)
    if best:
        console.print("\n[bold]Best this week:[/bold]")
        for b in best:
            console.print(f"  {b['name']} - {b['quiz_title']}: [bold]{b['percentage']}%[/bold]")


def cmd_import(db_path: str):
    file_path = Prompt.ask("Bundle path (.json, .yaml)")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    counts = import_bundle(db_path, file_path)
    summary = ", ".join(f"{n} {section}" for section, n in counts.items() if n)
    console.print(f"[green]Imported {summary or 'nothing'}[/green]")


def cmd_export(db_path: str):
    file_path = Prompt.ask("Export to (.json, .yaml)", default="quizapp-export.json")
    counts = export_bundle(db_path, file_path)
    summary = ", ".join(f"{n} {section}" for section, n in counts.items() if n)
    console.print(f"[green]Exported {summary or 'nothing'} to {file_path}[/green]")


def cmd_sweep(machine: AttemptStateMachine):
    closed = sweep_overdue(machine)
    console.print(f"[green]Closed {len(closed)} overdue attempt(s).[/green]")


def main():
    configure_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    clock = SystemClock()
    gateway = SqliteGateway(db_path)
    machine = AttemptStateMachine(gateway, clock, exam_default_time_limit=exam_default_time_limit(db_path))
    session = ReviewSession(gateway, SRSScheduler(clock, srs_intervals(db_path)))
    user_id = 1

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz").strip().lower()
        try:
            if choice == "quiz":
                cmd_quiz(db_path, machine, user_id)
            elif choice == "flashcards":
                cmd_flashcards(session, user_id)
            elif choice == "stats":
                cmd_stats(db_path, user_id)
            elif choice == "leaderboard":
                cmd_leaderboard(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice == "export":
                cmd_export(db_path)
            elif choice == "sweep":
                cmd_sweep(machine)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]À bientôt![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Session paused. Your progress is saved.[/dim]")
        except QuizAppError as e:
            console.print(f"[red]{e}[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.exception("Command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
