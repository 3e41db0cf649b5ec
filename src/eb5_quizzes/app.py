"""Interactive CLI application."""
import argparse
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from eb5_quizzes.aggregator import QuizzesAggregator
from eb5_quizzes.config import DEFAULT_CONTENT_DIR, LOG_LEVELS, SUPPORTED_LANGUAGES, AppConfig
from eb5_quizzes.context import AppContext, build_context
from eb5_quizzes.dashboard import get_progress_color, get_progress_label
from eb5_quizzes.db import DEFAULT_DB_PATH
from eb5_quizzes.models import FilterGroup, QuizInProgressState, QuizTopic, QuizzesTab
from eb5_quizzes.quiz import now_millis, record_quiz_result, save_quiz_progress

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")
FILTER_GROUPS = {
    "goal": (FilterGroup.GOAL, "goals"),
    "duration": (FilterGroup.DURATION, "durations"),
    "format": (FilterGroup.FORMAT, "formats"),
    "level": (FilterGroup.LEVEL, "levels"),
    "sort": (FilterGroup.SORT, "sorts"),
}


class SessionExitRequested(Exception):
    """Raised when the learner leaves a running quiz with 'q' or 'menu'."""


def session_prompt(message: str, **kwargs) -> str:
    answer = Prompt.ask(message, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(message: str, choices: list[str]) -> int:
    return int(session_prompt(message, choices=choices + list(EXIT_WORDS), show_choices=False))


def show_welcome():
    console.print(Panel(
        "[bold]EB-5 Investor Quizzes[/bold]\n[dim]Tracks, practice quizzes and results[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("tracks", "Recommended tracks + resume"),
        ("all", "All quizzes (filtered)"),
        ("results", "Attempt history + certificates"),
        ("progress", "Progress by category"),
        ("filter", "Toggle a filter chip"),
        ("reset", "Clear filters"),
        ("save", "Save / unsave a quiz"),
        ("take", "Take a quiz"),
        ("language", "Change content language"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def run_quiz_session(context: AppContext, quiz: QuizTopic, resume: Optional[QuizInProgressState] = None) -> int:
    """Ask the remaining questions and record the result; pausing saves progress and re-raises."""
    start_index = resume.current_index if resume else 0
    correct = resume.score if resume else 0
    started_at = resume.started_at if resume else now_millis()
    total = quiz.question_count
    console.print(f"\n[bold]{quiz.title}[/bold] - {total} questions [dim](q to pause)[/dim]\n")
    index = start_index
    try:
        for index in range(start_index, total):
            question = quiz.questions[index]
            console.print(f"[bold]Q{index + 1}.[/bold] {question.question}\n")
            for number, option in enumerate(question.options, 1):
                console.print(f"  [cyan]{number})[/cyan] {option}")
            choices = [str(n) for n in range(1, len(question.options) + 1)]
            answer = session_int_prompt("\nYour answer", choices=choices)
            if answer - 1 == question.correct_answer_index:
                console.print("[green]Correct![/green]\n")
                correct += 1
            else:
                right = question.options[question.correct_answer_index]
                console.print(f"[red]Incorrect.[/red] Answer: [green]{right}[/green]\n")
    except SessionExitRequested:
        save_quiz_progress(context.preferences, QuizInProgressState(
            quiz_id=quiz.id, current_index=index, score=correct,
            started_at=started_at, updated_at=now_millis(),
        ))
        console.print("[dim]Progress saved. Resume any time.[/dim]")
        raise
    console.print(f"[bold]Score: {correct}/{total} ({correct / total * 100:.0f}%)[/bold]\n")
    record_quiz_result(context.preferences, quiz, correct)
    return correct


def cmd_tracks(aggregator: QuizzesAggregator):
    aggregator.select_tab(QuizzesTab.TRACKS)
    state = aggregator.state
    if state.has_resume:
        console.print("\n[bold]Pick up where you left off[/bold]")
        for quiz in state.resume_quizzes:
            console.print(f"  [cyan]{quiz.id}[/cyan] {quiz.title} [dim]{quiz.last_attempt_relative()}[/dim]")
    if not state.has_tracks:
        console.print("[yellow]No tracks available yet.[/yellow]")
        return
    table = Table(title="Recommended tracks")
    table.add_column("#", justify="right")
    table.add_column("Track", style="cyan")
    table.add_column("Progress", justify="right")
    table.add_column("Duration")
    table.add_column("")
    for number, track in enumerate(state.tracks, 1):
        badge = " [green]certificate[/green]" if track.certificate_available else ""
        table.add_row(
            str(number), track.title, f"{track.completed}/{track.total}",
            track.duration_label, track.cta_label() + badge,
        )
    console.print(table)
    choice = Prompt.ask("Open track # (Enter to skip)", default="").strip()
    if choice.isdigit() and 1 <= int(choice) <= len(state.tracks):
        track = state.tracks[int(choice) - 1]
        aggregator.record_track_open(track.id)
        console.print(Panel(track.description, title=track.title, border_style="cyan"))
        for quiz_id in track.quiz_ids:
            quiz = aggregator.find_quiz(quiz_id)
            console.print(f"  [cyan]{quiz_id}[/cyan] {quiz.title if quiz else ''}")


def cmd_all(aggregator: QuizzesAggregator):
    aggregator.select_tab(QuizzesTab.ALL)
    state = aggregator.state
    for category, quizzes in state.all_quizzes.items():
        table = Table(title=category)
        table.add_column("ID", style="cyan")
        table.add_column("Quiz")
        table.add_column("Level")
        table.add_column("Length")
        table.add_column("Best", justify="right")
        table.add_column("")
        for quiz in quizzes:
            best = "-" if quiz.best_score is None else f"{quiz.best_score}/{quiz.questions_count}"
            title = ("★ " if quiz.is_saved else "") + quiz.title
            if quiz.passed:
                title += " [green]✓[/green]"
            table.add_row(quiz.id, title, quiz.level_label, quiz.estimated_duration_label, best, quiz.cta_label())
        console.print(table)


def cmd_results(aggregator: QuizzesAggregator):
    aggregator.select_tab(QuizzesTab.RESULTS)
    state = aggregator.state
    if not state.has_results:
        console.print("[yellow]No attempts yet. Take a quiz to see results here.[/yellow]")
    else:
        table = Table(title="Attempt history")
        table.add_column("Quiz", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Level")
        table.add_column("Completed")
        for attempt in state.results:
            table.add_row(attempt.title, attempt.best_score_label(), attempt.level, attempt.completed_date_label())
        console.print(table)
    if not state.has_certificates:
        return
    for number, certificate in enumerate(state.certificates, 1):
        console.print(f"  [cyan]{number})[/cyan] [green]Certificate:[/green] {certificate.title} "
                      f"[dim]{certificate.completed_label()}[/dim]")
    choice = Prompt.ask("Print certificate # (Enter to skip)", default="").strip()
    if choice.isdigit() and 1 <= int(choice) <= len(state.certificates):
        certificate = state.certificates[int(choice) - 1]
        aggregator.record_certificate_download(certificate.track_id)
        console.print(Panel(
            f"[bold]{certificate.title}[/bold]\nCompleted {certificate.completed_label()}",
            title="Certificate of Completion", border_style="green",
        ))


def cmd_progress(aggregator: QuizzesAggregator):
    state = aggregator.state
    overall = state.overall_progress
    color = get_progress_color(overall.fraction)
    bar_filled = int(overall.fraction * 20)
    bar = f"[{color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{color}]"
    console.print(
        f"\n  Overall: [bold]{overall.completed}/{overall.total}[/bold] {bar} "
        f"[{color}]{get_progress_label(overall.fraction)}[/{color}]\n"
    )
    table = Table(title="By category")
    table.add_column("Category", style="cyan")
    table.add_column("Completed", justify="right")
    table.add_column("Status")
    for row in state.category_progress:
        row_color = get_progress_color(row.fraction)
        table.add_row(
            row.category or "(uncategorized)", f"{row.completed}/{row.total}",
            f"[{row_color}]{get_progress_label(row.fraction)}[/{row_color}]",
        )
    console.print(table)


def cmd_filter(aggregator: QuizzesAggregator):
    aggregator.set_filter_sheet_visible(True)
    try:
        chips = aggregator.state.filter_chips
        for name, (_, attr) in FILTER_GROUPS.items():
            rendered = "  ".join(
                f"[reverse]{chip.id}[/reverse]" if chip.selected else chip.id
                for chip in getattr(chips, attr)
            )
            console.print(f"  [bold]{name:<9}[/bold] {rendered}")
        name = Prompt.ask("Group", choices=list(FILTER_GROUPS))
        group, attr = FILTER_GROUPS[name]
        chip_id = Prompt.ask("Chip", choices=[chip.id for chip in getattr(chips, attr)])
        aggregator.toggle_filter_chip(group, chip_id)
    finally:
        aggregator.set_filter_sheet_visible(False)


def _visible_quizzes(aggregator: QuizzesAggregator) -> dict:
    return {quiz.id: quiz for group in aggregator.state.all_quizzes.values() for quiz in group}


def cmd_save(aggregator: QuizzesAggregator):
    quizzes = _visible_quizzes(aggregator)
    quiz_id = Prompt.ask("Quiz ID", choices=list(quizzes), show_choices=False)
    now_saved = not quizzes[quiz_id].is_saved
    aggregator.toggle_saved(quiz_id, now_saved)
    console.print(f"[green]{'Saved' if now_saved else 'Removed from saved'}:[/green] {quizzes[quiz_id].title}")


def cmd_take(context: AppContext, aggregator: QuizzesAggregator):
    quizzes = _visible_quizzes(aggregator)
    quiz_id = Prompt.ask("Quiz ID", choices=list(quizzes), show_choices=False)
    cta = quizzes[quiz_id].cta_label()
    aggregator.record_primary_cta_click(quiz_id, cta)
    resume = None
    if cta == "Resume":
        aggregator.record_resume_click(quiz_id)
        resume = context.preferences.snapshot().quiz_in_progress.get(quiz_id)
    run_quiz_session(context, aggregator.find_quiz(quiz_id), resume)


def cmd_language(context: AppContext, aggregator: QuizzesAggregator):
    language = Prompt.ask("Language", choices=list(SUPPORTED_LANGUAGES), default=aggregator.language)
    context.preferences.set_language(language)
    console.print(f"[green]Content language: {aggregator.language}[/green]")


def parse_args(argv=None) -> AppConfig:
    parser = argparse.ArgumentParser(prog="eb5-quizzes", description="EB-5 investor education quizzes")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="preferences database path")
    parser.add_argument("--content-dir", default=DEFAULT_CONTENT_DIR, help="directory of per-language quiz content")
    parser.add_argument("--language", choices=SUPPORTED_LANGUAGES, help="content language (default: last used)")
    parser.add_argument("--log-level", default="WARNING", choices=LOG_LEVELS)
    args = parser.parse_args(argv)
    return AppConfig(db_path=args.db, content_dir=args.content_dir, language=args.language, log_level=args.log_level)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def main(argv=None):
    config = parse_args(argv)
    configure_logging(config.log_level)
    context = build_context(config)
    aggregator = QuizzesAggregator(context)
    aggregator.start()

    show_welcome()

    commands = {
        "tracks": lambda: cmd_tracks(aggregator),
        "all": lambda: cmd_all(aggregator),
        "results": lambda: cmd_results(aggregator),
        "progress": lambda: cmd_progress(aggregator),
        "filter": lambda: cmd_filter(aggregator),
        "reset": aggregator.reset_filters,
        "save": lambda: cmd_save(aggregator),
        "take": lambda: cmd_take(context, aggregator),
        "language": lambda: cmd_language(context, aggregator),
    }
    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default=aggregator.state.tab.value.lower()).strip().lower()
            try:
                if choice in ("quit", "exit", "q"):
                    console.print("[dim]Good luck with your investment journey![/dim]")
                    break
                elif choice in commands:
                    commands[choice]()
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except SessionExitRequested:
                console.print("[dim]Back to menu.[/dim]")
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except Exception as e:
                logger.debug("Command %s failed", choice, exc_info=True)
                console.print(f"[red]Error: {e}[/red]")
    finally:
        aggregator.close()


if __name__ == "__main__":
    main()
