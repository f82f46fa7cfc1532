"""Interactive CLI application."""
import logging
from datetime import date

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from lms_engine.catalog import load_catalog
from lms_engine.config import load_config
from lms_engine.dashboard import (
    get_completion_color, get_completion_label, get_enrollment_overview, get_learner_analytics,
    get_overdue_enrollments,
)
from lms_engine.db import DEFAULT_DB_PATH
from lms_engine.engine import LearningEngine
from lms_engine.errors import EngineError
from lms_engine.gamification import calculate_level, level_title
from lms_engine.gate import next_module
from lms_engine.grader import question_order
from lms_engine.models import COMPLETED, MULTI_SELECT, Assessment

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the learner leaves a player session early."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None) -> int:
    # Prompt rather than IntPrompt so that "q" gets through.
    answer = session_prompt(prompt, choices=(choices + list(EXIT_WORDS)) if choices else None)
    return int(answer)


def show_welcome():
    console.print(Panel(
        "[bold]Course Progress & Assessment Engine[/bold]\n[dim]Learner console[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("courses", "Browse the course catalog"),
        ("enroll", "Enroll in a course"),
        ("play", "Continue a course"),
        ("profile", "Level, streak and badges"),
        ("dashboard", "Enrollments and analytics"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def progress_bar(percent: float, color: str = "cyan") -> str:
    filled = int(percent / 5)
    return f"[{color}]{'█' * filled}{'░' * (20 - filled)}[/{color}]"


def ask_answer(question) -> object:
    if question.options:
        for i, option in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option}")
    if question.type == MULTI_SELECT:
        raw = session_prompt("Your answers (comma-separated numbers)")
        picks = [p.strip() for p in raw.split(",") if p.strip()]
        return [question.options[int(p) - 1] for p in picks if p.isdigit() and 0 < int(p) <= len(question.options)]
    if question.options:
        choices = [str(i) for i in range(1, len(question.options) + 1)]
        return question.options[session_int_prompt("Your answer", choices=choices) - 1]
    return session_prompt("Your answer")


def run_assessment(engine: LearningEngine, enrollment_id: str, assessment: Assessment) -> bool:
    attempts = len(engine.get_enrollment(enrollment_id).attempts_for(assessment.id))
    console.print(Panel(
        f"{len(assessment.questions)} questions, pass mark {assessment.passing_score}%\n"
        f"Attempt {attempts + 1} of {assessment.max_attempts}",
        title=assessment.title or assessment.id, border_style="magenta",
    ))
    answers = {}
    for i, question in enumerate(question_order(assessment, seed=f"{enrollment_id}:{attempts}"), 1):
        console.print(f"\n[bold]Q{i}.[/bold] {question.text}")
        answers[question.id] = ask_answer(question)

    outcome = engine.submit_assessment(enrollment_id, assessment.id, answers)
    color = "green" if outcome.result.passed else "red"
    console.print(
        f"\n[bold]Score: {outcome.result.score}%[/bold] "
        f"({outcome.result.correct_count}/{outcome.result.total}) "
        f"[{color}]{'PASSED' if outcome.result.passed else 'NOT PASSED'}[/{color}]"
    )
    for item in outcome.review:
        if not item["correct"] and "correct_answer" in item:
            console.print(f"  [red]✗ {item['question_id']}[/red] answer: [green]{item['correct_answer']}[/green]")
            if item["explanation"]:
                console.print(f"    [dim]{item['explanation']}[/dim]")
    report_events(outcome.events)
    return outcome.result.passed


def report_events(events) -> None:
    for event in events:
        if event.kind == "module_completed":
            console.print(f"[green]Module complete: {event.subject_id}[/green]")
        elif event.kind == "course_completed":
            console.print(Panel(f"[bold green]Course complete: {event.subject_id}[/bold green]", border_style="green"))


def choose_enrollment(engine: LearningEngine, staff_id: str):
    enrollments = [e for e in engine.list_enrollments(staff_id) if e.status != COMPLETED]
    if not enrollments:
        console.print("[yellow]No active enrollments. Use 'enroll' first.[/yellow]")
        return None
    for i, e in enumerate(enrollments, 1):
        course = engine.catalog.get_course(e.course_id)
        console.print(f"  [cyan]{i})[/cyan] {course.title} ({e.progress}%)")
    pick = session_int_prompt("Select course", choices=[str(i) for i in range(1, len(enrollments) + 1)])
    return enrollments[pick - 1]


def run_player(engine: LearningEngine, staff_id: str) -> None:
    enrollment = choose_enrollment(engine, staff_id)
    if enrollment is None:
        return
    course = engine.catalog.get_course(enrollment.course_id)
    while True:
        # settles modules with nothing left to ask, such as empty ones
        report_events(engine.evaluate(enrollment.id))
        enrollment = engine.get_enrollment(enrollment.id)
        module = next_module(course, enrollment)
        if module is None:
            console.print("[green]Nothing left to do in this course.[/green]")
            return
        mp = enrollment.get_module_progress(module.id)
        done = set(mp.completed_content_ids) if mp else set()
        console.print(Panel(f"[bold]{module.title}[/bold]", title=course.title, border_style="cyan"))
        for item in module.content:
            if item.id in done:
                continue
            console.print(f"[cyan]{item.type}[/cyan] {item.title} [dim]({item.duration} min)[/dim]")
            session_prompt("[dim]Press Enter when finished[/dim]", default="")
            result = engine.complete_content(enrollment.id, module.id, item.id)
            console.print(f"[green]Done.[/green] Course progress: {result.update.course_progress}%")
            report_events(result.events)
        if module.assessment:
            enrollment = engine.get_enrollment(enrollment.id)
            latest = enrollment.latest_attempt(module.assessment.id)
            if latest is None or not latest.passed:
                if not run_assessment(engine, enrollment.id, module.assessment):
                    return


def cmd_courses(engine: LearningEngine):
    table = Table(title="Course Catalog")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Modules", justify="right")
    table.add_column("Minutes", justify="right")
    for course in engine.catalog.courses.values():
        minutes = sum(c.duration for m in course.modules for c in m.content)
        table.add_row(course.id, course.title, course.category, str(len(course.modules)), str(minutes))
    console.print(table)


def cmd_enroll(engine: LearningEngine, staff_id: str):
    course_ids = list(engine.catalog.courses)
    course_id = Prompt.ask("Course", choices=course_ids)
    due = Prompt.ask("Due date (YYYY-MM-DD, blank for none)", default="")
    enrollment = engine.enroll(staff_id, course_id, due_date=due or None)
    console.print(f"[green]Enrolled in {course_id}[/green] [dim]({enrollment.id})[/dim]")


def cmd_profile(engine: LearningEngine, staff_id: str):
    profile = engine.get_profile(staff_id)
    info = calculate_level(profile.total_xp)
    console.print(Panel(
        f"Level [bold]{info.level}[/bold] {level_title(info.level)}  "
        f"{progress_bar(info.progress_percent, 'magenta')} {profile.total_xp} XP\n"
        f"Streak: [bold]{profile.current_streak}[/bold] days (best {profile.longest_streak}), "
        f"freezes left: {profile.streak_freezes_available}",
        title=f"Profile: {staff_id}", border_style="magenta",
    ))
    earned = [b for b in engine.catalog.badges if b.id in profile.badges]
    if earned:
        table = Table(title="Badges")
        table.add_column("Badge", style="cyan")
        table.add_column("Rarity")
        table.add_column("Description")
        for badge in earned:
            table.add_row(badge.name, badge.rarity, badge.description)
        console.print(table)
    if profile.transactions:
        console.print("\n[bold]Recent XP:[/bold]")
        for txn in profile.transactions[-5:]:
            console.print(f"  [green]+{txn.amount}[/green] {txn.description}")


def cmd_dashboard(engine: LearningEngine, staff_id: str):
    stats = get_learner_analytics(engine.db_path, staff_id)
    console.print(Panel(
        f"Enrolled: [bold]{stats['enrolled']}[/bold]  |  Completed: [bold]{stats['completed']}[/bold]  |  "
        f"Certificates: [bold]{stats['certificates']}[/bold]  |  Avg Score: [bold]{stats['avg_score']}%[/bold]\n"
        f"Learning time: [bold]{stats['minutes_learned']}[/bold] min  |  Badges: [bold]{stats['badges']}[/bold]",
        title="Learning Dashboard", border_style="blue",
    ))
    for enrollment in engine.list_enrollments(staff_id):
        course = engine.catalog.get_course(enrollment.course_id)
        color = get_completion_color(enrollment.progress)
        console.print(
            f"\n  [bold]{course.title}[/bold] {progress_bar(enrollment.progress, color)} "
            f"{enrollment.progress}% [{color}]{get_completion_label(enrollment.progress)}[/{color}]"
        )
        table = Table(show_header=True)
        table.add_column("Module", style="cyan")
        table.add_column("Progress", justify="right")
        table.add_column("Status")
        for row in get_enrollment_overview(course, enrollment):
            status = "[dim]locked[/dim]" if row["locked"] else row["status"]
            table.add_row(row["title"], f"{row['progress']}%", status)
        console.print(table)

    overdue = [r for r in get_overdue_enrollments(engine.db_path, date.today()) if r["staff_id"] == staff_id]
    for row in overdue:
        console.print(f"  [red]Overdue:[/red] {row['course_id']} was due {row['due_date']}")


def main():
    logging.basicConfig(
        level=logging.WARNING, format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    engine = LearningEngine(DEFAULT_DB_PATH, load_catalog(), load_config())
    show_welcome()
    staff_id = Prompt.ask("Staff ID", default="me").strip()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="play").strip().lower()
        try:
            if choice == "courses":
                cmd_courses(engine)
            elif choice == "enroll":
                cmd_enroll(engine, staff_id)
            elif choice == "play":
                run_player(engine, staff_id)
            elif choice == "profile":
                cmd_profile(engine, staff_id)
            elif choice == "dashboard":
                cmd_dashboard(engine, staff_id)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Keep learning![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Back to menu. Progress so far is saved.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except EngineError as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
