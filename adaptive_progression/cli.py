"""Command-line interface for the adaptive progression engine."""

import logging
from datetime import datetime, date as date_obj
from typing import Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .config import config
from .errors import (
    GoalsNotSavedError,
    NarrativeError,
    ReportNotSavedError,
    SelectionNotSavedError,
    SessionNotSavedError,
    StoreError,
)
from .analysis.drill_catalog import ALL_DRILLS, DrillTier, get_drill_by_id
from .analysis.drill_history import DrillAttempt, calculate_drill_stats, recommend_drills, todays_completed_drills
from .analysis.drill_selection import DailyDrillSelection, DailyDrillSelector
from .analysis.regulation import (
    AthleteEvent,
    Checkpoint,
    RegulationColor,
    RegulationReport,
    RegulationService,
    TrainingLoadEntry,
    WellnessCheckin,
)
from .analysis.speed_program import BodyFeel, SportType, get_distances_for_sport
from .analysis.speed_progression import SessionInput, SessionOutcome, SpeedProgressTracker

console = Console()

COLOR_STYLES = {
    RegulationColor.GREEN: "green",
    RegulationColor.YELLOW: "yellow",
    RegulationColor.RED: "red",
}

user_option = click.option("--user-id", default=None, help="User ID (defaults to DEFAULT_USER_ID)")
date_option = click.option("--date", "day", help="Date (YYYY-MM-DD), defaults to today")


def _store():
    from .db import get_store
    return get_store()


def _user(user_id: Optional[str]) -> str:
    return user_id or config.DEFAULT_USER_ID


def _parse_date(value: Optional[str]) -> date_obj:
    if not value:
        return date_obj.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter("Invalid date format. Use YYYY-MM-DD")


def _parse_pairs(values, name: str) -> Dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    pairs = {}
    for value in values:
        key, sep, rest = value.partition("=")
        if not sep or not key.strip() or not rest.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got '{value}'", param_hint=name)
        pairs[key.strip()] = rest.strip()
    return pairs


def _parse_times(values) -> Dict[str, List[float]]:
    """Parse ``--time 10y=1.62,1.58`` options into repeat attempts per distance."""
    times = {}
    for key, raw in _parse_pairs(values, "--time").items():
        try:
            times[key] = [float(t) for t in raw.split(",") if t.strip()]
        except ValueError:
            raise click.BadParameter(f"Times for {key} must be numbers", param_hint="--time")
    return times


@click.group()
def cli():
    """Adaptive training progression: drills, speed and daily regulation."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("init-db")
def init_db():
    """Create database tables."""
    from .db import get_db

    try:
        config.validate()
    except ValueError as e:
        console.print(f"[red]❌ Configuration Error: {e}[/red]")
        return

    get_db().create_tables()
    console.print(f"[green]✅ Database ready at {config.DATABASE_URL}[/green]")


# ===== DRILLS =====

def _print_selection(selection: DailyDrillSelection, completed: List[str]):
    table = Table(title=f"Daily Drills - {selection.selection_date}", box=box.ROUNDED)
    table.add_column("#", style="cyan")
    table.add_column("Drill", style="bold")
    table.add_column("Tier", style="magenta")
    table.add_column("Category", style="blue")
    table.add_column("Score", style="yellow", justify="right")
    table.add_column("Why", style="green")
    table.add_column("Done", justify="center")

    for i, drill in enumerate(selection.drills, 1):
        table.add_row(
            str(i),
            drill.drill.name,
            drill.tier.value,
            drill.category.value,
            f"{drill.total_score:.0f}",
            drill.reason_text,
            "✅" if drill.id in completed else "",
        )
    console.print(table)


@cli.command()
@user_option
@click.option("--tier", type=click.Choice([t.value for t in DrillTier]), default=DrillTier.BEGINNER.value,
              help="Current drill tier")
@click.option("--sport", default=None, help="Sport (defaults to DEFAULT_SPORT)")
@click.option("--refresh", is_flag=True, help="Discard today's selection and pick again")
def drills(user_id, tier, sport, refresh):
    """Show today's drill selection."""
    user_id = _user(user_id)
    store = _store()
    selector = DailyDrillSelector(store)

    try:
        if refresh:
            selection = selector.refresh_selection(user_id, tier, sport)
        else:
            selection = selector.get_daily_selection(user_id, tier, sport)
    except SelectionNotSavedError as e:
        console.print("[orange3]⚠️  Selection could not be saved; it may change on the next request.[/orange3]")
        selection = e.selection
    except StoreError as e:
        console.print(f"[red]❌ Database error: {e}[/red]")
        return

    if not selection.drills:
        console.print("[yellow]No drills unlocked for this tier.[/yellow]")
        return

    completed = todays_completed_drills(store.get_drill_attempts(user_id), selection.selection_date)
    _print_selection(selection, completed)


@cli.command("drill-stats")
@user_option
def drill_stats(user_id):
    """Show per-drill statistics and practice recommendations."""
    user_id = _user(user_id)
    attempts = _store().get_drill_attempts(user_id)
    stats = calculate_drill_stats(attempts)

    table = Table(title="Drill Statistics", box=box.ROUNDED)
    table.add_column("Drill", style="bold")
    table.add_column("Done", justify="right")
    table.add_column("Avg Acc", style="yellow", justify="right")
    table.add_column("Best Acc", style="green", justify="right")
    table.add_column("Avg RT (ms)", justify="right")
    table.add_column("Last", style="cyan")

    for stat in stats:
        drill = get_drill_by_id(stat.drill_id)
        table.add_row(
            drill.name if drill else stat.drill_id,
            str(stat.total_completions),
            f"{stat.average_accuracy:.0f}%" if stat.total_completions else "-",
            f"{stat.best_accuracy:.0f}%" if stat.total_completions else "-",
            f"{stat.average_reaction_time:.0f}" if stat.average_reaction_time else "-",
            stat.last_completed.strftime("%Y-%m-%d") if stat.last_completed else "-",
        )
    console.print(table)

    recommendations = recommend_drills(stats)
    if recommendations:
        console.print("\n[bold]Recommended focus:[/bold]")
        for rec in recommendations:
            drill = get_drill_by_id(rec.drill_id)
            console.print(f"  • ({rec.priority.value}) {drill.name if drill else rec.drill_id}: {rec.reason}")


@cli.command("log-drill")
@user_option
@click.argument("drill_id", type=click.Choice([d.id for d in ALL_DRILLS]))
@click.option("--accuracy", type=click.FloatRange(0, 100), help="Accuracy percent")
@click.option("--reaction-ms", type=click.FloatRange(min=0), help="Average reaction time in ms")
def log_drill(user_id, drill_id, accuracy, reaction_ms):
    """Record a completed drill."""
    drill = get_drill_by_id(drill_id)
    _store().record_drill_attempt(_user(user_id), DrillAttempt(
        drill_id=drill_id,
        completed_at=datetime.utcnow(),
        accuracy_percent=accuracy,
        reaction_time_ms=reaction_ms,
        tier=drill.tier.value,
    ))
    console.print(f"[green]✅ Logged {drill.name}[/green]")


# ===== SPEED LAB =====

sport_choice = click.Choice([s.value for s in SportType])


@cli.group()
def speed():
    """Speed Lab sprint program."""
    pass


@speed.command("init")
@user_option
@click.option("--sport", type=sport_choice, default=SportType.BASEBALL.value)
def speed_init(user_id, sport):
    """Start the speed program for a sport."""
    goals = SpeedProgressTracker(_store()).initialize_program(_user(user_id), sport)
    console.print(f"[green]✅ Speed program active for {goals.sport}[/green]")


@speed.command("pause")
@user_option
@click.option("--sport", type=sport_choice, default=SportType.BASEBALL.value)
def speed_pause(user_id, sport):
    """Pause the speed program."""
    try:
        SpeedProgressTracker(_store()).pause_program(_user(user_id), sport)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        return
    console.print("[yellow]⏸  Speed program paused[/yellow]")


@speed.command("resume")
@user_option
@click.option("--sport", type=sport_choice, default=SportType.BASEBALL.value)
def speed_resume(user_id, sport):
    """Resume a paused speed program."""
    try:
        SpeedProgressTracker(_store()).resume_program(_user(user_id), sport)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        return
    console.print("[green]▶️  Speed program resumed[/green]")


@speed.command("status")
@user_option
@click.option("--sport", type=sport_choice, default=SportType.BASEBALL.value)
def speed_status(user_id, sport):
    """Show track, personal bests and the next session plan."""
    progress = SpeedProgressTracker(_store()).get_progress(_user(user_id), sport)

    console.print(Panel.fit(
        f"🏃 {progress.track.label}\n{progress.track.goal_text}",
        title=f"Speed Lab - {progress.sport}",
        style="bold blue",
    ))
    console.print(f"Status: {progress.program_status.value}   Next session: #{progress.next_session_number}")
    console.print(
        f"Streak: {progress.streaks.current}   Longest: {progress.streaks.longest}   "
        f"Total sessions: {progress.streaks.total}"
    )

    if progress.lock.is_locked:
        console.print(f"[yellow]🔒 Next session unlocks at {progress.lock.unlock_time:%Y-%m-%d %H:%M} UTC[/yellow]")

    table = Table(title="Personal Bests", box=box.ROUNDED)
    table.add_column("Distance", style="bold")
    table.add_column("Best (s)", style="green", justify="right")
    table.add_column("Trend", style="cyan")
    for distance in get_distances_for_sport(sport):
        best = progress.personal_bests.get(distance.key)
        table.add_row(
            distance.label,
            f"{best:.2f}" if best else "-",
            progress.trends[distance.key].value.replace("_", " "),
        )
    console.print(table)

    if progress.is_plateaued:
        console.print(
            f"[orange3]⚠️  No improvement in {progress.weeks_without_improvement} sessions - shift focus[/orange3]"
        )

    if progress.is_break_day:
        reasons = ", ".join(r.value.replace("_", " ") for r in progress.break_reasons)
        console.print(f"\n[red]🛑 Break day recommended ({reasons})[/red]")
    else:
        console.print(f"\n[bold]Focus:[/bold] {progress.session_focus}")
        reps = ", ".join(f"{key} x{count}" for key, count in progress.sprint_reps.items())
        console.print(f"Sprints: {reps}   Barefoot stage: {progress.barefoot_stage}")

    for drill in progress.session_template.all_drills():
        console.print(f"  • {drill.name} [dim]({drill.category.value}, {drill.sets_reps})[/dim]")


def _print_outcome(outcome: SessionOutcome):
    session = outcome.session
    console.print(f"[green]✅ Session #{session.session_number} saved[/green] (readiness {session.readiness_score})")
    if outcome.is_break_day:
        reasons = ", ".join(r.value.replace("_", " ") for r in outcome.break_reasons) or "requested"
        console.print(f"[yellow]🛌 Break day ({reasons}); personal bests unchanged[/yellow]")
    elif outcome.personal_bests and outcome.personal_bests.improved:
        improved = ", ".join(outcome.personal_bests.improved_distances)
        console.print(f"[green]🏆 New personal best: {improved}[/green]")
        if outcome.personal_bests.track_changed:
            console.print(f"[bold green]⬆️  Now on {outcome.personal_bests.track.label}[/bold green]")
    if outcome.plateaued:
        console.print("[orange3]⚠️  Plateau detected - adjustment logged[/orange3]")


@speed.command("log")
@user_option
@click.option("--sport", type=sport_choice, default=SportType.BASEBALL.value)
@click.option("--time", "times", multiple=True, help="Distance times, e.g. 10y=1.62,1.58")
@click.option("--rpe", type=click.IntRange(1, 10), help="Session effort 1-10")
@click.option("--sleep", type=click.IntRange(1, 5), help="Sleep rating 1-5")
@click.option("--feel-before", type=click.Choice([f.value for f in BodyFeel]))
@click.option("--feel-after", type=click.Choice([f.value for f in BodyFeel]))
@click.option("--pain", multiple=True, help="Body area with pain (repeatable)")
@click.option("--drill", "drill_log", multiple=True, help="Drill performed (repeatable)")
@click.option("--break-day", is_flag=True, help="Log as a recovery-only break day")
@click.option("--notes", help="Free-text notes")
def speed_log(user_id, sport, times, rpe, sleep, feel_before, feel_after, pain, drill_log, break_day, notes):
    """Log a sprint session."""
    data = SessionInput(
        rpe=rpe,
        sleep_rating=sleep,
        body_feel_before=feel_before,
        body_feel_after=feel_after,
        pain_areas=list(pain),
        drill_log=list(drill_log),
        distances=_parse_times(times),
        is_break_day=break_day,
        notes=notes,
    )

    tracker = SpeedProgressTracker(_store())
    try:
        outcome = tracker.save_session(_user(user_id), sport, data)
    except SessionNotSavedError as e:
        console.print(f"[red]❌ Session not saved: {e.__cause__ or e}[/red]")
        return
    except GoalsNotSavedError as e:
        console.print("[orange3]⚠️  Session saved but personal bests could not be updated[/orange3]")
        outcome = e.outcome

    _print_outcome(outcome)


# ===== REGULATION =====

def _print_report(report: RegulationReport):
    style = COLOR_STYLES[report.color]
    console.print(Panel.fit(
        f"[bold]{report.composite}[/bold]/100  ({report.color.value})\n\n{report.headline}",
        title=f"Regulation - {report.report_date}",
        style=style,
    ))

    table = Table(box=box.ROUNDED)
    table.add_column("Component", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Weight", style="dim", justify="right")
    for name, score in report.scores.as_dict().items():
        table.add_row(name.title(), str(score), f"{config.get_regulation_weight(name):.0%}")
    console.print(table)

    if report.days_until_event is not None:
        console.print(f"🏟️  Next game in {report.days_until_event} day(s)")

    for name, section in report.sections.items():
        console.print(f"\n[bold]{name.replace('_', ' ').title()}[/bold]")
        console.print(f"  Why: {section.why}")
        console.print(f"  What to do: {section.what_to_do}")
        console.print(f"  How it helps: {section.how_it_helps}")


@cli.command()
@user_option
@date_option
@click.option("--narrative/--no-narrative", default=True, help="Ask the configured model for a written report")
def regulation(user_id, day, narrative):
    """Calculate the daily regulation score."""
    from .narrative import get_narrator

    on_date = _parse_date(day)
    narrator = None
    if narrative:
        try:
            narrator = get_narrator()
        except NarrativeError as e:
            console.print(f"[orange3]⚠️  Narrative disabled: {e}[/orange3]")
    service = RegulationService(_store(), narrator=narrator)

    try:
        report = service.calculate(_user(user_id), on_date, with_narrative=narrative)
    except ReportNotSavedError as e:
        console.print("[orange3]⚠️  Report could not be saved[/orange3]")
        report = e.report

    _print_report(report)


@cli.command()
@user_option
@date_option
@click.option("--checkpoint", type=click.Choice([c.value for c in Checkpoint]), required=True)
@click.option("--sleep", type=click.IntRange(1, 5), help="Sleep quality 1-5 (morning)")
@click.option("--stress", type=click.IntRange(1, 5), help="Stress level 1-5 (morning/night)")
@click.option("--readiness", type=click.IntRange(1, 5), help="Physical readiness 1-5 (pre-lift)")
@click.option("--restriction", multiple=True, help="Body area movement, e.g. hamstring=limited")
def checkin(user_id, day, checkpoint, sleep, stress, readiness, restriction):
    """Record a wellness check-in."""
    movement = {area: state.lower() for area, state in _parse_pairs(restriction, "--restriction").items()}
    _store().add_wellness_checkin(WellnessCheckin(
        user_id=_user(user_id),
        entry_date=_parse_date(day),
        checkpoint=Checkpoint(checkpoint),
        sleep_quality=sleep,
        stress_level=stress,
        physical_readiness=readiness,
        movement_restriction=movement,
    ))
    console.print(f"[green]✅ {checkpoint.replace('_', '-')} check-in saved[/green]")


@cli.command("log-load")
@user_option
@date_option
@click.argument("cns_load", type=float)
def log_load(user_id, day, cns_load):
    """Record a day's CNS training load."""
    _store().add_training_load(_user(user_id), TrainingLoadEntry(_parse_date(day), cns_load))
    console.print("[green]✅ Training load saved[/green]")


@cli.command("log-food")
@user_option
@date_option
@click.argument("calories", type=click.FloatRange(min=0))
@click.option("--description", help="What was eaten")
def log_food(user_id, day, calories, description):
    """Record calories eaten."""
    _store().add_nutrition_log(_user(user_id), _parse_date(day), calories, description)
    console.print("[green]✅ Nutrition logged[/green]")


@cli.command("add-event")
@user_option
@date_option
@click.argument("event_type")
@click.option("--title", help="Event title")
def add_event(user_id, day, event_type, title):
    """Add a calendar event (game, practice, ...)."""
    _store().add_event(_user(user_id), AthleteEvent(_parse_date(day), event_type, title))
    console.print(f"[green]✅ {event_type} added[/green]")


@cli.command("set-weight")
@user_option
@click.argument("weight_lbs", type=click.FloatRange(min=1))
def set_weight(user_id, weight_lbs):
    """Set body weight used for the energy target."""
    _store().set_body_weight(_user(user_id), weight_lbs)
    console.print(f"[green]✅ Weight set to {weight_lbs:.0f} lb[/green]")


def main():
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[orange3]Operation cancelled by user.[/orange3]")
    except StoreError as e:
        console.print(f"[red]❌ Database error: {e}[/red]")


if __name__ == "__main__":
    main()
