"""Speed progression tracking.

Classifies sprint ability into a speed track, flags break days from
fatigue, sleep and pain signals, maintains personal bests and detects
plateaus when sessions stop producing improvements.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from ..config import config
from ..errors import GoalsNotSavedError, SessionNotSavedError, StoreError
from .speed_program import (
    SessionTemplate,
    SpeedTrack,
    TimeValue,
    generate_session_drills,
    get_barefoot_stage,
    get_best_time,
    get_distances_for_sport,
    get_session_focus,
    get_sprint_reps_for_session,
    get_track_for_times,
    calculate_readiness,
    parse_sport,
    BREAK_DAY_DRILLS,
)


class ProgramStatus(Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    PAUSED = "paused"


class BreakReason(Enum):
    """Signals that turn a session into a recovery-only break day."""
    CONSECUTIVE_HIGH_RPE = "consecutive_high_rpe"
    POOR_SLEEP = "poor_sleep"
    PAIN_AREAS = "pain_areas"
    DECLINING_TIMES = "declining_times"


class Trend(Enum):
    IMPROVING = "improving"
    MAINTAINING = "maintaining"
    NEEDS_ATTENTION = "needs_attention"


@dataclass
class AdjustmentEntry:
    date: date
    action: str
    reason: str


@dataclass
class SpeedSession:
    """One logged sprint session. Never modified once stored."""
    user_id: str
    sport: str
    session_number: int
    session_date: datetime
    distances: Dict[str, TimeValue] = field(default_factory=dict)
    rpe: Optional[int] = None
    body_feel_before: Optional[str] = None
    body_feel_after: Optional[str] = None
    sleep_rating: Optional[int] = None
    pain_areas: List[str] = field(default_factory=list)
    drill_log: List[str] = field(default_factory=list)
    is_break_day: bool = False
    readiness_score: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class SpeedGoals:
    """Per-sport progression record."""
    user_id: str
    sport: str
    current_track: str = "building_speed"
    personal_bests: Dict[str, float] = field(default_factory=dict)
    goal_distances: Dict[str, float] = field(default_factory=dict)
    weeks_without_improvement: int = 0
    adjustment_history: List[AdjustmentEntry] = field(default_factory=list)
    last_adjustment_date: Optional[date] = None
    program_status: ProgramStatus = ProgramStatus.NOT_STARTED


@dataclass
class SessionInput:
    """What the athlete reports when logging a session."""
    rpe: Optional[int] = None
    sleep_rating: Optional[int] = None
    body_feel_before: Optional[str] = None
    body_feel_after: Optional[str] = None
    pain_areas: List[str] = field(default_factory=list)
    drill_log: List[str] = field(default_factory=list)
    distances: Dict[str, TimeValue] = field(default_factory=dict)
    is_break_day: bool = False
    notes: Optional[str] = None


@dataclass
class PersonalBestUpdate:
    goals: SpeedGoals
    improved_distances: List[str]
    previous_track: SpeedTrack
    track: SpeedTrack
    plateaued: bool
    adjustment: Optional[AdjustmentEntry] = None

    @property
    def improved(self) -> bool:
        return bool(self.improved_distances)

    @property
    def track_changed(self) -> bool:
        return self.track.key != self.previous_track.key


@dataclass
class LockStatus:
    is_locked: bool
    unlock_time: Optional[datetime]


@dataclass
class SessionOutcome:
    session: SpeedSession
    goals: SpeedGoals
    break_reasons: List[BreakReason]
    lock: LockStatus
    personal_bests: Optional[PersonalBestUpdate] = None

    @property
    def is_break_day(self) -> bool:
        return self.session.is_break_day

    @property
    def plateaued(self) -> bool:
        return self.personal_bests.plateaued if self.personal_bests else False


@dataclass
class StreakData:
    current: int
    longest: int
    total: int


@dataclass
class SpeedProgress:
    """Snapshot of a user's speed program for display."""
    sport: str
    program_status: ProgramStatus
    next_session_number: int
    lock: LockStatus
    track: SpeedTrack
    personal_bests: Dict[str, float]
    is_break_day: bool
    break_reasons: List[BreakReason]
    is_plateaued: bool
    weeks_without_improvement: int
    session_focus: str
    session_template: SessionTemplate
    sprint_reps: Dict[str, int]
    barefoot_stage: str
    streaks: StreakData
    trends: Dict[str, Trend]
    last_session: Optional[SpeedSession] = None


def next_session_number(sessions: List[SpeedSession]) -> int:
    """Sessions are most-recent-first; the first session is number 1."""
    if not sessions:
        return 1
    return max(s.session_number for s in sessions) + 1


def get_lock_status(last_session: Optional[SpeedSession], now: datetime) -> LockStatus:
    if last_session is None:
        return LockStatus(is_locked=False, unlock_time=None)
    unlock_time = last_session.session_date + timedelta(seconds=config.get_session_cooldown_seconds())
    return LockStatus(is_locked=now < unlock_time, unlock_time=unlock_time)


def detect_break_day(sessions: List[SpeedSession], personal_bests: Dict[str, float]) -> List[BreakReason]:
    """Evaluate break-day rules against the two most recent sessions.

    Args:
        sessions: Sessions ordered most-recent-first
        personal_bests: Stored bests per distance key

    Returns:
        Every rule that fired; empty when training may proceed
    """
    if not sessions:
        return []

    reasons = []
    last = sessions[0]
    previous = sessions[1] if len(sessions) > 1 else None

    if previous is not None and (last.rpe or 0) >= config.BREAK_RPE_THRESHOLD \
            and (previous.rpe or 0) >= config.BREAK_RPE_THRESHOLD:
        reasons.append(BreakReason.CONSECUTIVE_HIGH_RPE)

    if last.sleep_rating is not None and last.sleep_rating <= config.BREAK_SLEEP_THRESHOLD:
        reasons.append(BreakReason.POOR_SLEEP)

    if len(last.pain_areas or []) >= config.BREAK_PAIN_AREAS:
        reasons.append(BreakReason.PAIN_AREAS)

    decline_count = 0
    for key, value in (last.distances or {}).items():
        best = personal_bests.get(key)
        time = get_best_time(value)
        if best and time > 0 and time > best * config.BREAK_DECLINE_RATIO:
            decline_count += 1
    if decline_count >= config.BREAK_DECLINE_DISTANCES:
        reasons.append(BreakReason.DECLINING_TIMES)

    return reasons


def apply_session_results(
    goals: SpeedGoals,
    distances: Dict[str, TimeValue],
    on_date: date,
) -> PersonalBestUpdate:
    """Fold one non-break session into the goals record.

    Returns a new goals object; the input is left untouched.
    """
    bests = dict(goals.personal_bests)
    improved = []

    for key, value in distances.items():
        best = get_best_time(value)
        if best > 0 and (not bests.get(key) or best < bests[key]):
            bests[key] = best
            improved.append(key)

    previous_track = get_track_for_times(goals.sport, goals.personal_bests)
    track = get_track_for_times(goals.sport, bests)
    counter = 0 if improved else goals.weeks_without_improvement + 1

    history = list(goals.adjustment_history)
    adjustment = None
    last_adjustment_date = goals.last_adjustment_date
    if not improved and counter >= config.PLATEAU_THRESHOLD_SESSIONS:
        adjustment = AdjustmentEntry(
            date=on_date,
            action="focus_shift",
            reason=f"No improvement in {config.PLATEAU_THRESHOLD_SESSIONS} sessions",
        )
        history.append(adjustment)
        last_adjustment_date = on_date

    updated = replace(
        goals,
        personal_bests=bests,
        current_track=track.key,
        weeks_without_improvement=counter,
        adjustment_history=history,
        last_adjustment_date=last_adjustment_date,
    )
    return PersonalBestUpdate(
        goals=updated,
        improved_distances=improved,
        previous_track=previous_track,
        track=track,
        plateaued=counter >= config.PLATEAU_THRESHOLD_SESSIONS,
        adjustment=adjustment,
    )


def distance_trend(sessions: List[SpeedSession], distance_key: str) -> Trend:
    """Trend of best times over the most recent non-break sessions."""
    recent = [s for s in sessions if not s.is_break_day and s.distances.get(distance_key)]
    recent = recent[:config.TREND_WINDOW_SESSIONS]

    times = [get_best_time(s.distances[distance_key]) for s in recent]
    times = [t for t in reversed(times) if t > 0]  # oldest first
    if len(times) < 2:
        return Trend.MAINTAINING

    if all(later <= earlier for earlier, later in zip(times, times[1:])):
        return Trend.IMPROVING
    if all(later >= earlier for earlier, later in zip(times, times[1:])):
        return Trend.NEEDS_ATTENTION
    return Trend.MAINTAINING


def session_streaks(sessions: List[SpeedSession], today: date) -> StreakData:
    """Count consecutive session days, tolerating rest gaps.

    ``current`` runs back from ``today``; ``longest`` is the longest run
    among the given sessions, where consecutive session days may be up to
    ``STREAK_GAP_DAYS`` apart.
    """
    if not sessions:
        return StreakData(current=0, longest=0, total=0)

    dates = sorted({s.session_date.date() for s in sessions}, reverse=True)
    current = 0
    for i, day in enumerate(dates):
        expected = today - timedelta(days=i)
        if abs((day - expected).days) <= config.STREAK_GAP_DAYS:
            current += 1
        else:
            break

    longest = run = 1
    for later, earlier in zip(dates, dates[1:]):
        run = run + 1 if (later - earlier).days <= config.STREAK_GAP_DAYS else 1
        longest = max(longest, run)

    return StreakData(current=current, longest=max(longest, current), total=len(sessions))


def _validate_input(data: SessionInput):
    if data.rpe is not None and not 1 <= data.rpe <= 10:
        raise ValueError(f"RPE must be between 1 and 10, got {data.rpe}")
    if data.sleep_rating is not None and not 1 <= data.sleep_rating <= 5:
        raise ValueError(f"Sleep rating must be between 1 and 5, got {data.sleep_rating}")


class SpeedProgressTracker:
    """Speed program service for one store."""

    def __init__(self, store=None):
        if store is None:
            from ..db import get_store
            store = get_store()
        self.store = store
        self.logger = logging.getLogger(__name__)

    def _load_goals(self, user_id: str, sport: str) -> SpeedGoals:
        goals = self.store.get_speed_goals(user_id, sport)
        if goals is None:
            goals = SpeedGoals(user_id=user_id, sport=sport)
        return goals

    def initialize_program(self, user_id: str, sport) -> SpeedGoals:
        """Start (or restart) the speed journey for a sport."""
        sport = parse_sport(sport).value
        goals = self._load_goals(user_id, sport)
        goals = replace(goals, program_status=ProgramStatus.ACTIVE)
        self.store.save_speed_goals(goals)
        self.logger.info(f"Speed program started for {user_id}/{sport}")
        return goals

    def pause_program(self, user_id: str, sport) -> SpeedGoals:
        return self._set_status(user_id, sport, ProgramStatus.PAUSED)

    def resume_program(self, user_id: str, sport) -> SpeedGoals:
        return self._set_status(user_id, sport, ProgramStatus.ACTIVE)

    def _set_status(self, user_id: str, sport, status: ProgramStatus) -> SpeedGoals:
        sport = parse_sport(sport).value
        goals = self.store.get_speed_goals(user_id, sport)
        if goals is None:
            raise ValueError(f"No speed program for {user_id}/{sport}; initialize it first")
        goals = replace(goals, program_status=status)
        self.store.save_speed_goals(goals)
        return goals

    def save_session(
        self,
        user_id: str,
        sport,
        data: SessionInput,
        now: Optional[datetime] = None,
    ) -> SessionOutcome:
        """Record a session and fold it into personal bests.

        The session is flagged as a break day when requested or when any
        break rule fires with it as the most recent session. Break days
        never update personal bests or the plateau counter.

        The session row and the goals row are written separately. When the
        goals write fails the session stays stored while its personal bests,
        plateau counter and adjustment entry are lost; the error carries the
        computed outcome, and later sessions do not replay the missed update.

        Raises:
            SessionNotSavedError: the session row could not be inserted;
                nothing was written.
            GoalsNotSavedError: the session row was inserted but the goals
                row was not updated.
        """
        _validate_input(data)
        sport = parse_sport(sport).value
        now = now or datetime.utcnow()

        history = self.store.list_speed_sessions(user_id, sport, config.SESSION_HISTORY_LIMIT)
        goals = self._load_goals(user_id, sport)
        if goals.program_status is ProgramStatus.NOT_STARTED:
            goals = replace(goals, program_status=ProgramStatus.ACTIVE)

        session = SpeedSession(
            user_id=user_id,
            sport=sport,
            session_number=next_session_number(history),
            session_date=now,
            distances=dict(data.distances),
            rpe=data.rpe,
            body_feel_before=data.body_feel_before,
            body_feel_after=data.body_feel_after,
            sleep_rating=data.sleep_rating,
            pain_areas=list(data.pain_areas),
            drill_log=list(data.drill_log),
            readiness_score=calculate_readiness(data.sleep_rating, data.body_feel_before, data.pain_areas),
            notes=data.notes,
        )
        reasons = detect_break_day([session] + history, goals.personal_bests)
        session.is_break_day = data.is_break_day or bool(reasons)

        try:
            self.store.add_speed_session(session)
        except StoreError as e:
            self.logger.error(f"Error saving speed session: {e}")
            raise SessionNotSavedError("Session not saved") from e

        outcome = SessionOutcome(
            session=session,
            goals=goals,
            break_reasons=reasons,
            lock=get_lock_status(session, now),
        )

        if session.is_break_day:
            self.logger.info(
                f"Session {session.session_number} for {user_id}/{sport} is a break day "
                f"({', '.join(r.value for r in reasons) or 'requested'}), skipping personal bests"
            )
        else:
            update = apply_session_results(goals, session.distances, now.date())
            outcome.personal_bests = update
            outcome.goals = update.goals
            if update.adjustment is not None:
                self.logger.warning(
                    f"Plateau for {user_id}/{sport}: {update.goals.weeks_without_improvement} sessions without improvement"
                )

        try:
            self.store.save_speed_goals(outcome.goals)
        except StoreError as e:
            self.logger.error(f"Error updating personal bests: {e}")
            raise GoalsNotSavedError("Speed goals not saved", outcome) from e

        return outcome

    def get_progress(self, user_id: str, sport, now: Optional[datetime] = None) -> SpeedProgress:
        """Assemble the current program state, including the next session's plan."""
        sport = parse_sport(sport).value
        now = now or datetime.utcnow()

        sessions = self.store.list_speed_sessions(user_id, sport, config.SESSION_HISTORY_LIMIT)
        goals = self._load_goals(user_id, sport)
        last = sessions[0] if sessions else None
        number = next_session_number(sessions)

        # the upcoming session is judged on the last two logged ones
        reasons = detect_break_day(sessions, goals.personal_bests)
        readiness = last.readiness_score if last and last.readiness_score is not None else 50
        template = generate_session_drills(number)
        sprint_reps = get_sprint_reps_for_session(number, readiness, get_distances_for_sport(sport))
        if reasons:
            template = SessionTemplate(recovery=list(BREAK_DAY_DRILLS))
            sprint_reps = {}

        return SpeedProgress(
            sport=sport,
            program_status=goals.program_status,
            next_session_number=number,
            lock=get_lock_status(last, now),
            track=get_track_for_times(sport, goals.personal_bests),
            personal_bests=dict(goals.personal_bests),
            is_break_day=bool(reasons),
            break_reasons=reasons,
            is_plateaued=goals.weeks_without_improvement >= config.PLATEAU_THRESHOLD_SESSIONS,
            weeks_without_improvement=goals.weeks_without_improvement,
            session_focus=get_session_focus(number),
            session_template=template,
            sprint_reps=sprint_reps,
            barefoot_stage=get_barefoot_stage(number, readiness),
            streaks=session_streaks(sessions, now.date()),
            trends={d.key: distance_trend(sessions, d.key) for d in get_distances_for_sport(sport)},
            last_session=last,
        )
