"""Daily regulation (readiness) score.

Seven component scores, each 0-100, are derived from the day's wellness
check-ins, recent CNS training load, logged nutrition and upcoming
competitive events. A missing input never fails the calculation; the
component falls back to a neutral value instead. The weighted composite
is mapped to a green / yellow / red band and persisted once per user and
day, overwriting any earlier report for the same date.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..config import config
from ..errors import ReportNotSavedError, StoreError

COMPONENTS = ("sleep", "stress", "readiness", "restriction", "load", "fuel", "calendar")
NARRATIVE_SECTIONS = ("sleep", "stress", "movement", "training_load", "fuel", "game_readiness")


class Checkpoint(Enum):
    """Wellness check-in moments of the day."""
    MORNING = "morning"
    PRE_LIFT = "pre_lift"
    NIGHT = "night"


class RegulationColor(Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


FALLBACK_HEADLINES = {
    RegulationColor.GREEN: (
        "Your body is well-regulated today. Capitalize on this momentum with focused, high-quality work."
    ),
    RegulationColor.YELLOW: (
        "Your regulation is solid. A few small tweaks tonight will set you up for a strong tomorrow."
    ),
    RegulationColor.RED: (
        "Your body is sending signals to prioritize recovery. "
        "Use today to invest in your long-term performance."
    ),
}


@dataclass
class WellnessCheckin:
    """Answers to one wellness quiz. Ratings are on a 1-5 scale."""
    user_id: str
    entry_date: date
    checkpoint: Checkpoint
    sleep_quality: Optional[int] = None
    stress_level: Optional[int] = None
    physical_readiness: Optional[int] = None
    movement_restriction: Dict[str, str] = field(default_factory=dict)


@dataclass
class TrainingLoadEntry:
    entry_date: date
    cns_load_total: Optional[float]


@dataclass
class AthleteEvent:
    event_date: date
    event_type: str
    title: Optional[str] = None

    @property
    def is_competitive(self) -> bool:
        event_type = (self.event_type or "").lower()
        return any(keyword in event_type for keyword in config.COMPETITIVE_EVENT_KEYWORDS)


@dataclass
class RegulationInputs:
    """Everything the score calculator reads for one user and day."""
    report_date: date
    checkins: Dict[Checkpoint, WellnessCheckin] = field(default_factory=dict)
    load_72h: List[TrainingLoadEntry] = field(default_factory=list)
    load_7d: List[TrainingLoadEntry] = field(default_factory=list)
    calories_logged: float = 0.0
    body_weight_lbs: Optional[float] = None
    events: List[AthleteEvent] = field(default_factory=list)

    @property
    def morning(self) -> Optional[WellnessCheckin]:
        return self.checkins.get(Checkpoint.MORNING)

    @property
    def pre_lift(self) -> Optional[WellnessCheckin]:
        return self.checkins.get(Checkpoint.PRE_LIFT)

    @property
    def night(self) -> Optional[WellnessCheckin]:
        return self.checkins.get(Checkpoint.NIGHT)

    @property
    def energy_target(self) -> int:
        """Flat calories-per-pound estimate; a placeholder for a real expenditure model."""
        weight = self.body_weight_lbs or config.DEFAULT_BODY_WEIGHT_LBS
        return round_half_up(weight * config.CALORIES_PER_LB)

    @property
    def stress_level(self) -> Optional[int]:
        """Night stress wins over morning stress."""
        for checkin in (self.night, self.morning):
            if checkin is not None and checkin.stress_level is not None:
                return checkin.stress_level
        return None


@dataclass
class RegulationScores:
    sleep: int
    stress: int
    readiness: int
    restriction: int
    load: int
    fuel: int
    calendar: int

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in COMPONENTS}


@dataclass
class NarrativeSection:
    why: str = ""
    what_to_do: str = ""
    how_it_helps: str = ""


@dataclass
class RegulationReport:
    """Persisted daily regulation result."""
    user_id: str
    report_date: date
    scores: RegulationScores
    composite: int
    color: RegulationColor
    headline: str = ""
    sections: Dict[str, NarrativeSection] = field(default_factory=dict)
    days_until_event: Optional[int] = None
    narrative_generated: bool = False
    created_at: Optional[datetime] = None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _bounded(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def _rating_score(rating: Optional[int], default: int, inverted: bool = False) -> int:
    """Map a 1-5 rating linearly onto 0-100."""
    if rating is None:
        return default
    if inverted:
        return _bounded((5 - rating) / 4 * 100)
    return _bounded((rating - 1) / 4 * 100)


def score_sleep(inputs: RegulationInputs) -> int:
    quality = inputs.morning.sleep_quality if inputs.morning else None
    return _rating_score(quality, config.REGULATION_DEFAULTS["sleep"])


def score_stress(inputs: RegulationInputs) -> int:
    return _rating_score(inputs.stress_level, config.REGULATION_DEFAULTS["stress"], inverted=True)


def score_readiness(inputs: RegulationInputs) -> int:
    readiness = inputs.pre_lift.physical_readiness if inputs.pre_lift else None
    return _rating_score(readiness, config.REGULATION_DEFAULTS["readiness"])


def score_restriction(inputs: RegulationInputs) -> int:
    """Average of per-body-area movement scores from the pre-lift check-in."""
    restriction = inputs.pre_lift.movement_restriction if inputs.pre_lift else None
    if not restriction:
        return config.REGULATION_DEFAULTS["restriction"]

    values = [
        config.RESTRICTION_SCORES.get(str(state).lower(), config.RESTRICTION_UNKNOWN_SCORE)
        for state in restriction.values()
    ]
    return _bounded(np.mean(values))


def _average_load(entries: List[TrainingLoadEntry]) -> float:
    if not entries:
        return 0.0
    return float(np.mean([entry.cns_load_total or 0.0 for entry in entries]))


def load_deviation(inputs: RegulationInputs) -> Optional[float]:
    """Relative deviation of the 72h load average from the 7-day average."""
    avg_7d = _average_load(inputs.load_7d)
    if avg_7d <= 0:
        return None
    return (_average_load(inputs.load_72h) - avg_7d) / avg_7d


def score_load(inputs: RegulationInputs) -> int:
    deviation = load_deviation(inputs)
    if deviation is None:
        return config.REGULATION_DEFAULTS["load"]

    for lower_bound, score in config.LOAD_DEVIATION_BANDS:
        if deviation > lower_bound:
            return score
    if deviation < config.LOAD_RECOVERING_DEVIATION:
        return config.LOAD_RECOVERING_SCORE
    return config.REGULATION_DEFAULTS["load"]


def score_fuel(inputs: RegulationInputs) -> int:
    target = inputs.energy_target
    if inputs.calories_logged <= 0 or target <= 0:
        return config.REGULATION_DEFAULTS["fuel"]
    return min(100, round_half_up(inputs.calories_logged / target * 100))


def days_until_competition(inputs: RegulationInputs) -> Optional[int]:
    """Days to the nearest competitive event on or after the report date."""
    days = [
        (event.event_date - inputs.report_date).days
        for event in inputs.events
        if event.is_competitive
    ]
    days = [d for d in days if d >= 0]
    return min(days) if days else None


def score_calendar(inputs: RegulationInputs) -> Tuple[int, Optional[int]]:
    days = days_until_competition(inputs)
    if days is None:
        return config.REGULATION_DEFAULTS["calendar"], None
    score = config.CALENDAR_BUFFER_SCORES.get(days, config.REGULATION_DEFAULTS["calendar"])
    return score, days


def compute_scores(inputs: RegulationInputs) -> RegulationScores:
    calendar, _ = score_calendar(inputs)
    return RegulationScores(
        sleep=score_sleep(inputs),
        stress=score_stress(inputs),
        readiness=score_readiness(inputs),
        restriction=score_restriction(inputs),
        load=score_load(inputs),
        fuel=score_fuel(inputs),
        calendar=calendar,
    )


def composite_score(scores: RegulationScores) -> int:
    """Weighted sum of the seven components, rounded half-up."""
    values = scores.as_dict()
    total = sum(values[name] * config.get_regulation_weight(name) for name in COMPONENTS)
    return round_half_up(total)


def classify_color(score: int) -> RegulationColor:
    if score >= config.REGULATION_GREEN_THRESHOLD:
        return RegulationColor.GREEN
    if score >= config.REGULATION_YELLOW_THRESHOLD:
        return RegulationColor.YELLOW
    return RegulationColor.RED


def build_narrative_context(inputs: RegulationInputs, report: RegulationReport) -> Dict:
    """Scores plus the raw inputs behind them, as sent to the narrator."""
    return {
        "regulation_score": report.composite,
        "regulation_color": report.color.value,
        "scores": report.scores.as_dict(),
        "sleep_quality": inputs.morning.sleep_quality if inputs.morning else None,
        "stress_level": inputs.stress_level,
        "physical_readiness": inputs.pre_lift.physical_readiness if inputs.pre_lift else None,
        "movement_restriction": dict(inputs.pre_lift.movement_restriction) if inputs.pre_lift else None,
        "training_load": {
            "avg_72h": round_half_up(_average_load(inputs.load_72h)),
            "avg_7d": round_half_up(_average_load(inputs.load_7d)),
        },
        "calories_logged": inputs.calories_logged,
        "energy_target": inputs.energy_target,
        "games_soon": report.days_until_event is not None
        and report.days_until_event <= config.CALENDAR_LOOKAHEAD_DAYS,
        "days_until_game": report.days_until_event,
    }


class RegulationInputGatherer:
    """Collects one day's regulation inputs from the store."""

    def __init__(self, store):
        self.store = store

    def gather(self, user_id: str, on_date: date) -> RegulationInputs:
        checkins = {}
        for checkin in self.store.get_wellness_checkins(user_id, on_date):
            # later check-ins for the same checkpoint replace earlier ones
            checkins[checkin.checkpoint] = checkin

        short_start = on_date - timedelta(days=config.LOAD_SHORT_WINDOW_DAYS)
        long_start = on_date - timedelta(days=config.LOAD_LONG_WINDOW_DAYS)
        load_7d = self.store.get_training_load(user_id, long_start, on_date)
        load_72h = [entry for entry in load_7d if entry.entry_date >= short_start]

        lookahead_end = on_date + timedelta(days=config.CALENDAR_LOOKAHEAD_DAYS)

        return RegulationInputs(
            report_date=on_date,
            checkins=checkins,
            load_72h=load_72h,
            load_7d=load_7d,
            calories_logged=self.store.get_nutrition_calories(user_id, on_date),
            body_weight_lbs=self.store.get_body_weight(user_id),
            events=self.store.get_events(user_id, on_date, lookahead_end),
        )


class RegulationService:
    """Computes, narrates and persists daily regulation reports."""

    def __init__(self, store=None, narrator=None):
        if store is None:
            from ..db import get_store
            store = get_store()
        self.store = store
        self.narrator = narrator
        self.gatherer = RegulationInputGatherer(store)
        self.logger = logging.getLogger(__name__)

    def build_report(self, user_id: str, inputs: RegulationInputs) -> RegulationReport:
        """Score gathered inputs without narrative or persistence."""
        scores = compute_scores(inputs)
        _, days = score_calendar(inputs)
        composite = composite_score(scores)
        color = classify_color(composite)
        return RegulationReport(
            user_id=user_id,
            report_date=inputs.report_date,
            scores=scores,
            composite=composite,
            color=color,
            headline=FALLBACK_HEADLINES[color],
            days_until_event=days,
        )

    def calculate(
        self,
        user_id: str,
        on_date: Optional[date] = None,
        with_narrative: bool = True,
        now: Optional[datetime] = None,
    ) -> RegulationReport:
        """Compute and upsert the report for ``user_id`` on ``on_date``.

        Raises:
            ReportNotSavedError: the report was computed but not persisted;
                the computed report is attached to the error.
        """
        now = now or datetime.utcnow()
        on_date = on_date or now.date()

        inputs = self.gatherer.gather(user_id, on_date)
        report = self.build_report(user_id, inputs)
        report.created_at = now

        if with_narrative and self.narrator is not None:
            self._add_narrative(report, inputs)

        try:
            self.store.save_regulation_report(report)
        except StoreError as e:
            self.logger.error(f"Error saving regulation report: {e}")
            raise ReportNotSavedError("Failed to save report", report) from e

        self.logger.info(
            f"Regulation for {user_id} on {on_date}: {report.composite} ({report.color.value})"
        )
        return report

    def _add_narrative(self, report: RegulationReport, inputs: RegulationInputs):
        try:
            narrative = self.narrator.generate(build_narrative_context(inputs, report))
        except Exception as e:
            # the numeric report is kept with the fallback headline
            self.logger.warning(f"Narrative generation failed, using fallback headline: {e}")
            return

        if narrative.headline:
            report.headline = narrative.headline
        report.sections = dict(narrative.sections)
        report.narrative_generated = True

    def get_report(self, user_id: str, on_date: date) -> Optional[RegulationReport]:
        return self.store.get_regulation_report(user_id, on_date)
