"""Aggregation of raw drill attempt logs into per-drill summaries."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..config import config
from .drill_catalog import ALL_DRILLS, Drill


@dataclass
class DrillAttempt:
    """One logged attempt at a drill."""
    drill_id: str
    completed_at: Optional[datetime]
    accuracy_percent: Optional[float] = None
    reaction_time_ms: Optional[float] = None
    tier: Optional[str] = None


@dataclass
class DrillAttemptHistory:
    """Summary of a user's attempts at a single drill."""
    last_completed_at: Optional[datetime]
    average_accuracy: Optional[float]
    completion_count: int


@dataclass
class DrillStats:
    """Extended per-drill statistics."""
    drill_id: str
    total_completions: int = 0
    average_accuracy: float = 0.0
    best_accuracy: float = 0.0
    average_reaction_time: float = 0.0
    best_reaction_time: float = 0.0
    last_completed: Optional[datetime] = None


class RecommendationPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class DrillRecommendation:
    drill_id: str
    reason: str
    priority: RecommendationPriority


def aggregate_history(attempts: Iterable[DrillAttempt]) -> Dict[str, DrillAttemptHistory]:
    """Build the per-drill history map in a single pass over the attempt log.

    The average accuracy is the mean over attempts that recorded an accuracy;
    attempts without one still count towards ``completion_count``.
    """
    counts: Dict[str, int] = {}
    accuracy_sums: Dict[str, float] = {}
    accuracy_counts: Dict[str, int] = {}
    last_completed: Dict[str, Optional[datetime]] = {}

    for attempt in attempts:
        key = attempt.drill_id
        counts[key] = counts.get(key, 0) + 1

        if attempt.accuracy_percent is not None:
            accuracy_sums[key] = accuracy_sums.get(key, 0.0) + attempt.accuracy_percent
            accuracy_counts[key] = accuracy_counts.get(key, 0) + 1

        previous = last_completed.get(key)
        if attempt.completed_at is not None and (previous is None or attempt.completed_at > previous):
            last_completed[key] = attempt.completed_at
        else:
            last_completed.setdefault(key, previous)

    history = {}
    for key, count in counts.items():
        average = None
        if accuracy_counts.get(key):
            average = accuracy_sums[key] / accuracy_counts[key]
        history[key] = DrillAttemptHistory(
            last_completed_at=last_completed.get(key),
            average_accuracy=average,
            completion_count=count,
        )
    return history


def calculate_drill_stats(
    attempts: Iterable[DrillAttempt],
    catalog: Optional[List[Drill]] = None,
) -> List[DrillStats]:
    """Calculate aggregate statistics for every catalog drill.

    Drills without attempts are included with zeroed statistics. Attempts for
    drills outside the catalog are ignored.
    """
    drills = ALL_DRILLS if catalog is None else catalog
    stats = {drill.id: DrillStats(drill_id=drill.id) for drill in drills}
    accuracy_n: Dict[str, int] = {}
    reaction_n: Dict[str, int] = {}

    for attempt in attempts:
        stat = stats.get(attempt.drill_id)
        if stat is None:
            continue

        stat.total_completions += 1

        if attempt.accuracy_percent is not None:
            n = accuracy_n.get(stat.drill_id, 0) + 1
            accuracy_n[stat.drill_id] = n
            stat.average_accuracy += (attempt.accuracy_percent - stat.average_accuracy) / n
            stat.best_accuracy = max(stat.best_accuracy, attempt.accuracy_percent)

        if attempt.reaction_time_ms is not None:
            n = reaction_n.get(stat.drill_id, 0) + 1
            reaction_n[stat.drill_id] = n
            stat.average_reaction_time += (attempt.reaction_time_ms - stat.average_reaction_time) / n
            if n == 1 or attempt.reaction_time_ms < stat.best_reaction_time:
                stat.best_reaction_time = attempt.reaction_time_ms

        if attempt.completed_at is not None and (
            stat.last_completed is None or attempt.completed_at > stat.last_completed
        ):
            stat.last_completed = attempt.completed_at

    return list(stats.values())


def recommend_drills(stats: List[DrillStats], now: Optional[datetime] = None) -> List[DrillRecommendation]:
    """Recommend drills that address weaknesses, most urgent first."""
    now = now or datetime.utcnow()
    recommendations: List[DrillRecommendation] = []
    stale_cutoff = now - timedelta(days=config.DUE_REVIEW_DAYS)

    for stat in stats:
        if stat.total_completions == 0:
            recommendations.append(DrillRecommendation(
                stat.drill_id, "Never attempted - try this drill!", RecommendationPriority.HIGH
            ))

    for stat in stats:
        if stat.total_completions > 0 and stat.average_accuracy < config.NEEDS_PRACTICE_ACCURACY:
            recommendations.append(DrillRecommendation(
                stat.drill_id,
                f"Low accuracy ({stat.average_accuracy:.0f}%) - needs practice",
                RecommendationPriority.MEDIUM,
            ))

    recommended = {r.drill_id for r in recommendations}
    for stat in stats:
        if stat.total_completions == 0 or stat.drill_id in recommended:
            continue
        if stat.last_completed is None or stat.last_completed < stale_cutoff:
            recommendations.append(DrillRecommendation(
                stat.drill_id, "Not practiced recently", RecommendationPriority.LOW
            ))

    return recommendations[:config.MAX_DRILL_RECOMMENDATIONS]


def todays_completed_drills(attempts: Iterable[DrillAttempt], day: date) -> List[str]:
    """Distinct drill ids completed on ``day``, in first-seen order."""
    seen: List[str] = []
    for attempt in attempts:
        if attempt.completed_at is None or attempt.completed_at.date() != day:
            continue
        if attempt.drill_id not in seen:
            seen.append(attempt.drill_id)
    return seen
