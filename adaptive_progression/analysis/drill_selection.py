"""Daily drill scoring and selection.

Every unlocked drill is scored independently from the user's attempt
history; the daily set is then chosen greedily from the ranking with two
diversity rules: at least one drill from the user's current tier, and at
least two categories whenever the unlocked catalog allows it.

The chosen set is cached per (user, sport, date) through the store, so
repeated requests on the same day return the same drills.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from ..config import config
from ..errors import SelectionNotSavedError, StoreError
from .drill_catalog import ALL_DRILLS, Drill, DrillCategory, DrillTier, get_drills_for_tier, parse_tier
from .drill_history import DrillAttemptHistory, aggregate_history


class SelectionReason(Enum):
    """Why a drill made the daily set."""
    NEVER_ATTEMPTED = "never_attempted"
    NEEDS_PRACTICE = "needs_practice"
    DUE_FOR_REVIEW = "due_for_review"
    TIER_CHALLENGE = "tier_challenge"
    VARIETY = "variety"


@dataclass
class ScoredDrill:
    """A drill enriched with its priority sub-scores."""
    drill: Drill
    recency: float
    performance_gap: float
    novelty_boost: float
    tier_bonus: float
    total_score: float
    reason: SelectionReason
    reason_text: str
    variety_bonus: float = 0.0
    last_completed_at: Optional[datetime] = None
    average_accuracy: Optional[float] = None

    @property
    def id(self) -> str:
        return self.drill.id

    @property
    def tier(self) -> DrillTier:
        return self.drill.tier

    @property
    def category(self) -> DrillCategory:
        return self.drill.category

    def to_dict(self) -> Dict:
        """Serialize for storage."""
        return {
            "id": self.drill.id,
            "name": self.drill.name,
            "tier": self.drill.tier.value,
            "category": self.drill.category.value,
            "description": self.drill.description,
            "duration": self.drill.duration,
            "recency": self.recency,
            "performance_gap": self.performance_gap,
            "novelty_boost": self.novelty_boost,
            "tier_bonus": self.tier_bonus,
            "variety_bonus": self.variety_bonus,
            "total_score": self.total_score,
            "reason": self.reason.value,
            "reason_text": self.reason_text,
            "last_completed_at": self.last_completed_at.isoformat() if self.last_completed_at else None,
            "average_accuracy": self.average_accuracy,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ScoredDrill":
        drill = Drill(
            id=data["id"],
            name=data.get("name", data["id"]),
            tier=DrillTier(data["tier"]),
            category=DrillCategory(data["category"]),
            description=data.get("description", ""),
            duration=data.get("duration", ""),
        )
        last = data.get("last_completed_at")
        return cls(
            drill=drill,
            recency=data["recency"],
            performance_gap=data["performance_gap"],
            novelty_boost=data["novelty_boost"],
            tier_bonus=data["tier_bonus"],
            variety_bonus=data.get("variety_bonus", 0.0),
            total_score=data["total_score"],
            reason=SelectionReason(data["reason"]),
            reason_text=data.get("reason_text", ""),
            last_completed_at=datetime.fromisoformat(last) if last else None,
            average_accuracy=data.get("average_accuracy"),
        )


@dataclass
class DailyDrillSelection:
    """The drills chosen for one user, sport and day."""
    user_id: str
    sport: str
    selection_date: date
    tier: DrillTier
    drills: List[ScoredDrill] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @property
    def reasons(self) -> Dict[str, SelectionReason]:
        return {drill.id: drill.reason for drill in self.drills}

    @property
    def drill_ids(self) -> List[str]:
        return [drill.id for drill in self.drills]


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed between ``moment`` and ``now`` (never negative)."""
    elapsed = (now - moment).total_seconds() / 86400
    return max(0, math.floor(elapsed))


def build_reason_text(reason: SelectionReason, average_accuracy: Optional[float], days: Optional[int]) -> str:
    if reason is SelectionReason.NEVER_ATTEMPTED:
        return "New drill - try it out!"
    if reason is SelectionReason.NEEDS_PRACTICE:
        return f"{average_accuracy or 0:.0f}% avg - practice recommended"
    if reason is SelectionReason.DUE_FOR_REVIEW:
        return f"{days}+ days ago - time to refresh" if days is not None else "Due for review"
    if reason is SelectionReason.TIER_CHALLENGE:
        return "Push your limits!"
    if reason is SelectionReason.VARIETY:
        return "Category balance"
    raise ValueError(f"Unhandled selection reason: {reason}")


def score_drill(
    drill: Drill,
    history: Optional[DrillAttemptHistory],
    user_tier: DrillTier,
    now: datetime,
) -> ScoredDrill:
    """Score a single drill against the user's history."""
    days = None
    if history is not None and history.last_completed_at is not None:
        days = days_since(history.last_completed_at, now)
        recency = min(days / config.RECENCY_MAX_DAYS, 1) * 100
    else:
        # never attempted, or attempted without a timestamp
        recency = 100.0

    average_accuracy = history.average_accuracy if history is not None else None
    if average_accuracy is not None:
        gap = max(0.0, config.TARGET_ACCURACY - average_accuracy)
        performance_gap = gap / config.TARGET_ACCURACY * config.MAX_PERFORMANCE_SCORE
    else:
        performance_gap = config.UNKNOWN_ACCURACY_SCORE

    novelty_boost = config.NEVER_DONE_BOOST if history is None else 0.0
    tier_bonus = config.TIER_BONUS if drill.tier == user_tier else 0.0

    if history is None:
        reason = SelectionReason.NEVER_ATTEMPTED
    elif average_accuracy is not None and average_accuracy < config.NEEDS_PRACTICE_ACCURACY:
        reason = SelectionReason.NEEDS_PRACTICE
    elif days is not None and days >= config.DUE_REVIEW_DAYS:
        reason = SelectionReason.DUE_FOR_REVIEW
    elif drill.tier == user_tier:
        reason = SelectionReason.TIER_CHALLENGE
    else:
        reason = SelectionReason.VARIETY

    return ScoredDrill(
        drill=drill,
        recency=recency,
        performance_gap=performance_gap,
        novelty_boost=novelty_boost,
        tier_bonus=tier_bonus,
        total_score=recency + performance_gap + novelty_boost + tier_bonus,
        reason=reason,
        reason_text=build_reason_text(reason, average_accuracy, days),
        last_completed_at=history.last_completed_at if history is not None else None,
        average_accuracy=average_accuracy,
    )


def score_drills(
    drills: List[Drill],
    history: Dict[str, DrillAttemptHistory],
    user_tier: DrillTier,
    now: datetime,
) -> List[ScoredDrill]:
    return [score_drill(drill, history.get(drill.id), user_tier, now) for drill in drills]


def select_daily_drills(
    scored: List[ScoredDrill],
    user_tier: DrillTier,
    count: Optional[int] = None,
) -> List[ScoredDrill]:
    """Pick the daily set from scored drills.

    Ties in ``total_score`` keep their input order, so the result is fully
    determined by the scores and the catalog order.
    """
    count = config.DAILY_DRILL_COUNT if count is None else count
    if count <= 0:
        return []

    ranked = sorted(scored, key=lambda d: d.total_score, reverse=True)
    selected: List[ScoredDrill] = []
    used_categories = set()

    # a current-tier drill already carries tier_challenge unless a
    # higher-priority reason (never attempted, practice, review) applies
    seed = next((d for d in ranked if d.tier == user_tier), None)
    if seed is not None:
        selected.append(replace(seed))
        used_categories.add(seed.category)

    for drill in ranked:
        if len(selected) >= count:
            break
        if any(s.id == drill.id for s in selected):
            continue

        candidate = replace(drill)
        if drill.category not in used_categories and selected:
            candidate.variety_bonus = config.VARIETY_BONUS
            candidate.total_score += config.VARIETY_BONUS

        selected.append(candidate)
        used_categories.add(drill.category)

    if len(used_categories) < 2 and len(selected) >= 2:
        selected_ids = {s.id for s in selected}
        replacement = next(
            (d for d in ranked if d.category not in used_categories and d.id not in selected_ids),
            None,
        )
        if replacement is not None:
            selected[-1] = replace(
                replacement,
                variety_bonus=config.VARIETY_BONUS,
                total_score=replacement.total_score + config.VARIETY_BONUS,
                reason=SelectionReason.VARIETY,
                reason_text=build_reason_text(SelectionReason.VARIETY, None, None),
            )

    return selected


class DailyDrillSelector:
    """Produces and caches each user's daily drill set."""

    def __init__(self, store=None, catalog: Optional[List[Drill]] = None):
        if store is None:
            from ..db import get_store
            store = get_store()
        self.store = store
        self.catalog = ALL_DRILLS if catalog is None else catalog
        self.logger = logging.getLogger(__name__)

    def compute_selection(
        self,
        user_id: str,
        current_tier,
        sport: Optional[str] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> DailyDrillSelection:
        """Compute a fresh selection without touching the cache."""
        tier = parse_tier(current_tier)
        sport = sport or config.DEFAULT_SPORT
        now = now or datetime.utcnow()
        today = today or now.date()

        history = aggregate_history(self.store.get_drill_attempts(user_id))
        available = get_drills_for_tier(tier, self.catalog)
        scored = score_drills(available, history, tier, now)
        drills = select_daily_drills(scored, tier)

        return DailyDrillSelection(
            user_id=user_id,
            sport=sport,
            selection_date=today,
            tier=tier,
            drills=drills,
            created_at=now,
        )

    def get_daily_selection(
        self,
        user_id: str,
        current_tier,
        sport: Optional[str] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        force_refresh: bool = False,
    ) -> DailyDrillSelection:
        """Load today's selection, computing and caching it when missing.

        Raises:
            SelectionNotSavedError: the selection was computed but could not be
                cached; the computed selection is attached to the error.
        """
        tier = parse_tier(current_tier)
        sport = sport or config.DEFAULT_SPORT
        now = now or datetime.utcnow()
        today = today or now.date()

        if force_refresh:
            self.store.delete_daily_selection(user_id, sport, today)
        else:
            existing = self.store.get_daily_selection(user_id, sport, today)
            if existing is not None:
                if not self._needs_auto_refresh(existing, tier):
                    self.logger.debug(f"Using cached drill selection for {user_id}/{sport} on {today}")
                    return existing
                self.logger.info(
                    f"Tier changed to {tier.value} for {user_id}/{sport}, regenerating drill selection"
                )
                self.store.delete_daily_selection(user_id, sport, today)

        selection = self.compute_selection(user_id, tier, sport, today, now)

        try:
            self.store.save_daily_selection(selection)
        except StoreError as e:
            self.logger.error(f"Error saving daily drill selection: {e}")
            raise SelectionNotSavedError("Selection not saved", selection) from e

        return selection

    def refresh_selection(
        self,
        user_id: str,
        current_tier,
        sport: Optional[str] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> DailyDrillSelection:
        """Discard today's cached selection and compute a new one."""
        return self.get_daily_selection(user_id, current_tier, sport, today, now, force_refresh=True)

    def _needs_auto_refresh(self, selection: DailyDrillSelection, tier: DrillTier) -> bool:
        if any(not tier.unlocks(drill.tier) for drill in selection.drills):
            return True

        tier_increased = selection.tier is None or selection.tier.rank < tier.rank
        if not tier_increased:
            return False

        has_tier_drill = any(drill.tier == tier for drill in selection.drills)
        catalog_has_tier = any(drill.tier == tier for drill in self.catalog)
        return catalog_has_tier and not has_tier_drill
