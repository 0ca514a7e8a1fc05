"""Static catalog of vision-training drills.

Each drill belongs to one skill tier (beginner < advanced < chaos) and one
category. A user's tier unlocks every drill at or below it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class DrillTier(Enum):
    """Ordered skill tiers gating drill access."""
    BEGINNER = "beginner"
    ADVANCED = "advanced"
    CHAOS = "chaos"

    @property
    def rank(self) -> int:
        return TIER_ORDER[self]

    def unlocks(self, drill_tier: "DrillTier") -> bool:
        """Whether a user at this tier may access drills of ``drill_tier``."""
        return drill_tier.rank <= self.rank


class DrillCategory(Enum):
    """Skill categories used to diversify the daily set."""
    FOCUS = "focus"
    TRACKING = "tracking"
    REACTION = "reaction"
    COORDINATION = "coordination"


TIER_ORDER: Dict[DrillTier, int] = {
    DrillTier.BEGINNER: 0,
    DrillTier.ADVANCED: 1,
    DrillTier.CHAOS: 2,
}


@dataclass(frozen=True)
class Drill:
    """A single drill definition."""
    id: str
    name: str
    tier: DrillTier
    category: DrillCategory
    description: str = ""
    duration: str = ""


ALL_DRILLS: List[Drill] = [
    # Beginner tier
    Drill("soft_focus", "Soft Focus", DrillTier.BEGINNER, DrillCategory.FOCUS,
          "Develop calm awareness and reduce over-fixation", "2-3 min"),
    Drill("pattern_search", "Pattern Search", DrillTier.BEGINNER, DrillCategory.FOCUS,
          "Improve visual scanning efficiency", "2-4 min"),
    Drill("peripheral_vision", "Peripheral Vision", DrillTier.BEGINNER, DrillCategory.TRACKING,
          "Expand your visual field awareness", "2-3 min"),
    Drill("convergence", "Convergence", DrillTier.BEGINNER, DrillCategory.COORDINATION,
          "Train eye alignment and depth perception", "2-3 min"),
    Drill("color_flash", "Color Flash", DrillTier.BEGINNER, DrillCategory.REACTION,
          "React quickly to target colors", "1-2 min"),
    Drill("eye_relaxation", "Eye Relaxation", DrillTier.BEGINNER, DrillCategory.FOCUS,
          "Guided rest and eye recovery", "2-3 min"),

    # Advanced tier
    Drill("near_far", "Near-Far Sight", DrillTier.ADVANCED, DrillCategory.COORDINATION,
          "Rapid depth switching exercises", "2-4 min"),
    Drill("smooth_pursuit", "Follow the Target", DrillTier.ADVANCED, DrillCategory.TRACKING,
          "Track moving objects with precision", "2-3 min"),
    Drill("whack_a_mole", "Whack-a-Mole", DrillTier.ADVANCED, DrillCategory.REACTION,
          "Reaction time and decision making", "2-4 min"),
    Drill("meter_timing", "Meter Timing", DrillTier.ADVANCED, DrillCategory.REACTION,
          "Precision timing catch game", "2-3 min"),
    Drill("stroop_challenge", "Stroop Challenge", DrillTier.ADVANCED, DrillCategory.FOCUS,
          "Color-word interference training", "2-3 min"),
    Drill("multi_target_track", "Multi-Target Track", DrillTier.ADVANCED, DrillCategory.TRACKING,
          "Track multiple moving objects", "2-4 min"),

    # Chaos tier
    Drill("brock_string", "Brock String", DrillTier.CHAOS, DrillCategory.COORDINATION,
          "Advanced binocular coordination", "3-5 min"),
    Drill("rapid_switch", "Rapid Switch", DrillTier.CHAOS, DrillCategory.REACTION,
          "Fast-paced cognitive switching", "2-3 min"),
    Drill("dual_task_vision", "Dual-Task Vision", DrillTier.CHAOS, DrillCategory.COORDINATION,
          "Split attention training", "2-4 min"),
    Drill("chaos_grid", "Chaos Grid", DrillTier.CHAOS, DrillCategory.TRACKING,
          "Ultimate visual chaos challenge", "2-4 min"),
]


def parse_tier(value) -> DrillTier:
    """Coerce a tier name or DrillTier into a DrillTier."""
    if isinstance(value, DrillTier):
        return value
    try:
        return DrillTier(str(value).lower())
    except ValueError:
        raise ValueError(f"Unknown drill tier: {value}")


def get_drills_for_tier(user_tier: DrillTier, catalog: Optional[List[Drill]] = None) -> List[Drill]:
    """Get every drill unlocked at ``user_tier``, in catalog order."""
    drills = ALL_DRILLS if catalog is None else catalog
    return [drill for drill in drills if user_tier.unlocks(drill.tier)]


def get_drill_by_id(drill_id: str) -> Optional[Drill]:
    for drill in ALL_DRILLS:
        if drill.id == drill_id:
            return drill
    return None
