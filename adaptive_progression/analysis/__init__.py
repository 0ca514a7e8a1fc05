"""Analysis module for drill selection, speed progression and regulation scoring."""

from .drill_catalog import ALL_DRILLS, Drill, DrillCategory, DrillTier
from .drill_selection import DailyDrillSelection, DailyDrillSelector, ScoredDrill, SelectionReason
from .regulation import RegulationColor, RegulationReport, RegulationService
from .speed_progression import SessionInput, SpeedProgressTracker

__all__ = [
    "ALL_DRILLS",
    "Drill",
    "DrillCategory",
    "DrillTier",
    "DailyDrillSelection",
    "DailyDrillSelector",
    "ScoredDrill",
    "SelectionReason",
    "RegulationColor",
    "RegulationReport",
    "RegulationService",
    "SessionInput",
    "SpeedProgressTracker",
]
