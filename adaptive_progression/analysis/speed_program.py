"""Speed Lab program data.

Sport-specific sprint distances, world-class reference times, the speed
track tiers and the drill library used to build each session.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

TimeValue = Union[float, int, Sequence[float], None]


class SportType(Enum):
    BASEBALL = "baseball"
    SOFTBALL = "softball"


class SpeedDrillCategory(Enum):
    ACTIVATION = "activation"
    ISOMETRIC = "isometric"
    SPRINT_MECHANICS = "sprint_mechanics"
    PLYOMETRIC = "plyometric"
    RESISTED = "resisted"
    COOL_DOWN = "cool_down"
    BREAK_DAY = "break_day"


class BodyFeel(Enum):
    GOOD = "good"
    OKAY = "okay"
    TIGHT = "tight"


@dataclass(frozen=True)
class DistanceConfig:
    key: str
    label: str
    yards: float


@dataclass(frozen=True)
class SpeedTrack:
    """A speed tier defined by percent-of-world-class bands."""
    key: str
    label: str
    next_tier: Optional[str]
    goal_text: str
    min_percent: float
    max_percent: float


@dataclass(frozen=True)
class SpeedDrill:
    id: str
    name: str
    category: SpeedDrillCategory
    sets_reps: str
    cues: tuple = ()
    min_session_number: Optional[int] = None


@dataclass
class SessionTemplate:
    """Drills planned for one session, by block."""
    activation: List[SpeedDrill] = field(default_factory=list)
    isometric: List[SpeedDrill] = field(default_factory=list)
    sprint: List[SpeedDrill] = field(default_factory=list)
    plyometric: List[SpeedDrill] = field(default_factory=list)
    resisted: List[SpeedDrill] = field(default_factory=list)
    cool_down: List[SpeedDrill] = field(default_factory=list)
    recovery: List[SpeedDrill] = field(default_factory=list)

    def all_drills(self) -> List[SpeedDrill]:
        return (self.activation + self.isometric + self.sprint + self.plyometric
                + self.resisted + self.cool_down + self.recovery)


# ===== DISTANCES & REFERENCES =====

SPORT_DISTANCES: Dict[SportType, List[DistanceConfig]] = {
    SportType.BASEBALL: [
        DistanceConfig("10y", "10 Yard", 10),
        DistanceConfig("30y", "30 Yard", 30),
        DistanceConfig("60y", "60 Yard", 60),
    ],
    SportType.SOFTBALL: [
        DistanceConfig("7y", "1/3 Base (~7 yd)", 7),
        DistanceConfig("20y", "1 Base (~20 yd)", 20),
        DistanceConfig("40y", "2 Bases (~40 yd)", 40),
    ],
}

# Seconds; internal reference only, never shown to athletes
WORLD_CLASS_REFERENCE: Dict[SportType, Dict[str, float]] = {
    SportType.BASEBALL: {"10y": 1.41, "30y": 3.30, "60y": 6.40},
    SportType.SOFTBALL: {"7y": 1.00, "20y": 2.20, "40y": 4.25},
}

SPEED_TRACKS: List[SpeedTrack] = [
    SpeedTrack("building_speed", "Building Speed", "competitive_speed",
               "Move into Competitive Speed", 0, 60),
    SpeedTrack("competitive_speed", "Competitive Speed", "elite_speed",
               "Move into Elite Speed", 60, 80),
    SpeedTrack("elite_speed", "Elite Speed", "world_class",
               "Move into World Class", 80, 95),
    SpeedTrack("world_class", "World Class", None,
               "Maintain World Class", 95, 100),
]


def parse_sport(value) -> SportType:
    if isinstance(value, SportType):
        return value
    try:
        return SportType(str(value).lower())
    except ValueError:
        raise ValueError(f"Unsupported sport for speed training: {value}")


def get_distances_for_sport(sport) -> List[DistanceConfig]:
    return SPORT_DISTANCES[parse_sport(sport)]


def get_best_time(value: TimeValue) -> float:
    """Best (lowest positive) time from a single time or repeat attempts; 0 when none."""
    if value is None:
        return 0.0
    if isinstance(value, (list, tuple)):
        valid = [t for t in value if t and t > 0]
        return float(min(valid)) if valid else 0.0
    return float(value) if value > 0 else 0.0


def percent_of_reference(sport, personal_bests: Dict[str, float]) -> Optional[float]:
    """Average percent-of-world-class across distances that have a best.

    Returns None when no tracked distance has both a best and a reference.
    """
    sport = parse_sport(sport)
    refs = WORLD_CLASS_REFERENCE[sport]
    percentages = []
    for distance in SPORT_DISTANCES[sport]:
        best = personal_bests.get(distance.key)
        ref = refs.get(distance.key)
        if best and best > 0 and ref:
            percentages.append(min(ref / best, 1.0) * 100)

    if not percentages:
        return None
    return float(np.mean(percentages))


def get_track_for_times(sport, personal_bests: Dict[str, float]) -> SpeedTrack:
    """Classify personal bests into a speed track."""
    average = percent_of_reference(sport, personal_bests)
    if average is None:
        return SPEED_TRACKS[0]

    for track in reversed(SPEED_TRACKS):
        if average >= track.min_percent:
            return track
    return SPEED_TRACKS[0]


# ===== DRILL LIBRARY =====

_A = SpeedDrillCategory.ACTIVATION
_I = SpeedDrillCategory.ISOMETRIC
_S = SpeedDrillCategory.SPRINT_MECHANICS
_P = SpeedDrillCategory.PLYOMETRIC
_R = SpeedDrillCategory.RESISTED
_C = SpeedDrillCategory.COOL_DOWN
_B = SpeedDrillCategory.BREAK_DAY

ACTIVATION_DRILLS = [
    SpeedDrill("ankle_circles", "Barefoot Ankle Circles + Toe Grips", _A, "10 each direction",
               ("Slow circles", "Grip the ground with toes")),
    SpeedDrill("a_skips", "A-Skips (Low Amplitude)", _A, "2 x 20 yards",
               ("Quick ground contact", "Knee drive")),
    SpeedDrill("b_skips", "B-Skips", _A, "2 x 20 yards", ("Extend and snap down", "Stay tall")),
    SpeedDrill("ankling", "Ankling Drills", _A, "2 x 15 yards", ("Stiff ankles", "Quick turnover")),
    SpeedDrill("skip_height", "Light Skipping for Height", _A, "2 x 20 yards",
               ("Push off the ground", "Reach with knee")),
    SpeedDrill("leg_swings", "Dynamic Leg Swings", _A, "10 each leg each direction",
               ("Front-to-back + side-to-side", "Controlled swing")),
]

ISOMETRIC_DRILLS = [
    SpeedDrill("iso_ankle", "ISO Ankle Hold (Single-Leg)", _I, "8 sec each side",
               ("Balance on one foot", "Hold strong")),
    SpeedDrill("iso_split_squat", "ISO Split Squat Hold", _I, "8 sec each side",
               ("Back knee off ground", "Stay tall")),
    SpeedDrill("iso_wall_push", "ISO Wall Push (Hip Extension)", _I, "8 sec each side",
               ("Drive into wall", "Full hip extension")),
    SpeedDrill("iso_calf", "ISO Calf Raise Hold", _I, "8 sec each side", ("High on toes", "Squeeze at top")),
]

SPRINT_MECHANICS_DRILLS = [
    SpeedDrill("wall_drives", "Wall Drives (A-Position)", _S, "3 x 8 each leg",
               ("Drive knee up", "Snap it back down")),
    SpeedDrill("wall_drive_march", "Wall Drive + March-Out", _S, "3 x 5 each",
               ("Drive, then march away from wall", "Stay on toes")),
    SpeedDrill("falling_starts", "Falling Starts (10y)", _S, "3 x 10 yards",
               ("Lean forward until you fall", "Explode out")),
    SpeedDrill("three_point_starts", "3-Point Starts", _S, "3 x 10 yards",
               ("Low start position", "Drive arms hard")),
    SpeedDrill("standing_starts", "Standing Starts (Arm Drive)", _S, "3 x 10 yards",
               ("Arms drive the legs", "Punch forward")),
    SpeedDrill("wicket_runs", "Wicket Runs", _S, "3 x 30 yards", ("Step over each wicket", "Stay tall at speed")),
    SpeedDrill("buildups", "Build-Up Sprints (60-70-80-90%)", _S, "3 x 40 yards",
               ("Gradually increase speed", "Smooth acceleration")),
]

PLYOMETRIC_DRILLS = [
    SpeedDrill("pogo_hops", "Pogo Hops (Ankle Stiffness)", _P, "3 x 10 hops", ("Stiff ankles", "Quick bounce")),
    SpeedDrill("sl_pogo", "Single-Leg Pogo Hops", _P, "3 x 8 each leg", ("Same stiffness, one leg", "Stay balanced")),
    SpeedDrill("broad_jump", "Broad Jump + Stick", _P, "3 x 3 jumps", ("Explode forward", "Stick the landing")),
    SpeedDrill("bounding", "Bounding (3-5 Contacts)", _P, "3 x 5 contacts",
               ("Big push-off each step", "Cover distance")),
    SpeedDrill("depth_drops", "Depth Drops (6-12\" Box)", _P, "3 x 5 drops", ("Step off, land soft", "Absorb quietly")),
    SpeedDrill("hurdle_hops", "Mini Hurdle Hops", _P, "3 x 5 hurdles", ("Quick over each hurdle", "Stiff ankles")),
]

RESISTED_DRILLS = [
    SpeedDrill("sled_push", "Sled Push (Light, 10y)", _R, "3 x 10 yards", ("Stay low", "Drive hard"), 7),
    SpeedDrill("band_starts", "Band-Resisted Starts", _R, "3 x 10 yards", ("Fight the band", "Explode out"), 7),
    SpeedDrill("partner_march", "Partner-Resisted March", _R, "3 x 15 yards",
               ("Partner holds your hips", "Drive knees high"), 7),
    SpeedDrill("overspeed", "Overspeed Downhill Runs (2-3% Grade)", _R, "3 x 30 yards",
               ("Use the slope", "Stay relaxed at speed"), 10),
]

COOL_DOWN_DRILLS = [
    SpeedDrill("walking_mechanics", "Walking Mechanics Drill", _C, "2 x 30 yards",
               ("Heel-to-toe emphasis", "Smooth and controlled")),
    SpeedDrill("osc_swings", "Light Oscillatory Leg Swings", _C, "10 each direction",
               ("Gentle swing", "No forcing range")),
    SpeedDrill("foam_roll", "Foam Rolling", _C, "30 sec each area", ("Calves, hamstrings, quads", "Slow rolls")),
    SpeedDrill("hip_stretch", "90/90 Hip Stretch", _C, "30 sec each side",
               ("Front and back knee at 90 degrees", "Breathe deeply")),
    SpeedDrill("box_breathing", "Box Breathing", _C, "4 rounds", ("4 sec in, 4 hold, 4 out, 4 hold", "Close your eyes")),
]

BREAK_DAY_DRILLS = [
    SpeedDrill("break_elastic", "Elastic Holds (Ankles & Hips)", _B, "15 sec each",
               ("Hold positions gently", "Feel the stretch")),
    SpeedDrill("break_skips", "Light Skips (50% Effort)", _B, "2 x 20 yards", ("Easy does it", "Just get moving")),
    SpeedDrill("break_cars", "Mobility with Intent (Hip & Ankle CARs)", _B, "5 each direction",
               ("Slow controlled circles", "Full range of motion")),
    SpeedDrill("break_breathing", "Breathing & Posture", _B, "3 min",
               ("Diaphragmatic breathing", "Thoracic extension")),
    SpeedDrill("break_lunge", "Walking Lunge Flow", _B, "2 x 10 each leg", ("Slow and controlled", "Open up the hips")),
]

RESISTED_START_SESSION = 7

FOCUS_MESSAGES = [
    "Today we build explosive first steps.",
    "Today we develop top-end speed.",
    "Today we sharpen acceleration mechanics.",
    "Today we train fast & relaxed.",
    "Today we develop stride power.",
    "Today we build springy speed.",
    "Today we build elastic energy.",
]

# (last session number in band, reps per distance in distance order)
SPRINT_REP_TIERS = [
    (3, [2, 1, 1]),
    (6, [3, 2, 1]),
    (9, [3, 2, 2]),
    (14, [4, 3, 2]),
    (19, [4, 3, 3]),
    (24, [5, 4, 3]),
    (None, [6, 5, 5]),
]


def _pick_rotated(drills: List[SpeedDrill], offset: int, count: int) -> List[SpeedDrill]:
    if not drills:
        return []
    return [drills[(offset + i) % len(drills)] for i in range(min(count, len(drills)))]


def generate_session_drills(session_number: int) -> SessionTemplate:
    """Rotate through the drill library by session number."""
    idx = (session_number - 1) % 7

    resisted = []
    if session_number >= RESISTED_START_SESSION:
        eligible = [d for d in RESISTED_DRILLS
                    if d.min_session_number is None or session_number >= d.min_session_number]
        resisted = _pick_rotated(eligible, idx, 1)

    return SessionTemplate(
        activation=_pick_rotated(ACTIVATION_DRILLS, idx, 3),
        isometric=_pick_rotated(ISOMETRIC_DRILLS, idx, 2),
        sprint=_pick_rotated(SPRINT_MECHANICS_DRILLS, idx, 2),
        plyometric=_pick_rotated(PLYOMETRIC_DRILLS, idx, 1),
        resisted=resisted,
        cool_down=_pick_rotated(COOL_DOWN_DRILLS, idx, 3),
    )


def get_session_focus(session_number: int) -> str:
    return FOCUS_MESSAGES[(session_number - 1) % len(FOCUS_MESSAGES)]


def calculate_readiness(sleep_rating: Optional[int], body_feel: Optional[str], pain_areas: Sequence[str]) -> int:
    """Pre-session readiness heuristic on a 0-100 scale."""
    score = 50
    if sleep_rating is not None:
        score += (sleep_rating - 3) * 10
    if body_feel == BodyFeel.GOOD.value:
        score += 15
    elif body_feel == BodyFeel.TIGHT.value:
        score -= 15
    score -= len(pain_areas) * 5
    return max(0, min(100, score))


def get_sprint_reps_for_session(
    session_number: int,
    readiness_score: float,
    distances: List[DistanceConfig],
) -> Dict[str, int]:
    """Reps per distance for a session, scaled down when readiness is low."""
    reps = SPRINT_REP_TIERS[-1][1]
    for max_session, tier_reps in SPRINT_REP_TIERS:
        if max_session is None or session_number <= max_session:
            reps = tier_reps
            break

    result = {d.key: reps[min(i, len(reps) - 1)] or 1 for i, d in enumerate(distances)}

    if readiness_score < 40:
        factor = 0.6
    elif readiness_score < 60:
        factor = 0.75
    else:
        return result

    # half-up so 2 reps at 0.75 stays 2
    return {key: max(1, int(np.floor(value * factor + 0.5))) for key, value in result.items()}


def get_barefoot_stage(session_number: int, readiness_score: float) -> str:
    if session_number >= 20 and readiness_score >= 60:
        return "advanced"
    if session_number >= 15 and readiness_score >= 60:
        return "integration"
    if session_number >= 10:
        return "introduction"
    return "foundation"
