"""Persistence interface used by the progression services.

``TrainingStore`` lists every read and write the drill selector, speed
tracker and regulation service need. ``SQLTrainingStore`` implements it on
top of the SQLAlchemy models; it hands out engine dataclasses only, never
ORM rows, and reports database failures as ``StoreError``.
"""

import json
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from sqlalchemy import func

from ..analysis.drill_catalog import DrillTier
from ..analysis.drill_history import DrillAttempt
from ..analysis.drill_selection import DailyDrillSelection, ScoredDrill
from ..analysis.regulation import (
    AthleteEvent,
    Checkpoint,
    NarrativeSection,
    RegulationColor,
    RegulationReport,
    RegulationScores,
    TrainingLoadEntry,
    WellnessCheckin,
)
from ..analysis.speed_progression import AdjustmentEntry, ProgramStatus, SpeedGoals, SpeedSession
from .database import Database, get_db
from .models import (
    AthleteEventRecord,
    AthleteProfile,
    DailyDrillSelectionRecord,
    DrillAttemptRecord,
    NutritionLogRecord,
    RegulationReportRecord,
    SpeedGoalsRecord,
    SpeedSessionRecord,
    TrainingLoadRecord,
    WellnessCheckinRecord,
)


class TrainingStore(ABC):
    """Abstract read/write collaborator for the progression engine."""

    # Drill attempts and daily selections

    @abstractmethod
    def get_drill_attempts(self, user_id: str) -> List[DrillAttempt]:
        """Full attempt log for a user."""

    @abstractmethod
    def record_drill_attempt(self, user_id: str, attempt: DrillAttempt):
        pass

    @abstractmethod
    def get_daily_selection(self, user_id: str, sport: str, day: date) -> Optional[DailyDrillSelection]:
        pass

    @abstractmethod
    def save_daily_selection(self, selection: DailyDrillSelection):
        """Upsert keyed by (user, sport, date)."""

    @abstractmethod
    def delete_daily_selection(self, user_id: str, sport: str, day: date):
        pass

    # Speed program

    @abstractmethod
    def list_speed_sessions(self, user_id: str, sport: str, limit: Optional[int] = None) -> List[SpeedSession]:
        """Sessions most-recent-first."""

    @abstractmethod
    def add_speed_session(self, session: SpeedSession):
        pass

    @abstractmethod
    def get_speed_goals(self, user_id: str, sport: str) -> Optional[SpeedGoals]:
        pass

    @abstractmethod
    def save_speed_goals(self, goals: SpeedGoals):
        """Upsert keyed by (user, sport)."""

    # Regulation inputs

    @abstractmethod
    def get_wellness_checkins(self, user_id: str, day: date) -> List[WellnessCheckin]:
        """Check-ins for one day in the order they were recorded."""

    @abstractmethod
    def add_wellness_checkin(self, checkin: WellnessCheckin):
        pass

    @abstractmethod
    def get_training_load(self, user_id: str, start: date, end: date) -> List[TrainingLoadEntry]:
        """Load rows with ``start <= entry_date <= end``."""

    @abstractmethod
    def add_training_load(self, user_id: str, entry: TrainingLoadEntry):
        pass

    @abstractmethod
    def get_nutrition_calories(self, user_id: str, day: date) -> float:
        """Total calories logged on ``day``; 0 when nothing was logged."""

    @abstractmethod
    def add_nutrition_log(self, user_id: str, day: date, calories: float, description: Optional[str] = None):
        pass

    @abstractmethod
    def get_body_weight(self, user_id: str) -> Optional[float]:
        pass

    @abstractmethod
    def set_body_weight(self, user_id: str, weight_lbs: float):
        pass

    @abstractmethod
    def get_events(self, user_id: str, start: date, end: date) -> List[AthleteEvent]:
        """Events with ``start <= event_date <= end``."""

    @abstractmethod
    def add_event(self, user_id: str, event: AthleteEvent):
        pass

    # Regulation reports

    @abstractmethod
    def get_regulation_report(self, user_id: str, day: date) -> Optional[RegulationReport]:
        pass

    @abstractmethod
    def save_regulation_report(self, report: RegulationReport):
        """Upsert keyed by (user, date)."""


def _dumps(value) -> str:
    return json.dumps(value, default=str)


def _loads(text: Optional[str], default):
    if not text:
        return default
    return json.loads(text)


class SQLTrainingStore(TrainingStore):
    """TrainingStore backed by the SQLAlchemy models."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    # Drill attempts and daily selections

    def get_drill_attempts(self, user_id: str) -> List[DrillAttempt]:
        with self.db.session("read drill attempts") as session:
            rows = (
                session.query(DrillAttemptRecord)
                .filter(DrillAttemptRecord.user_id == user_id)
                .order_by(DrillAttemptRecord.completed_at, DrillAttemptRecord.id)
                .all()
            )
            return [
                DrillAttempt(
                    drill_id=row.drill_id,
                    completed_at=row.completed_at,
                    accuracy_percent=row.accuracy_percent,
                    reaction_time_ms=row.reaction_time_ms,
                    tier=row.tier,
                )
                for row in rows
            ]

    def record_drill_attempt(self, user_id: str, attempt: DrillAttempt):
        with self.db.session("record drill attempt") as session:
            session.add(DrillAttemptRecord(
                user_id=user_id,
                drill_id=attempt.drill_id,
                tier=attempt.tier,
                accuracy_percent=attempt.accuracy_percent,
                reaction_time_ms=attempt.reaction_time_ms,
                completed_at=attempt.completed_at,
            ))

    def get_daily_selection(self, user_id: str, sport: str, day: date) -> Optional[DailyDrillSelection]:
        with self.db.session("read daily drill selection") as session:
            row = session.query(DailyDrillSelectionRecord).filter_by(
                user_id=user_id, sport=sport, selection_date=day
            ).first()
            if row is None:
                return None
            return DailyDrillSelection(
                user_id=row.user_id,
                sport=row.sport,
                selection_date=row.selection_date,
                tier=DrillTier(row.tier) if row.tier else None,
                drills=[ScoredDrill.from_dict(item) for item in _loads(row.drills, [])],
                created_at=row.created_at,
            )

    def save_daily_selection(self, selection: DailyDrillSelection):
        values = {
            "tier": selection.tier.value if selection.tier else None,
            "drills": _dumps([drill.to_dict() for drill in selection.drills]),
            "selection_reasons": _dumps({drill_id: reason.value for drill_id, reason in selection.reasons.items()}),
        }
        if selection.created_at is not None:
            values["created_at"] = selection.created_at

        with self.db.session("save daily drill selection") as session:
            self.db.upsert(
                session,
                DailyDrillSelectionRecord,
                {"user_id": selection.user_id, "sport": selection.sport, "selection_date": selection.selection_date},
                values,
            )

    def delete_daily_selection(self, user_id: str, sport: str, day: date):
        with self.db.session("delete daily drill selection") as session:
            session.query(DailyDrillSelectionRecord).filter_by(
                user_id=user_id, sport=sport, selection_date=day
            ).delete()

    # Speed program

    @staticmethod
    def _to_session(row: SpeedSessionRecord) -> SpeedSession:
        return SpeedSession(
            user_id=row.user_id,
            sport=row.sport,
            session_number=row.session_number,
            session_date=row.session_date,
            distances=_loads(row.distances, {}),
            rpe=row.rpe,
            body_feel_before=row.body_feel_before,
            body_feel_after=row.body_feel_after,
            sleep_rating=row.sleep_rating,
            pain_areas=_loads(row.pain_areas, []),
            drill_log=_loads(row.drill_log, []),
            is_break_day=bool(row.is_break_day),
            readiness_score=row.readiness_score,
            notes=row.notes,
        )

    def list_speed_sessions(self, user_id: str, sport: str, limit: Optional[int] = None) -> List[SpeedSession]:
        with self.db.session("read speed sessions") as session:
            query = (
                session.query(SpeedSessionRecord)
                .filter_by(user_id=user_id, sport=sport)
                .order_by(SpeedSessionRecord.session_number.desc())
            )
            if limit:
                query = query.limit(limit)
            return [self._to_session(row) for row in query.all()]

    def add_speed_session(self, speed_session: SpeedSession):
        with self.db.session("save speed session") as session:
            session.add(SpeedSessionRecord(
                user_id=speed_session.user_id,
                sport=speed_session.sport,
                session_number=speed_session.session_number,
                session_date=speed_session.session_date,
                distances=_dumps(speed_session.distances),
                rpe=speed_session.rpe,
                body_feel_before=speed_session.body_feel_before,
                body_feel_after=speed_session.body_feel_after,
                sleep_rating=speed_session.sleep_rating,
                pain_areas=_dumps(list(speed_session.pain_areas)),
                drill_log=_dumps(list(speed_session.drill_log)),
                is_break_day=speed_session.is_break_day,
                readiness_score=speed_session.readiness_score,
                notes=speed_session.notes,
            ))

    def get_speed_goals(self, user_id: str, sport: str) -> Optional[SpeedGoals]:
        with self.db.session("read speed goals") as session:
            row = session.query(SpeedGoalsRecord).filter_by(user_id=user_id, sport=sport).first()
            if row is None:
                return None
            history = [
                AdjustmentEntry(
                    date=date.fromisoformat(entry["date"]),
                    action=entry["action"],
                    reason=entry["reason"],
                )
                for entry in _loads(row.adjustment_history, [])
            ]
            return SpeedGoals(
                user_id=row.user_id,
                sport=row.sport,
                current_track=row.current_track or "building_speed",
                personal_bests=_loads(row.personal_bests, {}),
                goal_distances=_loads(row.goal_distances, {}),
                weeks_without_improvement=row.weeks_without_improvement or 0,
                adjustment_history=history,
                last_adjustment_date=row.last_adjustment_date,
                program_status=ProgramStatus(row.program_status or ProgramStatus.NOT_STARTED.value),
            )

    def save_speed_goals(self, goals: SpeedGoals):
        history = [
            {"date": entry.date.isoformat(), "action": entry.action, "reason": entry.reason}
            for entry in goals.adjustment_history
        ]
        with self.db.session("save speed goals") as session:
            self.db.upsert(session, SpeedGoalsRecord, {"user_id": goals.user_id, "sport": goals.sport}, {
                "current_track": goals.current_track,
                "personal_bests": _dumps(goals.personal_bests),
                "goal_distances": _dumps(goals.goal_distances),
                "weeks_without_improvement": goals.weeks_without_improvement,
                "adjustment_history": _dumps(history),
                "last_adjustment_date": goals.last_adjustment_date,
                "program_status": goals.program_status.value,
            })

    # Regulation inputs

    def get_wellness_checkins(self, user_id: str, day: date) -> List[WellnessCheckin]:
        with self.db.session("read wellness check-ins") as session:
            rows = (
                session.query(WellnessCheckinRecord)
                .filter_by(user_id=user_id, entry_date=day)
                .order_by(WellnessCheckinRecord.created_at, WellnessCheckinRecord.id)
                .all()
            )
            return [
                WellnessCheckin(
                    user_id=row.user_id,
                    entry_date=row.entry_date,
                    checkpoint=Checkpoint(row.checkpoint),
                    sleep_quality=row.sleep_quality,
                    stress_level=row.stress_level,
                    physical_readiness=row.physical_readiness,
                    movement_restriction=_loads(row.movement_restriction, {}),
                )
                for row in rows
            ]

    def add_wellness_checkin(self, checkin: WellnessCheckin):
        with self.db.session("save wellness check-in") as session:
            session.add(WellnessCheckinRecord(
                user_id=checkin.user_id,
                entry_date=checkin.entry_date,
                checkpoint=checkin.checkpoint.value,
                sleep_quality=checkin.sleep_quality,
                stress_level=checkin.stress_level,
                physical_readiness=checkin.physical_readiness,
                movement_restriction=_dumps(checkin.movement_restriction or {}),
            ))

    def get_training_load(self, user_id: str, start: date, end: date) -> List[TrainingLoadEntry]:
        with self.db.session("read training load") as session:
            rows = (
                session.query(TrainingLoadRecord)
                .filter(
                    TrainingLoadRecord.user_id == user_id,
                    TrainingLoadRecord.entry_date >= start,
                    TrainingLoadRecord.entry_date <= end,
                )
                .order_by(TrainingLoadRecord.entry_date)
                .all()
            )
            return [TrainingLoadEntry(entry_date=row.entry_date, cns_load_total=row.cns_load_total) for row in rows]

    def add_training_load(self, user_id: str, entry: TrainingLoadEntry):
        with self.db.session("save training load") as session:
            session.add(TrainingLoadRecord(
                user_id=user_id, entry_date=entry.entry_date, cns_load_total=entry.cns_load_total
            ))

    def get_nutrition_calories(self, user_id: str, day: date) -> float:
        with self.db.session("read nutrition logs") as session:
            total = (
                session.query(func.sum(NutritionLogRecord.calories))
                .filter(NutritionLogRecord.user_id == user_id, NutritionLogRecord.entry_date == day)
                .scalar()
            )
            return float(total or 0.0)

    def add_nutrition_log(self, user_id: str, day: date, calories: float, description: Optional[str] = None):
        with self.db.session("save nutrition log") as session:
            session.add(NutritionLogRecord(
                user_id=user_id, entry_date=day, calories=calories, description=description
            ))

    def get_body_weight(self, user_id: str) -> Optional[float]:
        with self.db.session("read athlete profile") as session:
            row = session.query(AthleteProfile).filter_by(user_id=user_id).first()
            return row.weight_lbs if row is not None else None

    def set_body_weight(self, user_id: str, weight_lbs: float):
        with self.db.session("save athlete profile") as session:
            self.db.upsert(session, AthleteProfile, {"user_id": user_id}, {"weight_lbs": weight_lbs})

    def get_events(self, user_id: str, start: date, end: date) -> List[AthleteEvent]:
        with self.db.session("read athlete events") as session:
            rows = (
                session.query(AthleteEventRecord)
                .filter(
                    AthleteEventRecord.user_id == user_id,
                    AthleteEventRecord.event_date >= start,
                    AthleteEventRecord.event_date <= end,
                )
                .order_by(AthleteEventRecord.event_date)
                .all()
            )
            return [
                AthleteEvent(event_date=row.event_date, event_type=row.event_type, title=row.title)
                for row in rows
            ]

    def add_event(self, user_id: str, event: AthleteEvent):
        with self.db.session("save athlete event") as session:
            session.add(AthleteEventRecord(
                user_id=user_id, event_date=event.event_date, event_type=event.event_type, title=event.title
            ))

    # Regulation reports

    def get_regulation_report(self, user_id: str, day: date) -> Optional[RegulationReport]:
        with self.db.session("read regulation report") as session:
            row = session.query(RegulationReportRecord).filter_by(user_id=user_id, report_date=day).first()
            if row is None:
                return None
            sections = {
                name: NarrativeSection(**body)
                for name, body in _loads(row.report_sections, {}).items()
            }
            return RegulationReport(
                user_id=row.user_id,
                report_date=row.report_date,
                scores=RegulationScores(
                    sleep=row.sleep_score,
                    stress=row.stress_score,
                    readiness=row.readiness_score,
                    restriction=row.restriction_score,
                    load=row.load_score,
                    fuel=row.fuel_score,
                    calendar=row.calendar_score,
                ),
                composite=row.regulation_score,
                color=RegulationColor(row.regulation_color),
                headline=row.report_headline or "",
                sections=sections,
                days_until_event=row.days_until_event,
                narrative_generated=bool(row.narrative_generated),
                created_at=row.created_at,
            )

    def save_regulation_report(self, report: RegulationReport):
        sections = {
            name: {"why": s.why, "what_to_do": s.what_to_do, "how_it_helps": s.how_it_helps}
            for name, s in report.sections.items()
        }
        with self.db.session("save regulation report") as session:
            self.db.upsert(
                session,
                RegulationReportRecord,
                {"user_id": report.user_id, "report_date": report.report_date},
                {
                    "regulation_score": report.composite,
                    "regulation_color": report.color.value,
                    "sleep_score": report.scores.sleep,
                    "stress_score": report.scores.stress,
                    "readiness_score": report.scores.readiness,
                    "restriction_score": report.scores.restriction,
                    "load_score": report.scores.load,
                    "fuel_score": report.scores.fuel,
                    "calendar_score": report.scores.calendar,
                    "days_until_event": report.days_until_event,
                    "report_headline": report.headline,
                    "report_sections": _dumps(sections),
                    "narrative_generated": report.narrative_generated,
                },
            )


_store: Optional[SQLTrainingStore] = None


def get_store() -> SQLTrainingStore:
    """Get or create the store over the global database."""
    global _store
    if _store is None:
        _store = SQLTrainingStore(get_db())
    return _store


def reset_store():
    global _store
    _store = None

