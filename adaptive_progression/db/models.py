"""Database models for drills, speed sessions and regulation reports."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DrillAttemptRecord(Base):
    """One completed drill attempt."""

    __tablename__ = "drill_attempts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    drill_id = Column(String(50), nullable=False)
    tier = Column(String(20))
    accuracy_percent = Column(Float)
    reaction_time_ms = Column(Float)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<DrillAttemptRecord(user_id={self.user_id}, drill_id={self.drill_id}, at={self.completed_at})>"


class DailyDrillSelectionRecord(Base):
    """Cached daily drill set, one per user, sport and day."""

    __tablename__ = "daily_drill_selections"
    __table_args__ = (UniqueConstraint("user_id", "sport", "selection_date", name="uq_drill_selection_day"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False)
    sport = Column(String(20), nullable=False)
    selection_date = Column(Date, nullable=False)
    tier = Column(String(20))  # tier the selection was computed for
    drills = Column(Text, nullable=False)  # JSON list of scored drills
    selection_reasons = Column(Text)  # JSON map drill_id -> reason
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<DailyDrillSelectionRecord(user_id={self.user_id}, sport={self.sport}, date={self.selection_date})>"


class SpeedSessionRecord(Base):
    """Logged sprint session. Rows are never updated."""

    __tablename__ = "speed_sessions"
    __table_args__ = (UniqueConstraint("user_id", "sport", "session_number", name="uq_speed_session_number"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False)
    sport = Column(String(20), nullable=False)
    session_number = Column(Integer, nullable=False)
    session_date = Column(DateTime, nullable=False)
    distances = Column(Text)  # JSON map distance key -> time or list of times
    rpe = Column(Integer)  # 1-10
    body_feel_before = Column(String(20))
    body_feel_after = Column(String(20))
    sleep_rating = Column(Integer)  # 1-5
    pain_areas = Column(Text)  # JSON list
    drill_log = Column(Text)  # JSON list of drill ids
    is_break_day = Column(Boolean, default=False)
    readiness_score = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<SpeedSessionRecord(user_id={self.user_id}, sport={self.sport}, number={self.session_number})>"


class SpeedGoalsRecord(Base):
    """Personal bests and progression state per user and sport."""

    __tablename__ = "speed_goals"
    __table_args__ = (UniqueConstraint("user_id", "sport", name="uq_speed_goals_sport"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False)
    sport = Column(String(20), nullable=False)
    current_track = Column(String(30), default="building_speed")
    personal_bests = Column(Text)  # JSON map distance key -> seconds
    goal_distances = Column(Text)  # JSON
    weeks_without_improvement = Column(Integer, default=0)
    adjustment_history = Column(Text)  # JSON list of {date, action, reason}
    last_adjustment_date = Column(Date)
    program_status = Column(String(20), default="not_started")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SpeedGoalsRecord(user_id={self.user_id}, sport={self.sport}, track={self.current_track})>"


class WellnessCheckinRecord(Base):
    """Answers to a morning, pre-lift or night wellness quiz."""

    __tablename__ = "wellness_checkins"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    checkpoint = Column(String(20), nullable=False)  # morning, pre_lift, night
    sleep_quality = Column(Integer)  # 1-5
    stress_level = Column(Integer)  # 1-5
    physical_readiness = Column(Integer)  # 1-5
    movement_restriction = Column(Text)  # JSON map body area -> full/limited/pain
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<WellnessCheckinRecord(user_id={self.user_id}, date={self.entry_date}, checkpoint={self.checkpoint})>"


class TrainingLoadRecord(Base):
    """Daily CNS load total."""

    __tablename__ = "training_load"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    cns_load_total = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow)


class NutritionLogRecord(Base):
    """Logged meal or snack."""

    __tablename__ = "nutrition_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    calories = Column(Float)
    description = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)


class AthleteProfile(Base):
    """Body measurements used for energy targets."""

    __tablename__ = "athlete_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), unique=True, nullable=False)
    weight_lbs = Column(Float)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AthleteEventRecord(Base):
    """Calendar entry such as a game, practice or tournament."""

    __tablename__ = "athlete_events"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    event_date = Column(Date, nullable=False)
    event_type = Column(String(50), nullable=False)
    title = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<AthleteEventRecord(date={self.event_date}, type={self.event_type})>"


class RegulationReportRecord(Base):
    """Daily regulation report, one per user and date."""

    __tablename__ = "regulation_reports"
    __table_args__ = (UniqueConstraint("user_id", "report_date", name="uq_regulation_report_day"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False)
    report_date = Column(Date, nullable=False)
    regulation_score = Column(Integer, nullable=False)
    regulation_color = Column(String(10), nullable=False)
    sleep_score = Column(Integer)
    stress_score = Column(Integer)
    readiness_score = Column(Integer)
    restriction_score = Column(Integer)
    load_score = Column(Integer)
    fuel_score = Column(Integer)
    calendar_score = Column(Integer)
    days_until_event = Column(Integer)
    report_headline = Column(Text)
    report_sections = Column(Text)  # JSON map section -> {why, what_to_do, how_it_helps}
    narrative_generated = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<RegulationReportRecord(date={self.report_date}, score={self.regulation_score}, color={self.regulation_color})>"
