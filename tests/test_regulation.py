"""Tests for the daily regulation score."""

import pytest
from datetime import date, timedelta

from adaptive_progression.analysis.regulation import (
    FALLBACK_HEADLINES,
    AthleteEvent,
    Checkpoint,
    NarrativeSection,
    RegulationColor,
    RegulationInputGatherer,
    RegulationInputs,
    RegulationScores,
    RegulationService,
    TrainingLoadEntry,
    WellnessCheckin,
    classify_color,
    composite_score,
    compute_scores,
    round_half_up,
    score_calendar,
    score_fuel,
    score_load,
    score_restriction,
    score_sleep,
    score_stress,
)
from adaptive_progression.db import Database, SQLTrainingStore
from adaptive_progression.db.models import RegulationReportRecord
from adaptive_progression.errors import NarrativeError, ReportNotSavedError, StoreError
from adaptive_progression.narrative import Narrative

DAY = date(2024, 5, 20)


def make_store():
    db = Database("sqlite://")
    db.create_tables()
    return SQLTrainingStore(db)


def checkin(checkpoint, **answers):
    return WellnessCheckin(user_id="athlete", entry_date=DAY, checkpoint=checkpoint, **answers)


def loads(*values, start=DAY):
    return [TrainingLoadEntry(start - timedelta(days=i), v) for i, v in enumerate(values)]


class StubNarrator:
    def __init__(self, narrative=None, error=None):
        self.narrative = narrative
        self.error = error
        self.contexts = []

    def generate(self, context):
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.narrative


class FailingReportStore(SQLTrainingStore):
    def save_regulation_report(self, report):
        raise StoreError("upsert failed")


class TestComponentScores:
    """Test each component in isolation."""

    def test_empty_inputs_use_neutral_defaults(self):
        scores = compute_scores(RegulationInputs(report_date=DAY))

        assert scores.as_dict() == {
            "sleep": 50,
            "stress": 60,
            "readiness": 50,
            "restriction": 75,
            "load": 75,
            "fuel": 50,
            "calendar": 100,
        }

    def test_sleep_rating_scale(self):
        for rating, expected in [(1, 0), (2, 25), (3, 50), (4, 75), (5, 100)]:
            inputs = RegulationInputs(DAY, {Checkpoint.MORNING: checkin(Checkpoint.MORNING, sleep_quality=rating)})
            assert score_sleep(inputs) == expected

    def test_stress_is_inverted_and_night_wins(self):
        morning = checkin(Checkpoint.MORNING, stress_level=5)
        night = checkin(Checkpoint.NIGHT, stress_level=2)

        assert score_stress(RegulationInputs(DAY, {Checkpoint.MORNING: morning})) == 0
        assert score_stress(RegulationInputs(DAY, {Checkpoint.MORNING: morning, Checkpoint.NIGHT: night})) == 75

    def test_readiness_from_pre_lift(self):
        pre_lift = checkin(Checkpoint.PRE_LIFT, physical_readiness=4)
        scores = compute_scores(RegulationInputs(DAY, {Checkpoint.PRE_LIFT: pre_lift}))
        assert scores.readiness == 75

    def test_movement_restriction_average(self):
        pre_lift = checkin(
            Checkpoint.PRE_LIFT,
            movement_restriction={"hamstring": "limited", "shoulder": "Full", "knee": "pain"},
        )
        assert score_restriction(RegulationInputs(DAY, {Checkpoint.PRE_LIFT: pre_lift})) == 60

        unknown = checkin(Checkpoint.PRE_LIFT, movement_restriction={"hip": "tight", "ankle": "full"})
        assert score_restriction(RegulationInputs(DAY, {Checkpoint.PRE_LIFT: unknown})) == 80

    @pytest.mark.parametrize("recent, expected", [
        (160, 20),
        (140, 45),
        (120, 65),
        (105, 75),
        (100, 75),
        (85, 75),
        (70, 90),
    ])
    def test_load_bands(self, recent, expected):
        inputs = RegulationInputs(DAY, load_72h=loads(recent), load_7d=loads(100, 100))
        assert score_load(inputs) == expected

    def test_load_without_weekly_baseline(self):
        assert score_load(RegulationInputs(DAY, load_72h=loads(200))) == 75
        assert score_load(RegulationInputs(DAY, load_72h=loads(200), load_7d=loads(0, None))) == 75

    def test_fuel(self):
        assert score_fuel(RegulationInputs(DAY, calories_logged=1500, body_weight_lbs=200)) == 50
        assert score_fuel(RegulationInputs(DAY, calories_logged=4000, body_weight_lbs=200)) == 100
        assert score_fuel(RegulationInputs(DAY, calories_logged=0, body_weight_lbs=200)) == 50
        # 170 lb default -> 2550 kcal target
        assert score_fuel(RegulationInputs(DAY, calories_logged=2550)) == 100
        assert score_fuel(RegulationInputs(DAY, calories_logged=1275)) == 50

    @pytest.mark.parametrize("days_away, expected", [(0, 40), (1, 40), (2, 60), (3, 80)])
    def test_calendar_buffer(self, days_away, expected):
        event = AthleteEvent(DAY + timedelta(days=days_away), "Championship Game")
        score, days = score_calendar(RegulationInputs(DAY, events=[event]))
        assert score == expected
        assert days == days_away

    def test_calendar_ignores_non_competitive_and_past_events(self):
        events = [
            AthleteEvent(DAY + timedelta(days=1), "practice"),
            AthleteEvent(DAY - timedelta(days=1), "game"),
        ]
        assert score_calendar(RegulationInputs(DAY, events=events)) == (100, None)

    def test_nearest_event_wins(self):
        events = [
            AthleteEvent(DAY + timedelta(days=3), "tournament match"),
            AthleteEvent(DAY + timedelta(days=2), "Competition"),
        ]
        assert score_calendar(RegulationInputs(DAY, events=events)) == (60, 2)


class TestCompositeScore:
    """Test the weighted index and color bands."""

    def test_uniform_components(self):
        scores = RegulationScores(80, 80, 80, 80, 80, 80, 80)

        assert composite_score(scores) == 80
        assert classify_color(composite_score(scores)) == RegulationColor.GREEN

    def test_weighted_sum(self):
        scores = RegulationScores(sleep=100, stress=0, readiness=0, restriction=0, load=0, fuel=0, calendar=100)
        assert composite_score(scores) == 40

    def test_color_boundaries(self):
        assert classify_color(72) == RegulationColor.GREEN
        assert classify_color(71) == RegulationColor.YELLOW
        assert classify_color(50) == RegulationColor.YELLOW
        assert classify_color(49) == RegulationColor.RED
        assert classify_color(100) == RegulationColor.GREEN
        assert classify_color(0) == RegulationColor.RED

    def test_round_half_up(self):
        assert round_half_up(62.5) == 63
        assert round_half_up(63.5) == 64
        assert round_half_up(62.4) == 62


class TestRegulationInputGatherer:
    """Test the store reads behind a report."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = make_store()
        self.gatherer = RegulationInputGatherer(self.store)

    def test_load_windows(self):
        for days_ago, load in [(0, 10), (3, 20), (4, 30), (7, 40), (8, 50)]:
            self.store.add_training_load("athlete", TrainingLoadEntry(DAY - timedelta(days=days_ago), load))

        inputs = self.gatherer.gather("athlete", DAY)

        assert sorted(e.cns_load_total for e in inputs.load_72h) == [10, 20]
        assert sorted(e.cns_load_total for e in inputs.load_7d) == [10, 20, 30, 40]

    def test_same_day_inputs(self):
        self.store.add_wellness_checkin(checkin(Checkpoint.MORNING, sleep_quality=4, stress_level=2))
        self.store.add_wellness_checkin(WellnessCheckin("athlete", DAY - timedelta(days=1), Checkpoint.NIGHT,
                                                        stress_level=5))
        self.store.add_nutrition_log("athlete", DAY, 1200)
        self.store.add_nutrition_log("athlete", DAY, 800)
        self.store.add_nutrition_log("athlete", DAY - timedelta(days=1), 3000)
        self.store.set_body_weight("athlete", 180)
        self.store.add_event("athlete", AthleteEvent(DAY + timedelta(days=3), "game"))
        self.store.add_event("athlete", AthleteEvent(DAY + timedelta(days=4), "game"))

        inputs = self.gatherer.gather("athlete", DAY)

        assert set(inputs.checkins) == {Checkpoint.MORNING}
        assert inputs.stress_level == 2
        assert inputs.calories_logged == pytest.approx(2000)
        assert inputs.energy_target == 2700
        assert [e.event_date for e in inputs.events] == [DAY + timedelta(days=3)]

    def test_other_users_are_ignored(self):
        self.store.add_nutrition_log("someone_else", DAY, 2500)
        assert self.gatherer.gather("athlete", DAY).calories_logged == 0


class TestRegulationService:
    """Test report calculation, narrative isolation and persistence."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = make_store()
        self.store.add_wellness_checkin(checkin(Checkpoint.MORNING, sleep_quality=5, stress_level=1))
        self.store.add_wellness_checkin(checkin(
            Checkpoint.PRE_LIFT, physical_readiness=5, movement_restriction={"hamstring": "full"}
        ))
        self.store.add_training_load("athlete", TrainingLoadEntry(DAY, 100))
        self.store.add_nutrition_log("athlete", DAY, 2550)

    def count_reports(self):
        with self.store.db.session("count reports") as session:
            return session.query(RegulationReportRecord).count()

    def test_calculate_and_persist(self):
        report = RegulationService(self.store).calculate("athlete", DAY)

        assert report.scores.as_dict() == {
            "sleep": 100, "stress": 100, "readiness": 100, "restriction": 100,
            "load": 75, "fuel": 100, "calendar": 100,
        }
        assert report.composite == 96
        assert report.color == RegulationColor.GREEN
        assert report.headline == FALLBACK_HEADLINES[RegulationColor.GREEN]

        stored = self.store.get_regulation_report("athlete", DAY)
        assert stored.composite == 96
        assert stored.scores == report.scores

    def test_recalculation_overwrites(self):
        service = RegulationService(self.store)
        service.calculate("athlete", DAY)
        self.store.add_event("athlete", AthleteEvent(DAY + timedelta(days=1), "game"))

        report = service.calculate("athlete", DAY)

        assert self.count_reports() == 1
        assert report.scores.calendar == 40
        assert self.store.get_regulation_report("athlete", DAY).composite == report.composite

    def test_narrative_is_stored(self):
        narrative = Narrative(
            headline="Great day to train.",
            sections={"sleep": NarrativeSection("Rested", "Keep the routine", "Sharper focus")},
        )
        narrator = StubNarrator(narrative)

        report = RegulationService(self.store, narrator=narrator).calculate("athlete", DAY)

        assert report.narrative_generated
        assert narrator.contexts[0]["regulation_score"] == report.composite
        stored = self.store.get_regulation_report("athlete", DAY)
        assert stored.headline == "Great day to train."
        assert stored.sections["sleep"].what_to_do == "Keep the routine"

    def test_narrative_failure_still_persists(self):
        narrator = StubNarrator(error=NarrativeError("model offline"))

        report = RegulationService(self.store, narrator=narrator).calculate("athlete", DAY)

        assert not report.narrative_generated
        assert report.headline == FALLBACK_HEADLINES[report.color]
        assert self.store.get_regulation_report("athlete", DAY) is not None

    def test_unexpected_narrative_error_is_isolated(self):
        narrator = StubNarrator(error=RuntimeError("bad payload"))
        RegulationService(self.store, narrator=narrator).calculate("athlete", DAY)
        assert self.count_reports() == 1

    def test_narrative_can_be_skipped(self):
        narrator = StubNarrator(Narrative(headline="unused"))
        RegulationService(self.store, narrator=narrator).calculate("athlete", DAY, with_narrative=False)
        assert narrator.contexts == []

    def test_red_day_fallback(self):
        store = make_store()
        store.add_wellness_checkin(checkin(Checkpoint.MORNING, sleep_quality=1, stress_level=5))
        store.add_wellness_checkin(checkin(
            Checkpoint.PRE_LIFT, physical_readiness=1, movement_restriction={"back": "pain"}
        ))
        store.add_event("athlete", AthleteEvent(DAY, "game"))

        report = RegulationService(store).calculate("athlete", DAY)

        assert report.color == RegulationColor.RED
        assert report.headline == FALLBACK_HEADLINES[RegulationColor.RED]

    def test_save_failure_returns_report(self):
        db = Database("sqlite://")
        db.create_tables()

        with pytest.raises(ReportNotSavedError) as exc_info:
            RegulationService(FailingReportStore(db)).calculate("athlete", DAY)

        # neutral defaults only
        assert exc_info.value.report.composite == 71
        assert exc_info.value.report.color == RegulationColor.YELLOW
