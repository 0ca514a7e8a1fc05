"""Tests for the SQL training store."""

import pytest
from datetime import date

from sqlalchemy import event

from adaptive_progression.analysis.drill_catalog import DrillTier
from adaptive_progression.analysis.drill_selection import DailyDrillSelection
from adaptive_progression.analysis.regulation import RegulationColor, RegulationReport, RegulationScores
from adaptive_progression.analysis.speed_progression import ProgramStatus, SpeedGoals
from adaptive_progression.db import Database, SQLTrainingStore
from adaptive_progression.db.models import RegulationReportRecord, SpeedGoalsRecord

DAY = date(2024, 5, 20)


def make_report(composite, color, headline):
    scores = RegulationScores(
        sleep=composite, stress=composite, readiness=composite, restriction=composite,
        load=composite, fuel=composite, calendar=composite,
    )
    return RegulationReport(
        user_id="athlete", report_date=DAY, scores=scores, composite=composite, color=color, headline=headline,
    )


def interleave(db, table, write):
    """Run ``write`` on another connection just before ``db`` inserts into ``table``."""
    fired = []

    def before_insert(conn, cursor, statement, parameters, context, executemany):
        if not fired and statement.startswith(f"INSERT INTO {table}"):
            fired.append(statement)
            write()

    event.listen(db.engine, "before_cursor_execute", before_insert)
    return fired


class TestKeyedWrites:
    """Test that saving the same key twice overwrites the row."""

    def setup_method(self):
        """Set up test fixtures."""
        self.db = Database("sqlite://")
        self.db.create_tables()
        self.store = SQLTrainingStore(self.db)

    def count(self, model):
        with self.db.session("count rows") as session:
            return session.query(model).count()

    def test_regulation_report_overwritten(self):
        self.store.save_regulation_report(make_report(40, RegulationColor.RED, "Take it easy"))
        self.store.save_regulation_report(make_report(90, RegulationColor.GREEN, "Go"))

        report = self.store.get_regulation_report("athlete", DAY)
        assert report.composite == 90
        assert report.color == RegulationColor.GREEN
        assert report.headline == "Go"
        assert self.count(RegulationReportRecord) == 1

    def test_daily_selection_overwritten(self):
        self.store.save_daily_selection(DailyDrillSelection("athlete", "baseball", DAY, DrillTier.BEGINNER))
        self.store.save_daily_selection(DailyDrillSelection("athlete", "baseball", DAY, DrillTier.ADVANCED))

        selection = self.store.get_daily_selection("athlete", "baseball", DAY)
        assert selection.tier == DrillTier.ADVANCED
        assert self.store.get_daily_selection("athlete", "softball", DAY) is None

    def test_speed_goals_overwritten(self):
        self.store.save_speed_goals(SpeedGoals("athlete", "baseball", personal_bests={"10y": 1.70}))
        self.store.save_speed_goals(SpeedGoals(
            "athlete", "baseball", personal_bests={"10y": 1.62}, program_status=ProgramStatus.ACTIVE,
        ))

        goals = self.store.get_speed_goals("athlete", "baseball")
        assert goals.personal_bests == {"10y": pytest.approx(1.62)}
        assert goals.program_status == ProgramStatus.ACTIVE
        assert self.count(SpeedGoalsRecord) == 1

    def test_body_weight_overwritten(self):
        self.store.set_body_weight("athlete", 170)
        self.store.set_body_weight("athlete", 182.5)

        assert self.store.get_body_weight("athlete") == pytest.approx(182.5)


class TestConcurrentWriters:
    """Two stores on one database file writing the same key."""

    def setup_method(self):
        """Set up test fixtures."""
        self.db_a = None
        self.db_b = None

    def teardown_method(self):
        for db in (self.db_a, self.db_b):
            if db is not None:
                db.close()

    def open_stores(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'progression.db'}"
        self.db_a = Database(url)
        self.db_b = Database(url)
        self.db_a.create_tables()
        return SQLTrainingStore(self.db_a), SQLTrainingStore(self.db_b)

    def test_report_written_by_both(self, tmp_path):
        store_a, store_b = self.open_stores(tmp_path)
        fired = interleave(
            self.db_a, "regulation_reports",
            lambda: store_b.save_regulation_report(make_report(40, RegulationColor.RED, "Take it easy")),
        )

        store_a.save_regulation_report(make_report(90, RegulationColor.GREEN, "Go"))

        assert fired
        report = store_b.get_regulation_report("athlete", DAY)
        assert report.composite == 90
        assert report.headline == "Go"
        with self.db_b.session("count reports") as session:
            assert session.query(RegulationReportRecord).count() == 1

    def test_goals_written_by_both(self, tmp_path):
        store_a, store_b = self.open_stores(tmp_path)
        fired = interleave(
            self.db_a, "speed_goals",
            lambda: store_b.save_speed_goals(SpeedGoals("athlete", "baseball", personal_bests={"10y": 1.70})),
        )

        store_a.save_speed_goals(SpeedGoals("athlete", "baseball", personal_bests={"10y": 1.58}))

        assert fired
        goals = store_b.get_speed_goals("athlete", "baseball")
        assert goals.personal_bests == {"10y": pytest.approx(1.58)}

    def test_selection_written_by_both(self, tmp_path):
        store_a, store_b = self.open_stores(tmp_path)
        fired = interleave(
            self.db_a, "daily_drill_selections",
            lambda: store_b.save_daily_selection(
                DailyDrillSelection("athlete", "baseball", DAY, DrillTier.BEGINNER)
            ),
        )

        store_a.save_daily_selection(DailyDrillSelection("athlete", "baseball", DAY, DrillTier.CHAOS))

        assert fired
        assert store_b.get_daily_selection("athlete", "baseball", DAY).tier == DrillTier.CHAOS
