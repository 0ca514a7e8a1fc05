"""Tests for drill history aggregation and statistics."""

import pytest
from datetime import datetime, timedelta

from adaptive_progression.analysis.drill_catalog import ALL_DRILLS, DrillTier, get_drills_for_tier, parse_tier
from adaptive_progression.analysis.drill_history import (
    DrillAttempt,
    RecommendationPriority,
    aggregate_history,
    calculate_drill_stats,
    recommend_drills,
    todays_completed_drills,
)

NOW = datetime(2024, 5, 20, 9, 0)


class TestDrillCatalog:
    """Test tier gating."""

    def test_catalog_size(self):
        assert len(ALL_DRILLS) == 16
        assert len({d.id for d in ALL_DRILLS}) == 16

    def test_tier_unlocks_lower_tiers(self):
        assert len(get_drills_for_tier(DrillTier.BEGINNER)) == 6
        assert len(get_drills_for_tier(DrillTier.ADVANCED)) == 12
        assert len(get_drills_for_tier(DrillTier.CHAOS)) == 16

    def test_parse_tier(self):
        assert parse_tier("Advanced") == DrillTier.ADVANCED
        assert parse_tier(DrillTier.CHAOS) == DrillTier.CHAOS
        with pytest.raises(ValueError):
            parse_tier("expert")


class TestAggregateHistory:
    """Test the single-pass history map."""

    def test_empty_log(self):
        assert aggregate_history([]) == {}

    def test_summarizes_each_drill(self):
        attempts = [
            DrillAttempt("soft_focus", NOW - timedelta(days=3), None),
            DrillAttempt("soft_focus", NOW - timedelta(days=1), 80.0),
            DrillAttempt("soft_focus", NOW - timedelta(days=2), 90.0),
            DrillAttempt("color_flash", NOW, 50.0),
        ]

        history = aggregate_history(attempts)

        assert history["soft_focus"].completion_count == 3
        assert history["soft_focus"].average_accuracy == pytest.approx(85.0)
        assert history["soft_focus"].last_completed_at == NOW - timedelta(days=1)
        assert history["color_flash"].completion_count == 1
        assert history["color_flash"].last_completed_at == NOW

    def test_no_accuracy_recorded(self):
        history = aggregate_history([DrillAttempt("soft_focus", NOW, None)])
        assert history["soft_focus"].average_accuracy is None

    def test_missing_timestamps(self):
        history = aggregate_history([DrillAttempt("soft_focus", None, 70.0)])
        assert history["soft_focus"].last_completed_at is None
        assert history["soft_focus"].completion_count == 1


class TestDrillStats:
    """Test extended statistics and recommendations."""

    def setup_method(self):
        """Set up test fixtures."""
        self.attempts = [
            DrillAttempt("soft_focus", NOW - timedelta(days=1), 60.0, 420.0),
            DrillAttempt("soft_focus", NOW, 80.0, 380.0),
            DrillAttempt("color_flash", NOW - timedelta(days=10), 95.0, 300.0),
            DrillAttempt("not_a_drill", NOW, 100.0, 100.0),
        ]

    def test_calculate_drill_stats(self):
        stats = {s.drill_id: s for s in calculate_drill_stats(self.attempts)}

        assert len(stats) == len(ALL_DRILLS)
        assert "not_a_drill" not in stats

        soft_focus = stats["soft_focus"]
        assert soft_focus.total_completions == 2
        assert soft_focus.average_accuracy == pytest.approx(70.0)
        assert soft_focus.best_accuracy == 80.0
        assert soft_focus.average_reaction_time == pytest.approx(400.0)
        assert soft_focus.best_reaction_time == 380.0
        assert soft_focus.last_completed == NOW

        assert stats["convergence"].total_completions == 0

    def test_recommendations_prioritize_new_drills(self):
        stats = calculate_drill_stats(self.attempts)

        recommendations = recommend_drills(stats, now=NOW)

        assert len(recommendations) == 5
        assert all(r.priority == RecommendationPriority.HIGH for r in recommendations)

    def test_recommendations_for_weak_and_stale_drills(self):
        catalog = [d for d in ALL_DRILLS if d.id in ("soft_focus", "color_flash", "convergence")]
        attempts = self.attempts + [DrillAttempt("convergence", NOW, 65.0)]
        stats = calculate_drill_stats(attempts, catalog)

        recommendations = recommend_drills(stats, now=NOW)
        by_id = {r.drill_id: r for r in recommendations}

        assert by_id["convergence"].priority == RecommendationPriority.MEDIUM
        assert by_id["color_flash"].priority == RecommendationPriority.LOW
        assert "soft_focus" not in by_id

    def test_todays_completed_drills(self):
        attempts = self.attempts + [DrillAttempt("soft_focus", NOW + timedelta(hours=1), 90.0)]

        completed = todays_completed_drills(attempts, NOW.date())

        assert completed == ["soft_focus", "not_a_drill"]
