"""
Tests for Trend Forecasting
"""

from datetime import timedelta

import numpy as np
import pytest

from outbreak_intelligence.exceptions import ValidationError
from outbreak_intelligence.forecasting import (
    TrendForecaster,
    apply_presentation_jitter,
    classify_risk_level,
    confidence_score
)
from outbreak_intelligence.models import ForecastMethod, RegionBounds, RiskLevel


class TestConservativeBaseline:
    """Test sparse history handling"""

    def test_two_points_give_flat_baseline(self, history_store, bangkok_region, now):
        """Two daily points are not enough to fit a trend"""
        forecaster = TrendForecaster(history_store([5, 40]))
        prediction = forecaster.forecast(bangkok_region, 5, now=now)

        assert prediction.confidence_score == 0.3
        assert prediction.method == ForecastMethod.CONSERVATIVE_BASELINE
        assert prediction.is_degraded
        assert prediction.data_points_used == 2
        assert len(prediction.points) == 5
        assert {p.predicted_cases for p in prediction.points} == {10}
        assert all((p.lower, p.upper) == (0, 20) for p in prediction.points)
        assert all(p.risk_level == RiskLevel.LOW for p in prediction.points)

    def test_baseline_starts_tomorrow(self, history_store, bangkok_region, now):
        """Test baseline dates"""
        forecaster = TrendForecaster(history_store([]))
        prediction = forecaster.forecast(bangkok_region, 3, now=now)

        assert [p.date for p in prediction.points] == [
            now.date() + timedelta(days=i) for i in (1, 2, 3)
        ]

    def test_six_points_still_conservative(self, history_store, bangkok_region, now):
        forecaster = TrendForecaster(history_store([1, 2, 3, 4, 5, 6]))
        assert forecaster.forecast(bangkok_region, 7, now=now).is_degraded


class TestLinearTrend:
    """Test least-squares extrapolation"""

    def test_rising_series(self, history_store, bangkok_region, now):
        """Totals 1..14 rise one case per day"""
        store = history_store(list(range(1, 15)), avg_severity=5.0)
        prediction = TrendForecaster(store).forecast(bangkok_region, 3, now=now)

        assert prediction.method == ForecastMethod.LINEAR_TREND
        assert [p.predicted_cases for p in prediction.points] == [15, 16, 17]
        assert [(p.lower, p.upper) for p in prediction.points] == [(10, 20), (11, 21), (12, 22)]
        assert [p.risk_level for p in prediction.points] == [RiskLevel.HIGH] * 3

    def test_dates_follow_last_observed_day(self, history_store, bangkok_region, now):
        store = history_store(list(range(1, 15)))
        last_day = store.aggregates[-1].date
        prediction = TrendForecaster(store).forecast(bangkok_region, 2, now=now)

        assert [p.date for p in prediction.points] == [
            last_day + timedelta(days=1),
            last_day + timedelta(days=2),
        ]

    def test_slope_uses_recent_window(self, history_store, bangkok_region, now):
        """Only the last 14 points are fitted"""
        totals = [100] * 10 + list(range(1, 15))
        prediction = TrendForecaster(history_store(totals)).forecast(bangkok_region, 1, now=now)

        assert prediction.points[0].predicted_cases == 15

    def test_falling_series_never_goes_negative(self, history_store, bangkok_region, now):
        """Predictions and lower bounds are clamped at zero"""
        totals = list(range(28, 0, -2))
        prediction = TrendForecaster(history_store(totals)).forecast(bangkok_region, 30, now=now)

        assert all(p.predicted_cases >= 0 for p in prediction.points)
        assert all(p.lower >= 0 for p in prediction.points)
        assert prediction.points[-1].predicted_cases == 0
        assert (prediction.points[-1].lower, prediction.points[-1].upper) == (0, 0)

    def test_missing_severity_defaults(self, history_store, bangkok_region, now):
        """Average severity of 0 falls back to 2.5"""
        store = history_store([10] * 10, avg_severity=0.0)
        prediction = TrendForecaster(store).forecast(bangkok_region, 1, now=now)

        # 10 cases * 2.5 = 25
        assert prediction.points[0].risk_level == RiskLevel.MEDIUM

    def test_forecast_is_deterministic(self, history_store, bangkok_region, now):
        store = history_store([3, 7, 4, 9, 12, 8, 15, 11, 14])
        forecaster = TrendForecaster(store)

        first = forecaster.forecast(bangkok_region, 10, now=now)
        second = forecaster.forecast(bangkok_region, 10, now=now)

        assert first.points == second.points
        assert first.confidence_score == second.confidence_score


class TestConfidence:
    """Test confidence bounds"""

    def test_short_history_is_floored(self):
        """7 points alone give 0.233 data quality; the floor is 0.3"""
        assert confidence_score(np.arange(7, dtype=float)) == 0.3

    def test_long_steady_history_is_capped(self):
        assert confidence_score(np.full(60, 10.0)) == 0.95

    def test_fourteen_linear_points(self):
        assert confidence_score(np.arange(1, 15, dtype=float)) == pytest.approx(14 / 30, abs=1e-4)

    def test_volatile_history_uses_consistency_floor(self):
        """Huge delta variance drops consistency to 0.3"""
        totals = np.array([0, 100] * 20, dtype=float)
        assert confidence_score(totals) == 0.3

    @pytest.mark.parametrize("totals", [
        [1] * 7,
        list(range(40)),
        [0, 50, 3, 80, 1, 99, 2, 70],
        [5, 6, 5, 6, 5, 6, 5, 6, 5, 6] * 5,
    ])
    def test_bounds(self, history_store, bangkok_region, now, totals):
        prediction = TrendForecaster(history_store(totals)).forecast(bangkok_region, 4, now=now)
        assert 0.3 <= prediction.confidence_score <= 0.95


class TestForecastLength:
    """Test len(points) == horizon"""

    @pytest.mark.parametrize("horizon", [1, 2, 7, 30, 90])
    def test_points_match_horizon(self, history_store, bangkok_region, now, horizon):
        for totals in ([], list(range(20))):
            prediction = TrendForecaster(history_store(totals)).forecast(
                bangkok_region, horizon, now=now
            )
            assert len(prediction.points) == horizon
            assert prediction.horizon_days == horizon


class TestValidation:
    """Test request validation happens before computation"""

    @pytest.mark.parametrize("horizon", [0, -3, 91])
    def test_rejects_bad_horizon(self, history_store, bangkok_region, now, horizon):
        store = history_store(list(range(10)))
        with pytest.raises(ValidationError):
            TrendForecaster(store).forecast(bangkok_region, horizon, now=now)
        assert store.calls == 0

    def test_rejects_malformed_region(self, history_store, now):
        region = RegionBounds(north=10, south=20, east=101, west=100)
        with pytest.raises(ValidationError):
            TrendForecaster(history_store([])).forecast(region, 7, now=now)

    def test_prediction_metadata(self, history_store, bangkok_region, now):
        prediction = TrendForecaster(history_store([])).forecast(
            bangkok_region, 3, disease_filter="  dengue ", now=now
        )

        assert prediction.model_version == "1.0.0"
        assert prediction.disease_filter == "dengue"
        assert prediction.generated_at == now
        assert prediction.expires_at == now + timedelta(days=7)


class TestRiskLevels:
    @pytest.mark.parametrize("cases,severity,level", [
        (7, 2.5, RiskLevel.LOW),
        (8, 2.5, RiskLevel.MEDIUM),
        (10, 4.9, RiskLevel.MEDIUM),
        (10, 5.0, RiskLevel.HIGH),
        (20, 5.0, RiskLevel.CRITICAL),
    ])
    def test_classify_risk_level(self, cases, severity, level):
        assert classify_risk_level(cases, severity) == level


class TestPresentationJitter:
    """Test the opt-in jitter layer"""

    def test_zero_jitter_returns_same_prediction(self, history_store, bangkok_region, now):
        prediction = TrendForecaster(history_store(list(range(20)))).forecast(
            bangkok_region, 5, now=now
        )
        assert apply_presentation_jitter(prediction, 0.0, np.random.default_rng(1)) is prediction

    def test_jitter_stays_within_band(self, history_store, bangkok_region, now):
        prediction = TrendForecaster(history_store([100] * 20)).forecast(
            bangkok_region, 10, now=now
        )
        jittered = apply_presentation_jitter(prediction, 0.2, np.random.default_rng(42))

        assert jittered is not prediction
        assert all(80 <= p.predicted_cases <= 120 for p in jittered.points)
        assert all(p.predicted_cases == 100 for p in prediction.points)

    def test_jitter_is_reproducible_with_seeded_rng(self, history_store, bangkok_region, now):
        prediction = TrendForecaster(history_store([100] * 20)).forecast(
            bangkok_region, 10, now=now
        )
        first = apply_presentation_jitter(prediction, 0.2, np.random.default_rng(3))
        second = apply_presentation_jitter(prediction, 0.2, np.random.default_rng(3))

        assert first.points == second.points

    def test_rejects_out_of_range_jitter(self, history_store, bangkok_region, now):
        prediction = TrendForecaster(history_store([])).forecast(bangkok_region, 1, now=now)
        with pytest.raises(ValidationError):
            apply_presentation_jitter(prediction, 1.5, np.random.default_rng(0))
