"""
Trend Forecasting of Regional Case Counts
Linear-trend extrapolation over daily aggregates with confidence bands and per-day risk levels
"""

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .exceptions import ComputationError, ValidationError
from .models import (
    ForecastMethod,
    ForecastPoint,
    Prediction,
    RegionBounds,
    RiskLevel
)
from .store import ReportStore
from .utils import round_half_up, round_to, utcnow

logger = logging.getLogger(__name__)

# Conservative forecast used when history is too short to fit a trend
BASELINE_CASES = 10
BASELINE_INTERVAL = (0, 20)

INTERVAL_WIDTH = 0.3
DEFAULT_AVG_SEVERITY = 2.5
MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.95


def classify_risk_level(predicted_cases: float, avg_severity: float) -> RiskLevel:
    """Risk level of a forecast day from predicted cases weighted by severity"""
    risk_value = predicted_cases * avg_severity
    if risk_value < 20:
        return RiskLevel.LOW
    if risk_value < 50:
        return RiskLevel.MEDIUM
    if risk_value < 100:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def confidence_score(totals: np.ndarray) -> float:
    """
    Overall forecast confidence in [0.3, 0.95]

    data quality = min(1, n / 30); trend consistency = max(0.3, 1 - var(deltas) / 100)
    """
    data_quality = min(1.0, len(totals) / 30)
    deltas = np.diff(totals)
    variance = float(np.var(deltas)) if len(deltas) else 0.0
    trend_consistency = max(0.3, 1 - variance / 100)

    confidence = min(MAX_CONFIDENCE, data_quality * trend_consistency)
    return round_to(float(np.clip(confidence, MIN_CONFIDENCE, MAX_CONFIDENCE)), 4)


class TrendForecaster:
    """
    Projects near-future case counts for a region

    The forecast is a pure function of the stored daily aggregates and the
    reference time. Presentation jitter lives in apply_presentation_jitter
    and is never applied here.
    """

    def __init__(
        self,
        store: ReportStore,
        history_days: int = 90,
        trend_window: int = 14,
        min_points: int = 7,
        max_horizon_days: int = 90,
        expiry_days: int = 7,
        model_version: str = "1.0.0"
    ):
        """
        Initialize trend forecaster

        Args:
            store: Source of daily case aggregates
            history_days: Days of history to load
            trend_window: Number of most recent daily points the slope is fitted on
            min_points: Fewer daily points than this yields the conservative baseline
            max_horizon_days: Largest accepted horizon
            expiry_days: Lifetime of a prediction record
            model_version: Version tag stamped on every prediction
        """
        self.store = store
        self.history_days = history_days
        self.trend_window = trend_window
        self.min_points = min_points
        self.max_horizon_days = max_horizon_days
        self.expiry_days = expiry_days
        self.model_version = model_version

    def validate_request(self, region: RegionBounds, horizon_days: int):
        region.validate()
        if isinstance(horizon_days, bool) or not isinstance(horizon_days, int):
            raise ValidationError(f"Horizon must be an integer number of days, got {horizon_days!r}")
        if horizon_days <= 0:
            raise ValidationError(f"Horizon must be positive, got {horizon_days}")
        if horizon_days > self.max_horizon_days:
            raise ValidationError(
                f"Horizon {horizon_days} exceeds the maximum of {self.max_horizon_days} days"
            )

    def load_history(
        self,
        region: RegionBounds,
        disease_filter: Optional[str],
        now: datetime
    ) -> pd.DataFrame:
        """Daily aggregates as a DataFrame ordered by date"""
        aggregates = self.store.list_daily_aggregates(
            region, disease_filter, self.history_days, now=now
        )
        df = pd.DataFrame(
            [
                {
                    "date": a.date,
                    "total_cases": a.total_cases,
                    "avg_severity": a.avg_severity,
                    "count": a.count
                }
                for a in aggregates
            ],
            columns=["date", "total_cases", "avg_severity", "count"]
        )
        return df.sort_values("date").reset_index(drop=True)

    def forecast(
        self,
        region: RegionBounds,
        horizon_days: int,
        disease_filter: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Prediction:
        """
        Forecast daily case counts

        Args:
            region: Region the history is aggregated over
            horizon_days: Number of future days to forecast (>= 1)
            disease_filter: Optional disease type or symptom tag
            now: Reference time

        Returns:
            Prediction with exactly horizon_days points
        """
        self.validate_request(region, horizon_days)
        now = now or utcnow()
        disease_filter = (disease_filter or "").strip() or None

        history = self.load_history(region, disease_filter, now)

        if len(history) < self.min_points:
            logger.info(
                f"Only {len(history)} daily points for region {region.cache_key()}; "
                f"returning conservative baseline"
            )
            return self.baseline_prediction(
                region, horizon_days, disease_filter, now, data_points_used=len(history)
            )

        points = self._trend_points(history, horizon_days)
        totals = history["total_cases"].to_numpy(dtype=float)

        return self._prediction(
            region, disease_filter, horizon_days, points,
            confidence=confidence_score(totals),
            method=ForecastMethod.LINEAR_TREND,
            data_points_used=len(history),
            now=now
        )

    def baseline_prediction(
        self,
        region: RegionBounds,
        horizon_days: int,
        disease_filter: Optional[str],
        now: datetime,
        data_points_used: int = 0
    ) -> Prediction:
        """Flat low-confidence forecast starting tomorrow, tagged conservative_baseline"""
        points = self._baseline_points(now.date(), horizon_days)
        return self._prediction(
            region, disease_filter, horizon_days, points,
            confidence=MIN_CONFIDENCE,
            method=ForecastMethod.CONSERVATIVE_BASELINE,
            data_points_used=data_points_used,
            now=now
        )

    def _baseline_points(self, today: date, horizon_days: int) -> List[ForecastPoint]:
        lower, upper = BASELINE_INTERVAL
        return [
            ForecastPoint(
                date=today + timedelta(days=i),
                predicted_cases=BASELINE_CASES,
                lower=lower,
                upper=upper,
                risk_level=RiskLevel.LOW
            )
            for i in range(1, horizon_days + 1)
        ]

    def _trend_points(self, history: pd.DataFrame, horizon_days: int) -> List[ForecastPoint]:
        recent = history.tail(self.trend_window)
        y = recent["total_cases"].to_numpy(dtype=float)
        x = np.arange(len(y), dtype=float)

        slope = float(stats.linregress(x, y).slope)
        if not np.isfinite(slope):
            raise ComputationError("forecasting", f"trend slope is not finite ({slope})")

        last = history.iloc[-1]
        last_value = float(last["total_cases"])
        avg_severity = float(last["avg_severity"])
        if not np.isfinite(avg_severity) or avg_severity <= 0:
            avg_severity = DEFAULT_AVG_SEVERITY

        last_date = last["date"]
        points = []
        for i in range(1, horizon_days + 1):
            predicted = round_half_up(max(0.0, last_value + slope * i))
            margin = round_half_up(predicted * INTERVAL_WIDTH)
            points.append(
                ForecastPoint(
                    date=last_date + timedelta(days=i),
                    predicted_cases=predicted,
                    lower=max(0, predicted - margin),
                    upper=predicted + margin,
                    risk_level=classify_risk_level(predicted, avg_severity)
                )
            )

        logger.debug(f"Trend slope {slope:.4f} cases/day from {len(y)} points")
        return points

    def _prediction(
        self,
        region: RegionBounds,
        disease_filter: Optional[str],
        horizon_days: int,
        points: List[ForecastPoint],
        confidence: float,
        method: ForecastMethod,
        data_points_used: int,
        now: datetime
    ) -> Prediction:
        return Prediction(
            id=f"pred_{uuid.uuid4().hex[:12]}",
            region=region,
            disease_filter=disease_filter,
            horizon_days=horizon_days,
            points=tuple(points),
            confidence_score=confidence,
            model_version=self.model_version,
            method=method,
            data_points_used=data_points_used,
            generated_at=now,
            expires_at=now + timedelta(days=self.expiry_days)
        )


def apply_presentation_jitter(
    prediction: Prediction,
    jitter: float,
    rng: np.random.Generator
) -> Prediction:
    """
    Scale each predicted value by U(1 - jitter, 1 + jitter) for display

    Args:
        prediction: Deterministic forecast
        jitter: Relative noise amplitude in [0, 1); 0 returns the prediction unchanged
        rng: Random generator owned by the caller

    Returns:
        New Prediction; the input is not modified
    """
    if not 0 <= jitter < 1:
        raise ValidationError(f"Jitter must be in [0, 1), got {jitter}")
    if jitter == 0:
        return prediction

    points = []
    for point in prediction.points:
        factor = rng.uniform(1 - jitter, 1 + jitter)
        predicted = round_half_up(point.predicted_cases * factor)
        margin = round_half_up(predicted * INTERVAL_WIDTH)
        points.append(
            replace(
                point,
                predicted_cases=predicted,
                lower=max(0, predicted - margin),
                upper=predicted + margin
            )
        )
    return replace(prediction, points=tuple(points))
