"""
Pytest configuration and fixtures for Outbreak Intelligence tests
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from outbreak_intelligence.models import (
    DailyAggregate,
    OutbreakCluster,
    RegionBounds,
    SymptomReport
)
from outbreak_intelligence.risk_scoring import classify_tier
from outbreak_intelligence.store import SQLiteReportStore

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

BANGKOK = (13.7563, 100.5018)
LAGOS = (6.5244, 3.3792)


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def store(tmp_path):
    """SQLite store in a temporary directory."""
    return SQLiteReportStore(str(tmp_path / "outbreaks.db"))


@pytest.fixture
def make_report():
    """Factory for symptom reports relative to NOW."""
    counter = itertools.count(1)

    def _make(
        lat=BANGKOK[0],
        lng=BANGKOK[1],
        severity=5,
        age_days=0.0,
        symptoms=("fever",),
        city="Bangkok",
        report_id=None,
        **kwargs
    ):
        return SymptomReport(
            id=report_id or f"r{next(counter):03d}",
            latitude=lat,
            longitude=lng,
            description=f"Reported {', '.join(symptoms)}",
            symptoms=tuple(symptoms),
            severity=severity,
            created_at=NOW - timedelta(days=age_days),
            location_city=city,
            **kwargs
        )

    return _make


@pytest.fixture
def make_cluster():
    """Factory for already-scored outbreak clusters."""

    def _make(
        cluster_id,
        report_count=3,
        risk_score=50.0,
        lat=BANGKOK[0],
        lng=BANGKOK[1],
        growth_rate=1.0,
        avg_severity=5.0,
        location_name="Bangkok"
    ):
        return OutbreakCluster(
            id=cluster_id,
            center_lat=lat,
            center_lng=lng,
            radius=0.35,
            report_count=report_count,
            dominant_symptoms=("fever", "rash"),
            severity=classify_tier(risk_score),
            risk_score=risk_score,
            growth_rate=growth_rate,
            location_name=location_name,
            first_detected=NOW,
            avg_severity=avg_severity,
            member_ids=tuple(f"{cluster_id}_m{i}" for i in range(report_count))
        )

    return _make


@pytest.fixture
def bangkok_region():
    return RegionBounds(north=14.5, south=13.0, east=101.5, west=99.5)


@pytest.fixture
def world_region():
    return RegionBounds(north=90, south=-90, east=180, west=-180)


class StaticHistoryStore:
    """Report store stand-in that only serves daily aggregates."""

    def __init__(self, totals, avg_severity=5.0, start=None):
        start = start or (NOW.date() - timedelta(days=len(totals)))
        self.aggregates = [
            DailyAggregate(
                date=start + timedelta(days=i),
                total_cases=float(total),
                avg_severity=avg_severity,
                count=int(total)
            )
            for i, total in enumerate(totals)
        ]
        self.calls = 0

    def list_daily_aggregates(self, region, disease_filter, days_back, now=None):
        self.calls += 1
        return list(self.aggregates)


@pytest.fixture
def history_store():
    """Factory for StaticHistoryStore."""
    return StaticHistoryStore
