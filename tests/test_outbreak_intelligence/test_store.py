"""
Tests for the SQLite Report Store
Reports, daily aggregates, generation swaps, alerts and stored forecasts
"""

import threading
from datetime import date, timedelta

import pytest

from outbreak_intelligence.exceptions import ValidationError
from outbreak_intelligence.forecasting import TrendForecaster
from outbreak_intelligence.models import (
    AlertLevel,
    ForecastMethod,
    HealthAlert,
    RegionBounds,
    SymptomReport
)
from outbreak_intelligence.store import SQLiteReportStore


class TestReports:
    """Test report persistence and queries"""

    def test_round_trip(self, store, make_report, now):
        report = make_report(
            symptoms=("fever", "rash"),
            severity=8,
            age_range="18-30",
            has_recent_travel=True,
            disease_type="dengue"
        )
        store.add_report(report)

        loaded = store.list_recent_reports(now - timedelta(days=1))
        assert loaded == [report]

    def test_add_is_idempotent(self, store, make_report, now):
        report = make_report()
        store.add_report(report)
        store.add_report(report)

        assert len(store.list_recent_reports(now - timedelta(days=1))) == 1

    def test_rejects_invalid_severity(self, store, make_report):
        with pytest.raises(ValidationError):
            store.add_report(make_report(severity=11))

    def test_since_filter_and_order(self, store, make_report, now):
        store.add_reports([
            make_report(report_id="old", age_days=20),
            make_report(report_id="b", age_days=1),
            make_report(report_id="a", age_days=1),
            make_report(report_id="new", age_days=0),
        ])

        reports = store.list_recent_reports(now - timedelta(days=14))
        assert [r.id for r in reports] == ["new", "a", "b"]

    def test_region_filter(self, store, make_report, now, bangkok_region):
        store.add_reports([
            make_report(report_id="bkk"),
            make_report(report_id="lagos", lat=6.52, lng=3.38),
        ])

        reports = store.list_recent_reports(now - timedelta(days=1), region=bangkok_region)
        assert [r.id for r in reports] == ["bkk"]

    def test_disease_filter_matches_type_or_symptom(self, store, make_report, now):
        store.add_reports([
            make_report(report_id="typed", disease_type="Dengue"),
            make_report(report_id="tagged", symptoms=("dengue", "fever")),
            make_report(report_id="other", symptoms=("cough",)),
        ])

        reports = store.list_recent_reports(now - timedelta(days=1), disease_filter="dengue")
        assert sorted(r.id for r in reports) == ["tagged", "typed"]


class TestDailyAggregates:
    """Test per-day aggregation"""

    def test_groups_by_calendar_day(self, store, make_report, now, bangkok_region):
        store.add_reports([
            make_report(age_days=2, severity=4),
            make_report(age_days=2, severity=6, case_count=3),
            make_report(age_days=1, severity=9),
            make_report(age_days=120, severity=9),
        ])

        aggregates = store.list_daily_aggregates(bangkok_region, None, 90, now=now)

        assert [a.date for a in aggregates] == [
            now.date() - timedelta(days=2),
            now.date() - timedelta(days=1),
        ]
        assert aggregates[0].total_cases == 4
        assert aggregates[0].count == 2
        assert aggregates[0].avg_severity == 5.0
        assert aggregates[1].total_cases == 1

    def test_respects_region_and_disease(self, store, make_report, now, bangkok_region):
        store.add_reports([
            make_report(disease_type="cholera"),
            make_report(symptoms=("fever",)),
            make_report(lat=6.52, lng=3.38, disease_type="cholera"),
        ])

        aggregates = store.list_daily_aggregates(bangkok_region, "cholera", 90, now=now)

        assert len(aggregates) == 1
        assert aggregates[0].count == 1
        assert isinstance(aggregates[0].date, date)


class TestClusterGenerations:
    """Test atomic full replace of the active cluster set"""

    def test_initial_generation_is_zero(self, store):
        assert store.current_generation() == 0
        assert store.get_active_clusters() == []

    def test_replace_installs_new_generation(self, store, make_cluster, now):
        first = store.replace_active_clusters([make_cluster("a"), make_cluster("b")], now=now)
        second = store.replace_active_clusters([make_cluster("c")], now=now)

        assert (first, second) == (1, 2)
        assert store.current_generation() == 2

        active = store.get_active_clusters()
        assert [c.id for c in active] == ["c"]
        assert active[0].generation == 2

    def test_older_generations_are_deactivated(self, store, make_cluster, now):
        store.replace_active_clusters([make_cluster("a")], now=now)
        store.replace_active_clusters([make_cluster("a")], now=now)

        with store._connection() as conn:
            rows = conn.execute(
                "SELECT generation, is_active FROM outbreak_clusters ORDER BY generation"
            ).fetchall()

        assert [(r["generation"], r["is_active"]) for r in rows] == [(1, 0), (2, 1)]

    def test_empty_replace_clears_active_set(self, store, make_cluster, now):
        store.replace_active_clusters([make_cluster("a")], now=now)
        generation = store.replace_active_clusters([], now=now)

        assert generation == 2
        assert store.get_active_clusters() == []

    def test_cluster_round_trip(self, store, make_cluster, now):
        cluster = make_cluster("a", report_count=4, risk_score=82.5)
        generation = store.replace_active_clusters([cluster], now=now)

        assert store.get_active_clusters() == [cluster.with_generation(generation)]

    def test_region_filter(self, store, make_cluster, now, bangkok_region):
        store.replace_active_clusters(
            [make_cluster("bkk"), make_cluster("lagos", lat=6.52, lng=3.38)], now=now
        )
        assert [c.id for c in store.get_active_clusters(bangkok_region)] == ["bkk"]

    def test_concurrent_swaps_never_expose_a_mix(self, tmp_path, make_cluster, now):
        """Readers see one complete generation while writers race"""
        store = SQLiteReportStore(str(tmp_path / "race.db"))
        errors = []
        stop = threading.Event()

        def writer(name):
            for _ in range(5):
                clusters = [make_cluster(f"{name}-{i}") for i in range(4)]
                store.replace_active_clusters(clusters, now=now)

        def reader():
            while not stop.is_set():
                active = store.get_active_clusters()
                generations = {c.generation for c in active}
                prefixes = {c.id.split("-")[0] for c in active}
                if active and (len(active) != 4 or len(generations) != 1 or len(prefixes) != 1):
                    errors.append(active)

        readers = [threading.Thread(target=reader) for _ in range(2)]
        writers = [threading.Thread(target=writer, args=(f"w{i}",)) for i in range(4)]
        for thread in readers + writers:
            thread.start()
        for thread in writers:
            thread.join(30)
        stop.set()
        for thread in readers:
            thread.join(30)

        assert errors == []
        assert store.current_generation() == 20
        assert len(store.get_active_clusters()) == 4


class TestAlerts:
    """Test alert persistence"""

    def make_alert(self, alert_id, now):
        return HealthAlert(
            id=alert_id,
            cluster_id="cluster_1",
            alert_level=AlertLevel.CRITICAL,
            title="Potential Disease Cluster Detected in Bangkok",
            description="...",
            affected_regions=("Bangkok",),
            estimated_impact="6 reported cases, growth rate: 6.0 cases/day",
            recommended_actions=("Deploy field investigation team",),
            created_at=now,
            expires_at=now + timedelta(hours=72)
        )

    def test_saved_alerts_are_unacknowledged(self, store, now):
        alert = self.make_alert("a1", now)
        store.save_alerts([alert], generation=1)

        assert store.list_alerts(now=now) == [alert]

    def test_acknowledgement_hides_alert(self, store, now):
        store.save_alerts([self.make_alert("a1", now), self.make_alert("a2", now)])

        assert store.acknowledge_alert("a1", "epi-officer") is True
        assert store.acknowledge_alert("a1", "epi-officer") is False

        assert [a.id for a in store.list_alerts(now=now)] == ["a2"]
        all_alerts = {a.id: a for a in store.list_alerts(include_acknowledged=True, now=now)}
        assert all_alerts["a1"].is_acknowledged is True

    def test_expired_alerts_are_not_open(self, store, now):
        stale = self.make_alert("stale", now - timedelta(days=10))
        fresh = self.make_alert("fresh", now)
        store.save_alerts([stale, fresh])

        assert [a.id for a in store.list_alerts(now=now)] == ["fresh"]
        assert [a.id for a in store.list_alerts(include_acknowledged=True, now=now)] == ["fresh"]
        assert [a.id for a in store.list_alerts(include_expired=True, now=now)] == ["fresh", "stale"]

    def test_alert_expires_at_its_deadline(self, store, now):
        alert = self.make_alert("a1", now)
        store.save_alerts([alert])

        assert store.list_alerts(now=alert.expires_at - timedelta(seconds=1)) == [alert]
        assert store.list_alerts(now=alert.expires_at) == []


class TestPredictions:
    """Test forecast persistence and expiry"""

    @pytest.fixture
    def prediction(self, history_store, bangkok_region, now):
        forecaster = TrendForecaster(history_store([3, 5, 4, 8, 9, 12, 11, 15]))
        return forecaster.forecast(bangkok_region, 7, disease_filter="dengue", now=now)

    def test_round_trip(self, store, prediction, now):
        store.save_prediction(prediction)

        stored = store.get_prediction(prediction.id, now=now)

        assert stored.to_dict() == prediction.to_dict()
        assert stored.method == ForecastMethod.LINEAR_TREND

    def test_expired_prediction_is_not_returned(self, store, prediction):
        store.save_prediction(prediction)

        assert store.get_prediction(prediction.id, now=prediction.expires_at - timedelta(seconds=1))
        assert store.get_prediction(prediction.id, now=prediction.expires_at) is None

    def test_unknown_id(self, store, now):
        assert store.get_prediction("pred_missing", now=now) is None


def test_in_memory_store(make_report, now):
    store = SQLiteReportStore(":memory:")
    store.add_report(make_report(report_id="x"))

    assert [r.id for r in store.list_recent_reports(now - timedelta(days=1))] == ["x"]
    assert store.replace_active_clusters([], now=now) == 1


def test_region_bounds_used_by_store_are_inclusive(store, make_report, now):
    store.add_report(make_report(lat=14.0, lng=101.0))
    region = RegionBounds(north=14.0, south=13.0, east=101.0, west=100.0)

    assert len(store.list_recent_reports(now - timedelta(days=1), region=region)) == 1


def test_symptom_order_is_preserved(store, now):
    report = SymptomReport(
        id="ordered",
        latitude=13.75,
        longitude=100.5,
        description="",
        symptoms=("rash", "fever", "cough"),
        severity=3,
        created_at=now
    )
    store.add_report(report)

    assert store.list_recent_reports(now - timedelta(hours=1))[0].symptoms == ("rash", "fever", "cough")
