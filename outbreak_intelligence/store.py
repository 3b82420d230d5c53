"""
Report Store for the Outbreak Intelligence Engine
Durable symptom reports, generation-swapped active clusters, health alerts and forecasts
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

from .config import EngineConfig
from .models import (
    AlertLevel,
    DailyAggregate,
    HealthAlert,
    OutbreakCluster,
    Prediction,
    RegionBounds,
    SeverityTier,
    SymptomReport
)
from .utils import ensure_utc, parse_datetime, utcnow

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def _ts(value: datetime) -> str:
    """Fixed-width UTC timestamp so string comparison matches time order"""
    return ensure_utc(value).isoformat(timespec="microseconds")


class ReportStore(ABC):
    """Storage port consumed by the engine"""

    @abstractmethod
    def add_report(self, report: SymptomReport) -> None:
        """Persist a validated report (idempotent by id)"""

    @abstractmethod
    def list_recent_reports(
        self,
        since: datetime,
        region: Optional[RegionBounds] = None,
        disease_filter: Optional[str] = None
    ) -> List[SymptomReport]:
        """Reports created at or after `since`, in a stable order"""

    @abstractmethod
    def list_daily_aggregates(
        self,
        region: RegionBounds,
        disease_filter: Optional[str],
        days_back: int,
        now: Optional[datetime] = None
    ) -> List[DailyAggregate]:
        """One aggregate per calendar day with reports, oldest first"""

    @abstractmethod
    def replace_active_clusters(
        self,
        clusters: Sequence[OutbreakCluster],
        now: Optional[datetime] = None
    ) -> int:
        """Atomically install a new cluster generation and return its number"""

    @abstractmethod
    def get_active_clusters(self, region: Optional[RegionBounds] = None) -> List[OutbreakCluster]:
        """Clusters of the current generation"""

    @abstractmethod
    def current_generation(self) -> int:
        """Generation readers currently see (0 before the first run)"""

    @abstractmethod
    def save_alerts(self, alerts: Sequence[HealthAlert], generation: Optional[int] = None) -> None:
        """Persist newly generated alerts"""

    @abstractmethod
    def list_alerts(
        self,
        include_acknowledged: bool = False,
        include_expired: bool = False,
        now: Optional[datetime] = None
    ) -> List[HealthAlert]:
        """Stored alerts, newest first; open (unacknowledged, unexpired) by default"""

    @abstractmethod
    def save_prediction(self, prediction: Prediction) -> None:
        """Persist a computed forecast"""

    @abstractmethod
    def get_prediction(self, prediction_id: str, now: Optional[datetime] = None) -> Optional[Prediction]:
        """Stored forecast by id, or None if unknown or expired"""

    def add_reports(self, reports: Sequence[SymptomReport]) -> int:
        for report in reports:
            self.add_report(report)
        return len(reports)


class SQLiteReportStore(ReportStore):
    """SQLite implementation of the report store"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = str(db_path or EngineConfig.DB_PATH)
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._memory_lock = threading.RLock()

        if self.db_path == ":memory:":
            self._memory_conn = self._open(self.db_path)
        else:
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(Path(self.db_path).expanduser())

        self._init_db()

    def _open(self, path: str) -> sqlite3.Connection:
        conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Connection that commits on success and rolls back on error"""
        if self._memory_conn is not None:
            with self._memory_lock:
                with self._memory_conn:
                    yield self._memory_conn
            return

        conn = self._open(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        schema = SCHEMA_PATH.read_text()
        with self._connection() as conn:
            if self._memory_conn is None:
                # readers keep their snapshot while a generation swap commits
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(schema)

    # --- Report Operations ---

    def add_report(self, report: SymptomReport) -> None:
        report.validate()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO symptom_reports (
                    id, latitude, longitude, location_city, location_country,
                    symptoms, description, severity, age_range, has_recent_travel,
                    disease_type, case_count, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    report.id,
                    report.latitude,
                    report.longitude,
                    report.location_city,
                    report.location_country,
                    json.dumps(list(report.symptoms)),
                    report.description,
                    report.severity,
                    report.age_range,
                    int(report.has_recent_travel),
                    report.disease_type,
                    report.case_count,
                    _ts(report.created_at),
                ),
            )

    def _filters(
        self,
        region: Optional[RegionBounds],
        disease_filter: Optional[str]
    ) -> tuple:
        clauses: List[str] = []
        params: List[Any] = []

        if region is not None:
            clauses.append("latitude BETWEEN ? AND ? AND longitude BETWEEN ? AND ?")
            params.extend([region.south, region.north, region.west, region.east])

        if disease_filter:
            clauses.append(
                """
                (LOWER(disease_type) = LOWER(?) OR EXISTS (
                    SELECT 1 FROM json_each(symptom_reports.symptoms)
                    WHERE LOWER(json_each.value) = LOWER(?)
                ))
                """
            )
            params.extend([disease_filter, disease_filter])

        return clauses, params

    def list_recent_reports(
        self,
        since: datetime,
        region: Optional[RegionBounds] = None,
        disease_filter: Optional[str] = None
    ) -> List[SymptomReport]:
        clauses, params = self._filters(region, disease_filter)
        query = "SELECT * FROM symptom_reports WHERE created_at >= ?"
        params = [_ts(since)] + params
        for clause in clauses:
            query += f" AND {clause}"
        query += " ORDER BY created_at DESC, id ASC"

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_report(row) for row in rows]

    def list_daily_aggregates(
        self,
        region: RegionBounds,
        disease_filter: Optional[str],
        days_back: int,
        now: Optional[datetime] = None
    ) -> List[DailyAggregate]:
        since = (now or utcnow()) - timedelta(days=days_back)
        clauses, params = self._filters(region, disease_filter)
        query = """
            SELECT
                DATE(created_at) AS day,
                SUM(case_count) AS total_cases,
                AVG(severity) AS avg_severity,
                COUNT(*) AS report_count
            FROM symptom_reports
            WHERE created_at >= ?
        """
        params = [_ts(since)] + params
        for clause in clauses:
            query += f" AND {clause}"
        query += " GROUP BY DATE(created_at) ORDER BY day ASC"

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            DailyAggregate(
                date=date.fromisoformat(row["day"]),
                total_cases=float(row["total_cases"]),
                avg_severity=float(row["avg_severity"]),
                count=int(row["report_count"])
            )
            for row in rows
        ]

    def _row_to_report(self, row: sqlite3.Row) -> SymptomReport:
        return SymptomReport(
            id=row["id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            description=row["description"],
            symptoms=tuple(json.loads(row["symptoms"])),
            severity=row["severity"],
            created_at=parse_datetime(row["created_at"]),
            location_city=row["location_city"],
            location_country=row["location_country"],
            age_range=row["age_range"],
            has_recent_travel=bool(row["has_recent_travel"]),
            disease_type=row["disease_type"],
            case_count=row["case_count"]
        )

    # --- Cluster Generations ---

    def replace_active_clusters(
        self,
        clusters: Sequence[OutbreakCluster],
        now: Optional[datetime] = None
    ) -> int:
        """
        Install a new generation of active clusters

        Insert, deactivate and pointer move happen in one write transaction,
        so readers see either the previous generation or this one in full.
        Concurrent runs serialise on the write lock; the last one wins.
        """
        now = now or utcnow()
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT last_generation FROM cluster_generations WHERE id = 1"
            ).fetchone()
            generation = int(row["last_generation"]) + 1

            for cluster in clusters:
                self._insert_cluster(conn, cluster, generation)

            conn.execute(
                "UPDATE outbreak_clusters SET is_active = 0 WHERE is_active = 1 AND generation <> ?",
                (generation,),
            )
            conn.execute(
                """
                UPDATE cluster_generations
                SET current_generation = ?, last_generation = ?, updated_at = ?
                WHERE id = 1
                """,
                (generation, generation, _ts(now)),
            )

        logger.info(f"Activated cluster generation {generation} ({len(clusters)} clusters)")
        return generation

    def _insert_cluster(
        self,
        conn: sqlite3.Connection,
        cluster: OutbreakCluster,
        generation: int
    ) -> None:
        conn.execute(
            """
            INSERT INTO outbreak_clusters (
                generation, id, center_lat, center_lng, radius, report_count,
                dominant_symptoms, severity, risk_score, growth_rate,
                location_name, avg_severity, member_ids, first_detected, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
            """,
            (
                generation,
                cluster.id,
                cluster.center_lat,
                cluster.center_lng,
                cluster.radius,
                cluster.report_count,
                json.dumps(list(cluster.dominant_symptoms)),
                cluster.severity.value,
                cluster.risk_score,
                cluster.growth_rate,
                cluster.location_name,
                cluster.avg_severity,
                json.dumps(list(cluster.member_ids)),
                _ts(cluster.first_detected),
            ),
        )

    def current_generation(self) -> int:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT current_generation FROM cluster_generations WHERE id = 1"
            ).fetchone()
        return int(row["current_generation"])

    def get_active_clusters(self, region: Optional[RegionBounds] = None) -> List[OutbreakCluster]:
        query = """
            SELECT * FROM outbreak_clusters
            WHERE generation = (SELECT current_generation FROM cluster_generations WHERE id = 1)
        """
        params: List[Any] = []
        if region is not None:
            query += " AND center_lat BETWEEN ? AND ? AND center_lng BETWEEN ? AND ?"
            params.extend([region.south, region.north, region.west, region.east])
        query += " ORDER BY risk_score DESC, id ASC"

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_cluster(row) for row in rows]

    def _row_to_cluster(self, row: sqlite3.Row) -> OutbreakCluster:
        return OutbreakCluster(
            id=row["id"],
            center_lat=row["center_lat"],
            center_lng=row["center_lng"],
            radius=row["radius"],
            report_count=row["report_count"],
            dominant_symptoms=tuple(json.loads(row["dominant_symptoms"])),
            severity=SeverityTier(row["severity"]),
            risk_score=row["risk_score"],
            growth_rate=row["growth_rate"],
            location_name=row["location_name"],
            first_detected=parse_datetime(row["first_detected"]),
            avg_severity=row["avg_severity"],
            member_ids=tuple(json.loads(row["member_ids"])),
            generation=row["generation"]
        )

    # --- Alert Operations ---

    def save_alerts(self, alerts: Sequence[HealthAlert], generation: Optional[int] = None) -> None:
        with self._connection() as conn:
            for alert in alerts:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO health_alerts (
                        id, cluster_id, generation, alert_level, title, description,
                        affected_regions, estimated_impact, recommended_actions,
                        is_acknowledged, created_at, expires_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                    """,
                    (
                        alert.id,
                        alert.cluster_id,
                        generation,
                        alert.alert_level.value,
                        alert.title,
                        alert.description,
                        json.dumps(list(alert.affected_regions)),
                        alert.estimated_impact,
                        json.dumps(list(alert.recommended_actions)),
                        _ts(alert.created_at),
                        _ts(alert.expires_at) if alert.expires_at else None,
                    ),
                )

    def list_alerts(
        self,
        include_acknowledged: bool = False,
        include_expired: bool = False,
        now: Optional[datetime] = None
    ) -> List[HealthAlert]:
        clauses: List[str] = []
        params: List[Any] = []
        if not include_acknowledged:
            clauses.append("is_acknowledged = 0")
        if not include_expired:
            clauses.append("(expires_at IS NULL OR expires_at > ?)")
            params.append(_ts(now or utcnow()))

        query = "SELECT * FROM health_alerts"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id ASC"

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_alert(row) for row in rows]

    def acknowledge_alert(self, alert_id: str, acknowledged_by: str) -> bool:
        """
        Mark an alert acknowledged

        Called by the authorization-gated alert workflow; the detection
        engine itself never acknowledges alerts.
        """
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE health_alerts
                SET is_acknowledged = 1, acknowledged_by = ?, acknowledged_at = ?
                WHERE id = ? AND is_acknowledged = 0
                """,
                (acknowledged_by, _ts(utcnow()), alert_id),
            )
        return cursor.rowcount > 0

    def _row_to_alert(self, row: sqlite3.Row) -> HealthAlert:
        return HealthAlert(
            id=row["id"],
            cluster_id=row["cluster_id"],
            alert_level=AlertLevel(row["alert_level"]),
            title=row["title"],
            description=row["description"],
            affected_regions=tuple(json.loads(row["affected_regions"])),
            estimated_impact=row["estimated_impact"] or "",
            recommended_actions=tuple(json.loads(row["recommended_actions"])),
            created_at=parse_datetime(row["created_at"]),
            expires_at=parse_datetime(row["expires_at"]) if row["expires_at"] else None,
            is_acknowledged=bool(row["is_acknowledged"])
        )

    # --- Prediction Operations ---

    def save_prediction(self, prediction: Prediction) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO predictions (
                    id, region, disease_filter, horizon_days, method,
                    payload, generated_at, expires_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    prediction.id,
                    json.dumps(prediction.region.to_dict(), sort_keys=True),
                    prediction.disease_filter,
                    prediction.horizon_days,
                    prediction.method.value,
                    json.dumps(prediction.to_dict(), sort_keys=True),
                    _ts(prediction.generated_at),
                    _ts(prediction.expires_at),
                ),
            )

    def get_prediction(self, prediction_id: str, now: Optional[datetime] = None) -> Optional[Prediction]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT payload FROM predictions WHERE id = ? AND expires_at > ?",
                (prediction_id, _ts(now or utcnow())),
            ).fetchone()
        if row is None:
            return None
        return Prediction.from_dict(json.loads(row["payload"]))
