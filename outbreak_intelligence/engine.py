"""
Outbreak Detection Engine
Orchestrates report loading, spatial clustering, risk scoring, anomaly detection,
alert generation, cluster persistence and on-demand forecasting
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from .alerts import AlertGenerator
from .anomaly_detection import ZScoreAnomalyDetector
from .cache import EngineMetrics, PredictionCache, prediction_cache_key
from .config import EngineConfig
from .exceptions import ComputationError
from .forecasting import TrendForecaster, apply_presentation_jitter
from .models import (
    Anomaly,
    ClusterMetric,
    ClusteringAlgorithm,
    DistanceMetric,
    HealthAlert,
    OutbreakCluster,
    Prediction,
    RadiusMode,
    RegionBounds,
    SeverityTier,
    SymptomReport
)
from .publisher import LoggingPublisher, ResultPublisher
from .risk_scoring import RiskScorer
from .schemas import AnomalyReport, DetectionResult, OutbreakClusterSummary
from .spatial_clustering import SpatialClusterer
from .store import ReportStore, SQLiteReportStore
from .utils import utcnow

logger = logging.getLogger(__name__)


class OutbreakDetectionEngine:
    """
    Outbreak detection and forecasting engine

    Workflow of one detection run:
    1. Load reports from the clustering lookback window
    2. Cluster reports and score each cluster
    3. Detect anomalous clusters
    4. Atomically install the clusters as the new active generation
    5. Generate, persist and publish health alerts

    Forecasts are computed on demand through generate_prediction and never
    take part in a detection run.
    """

    def __init__(
        self,
        store: Optional[ReportStore] = None,
        config=EngineConfig,
        publisher: Optional[ResultPublisher] = None,
        prediction_cache: Optional[PredictionCache] = None,
        metrics: Optional[EngineMetrics] = None,
        clusterer: Optional[SpatialClusterer] = None,
        forecaster: Optional[TrendForecaster] = None,
        anomaly_detector: Optional[ZScoreAnomalyDetector] = None,
        alert_generator: Optional[AlertGenerator] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize the engine

        Args:
            store: Report store (defaults to SQLite at config.DB_PATH)
            config: Configuration class
            publisher: Receiver of detection results and new alerts
            prediction_cache: Forecast cache shared by callers of this engine
            metrics: Counters owned by the host process
            clusterer: Spatial clusterer (built from config when omitted)
            forecaster: Trend forecaster (built from config when omitted)
            anomaly_detector: Z-score detector
            alert_generator: Alert generator (built from config when omitted)
            rng: Random generator for presentation jitter
            clock: Source of the current time
        """
        self.config = config
        self.store = store or SQLiteReportStore(config.DB_PATH)
        self.publisher = publisher or LoggingPublisher()
        self.metrics = metrics or EngineMetrics()
        self.prediction_cache = prediction_cache or PredictionCache(
            ttl_seconds=config.PREDICTION_CACHE_TTL_SECONDS,
            metrics=self.metrics
        )
        self.clusterer = clusterer or SpatialClusterer(
            risk_scorer=RiskScorer(),
            metric=DistanceMetric(config.DISTANCE_METRIC),
            kmeans_clusters=config.KMEANS_CLUSTERS
        )
        self.forecaster = forecaster or TrendForecaster(
            self.store,
            history_days=config.FORECAST_HISTORY_DAYS,
            trend_window=config.FORECAST_TREND_WINDOW,
            min_points=config.MIN_FORECAST_POINTS,
            max_horizon_days=config.MAX_HORIZON_DAYS,
            expiry_days=config.PREDICTION_EXPIRY_DAYS,
            model_version=config.MODEL_VERSION
        )
        self.anomaly_detector = anomaly_detector or ZScoreAnomalyDetector(
            min_elements=config.ANOMALY_MIN_ELEMENTS
        )
        self.alert_generator = alert_generator or AlertGenerator(
            risk_threshold=config.ALERT_RISK_THRESHOLD,
            ttl_hours=config.ALERT_TTL_HOURS
        )
        self.rng = rng or np.random.default_rng()
        self.clock = clock
        self._run_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_outbreaks(self, now: Optional[datetime] = None) -> DetectionResult:
        """
        Run one detection cycle and replace the active cluster set

        Stage failures of type ComputationError are logged and recorded in
        DetectionResult.errors; the stages that did complete are returned.

        Returns:
            DetectionResult summarising the new generation
        """
        with self._run_lock:
            return self._detect(now or self.clock())

    def _detect(self, now: datetime) -> DetectionResult:
        started_at = now
        errors: List[str] = []
        self.metrics.increment("detection_runs")

        logger.info("=" * 60)
        logger.info("OUTBREAK DETECTION RUN")
        logger.info("=" * 60)

        # Step 1: Load recent reports
        since = now - timedelta(days=self.config.CLUSTER_LOOKBACK_DAYS)
        logger.info(f"[Step 1/5] Loading reports since {since.isoformat()}...")
        reports = self.store.list_recent_reports(since)
        logger.info(f"  Loaded {len(reports)} reports")

        # Step 2: Cluster and score
        logger.info("[Step 2/5] Clustering reports...")
        clusters: Optional[List[OutbreakCluster]]
        try:
            clusters = self.clusterer.cluster(
                reports,
                radius=self.config.CLUSTER_RADIUS_DEG,
                min_points=self.config.MIN_CLUSTER_POINTS,
                algorithm=ClusteringAlgorithm(self.config.CLUSTERING_ALGORITHM),
                radius_mode=RadiusMode.DETECTION,
                now=now
            )
            logger.info(f"  Found {len(clusters)} clusters")
        except ComputationError as e:
            logger.error(f"  Clustering failed: {e}")
            errors.append(str(e))
            clusters = None

        # Step 3: Anomalies among this run's clusters
        logger.info("[Step 3/5] Detecting anomalous clusters...")
        anomalies: List[Anomaly] = []
        if clusters:
            try:
                anomalies = self.anomaly_detector.detect_anomalies(
                    clusters, threshold=self.config.ANOMALY_Z_THRESHOLD, now=now
                )
            except ComputationError as e:
                logger.error(f"  Anomaly detection failed: {e}")
                errors.append(str(e))
        logger.info(f"  Detected {len(anomalies)} anomalies")

        # Step 4: Install the new generation
        generation = None
        if clusters is not None:
            logger.info("[Step 4/5] Replacing active clusters...")
            generation = self.store.replace_active_clusters(clusters, now=now)
            clusters = [c.with_generation(generation) for c in clusters]
        else:
            logger.warning("[Step 4/5] Keeping previous active clusters")
            clusters = []

        # Step 5: Alerts
        logger.info("[Step 5/5] Generating health alerts...")
        alerts: List[HealthAlert] = []
        try:
            alerts = self.alert_generator.generate_alerts(clusters, now=now)
        except ComputationError as e:
            logger.error(f"  Alert generation failed: {e}")
            errors.append(str(e))

        if alerts:
            self.store.save_alerts(alerts, generation=generation)
            for alert in alerts:
                self.publisher.publish_alert(alert)
            self.metrics.increment("alerts_created", len(alerts))

        result = DetectionResult(
            clusters_found=len(clusters),
            critical_count=sum(1 for c in clusters if c.severity == SeverityTier.CRITICAL),
            concerning_count=sum(1 for c in clusters if c.severity == SeverityTier.CONCERNING),
            clusters=[OutbreakClusterSummary.from_cluster(c) for c in clusters],
            generation=generation,
            alerts_created=len(alerts),
            anomalies=[a.to_dict() for a in anomalies],
            errors=errors,
            started_at=started_at,
            completed_at=self.clock()
        )

        self.publisher.publish_detection(result)

        logger.info(
            f"Detection complete: {result.clusters_found} clusters "
            f"({result.critical_count} critical, {result.concerning_count} concerning), "
            f"{result.alerts_created} alerts"
        )
        return result

    def get_active_clusters(self, region: Optional[RegionBounds] = None) -> List[OutbreakCluster]:
        """Clusters of the current generation, optionally limited to a region"""
        if region is not None:
            region.validate()
        return self.store.get_active_clusters(region)

    def map_clusters(
        self,
        region: Optional[RegionBounds] = None,
        algorithm: Optional[ClusteringAlgorithm] = None,
        now: Optional[datetime] = None
    ) -> List[OutbreakCluster]:
        """
        Fine-grained clusters for live map rendering

        Uses the same clustering contract as detection with the map radius and
        size-escalated display radius. Nothing is persisted.
        """
        now = now or self.clock()
        if region is not None:
            region.validate()
        since = now - timedelta(days=self.config.CLUSTER_LOOKBACK_DAYS)
        reports = self.store.list_recent_reports(since, region=region)
        return self.clusterer.cluster(
            reports,
            radius=self.config.MAP_CLUSTER_RADIUS_DEG,
            min_points=self.config.MIN_CLUSTER_POINTS,
            algorithm=algorithm or ClusteringAlgorithm(self.config.CLUSTERING_ALGORITHM),
            radius_mode=RadiusMode.MAP,
            now=now
        )

    # ------------------------------------------------------------------
    # Forecasting
    # ------------------------------------------------------------------

    def generate_prediction(
        self,
        region: RegionBounds,
        horizon_days: int,
        disease_filter: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Prediction:
        """
        Forecast daily cases for a region

        Requests are validated before the cache is consulted. A numeric failure
        degrades to the conservative baseline, which is not cached. Every
        freshly computed forecast is stored so it can be fetched by id until
        it expires.
        """
        self.forecaster.validate_request(region, horizon_days)
        now = now or self.clock()
        disease_filter = (disease_filter or "").strip() or None
        key = prediction_cache_key(region.cache_key(), horizon_days, disease_filter)

        def compute() -> Prediction:
            fresh = self.forecaster.forecast(region, horizon_days, disease_filter, now=now)
            self.store.save_prediction(fresh)
            return fresh

        try:
            prediction = self.prediction_cache.get_or_compute(key, compute)
        except ComputationError as e:
            logger.error(f"Forecast failed for {key}: {e}; returning conservative baseline")
            self.metrics.increment("forecast_errors")
            prediction = self.forecaster.baseline_prediction(
                region, horizon_days, disease_filter, now
            )
            self.store.save_prediction(prediction)

        self.metrics.increment("predictions_served")
        return apply_presentation_jitter(prediction, self.config.FORECAST_JITTER, self.rng)

    def get_prediction(self, prediction_id: str, now: Optional[datetime] = None) -> Optional[Prediction]:
        """Previously served forecast by id, or None once it has expired"""
        return self.store.get_prediction(prediction_id, now=now or self.clock())

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------

    def detect_anomalies(
        self,
        region: RegionBounds,
        threshold: Optional[float] = None,
        metrics: Optional[Sequence[ClusterMetric]] = None,
        now: Optional[datetime] = None
    ) -> AnomalyReport:
        """
        Anomalous active clusters inside a region

        Args:
            region: Region whose active clusters form the population
            threshold: |z| threshold (config default when omitted)
            metrics: Metrics to test; report count by default

        Returns:
            AnomalyReport with anomalies and severity counts
        """
        region.validate()
        clusters = self.store.get_active_clusters(region)
        anomalies = self.anomaly_detector.detect_all_metrics(
            clusters,
            threshold=threshold if threshold is not None else self.config.ANOMALY_Z_THRESHOLD,
            metrics=metrics or [ClusterMetric.REPORT_COUNT],
            now=now or self.clock()
        )
        return AnomalyReport.from_anomalies(anomalies)

    # ------------------------------------------------------------------
    # Ingestion trigger
    # ------------------------------------------------------------------

    def on_report_received(
        self,
        report: Union[SymptomReport, dict],
        now: Optional[datetime] = None
    ) -> DetectionResult:
        """Validate and store a new report, then run detection"""
        if isinstance(report, dict):
            report = SymptomReport.from_dict(report)
        report.validate()

        self.store.add_report(report)
        self.metrics.increment("reports_received")
        logger.info(f"Report {report.id} received; triggering detection")
        return self.detect_outbreaks(now=now)
