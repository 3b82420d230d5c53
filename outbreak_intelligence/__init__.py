"""
Outbreak Intelligence Engine
Spatial clustering, risk scoring, trend forecasting and anomaly detection over geotagged symptom reports
"""

from .exceptions import (
    OutbreakEngineError,
    ValidationError,
    ComputationError,
    CacheUnavailableError
)

from .models import (
    SeverityTier,
    RiskLevel,
    AnomalyType,
    AnomalySeverity,
    AlertLevel,
    ClusteringAlgorithm,
    DistanceMetric,
    RadiusMode,
    ClusterMetric,
    ForecastMethod,
    RegionBounds,
    SymptomReport,
    OutbreakCluster,
    DailyAggregate,
    ForecastPoint,
    Prediction,
    Anomaly,
    HealthAlert
)

from .config import EngineConfig
from .spatial_clustering import SpatialClusterer, cluster_radius
from .risk_scoring import RiskScorer, RiskAssessment, classify_tier
from .forecasting import TrendForecaster, apply_presentation_jitter
from .anomaly_detection import ZScoreAnomalyDetector
from .alerts import AlertGenerator
from .cache import CacheBackend, InMemoryTTLCache, PredictionCache, EngineMetrics
from .store import ReportStore, SQLiteReportStore
from .schemas import (
    OutbreakClusterSummary,
    DetectionResult,
    AnomalySummary,
    AnomalyReport
)
from .publisher import ResultPublisher, LoggingPublisher, InMemoryPublisher
from .engine import OutbreakDetectionEngine
from .scheduler import DetectionScheduler

__version__ = "1.0.0"

__all__ = [
    # Errors
    "OutbreakEngineError",
    "ValidationError",
    "ComputationError",
    "CacheUnavailableError",

    # Models
    "SeverityTier",
    "RiskLevel",
    "AnomalyType",
    "AnomalySeverity",
    "AlertLevel",
    "ClusteringAlgorithm",
    "DistanceMetric",
    "RadiusMode",
    "ClusterMetric",
    "ForecastMethod",
    "RegionBounds",
    "SymptomReport",
    "OutbreakCluster",
    "DailyAggregate",
    "ForecastPoint",
    "Prediction",
    "Anomaly",
    "HealthAlert",

    # Configuration
    "EngineConfig",

    # Clustering & Scoring
    "SpatialClusterer",
    "cluster_radius",
    "RiskScorer",
    "RiskAssessment",
    "classify_tier",

    # Forecasting
    "TrendForecaster",
    "apply_presentation_jitter",

    # Anomalies & Alerts
    "ZScoreAnomalyDetector",
    "AlertGenerator",

    # Ports
    "CacheBackend",
    "InMemoryTTLCache",
    "PredictionCache",
    "EngineMetrics",
    "ReportStore",
    "SQLiteReportStore",
    "ResultPublisher",
    "LoggingPublisher",
    "InMemoryPublisher",

    # API payloads
    "OutbreakClusterSummary",
    "DetectionResult",
    "AnomalySummary",
    "AnomalyReport",

    # Engine
    "OutbreakDetectionEngine",
    "DetectionScheduler"
]
