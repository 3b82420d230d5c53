"""
Configuration for the Outbreak Intelligence Engine
"""

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class EngineConfig:
    """Configuration for outbreak detection, forecasting and alerting"""

    # ═══════════════════════════════════════════════════════════
    # Storage
    # ═══════════════════════════════════════════════════════════
    DB_PATH: str = os.getenv(
        "OUTBREAK_DB_PATH",
        str(Path.home() / ".outbreak_intelligence" / "outbreaks.db")
    )

    # ═══════════════════════════════════════════════════════════
    # Spatial Clustering Parameters
    # ═══════════════════════════════════════════════════════════
    CLUSTER_RADIUS_DEG = float(os.getenv("CLUSTER_RADIUS_DEG", "0.5"))  # ~55 km
    MIN_CLUSTER_POINTS = int(os.getenv("MIN_CLUSTER_POINTS", "3"))
    CLUSTER_LOOKBACK_DAYS = int(os.getenv("CLUSTER_LOOKBACK_DAYS", "14"))
    CLUSTERING_ALGORITHM = os.getenv("CLUSTERING_ALGORITHM", "dbscan")
    DISTANCE_METRIC = os.getenv("DISTANCE_METRIC", "haversine")
    KMEANS_CLUSTERS = int(os.getenv("KMEANS_CLUSTERS", "10"))

    # Live map rendering uses a much finer neighbourhood
    MAP_CLUSTER_RADIUS_DEG = float(os.getenv("MAP_CLUSTER_RADIUS_DEG", "0.01"))

    # ═══════════════════════════════════════════════════════════
    # Forecasting
    # ═══════════════════════════════════════════════════════════
    FORECAST_HISTORY_DAYS = int(os.getenv("FORECAST_HISTORY_DAYS", "90"))
    FORECAST_TREND_WINDOW = int(os.getenv("FORECAST_TREND_WINDOW", "14"))
    MIN_FORECAST_POINTS = int(os.getenv("MIN_FORECAST_POINTS", "7"))
    MAX_HORIZON_DAYS = int(os.getenv("MAX_HORIZON_DAYS", "90"))
    FORECAST_JITTER = float(os.getenv("FORECAST_JITTER", "0.0"))
    PREDICTION_CACHE_TTL_SECONDS = int(os.getenv("PREDICTION_CACHE_TTL_SECONDS", "3600"))
    PREDICTION_EXPIRY_DAYS = int(os.getenv("PREDICTION_EXPIRY_DAYS", "7"))
    MODEL_VERSION = "1.0.0"

    # ═══════════════════════════════════════════════════════════
    # Anomaly Detection
    # ═══════════════════════════════════════════════════════════
    ANOMALY_Z_THRESHOLD = float(os.getenv("ANOMALY_Z_THRESHOLD", "2.0"))
    ANOMALY_MIN_ELEMENTS = 3

    # ═══════════════════════════════════════════════════════════
    # Alerting Configuration
    # ═══════════════════════════════════════════════════════════
    ALERT_RISK_THRESHOLD = float(os.getenv("ALERT_RISK_THRESHOLD", "75"))
    ALERT_TTL_HOURS = int(os.getenv("ALERT_TTL_HOURS", "72"))

    # ═══════════════════════════════════════════════════════════
    # Scheduled Monitoring
    # ═══════════════════════════════════════════════════════════
    MONITORING_INTERVAL_MINUTES = int(os.getenv("MONITORING_INTERVAL_MINUTES", "30"))

    # ═══════════════════════════════════════════════════════════
    # Logging
    # ═══════════════════════════════════════════════════════════
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")

    @classmethod
    def errors(cls) -> List[str]:
        """Collect configuration problems"""
        errors = []

        if cls.CLUSTER_RADIUS_DEG <= 0:
            errors.append("CLUSTER_RADIUS_DEG must be positive")

        if cls.MIN_CLUSTER_POINTS < 1:
            errors.append("MIN_CLUSTER_POINTS must be at least 1")

        if cls.CLUSTERING_ALGORITHM not in ("dbscan", "kmeans"):
            errors.append("CLUSTERING_ALGORITHM must be 'dbscan' or 'kmeans'")

        if cls.DISTANCE_METRIC not in ("haversine", "planar"):
            errors.append("DISTANCE_METRIC must be 'haversine' or 'planar'")

        if cls.MIN_FORECAST_POINTS < 2:
            errors.append("MIN_FORECAST_POINTS must be at least 2 to fit a trend")

        if not 0 <= cls.FORECAST_JITTER < 1:
            errors.append("FORECAST_JITTER must be in [0, 1)")

        if cls.ANOMALY_Z_THRESHOLD <= 0:
            errors.append("ANOMALY_Z_THRESHOLD must be positive")

        if cls.PREDICTION_CACHE_TTL_SECONDS <= 0:
            errors.append("PREDICTION_CACHE_TTL_SECONDS must be positive")

        return errors

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration"""
        errors = cls.errors()
        for error in errors:
            logger.warning(f"Configuration error: {error}")
        return not errors

    @classmethod
    def summary(cls) -> dict:
        """Return configuration summary"""
        return {
            "spatial_clustering": {
                "algorithm": cls.CLUSTERING_ALGORITHM,
                "distance_metric": cls.DISTANCE_METRIC,
                "radius_deg": cls.CLUSTER_RADIUS_DEG,
                "min_points": cls.MIN_CLUSTER_POINTS,
                "lookback_days": cls.CLUSTER_LOOKBACK_DAYS
            },
            "forecasting": {
                "history_days": cls.FORECAST_HISTORY_DAYS,
                "trend_window": cls.FORECAST_TREND_WINDOW,
                "min_points": cls.MIN_FORECAST_POINTS,
                "max_horizon_days": cls.MAX_HORIZON_DAYS,
                "jitter": cls.FORECAST_JITTER,
                "cache_ttl_seconds": cls.PREDICTION_CACHE_TTL_SECONDS
            },
            "anomaly_detection": {
                "z_threshold": cls.ANOMALY_Z_THRESHOLD
            },
            "alerting": {
                "risk_threshold": cls.ALERT_RISK_THRESHOLD,
                "ttl_hours": cls.ALERT_TTL_HOURS
            },
            "monitoring": {
                "interval_minutes": cls.MONITORING_INTERVAL_MINUTES
            }
        }


if __name__ == "__main__":
    import json
    print("Outbreak Intelligence Configuration")
    print("=" * 60)
    print(json.dumps(EngineConfig.summary(), indent=2))
    print("\nValidation:", "PASSED" if EngineConfig.validate() else "FAILED")
