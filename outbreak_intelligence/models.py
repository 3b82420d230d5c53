"""
Data Models for the Outbreak Intelligence Engine
Symptom reports, derived clusters, forecasts, anomalies and alerts
"""

import math
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple

from .exceptions import ValidationError
from .utils import parse_datetime, utcnow


class SeverityTier(Enum):
    """Severity tier of an outbreak cluster, derived from its risk score"""
    NORMAL = "normal"
    UNUSUAL = "unusual"
    CONCERNING = "concerning"
    CRITICAL = "critical"


class RiskLevel(Enum):
    """Per-day risk level of a forecast point"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyType(Enum):
    """Which metric triggered an anomaly"""
    SPATIAL = "spatial"
    TEMPORAL = "temporal"
    SEVERITY = "severity"
    PATTERN = "pattern"


class AnomalySeverity(Enum):
    """Severity of a detected anomaly"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertLevel(Enum):
    """Health alert levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ClusteringAlgorithm(Enum):
    """Clustering algorithms behind the clustering contract"""
    DBSCAN = "dbscan"
    KMEANS = "kmeans"


class DistanceMetric(Enum):
    """Neighbour distance between two reports"""
    HAVERSINE = "haversine"  # great circle, expressed in degrees (km / 111)
    PLANAR = "planar"  # euclidean in raw degrees


class RadiusMode(Enum):
    """How a cluster's display radius is derived from its size"""
    DETECTION = "detection"
    MAP = "map"


class ClusterMetric(Enum):
    """Cluster metrics available to the anomaly detector"""
    REPORT_COUNT = "report_count"
    GROWTH_RATE = "growth_rate"
    AVG_SEVERITY = "avg_severity"
    RISK_SCORE = "risk_score"


class ForecastMethod(Enum):
    """How a prediction was produced"""
    LINEAR_TREND = "linear_trend"
    CONSERVATIVE_BASELINE = "conservative_baseline"


def _check_coordinates(latitude: float, longitude: float):
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        raise ValidationError("Coordinates must be numeric")
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValidationError("Coordinates must be finite numbers")
    if not -90 <= latitude <= 90:
        raise ValidationError(f"Latitude {latitude} outside [-90, 90]")
    if not -180 <= longitude <= 180:
        raise ValidationError(f"Longitude {longitude} outside [-180, 180]")


@dataclass(frozen=True)
class RegionBounds:
    """Rectangular geographic region"""
    north: float
    south: float
    east: float
    west: float

    def validate(self) -> "RegionBounds":
        for name in ("north", "south", "east", "west"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValidationError(f"Region bound '{name}' must be a finite number")
        if not (-90 <= self.south < self.north <= 90):
            raise ValidationError(
                "Latitude bounds must be between -90 and 90, with south < north"
            )
        if not (-180 <= self.west < self.east <= 180):
            raise ValidationError(
                "Longitude bounds must be between -180 and 180, with west < east"
            )
        return self

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east

    def cache_key(self) -> str:
        return f"{self.north:.6f}:{self.south:.6f}:{self.east:.6f}:{self.west:.6f}"

    def to_dict(self) -> dict:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}

    @classmethod
    def from_dict(cls, data: dict) -> "RegionBounds":
        try:
            return cls(
                north=float(data["north"]),
                south=float(data["south"]),
                east=float(data["east"]),
                west=float(data["west"])
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed region bounds: {e}")


@dataclass(frozen=True)
class SymptomReport:
    """Geotagged symptom report; immutable once created"""
    id: str
    latitude: float
    longitude: float
    description: str
    symptoms: Tuple[str, ...]
    severity: int  # 1-10
    created_at: datetime
    location_city: str = ""
    location_country: str = ""
    age_range: Optional[str] = None
    has_recent_travel: bool = False
    disease_type: Optional[str] = None
    case_count: int = 1

    def validate(self) -> "SymptomReport":
        if not self.id:
            raise ValidationError("Report id is required")
        _check_coordinates(self.latitude, self.longitude)
        if isinstance(self.severity, bool) or not isinstance(self.severity, int):
            raise ValidationError(f"Severity must be an integer, got {self.severity!r}")
        if not 1 <= self.severity <= 10:
            raise ValidationError(f"Severity {self.severity} outside [1, 10]")
        if self.case_count < 1:
            raise ValidationError("case_count must be at least 1")
        return self

    def matches_disease(self, disease_filter: Optional[str]) -> bool:
        if not disease_filter:
            return True
        wanted = disease_filter.lower()
        if self.disease_type and self.disease_type.lower() == wanted:
            return True
        return wanted in (s.lower() for s in self.symptoms)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "description": self.description,
            "symptoms": list(self.symptoms),
            "severity": self.severity,
            "created_at": self.created_at.isoformat(),
            "location_city": self.location_city,
            "location_country": self.location_country,
            "age_range": self.age_range,
            "has_recent_travel": self.has_recent_travel,
            "disease_type": self.disease_type,
            "case_count": self.case_count
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SymptomReport":
        """Build and validate a report from a transport payload"""
        try:
            severity = data["severity"]
            if isinstance(severity, float) and severity.is_integer():
                severity = int(severity)
            report = cls(
                id=str(data["id"]),
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
                description=data.get("description", ""),
                symptoms=tuple(data.get("symptoms") or ()),
                severity=severity,
                created_at=parse_datetime(data.get("created_at") or utcnow()),
                location_city=data.get("location_city") or "",
                location_country=data.get("location_country") or "",
                age_range=data.get("age_range"),
                has_recent_travel=bool(data.get("has_recent_travel", False)),
                disease_type=data.get("disease_type"),
                case_count=int(data.get("case_count", 1))
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed symptom report: {e}")
        return report.validate()


@dataclass(frozen=True)
class OutbreakCluster:
    """Spatial cluster of related reports from one detection run"""
    id: str
    center_lat: float
    center_lng: float
    radius: float  # degrees
    report_count: int
    dominant_symptoms: Tuple[str, ...]
    severity: SeverityTier
    risk_score: float  # 0-100
    growth_rate: float  # reports/day
    location_name: str
    first_detected: datetime
    avg_severity: float = 0.0
    member_ids: Tuple[str, ...] = ()
    generation: Optional[int] = None

    def with_generation(self, generation: int) -> "OutbreakCluster":
        return replace(self, generation=generation)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "center_lat": self.center_lat,
            "center_lng": self.center_lng,
            "radius": self.radius,
            "report_count": self.report_count,
            "dominant_symptoms": list(self.dominant_symptoms),
            "severity": self.severity.value,
            "risk_score": self.risk_score,
            "growth_rate": self.growth_rate,
            "location_name": self.location_name,
            "first_detected": self.first_detected.isoformat(),
            "avg_severity": self.avg_severity,
            "member_ids": list(self.member_ids),
            "generation": self.generation
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OutbreakCluster":
        return cls(
            id=data["id"],
            center_lat=float(data["center_lat"]),
            center_lng=float(data["center_lng"]),
            radius=float(data["radius"]),
            report_count=int(data["report_count"]),
            dominant_symptoms=tuple(data.get("dominant_symptoms") or ()),
            severity=SeverityTier(data["severity"]),
            risk_score=float(data["risk_score"]),
            growth_rate=float(data["growth_rate"]),
            location_name=data["location_name"],
            first_detected=parse_datetime(data["first_detected"]),
            avg_severity=float(data.get("avg_severity") or 0.0),
            member_ids=tuple(data.get("member_ids") or ()),
            generation=data.get("generation")
        )


@dataclass(frozen=True)
class DailyAggregate:
    """One calendar day of case history for a region"""
    date: date
    total_cases: float
    avg_severity: float
    count: int


@dataclass(frozen=True)
class ForecastPoint:
    """Forecast for a single future day"""
    date: date
    predicted_cases: int
    lower: int
    upper: int
    risk_level: RiskLevel

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "predicted_cases": self.predicted_cases,
            "confidence_interval": {"lower": self.lower, "upper": self.upper},
            "risk_level": self.risk_level.value
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ForecastPoint":
        return cls(
            date=date.fromisoformat(data["date"]),
            predicted_cases=int(data["predicted_cases"]),
            lower=int(data["confidence_interval"]["lower"]),
            upper=int(data["confidence_interval"]["upper"]),
            risk_level=RiskLevel(data["risk_level"])
        )


@dataclass(frozen=True)
class Prediction:
    """Short-horizon case forecast for a region"""
    id: str
    region: RegionBounds
    disease_filter: Optional[str]
    horizon_days: int
    points: Tuple[ForecastPoint, ...]
    confidence_score: float  # 0.3-0.95
    model_version: str
    method: ForecastMethod
    data_points_used: int
    generated_at: datetime
    expires_at: datetime

    @property
    def is_degraded(self) -> bool:
        return self.method == ForecastMethod.CONSERVATIVE_BASELINE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "region": self.region.to_dict(),
            "disease_filter": self.disease_filter,
            "horizon_days": self.horizon_days,
            "points": [p.to_dict() for p in self.points],
            "confidence_score": self.confidence_score,
            "model_version": self.model_version,
            "method": self.method.value,
            "data_points_used": self.data_points_used,
            "generated_at": self.generated_at.isoformat(),
            "expires_at": self.expires_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Prediction":
        return cls(
            id=data["id"],
            region=RegionBounds.from_dict(data["region"]),
            disease_filter=data.get("disease_filter"),
            horizon_days=int(data["horizon_days"]),
            points=tuple(ForecastPoint.from_dict(p) for p in data["points"]),
            confidence_score=float(data["confidence_score"]),
            model_version=data["model_version"],
            method=ForecastMethod(data["method"]),
            data_points_used=int(data["data_points_used"]),
            generated_at=parse_datetime(data["generated_at"]),
            expires_at=parse_datetime(data["expires_at"])
        )


@dataclass(frozen=True)
class Anomaly:
    """Statistical outlier among a set of clusters"""
    id: str
    type: AnomalyType
    severity: AnomalySeverity
    description: str
    latitude: float
    longitude: float
    location_name: str
    metric: ClusterMetric
    value: float
    z_score: float
    confidence: float
    detected_at: datetime
    recommendations: Tuple[str, ...] = ()
    cluster_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "location": {"latitude": self.latitude, "longitude": self.longitude},
            "location_name": self.location_name,
            "metric": self.metric.value,
            "value": self.value,
            "z_score": self.z_score,
            "confidence": self.confidence,
            "detected_at": self.detected_at.isoformat(),
            "recommendations": list(self.recommendations),
            "cluster_id": self.cluster_id
        }


@dataclass(frozen=True)
class HealthAlert:
    """Actionable alert for a high-risk cluster"""
    id: str
    cluster_id: str
    alert_level: AlertLevel
    title: str
    description: str
    affected_regions: Tuple[str, ...]
    estimated_impact: str
    recommended_actions: Tuple[str, ...]
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_acknowledged: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cluster_id": self.cluster_id,
            "alert_level": self.alert_level.value,
            "title": self.title,
            "description": self.description,
            "affected_regions": list(self.affected_regions),
            "estimated_impact": self.estimated_impact,
            "recommended_actions": list(self.recommended_actions),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_acknowledged": self.is_acknowledged
        }
