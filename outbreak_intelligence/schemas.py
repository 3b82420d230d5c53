"""
API Payload Schemas
Pydantic models of the results handed to the transport layer (camelCase on the wire)
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .models import Anomaly, AnomalySeverity, OutbreakCluster, SeverityTier


class OutbreakClusterSummary(BaseModel):
    """Cluster as exposed by detectOutbreaks"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    center_lat: float = Field(..., alias="centerLat")
    center_lng: float = Field(..., alias="centerLng")
    radius: float = Field(..., description="Radius in degrees")
    report_count: int = Field(..., alias="reportCount")
    dominant_symptoms: List[str] = Field(default_factory=list, alias="dominantSymptoms")
    severity: SeverityTier
    risk_score: float = Field(..., ge=0, le=100, alias="riskScore")
    growth_rate: float = Field(..., alias="growthRate", description="Reports per day")
    location_name: str = Field(..., alias="locationName")
    first_detected: datetime = Field(..., alias="firstDetected")

    @classmethod
    def from_cluster(cls, cluster: OutbreakCluster) -> "OutbreakClusterSummary":
        return cls(
            id=cluster.id,
            center_lat=cluster.center_lat,
            center_lng=cluster.center_lng,
            radius=cluster.radius,
            report_count=cluster.report_count,
            dominant_symptoms=list(cluster.dominant_symptoms),
            severity=cluster.severity,
            risk_score=cluster.risk_score,
            growth_rate=cluster.growth_rate,
            location_name=cluster.location_name,
            first_detected=cluster.first_detected
        )


class DetectionResult(BaseModel):
    """Outcome of one detection run"""
    model_config = ConfigDict(populate_by_name=True)

    clusters_found: int = Field(0, alias="clustersFound")
    critical_count: int = Field(0, alias="criticalCount")
    concerning_count: int = Field(0, alias="concerningCount")
    clusters: List[OutbreakClusterSummary] = Field(default_factory=list)
    generation: Optional[int] = Field(None, description="Cluster generation installed by the run")
    alerts_created: int = Field(0, alias="alertsCreated")
    anomalies: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list, description="Stages that failed")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class AnomalySummary(BaseModel):
    """Anomaly counts by severity"""
    model_config = ConfigDict(populate_by_name=True)

    total_anomalies: int = Field(0, alias="totalAnomalies")
    critical_count: int = Field(0, alias="criticalCount")
    high_count: int = Field(0, alias="highCount")
    medium_count: int = Field(0, alias="mediumCount")
    low_count: int = Field(0, alias="lowCount")

    @classmethod
    def from_anomalies(cls, anomalies: Sequence[Anomaly]) -> "AnomalySummary":
        severities = [a.severity for a in anomalies]
        return cls(
            total_anomalies=len(anomalies),
            critical_count=severities.count(AnomalySeverity.CRITICAL),
            high_count=severities.count(AnomalySeverity.HIGH),
            medium_count=severities.count(AnomalySeverity.MEDIUM),
            low_count=severities.count(AnomalySeverity.LOW)
        )


class AnomalyReport(BaseModel):
    """Anomalies for a region with their severity summary"""
    model_config = ConfigDict(populate_by_name=True)

    anomalies: List[Dict[str, Any]] = Field(default_factory=list)
    summary: AnomalySummary = Field(default_factory=AnomalySummary)

    @classmethod
    def from_anomalies(cls, anomalies: Sequence[Anomaly]) -> "AnomalyReport":
        return cls(
            anomalies=[a.to_dict() for a in anomalies],
            summary=AnomalySummary.from_anomalies(anomalies)
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
