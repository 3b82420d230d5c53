"""
Example Usage of the Outbreak Intelligence Engine
Demonstrates detection, forecasting and anomaly flagging with synthetic symptom reports
"""

import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from outbreak_intelligence import (
    InMemoryPublisher,
    OutbreakDetectionEngine,
    RegionBounds,
    SQLiteReportStore,
    SymptomReport
)
from outbreak_intelligence.utils import configure_logging


def generate_synthetic_reports(
    rng: np.random.Generator,
    n_days: int = 30,
    outbreak_center=(6.5244, 3.3792),
    outbreak_start_day: int = 20,
    background_per_day: int = 4
) -> list:
    """
    Generate synthetic symptom reports

    Background reports are scattered over West Africa; from
    `outbreak_start_day` onwards a growing number of severe diarrheal
    reports appear around `outbreak_center`.

    Args:
        rng: Random generator
        n_days: Number of days of data
        outbreak_center: (lat, lng) of the outbreak
        outbreak_start_day: Day the outbreak starts
        background_per_day: Background reports per day

    Returns:
        List of SymptomReport
    """
    print("Generating synthetic symptom reports...")

    now = datetime.now(timezone.utc)
    base_date = now - timedelta(days=n_days)
    background_symptoms = [["cough"], ["headache"], ["fever"], ["rash"], ["fatigue"]]

    reports = []
    for day in range(n_days):
        day_start = base_date + timedelta(days=day)

        for _ in range(background_per_day):
            reports.append(SymptomReport(
                id=str(uuid.uuid4()),
                latitude=float(rng.uniform(4.0, 13.0)),
                longitude=float(rng.uniform(-3.0, 14.0)),
                description="Routine report",
                symptoms=tuple(background_symptoms[rng.integers(len(background_symptoms))]),
                severity=int(rng.integers(1, 5)),
                created_at=day_start + timedelta(hours=float(rng.uniform(0, 24)))
            ))

        if day >= outbreak_start_day:
            for _ in range(2 * (day - outbreak_start_day + 1)):
                reports.append(SymptomReport(
                    id=str(uuid.uuid4()),
                    latitude=outbreak_center[0] + float(rng.normal(0, 0.05)),
                    longitude=outbreak_center[1] + float(rng.normal(0, 0.05)),
                    description="Acute watery diarrhea with vomiting",
                    symptoms=("diarrhea", "vomiting", "dehydration"),
                    severity=int(rng.integers(7, 11)),
                    created_at=day_start + timedelta(hours=float(rng.uniform(0, 24))),
                    location_city="Lagos",
                    location_country="Nigeria",
                    disease_type="cholera"
                ))

    return [r for r in reports if r.created_at <= now]


def main():
    """Run outbreak detection example"""
    print("=" * 80)
    print("OUTBREAK INTELLIGENCE ENGINE - EXAMPLE")
    print("=" * 80)
    print()

    configure_logging("WARNING")
    rng = np.random.default_rng(2024)

    # Create data directory
    data_dir = Path("./outbreak_intelligence_data")
    data_dir.mkdir(parents=True, exist_ok=True)

    print("Step 1: Storing synthetic symptom reports...")
    store = SQLiteReportStore(str(data_dir / "example.db"))
    reports = generate_synthetic_reports(rng)
    store.add_reports(reports)
    print(f"  ✓ Stored {len(reports)} reports")

    print("\nStep 2: Running outbreak detection...")
    publisher = InMemoryPublisher()
    engine = OutbreakDetectionEngine(store=store, publisher=publisher)
    result = engine.detect_outbreaks()

    print(f"  Clusters found: {result.clusters_found}")
    print(f"  Critical: {result.critical_count}  Concerning: {result.concerning_count}")
    for cluster in result.clusters:
        print(
            f"    - {cluster.location_name}: {cluster.report_count} reports, "
            f"risk {cluster.risk_score} ({cluster.severity.value}), "
            f"growth {cluster.growth_rate}/day, symptoms {', '.join(cluster.dominant_symptoms)}"
        )

    if publisher.alerts:
        print("\nHEALTH ALERTS:")
        print("-" * 80)
        for alert in publisher.alerts:
            print(f"\n🚨 {alert.title} [{alert.alert_level.value.upper()}]")
            print(f"   {alert.description}")
            print(f"   Impact: {alert.estimated_impact}")
            print("   Recommended Actions:")
            for action in alert.recommended_actions:
                print(f"     • {action}")

    print("\nStep 3: Forecasting cholera cases around Lagos...")
    lagos = RegionBounds(north=7.0, south=6.0, east=4.0, west=3.0)
    prediction = engine.generate_prediction(lagos, horizon_days=7, disease_filter="cholera")
    print(f"  Method: {prediction.method.value}  Confidence: {prediction.confidence_score:.2f}")
    for point in prediction.points:
        print(
            f"    {point.date}: {point.predicted_cases} cases "
            f"[{point.lower}, {point.upper}] {point.risk_level.value}"
        )

    print("\nStep 4: Checking for anomalous clusters...")
    west_africa = RegionBounds(north=15.0, south=0.0, east=15.0, west=-5.0)
    anomaly_report = engine.detect_anomalies(west_africa)
    print(f"  Anomalies: {anomaly_report.summary.total_anomalies}")

    print("\n" + "=" * 80)
    print(f"✓ Database saved to: {data_dir / 'example.db'}")
    print("=" * 80)


if __name__ == "__main__":
    main()
