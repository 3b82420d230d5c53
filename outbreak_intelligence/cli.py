"""
Command Line Interface for the Outbreak Intelligence Engine

Usage:
    python -m outbreak_intelligence ingest --sample
    python -m outbreak_intelligence detect
    python -m outbreak_intelligence forecast --north 14 --south 13 --east 101 --west 100 --horizon 7
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import EngineConfig
from .engine import OutbreakDetectionEngine
from .exceptions import OutbreakEngineError
from .models import ClusterMetric, ClusteringAlgorithm, RegionBounds, SymptomReport
from .scheduler import DetectionScheduler
from .store import SQLiteReportStore
from .utils import configure_logging, create_sample_reports

logger = logging.getLogger(__name__)


def _add_region_arguments(parser: argparse.ArgumentParser, required: bool = True):
    for name in ("north", "south", "east", "west"):
        parser.add_argument(f"--{name}", type=float, required=required, help=f"{name} bound (degrees)")


def _region(args) -> Optional[RegionBounds]:
    if args.north is None:
        return None
    return RegionBounds(north=args.north, south=args.south, east=args.east, west=args.west).validate()


def _print_json(payload):
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="outbreak_intelligence",
        description="Outbreak detection and forecasting over geotagged symptom reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load demonstration reports and run detection
  python -m outbreak_intelligence ingest --sample
  python -m outbreak_intelligence detect

  # 7-day forecast for a region
  python -m outbreak_intelligence forecast --north 14 --south 13 --east 101 --west 100 --horizon 7
        """
    )
    parser.add_argument("--db", type=str, default=None, help="SQLite database path")
    parser.add_argument("--log-level", type=str, default=EngineConfig.LOG_LEVEL)

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("detect", help="Run one detection cycle")

    clusters = subparsers.add_parser("clusters", help="List active clusters")
    _add_region_arguments(clusters, required=False)

    map_view = subparsers.add_parser("map", help="Fine-grained clusters for map rendering")
    _add_region_arguments(map_view, required=False)
    map_view.add_argument("--algorithm", choices=[a.value for a in ClusteringAlgorithm], default=None)

    forecast = subparsers.add_parser("forecast", help="Forecast daily cases for a region")
    _add_region_arguments(forecast)
    forecast.add_argument("--horizon", type=int, default=7, help="Days to forecast")
    forecast.add_argument("--disease", type=str, default=None, help="Disease type or symptom tag")

    anomalies = subparsers.add_parser("anomalies", help="Anomalous active clusters in a region")
    _add_region_arguments(anomalies)
    anomalies.add_argument("--threshold", type=float, default=None)
    anomalies.add_argument("--all-metrics", action="store_true", help="Test every cluster metric")

    ingest = subparsers.add_parser("ingest", help="Store symptom reports")
    ingest.add_argument("path", nargs="?", help="JSON file holding a list of reports")
    ingest.add_argument("--sample", action="store_true", help="Store demonstration reports")

    alerts = subparsers.add_parser("alerts", help="List stored health alerts")
    alerts.add_argument("--all", action="store_true", help="Include acknowledged and expired alerts")

    prediction = subparsers.add_parser("prediction", help="Fetch a stored forecast by id")
    prediction.add_argument("prediction_id", help="Id returned by the forecast command")

    monitor = subparsers.add_parser("monitor", help="Run detection on a schedule")
    monitor.add_argument(
        "--interval-minutes", type=float, default=EngineConfig.MONITORING_INTERVAL_MINUTES
    )

    subparsers.add_parser("config", help="Show configuration")

    return parser


def _load_reports(args) -> List[SymptomReport]:
    if args.sample:
        payloads = create_sample_reports()
    elif args.path:
        payloads = json.loads(Path(args.path).read_text())
        if isinstance(payloads, dict):
            payloads = [payloads]
    else:
        raise OutbreakEngineError("ingest needs a JSON file or --sample")
    return [SymptomReport.from_dict(p) for p in payloads]


def run(args) -> int:
    if args.command == "config":
        _print_json({"config": EngineConfig.summary(), "errors": EngineConfig.errors()})
        return 0 if EngineConfig.validate() else 1

    store = SQLiteReportStore(args.db or EngineConfig.DB_PATH)
    engine = OutbreakDetectionEngine(store=store)

    if args.command == "detect":
        _print_json(engine.detect_outbreaks().to_payload())

    elif args.command == "clusters":
        _print_json([c.to_dict() for c in engine.get_active_clusters(_region(args))])

    elif args.command == "map":
        algorithm = ClusteringAlgorithm(args.algorithm) if args.algorithm else None
        _print_json([c.to_dict() for c in engine.map_clusters(_region(args), algorithm)])

    elif args.command == "forecast":
        prediction = engine.generate_prediction(_region(args), args.horizon, args.disease)
        _print_json(prediction.to_dict())

    elif args.command == "anomalies":
        metrics = list(ClusterMetric) if args.all_metrics else None
        report = engine.detect_anomalies(_region(args), args.threshold, metrics)
        _print_json(report.to_payload())

    elif args.command == "ingest":
        count = store.add_reports(_load_reports(args))
        _print_json({"stored": count})

    elif args.command == "alerts":
        alerts = store.list_alerts(include_acknowledged=args.all, include_expired=args.all)
        _print_json([a.to_dict() for a in alerts])

    elif args.command == "prediction":
        prediction = engine.get_prediction(args.prediction_id)
        if prediction is None:
            raise OutbreakEngineError(f"Prediction {args.prediction_id} not found or expired")
        _print_json(prediction.to_dict())

    elif args.command == "monitor":
        scheduler = DetectionScheduler(engine, interval_seconds=args.interval_minutes * 60)
        scheduler.start()
        try:
            while scheduler.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, EngineConfig.LOG_FILE)

    try:
        return run(args)
    except OutbreakEngineError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
