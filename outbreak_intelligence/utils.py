"""
Utility Functions for the Outbreak Intelligence Engine
Time handling, rounding, logging setup and sample data generation
"""

import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value) -> datetime:
    """Parse an ISO timestamp (or pass a datetime through) into aware UTC"""
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).replace("Z", "+00:00")
    return ensure_utc(datetime.fromisoformat(text))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (no banker's rounding)"""
    return int(math.floor(value + 0.5))


def round_to(value: float, digits: int = 2) -> float:
    """Round half-up to a fixed number of decimals"""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure root logging for command line use

    Args:
        level: Log level name
        log_file: Optional file to mirror log output into
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def create_sample_reports(now: Optional[datetime] = None) -> List[dict]:
    """
    Create sample symptom reports for demonstration

    Three clustered reports around Bangkok, five around Lagos and one
    isolated report in Nairobi.

    Returns:
        List of report dictionaries accepted by SymptomReport.from_dict
    """
    now = now or utcnow()
    samples = [
        (13.7563, 100.5018, "Bangkok", "Thailand", ["fever", "headache", "rash"], 8, 1.0),
        (13.7900, 100.5300, "Bangkok", "Thailand", ["fever", "rash"], 7, 2.0),
        (13.7200, 100.4700, "Bangkok", "Thailand", ["fever", "joint pain"], 9, 0.5),
        (6.5244, 3.3792, "Lagos", "Nigeria", ["diarrhea", "vomiting"], 9, 0.2),
        (6.5300, 3.3900, "Lagos", "Nigeria", ["diarrhea", "dehydration"], 9, 0.4),
        (6.5100, 3.3600, "Lagos", "Nigeria", ["diarrhea", "vomiting", "fever"], 8, 0.1),
        (6.5400, 3.4000, "Lagos", "Nigeria", ["vomiting", "diarrhea"], 10, 0.3),
        (6.5200, 3.3700, "Lagos", "Nigeria", ["diarrhea"], 9, 0.6),
        (-1.2921, 36.8219, "Nairobi", "Kenya", ["cough"], 3, 3.0),
    ]

    reports = []
    for lat, lng, city, country, symptoms, severity, age_days in samples:
        reports.append({
            "id": str(uuid.uuid4()),
            "latitude": lat,
            "longitude": lng,
            "location_city": city,
            "location_country": country,
            "description": f"Reported {', '.join(symptoms)}",
            "symptoms": symptoms,
            "severity": severity,
            "created_at": (now - timedelta(days=age_days)).isoformat()
        })

    return reports
