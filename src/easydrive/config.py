"""Application configuration."""
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

# Project root, where config/ lives in a source checkout
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_REGION_RULES: List[Dict] = [
    {
        "country_code": "ca",
        "keywords": ["canada", "québec", "qc", "montreal"],
        "trailing_codes": ["ca"],
    }
]


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


class Config:
    """Application configuration."""

    # Webhooks
    EXTRACT_WEBHOOK_URL: str = os.getenv(
        "EXTRACT_WEBHOOK_URL", "https://primary-production-6722.up.railway.app/webhook/upload"
    )
    SUBMIT_WEBHOOK_URL: str = os.getenv(
        "SUBMIT_WEBHOOK_URL", "https://primary-production-6722.up.railway.app/webhook/Dox"
    )

    # Geocoder (Nominatim-compatible)
    GEOCODER_URL: str = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org")
    GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "easydrive-intake/1.0")

    # None keeps the transport default
    HTTP_TIMEOUT: Optional[float] = _optional_float("EASYDRIVE_HTTP_TIMEOUT")

    # Local store
    STORE_PATH: str = os.getenv("EASYDRIVE_STORE_PATH", str(Path.home() / ".easydrive" / "state.json"))
    REGIONS_FILE: str = os.getenv("EASYDRIVE_REGIONS_FILE", str(PROJECT_ROOT / "config" / "regions.yaml"))

    # App Settings
    APP_NAME: str = os.getenv("APP_NAME", "EasyDrive Intake API")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Synchronizer
    PICKUP_DEBOUNCE_S: float = 0.5
    DROPOFF_DEBOUNCE_S: float = 0.7  # longer: a dropoff fix also recenters the map
    DEFAULT_CENTER = (45.5017, -73.5673)
    DEFAULT_ZOOM: int = 10
    FIX_ZOOM: int = 13

    # Uploads
    ACCEPTED_EXTENSIONS = (".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png")
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024


config = Config()


def load_region_rules(regions_file: Optional[str] = None) -> List[Dict]:
    """
    Load country restriction heuristics from a YAML file.

    Args:
        regions_file: Path to the YAML file (default: config/regions.yaml)

    Returns:
        List of rules with ``country_code``, ``keywords`` and ``trailing_codes``
    """
    regions_file = regions_file or config.REGIONS_FILE
    try:
        with open(regions_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return [dict(rule) for rule in DEFAULT_REGION_RULES]
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing regions YAML file: {e}")

    rules = data.get("regions", []) if isinstance(data, dict) else None
    if not isinstance(rules, list):
        raise ValueError(f"Regions file '{regions_file}' must contain a 'regions' list")
    for rule in rules:
        if not isinstance(rule, dict) or not rule.get("country_code"):
            raise ValueError(f"Every region rule needs a country_code: {rule!r}")
    return rules


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger for the service."""
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
