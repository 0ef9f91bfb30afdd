"""
config.py — Configuration & Persistence for ClinicFlow

Loads and saves the patient list and holiday map (JSON), loads offline
holiday tables (CSV), and migrates legacy patient records on load.

Legacy shape: startConfig.selectedDays = [1, 3] (no per-day time) and
sessions without a "time" field. Migrated to schedule entries at
DEFAULT_SESSION_TIME and session time DEFAULT_SESSION_TIME.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from clinicflow.models import Patient

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR      = PROJECT_ROOT / "data"
DEFAULT_PATIENTS_PATH = DEFAULT_DATA_DIR / "patients.json"
DEFAULT_HOLIDAYS_PATH = DEFAULT_DATA_DIR / "holidays.json"

DEFAULT_SESSION_TIME  = "09:00"
HOLIDAY_API_BASE_URL  = "https://calendrier.api.gouv.fr/jours-feries"
DEFAULT_HOLIDAY_ZONE  = "metropole"
EXPIRING_HORIZON_DAYS = 30


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------

def migrate_patient_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a persisted patient dict to the current shape. Current records are
    returned unchanged.
    """
    start_config = record.get("startConfig") or {}
    if "selectedDays" not in start_config:
        return record

    rest = {k: v for k, v in start_config.items() if k != "selectedDays"}
    rest["schedule"] = [
        {"day": int(d), "time": DEFAULT_SESSION_TIME}
        for d in start_config["selectedDays"]
    ]
    sessions = [
        {**s, "time": s.get("time") or DEFAULT_SESSION_TIME}
        for s in record.get("sessions", [])
    ]
    logger.info(f"Migrated legacy record {record.get('id')}: selectedDays → schedule")
    return {**record, "startConfig": rest, "sessions": sessions}


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

def load_patients(
    patients_path: Optional[Path] = None,
) -> List[Patient]:
    """Load patients from JSON. Returns [] if the file is missing."""
    path = patients_path or DEFAULT_PATIENTS_PATH
    if not path.exists():
        logger.warning(f"Patients file not found: {path}. Starting empty.")
        return []

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of patients")

    patients = [Patient.from_dict(migrate_patient_record(r)) for r in raw]
    logger.info(f"Loaded {len(patients)} patients from {path}")
    return patients


def save_patients(
    patients: Iterable[Patient],
    patients_path: Optional[Path] = None,
) -> None:
    path = patients_path or DEFAULT_PATIENTS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [p.to_dict() for p in patients]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(f"Saved {len(data)} patients to {path}")


# ---------------------------------------------------------------------------
# Holidays
# ---------------------------------------------------------------------------

def load_holidays(
    holidays_path: Optional[Path] = None,
) -> Dict[str, str]:
    """Load {iso_date: holiday_name}. Returns {} if the file is missing."""
    path = holidays_path or DEFAULT_HOLIDAYS_PATH
    if not path.exists():
        logger.warning(f"Holiday map not found: {path}. Returning empty map.")
        return {}
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return {str(k): str(v) for k, v in data.items()}


def save_holidays(
    holidays: Dict[str, str],
    holidays_path: Optional[Path] = None,
) -> None:
    path = holidays_path or DEFAULT_HOLIDAYS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(dict(sorted(holidays.items())), f, indent=2, ensure_ascii=False)
    logger.info(f"Saved {len(holidays)} holidays to {path}")


def load_holiday_csv(csv_path: Path) -> Dict[str, str]:
    """
    Load an offline holiday table.

    Expected columns: date (YYYY-MM-DD), name
    Rows with an empty date are skipped.
    """
    import pandas as pd

    if not csv_path.exists():
        raise FileNotFoundError(f"Holiday CSV not found: {csv_path}")

    df = pd.read_csv(csv_path, dtype=str)
    missing = {"date", "name"} - set(df.columns)
    if missing:
        raise ValueError(f"{csv_path}: missing column(s) {sorted(missing)}")

    holidays: Dict[str, str] = {}
    for _, row in df.iterrows():
        date_str = str(row["date"]).strip()
        if not date_str or date_str == "nan":
            continue
        name = row.get("name")
        holidays[date_str[:10]] = "" if pd.isna(name) else str(name).strip()

    logger.info(f"Loaded {len(holidays)} holidays from {csv_path}")
    return holidays


# ---------------------------------------------------------------------------
# Full config dict
# ---------------------------------------------------------------------------

def get_config() -> Dict[str, Any]:
    from clinicflow.engine import FALLBACK_SESSION_TIME, MAX_GENERATION_DAYS, MAX_MAKEUP_SEARCH_DAYS

    return {
        "data_dir":               str(DEFAULT_DATA_DIR),
        "default_session_time":   DEFAULT_SESSION_TIME,
        "fallback_session_time":  FALLBACK_SESSION_TIME,
        "max_generation_days":    MAX_GENERATION_DAYS,
        "max_makeup_search_days": MAX_MAKEUP_SEARCH_DAYS,
        "holiday_api_base_url":   HOLIDAY_API_BASE_URL,
        "holiday_zone":           DEFAULT_HOLIDAY_ZONE,
        "expiring_horizon_days":  EXPIRING_HORIZON_DAYS,
    }
