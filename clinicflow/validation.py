"""
validation.py — Input validation and integrity checks for ClinicFlow

Start-config validation (caller / construction-time concern, the engine
assumes a well-formed StartConfig):
  - empty schedule, weekday outside 0-6, duplicate weekdays
  - time not HH:MM (24-hour)
  - SessionCount total <= 0, DateRange end before start

Patient integrity checks:
  HARD: duplicate session ids, session owned by another patient,
        sessions out of (date, time) order
  SOFT: locked session whose status is not COMPLETED,
        session on a weekday missing from the schedule

Usage:
  errors, warnings = validate_start_config(config)
  issues = check_patient(patient)
"""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Optional, Tuple

from clinicflow.models import DateRange, Patient, SessionCount, SessionStatus, StartConfig

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ScheduleValidationError(ValueError):
    """Rejected schedule input. `errors` lists every problem found."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid schedule")


class SessionLockedError(ValueError):
    pass


class SessionNotFoundError(KeyError):
    pass


class PatientNotFoundError(KeyError):
    pass


# ---------------------------------------------------------------------------
# Start config
# ---------------------------------------------------------------------------

def validate_start_config(config: StartConfig) -> Tuple[List[str], List[str]]:
    """
    Validate a StartConfig before it reaches the engine.

    Returns:
        (errors, warnings) as lists of strings
    """
    from clinicflow.engine import MAX_GENERATION_DAYS, day_index

    errors: List[str] = []
    warnings: List[str] = []

    if not config.schedule:
        errors.append("Please select at least one day of the week.")

    days = [s.day for s in config.schedule]
    for entry in config.schedule:
        if not 0 <= entry.day <= 6:
            errors.append(f"Schedule day {entry.day} outside 0-6 (0 = Sunday)")
        if not TIME_PATTERN.match(entry.time):
            errors.append(f"Schedule time {entry.time!r} for day {entry.day} is not HH:MM")
    dupes = sorted({d for d in days if days.count(d) > 1})
    if dupes:
        errors.append(f"Duplicate schedule days: {dupes}")

    duration = config.duration
    if isinstance(duration, SessionCount):
        if duration.total <= 0:
            errors.append(f"Total sessions must be positive, got {duration.total}")
        elif config.schedule and not dupes:
            # weekly slots within the generation window
            reachable = len(config.schedule) * (MAX_GENERATION_DAYS // 7)
            if duration.total > reachable:
                warnings.append(
                    f"{duration.total} sessions may not fit in {MAX_GENERATION_DAYS} days "
                    f"with {len(config.schedule)} weekly slot(s)"
                )
    elif isinstance(duration, DateRange):
        if duration.end_date < config.start_date:
            errors.append(
                f"End date {duration.end_date} is before start date {config.start_date}"
            )
        elif (duration.end_date - config.start_date) > timedelta(days=MAX_GENERATION_DAYS):
            warnings.append(
                f"Date range exceeds {MAX_GENERATION_DAYS} days; sessions after "
                f"{config.start_date + timedelta(days=MAX_GENERATION_DAYS - 1)} will not be generated"
            )

    if config.schedule and config.time_for_day(day_index(config.start_date)) is None:
        warnings.append(f"Start date {config.start_date} is not a scheduled weekday")

    return errors, warnings


def ensure_valid_start_config(config: StartConfig) -> None:
    """Raise ScheduleValidationError on errors; log warnings."""
    errors, warnings = validate_start_config(config)
    for w in warnings:
        logger.warning(w)
    if errors:
        raise ScheduleValidationError(errors)


# ---------------------------------------------------------------------------
# Patient integrity
# ---------------------------------------------------------------------------

class IssueSeverity(Enum):
    HARD = "hard"
    SOFT = "soft"


@dataclass
class ValidationIssue:
    severity: IssueSeverity
    issue_type: str
    description: str
    patient_id: Optional[str] = None
    session_id: Optional[str] = None

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.issue_type}"]
        if self.patient_id:
            parts.append(f"patient={self.patient_id}")
        if self.session_id:
            parts.append(f"session={self.session_id}")
        parts.append(f"→ {self.description}")
        return " | ".join(parts)


def check_patient(patient: Patient) -> List[ValidationIssue]:
    """Integrity checks over a patient's stored sessions."""
    from clinicflow.engine import day_index

    issues: List[ValidationIssue] = []

    seen = set()
    for s in patient.sessions:
        if s.id in seen:
            issues.append(ValidationIssue(
                IssueSeverity.HARD, "DUPLICATE_ID",
                f"Session id {s.id} appears more than once",
                patient.id, s.id,
            ))
        seen.add(s.id)

        if s.patient_id != patient.id:
            issues.append(ValidationIssue(
                IssueSeverity.HARD, "FOREIGN_SESSION",
                f"Session belongs to {s.patient_id}",
                patient.id, s.id,
            ))

        if s.is_locked and s.status is not SessionStatus.COMPLETED:
            issues.append(ValidationIssue(
                IssueSeverity.SOFT, "LOCKED_NOT_COMPLETED",
                f"Locked session has status {s.status.value}",
                patient.id, s.id,
            ))

        if (s.status is not SessionStatus.CANCELLED
                and patient.start_config.time_for_day(day_index(s.date)) is None):
            issues.append(ValidationIssue(
                IssueSeverity.SOFT, "OFF_SCHEDULE",
                f"Session on {s.date} falls on an unscheduled weekday",
                patient.id, s.id,
            ))

    keys = [s.sort_key for s in patient.sessions]
    if keys != sorted(keys):
        issues.append(ValidationIssue(
            IssueSeverity.HARD, "UNSORTED",
            "Sessions are not in (date, time) order",
            patient.id,
        ))

    return issues
