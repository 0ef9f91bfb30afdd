"""
ClinicFlow Session Scheduling Engine

Modules:
- models: Patient / Session / StartConfig value types
- engine: Session generation, makeup sessions, future regeneration
- orchestrator: Patient collection, session edits, holiday sync
- validation: Start-config validation and patient integrity checks
- config: Paths, JSON persistence, legacy migration, holiday CSV
- holidays_client: Public holiday API integration
- agenda: Day / patient calendar queries
- exporter: CSV, Excel and progress report
"""

from .models import (
    Coordinates,
    DateRange,
    DayStats,
    DurationType,
    LocationType,
    Patient,
    ScheduleConfig,
    Session,
    SessionCount,
    SessionStatus,
    StartConfig,
)

from .engine import (
    generate_sessions,
    add_makeup_session,
    regenerate_future_sessions,
    generate_id,
    day_index,
)

from .orchestrator import (
    PatientBook,
    create_patient,
    edit_patient,
    update_session,
    apply_holidays,
)

from .validation import (
    ScheduleValidationError,
    SessionLockedError,
    validate_start_config,
)

__all__ = [
    "Coordinates",
    "DateRange",
    "DayStats",
    "DurationType",
    "LocationType",
    "Patient",
    "ScheduleConfig",
    "Session",
    "SessionCount",
    "SessionStatus",
    "StartConfig",
    "generate_sessions",
    "add_makeup_session",
    "regenerate_future_sessions",
    "generate_id",
    "day_index",
    "PatientBook",
    "create_patient",
    "edit_patient",
    "update_session",
    "apply_holidays",
    "ScheduleValidationError",
    "SessionLockedError",
    "validate_start_config",
]
