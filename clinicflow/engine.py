"""
engine.py — Session Generation & Regeneration Engine

Three pure functions:
  - generate_sessions:          expand a StartConfig into dated sessions
  - add_makeup_session:         next valid occurrence after the last session
  - regenerate_future_sessions: rebuild the future, freeze the past

Algorithm (generation):
  cursor = start_date
  while not stopped and cursor has moved < MAX_GENERATION_DAYS:
    if weekday(cursor) in schedule: emit session, count += 1
    cursor = cursor + 1 day

  SessionCount: stop when count (seeded with already_counted) reaches total.
  DateRange:    stop once cursor > end_date.

Both search loops are bounded (500 / 365 days) so an empty schedule
terminates instead of spinning. Weekdays use 0 = Sunday .. 6 = Saturday.
"""

import logging
import random
import string
from datetime import date, timedelta
from typing import Callable, Container, List, Optional

from clinicflow.models import (
    DateRange,
    Patient,
    Session,
    SessionCount,
    SessionStatus,
    StartConfig,
    sort_sessions,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------
MAX_GENERATION_DAYS = 500
MAX_MAKEUP_SEARCH_DAYS = 365
FALLBACK_SESSION_TIME = "12:00"
MAKEUP_NOTE = "Rescheduled (Makeup)"

ID_LENGTH = 9
_ID_ALPHABET = string.ascii_lowercase + string.digits

IdFactory = Callable[[], str]


def generate_id() -> str:
    """Random 9-char lowercase alphanumeric id."""
    return "".join(random.choices(_ID_ALPHABET, k=ID_LENGTH))


def day_index(d: date) -> int:
    """Weekday with 0 = Sunday .. 6 = Saturday (Python's weekday() has Monday = 0)."""
    return (d.weekday() + 1) % 7


# ---------------------------------------------------------------------------
# Occurrence generator
# ---------------------------------------------------------------------------

def generate_sessions(
    patient_id: str,
    config: StartConfig,
    already_counted: int = 0,
    id_factory: IdFactory = generate_id,
) -> List[Session]:
    """
    Expand a weekly schedule into concrete Scheduled sessions.

    Args:
        patient_id:       Owner of the generated sessions.
        config:           Start date, weekly slots and duration policy.
        already_counted:  Sessions already consumed toward a SessionCount
                          budget (used by regeneration).
        id_factory:       Id allocator, one call per session.

    Returns:
        Sessions in ascending date order. Empty when the schedule has no
        entries or the budget is already used up.
    """
    sessions: List[Session] = []
    duration = config.duration
    count = already_counted
    cursor = config.start_date

    def _stopped(current: date, emitted: int) -> bool:
        if isinstance(duration, SessionCount):
            return emitted >= duration.total
        if isinstance(duration, DateRange):
            return current > duration.end_date
        return True

    days_advanced = 0
    while not _stopped(cursor, count) and days_advanced < MAX_GENERATION_DAYS:
        time = config.time_for_day(day_index(cursor))
        if time:
            sessions.append(Session(
                id=id_factory(),
                patient_id=patient_id,
                date=cursor,
                time=time,
            ))
            count += 1
        cursor = cursor + timedelta(days=1)
        days_advanced += 1

    if days_advanced >= MAX_GENERATION_DAYS and not _stopped(cursor, count):
        logger.warning(
            f"Generation for patient {patient_id} hit the {MAX_GENERATION_DAYS}-day "
            f"safety bound after {len(sessions)} sessions"
        )
    logger.debug(f"Generated {len(sessions)} sessions for {patient_id} from {config.start_date}")
    return sessions


# ---------------------------------------------------------------------------
# Makeup appender
# ---------------------------------------------------------------------------

def add_makeup_session(
    patient: Patient,
    today: Optional[date] = None,
    id_factory: IdFactory = generate_id,
    skip_dates: Container[str] = (),
) -> Session:
    """
    Return one replacement session at the first scheduled weekday after the
    patient's chronologically last session (or from today if there is none).
    ISO dates in `skip_dates` (holidays) are passed over.

    If no scheduled weekday is found within MAX_MAKEUP_SEARCH_DAYS, fall back
    to a session dated today at FALLBACK_SESSION_TIME.
    """
    today = today or date.today()

    if patient.sessions:
        last = max(patient.sessions, key=lambda s: s.sort_key)
        search_from = last.date + timedelta(days=1)
    else:
        search_from = today

    candidate = search_from
    for _ in range(MAX_MAKEUP_SEARCH_DAYS):
        time = patient.start_config.time_for_day(day_index(candidate))
        if time and candidate.isoformat() not in skip_dates:
            logger.info(f"Makeup session for {patient.id} on {candidate} {time}")
            return Session(
                id=id_factory(),
                patient_id=patient.id,
                date=candidate,
                time=time,
                notes=MAKEUP_NOTE,
            )
        candidate = candidate + timedelta(days=1)

    logger.warning(
        f"No scheduled weekday within {MAX_MAKEUP_SEARCH_DAYS} days for {patient.id}; "
        f"falling back to {today} {FALLBACK_SESSION_TIME}"
    )
    return Session(
        id=id_factory(),
        patient_id=patient.id,
        date=today,
        time=FALLBACK_SESSION_TIME,
        notes=MAKEUP_NOTE,
    )


# ---------------------------------------------------------------------------
# Regenerator
# ---------------------------------------------------------------------------

def is_frozen(session: Session, today: date) -> bool:
    """Sessions regeneration must keep: interacted with, locked, or not in the future."""
    return (
        session.status is not SessionStatus.SCHEDULED
        or session.is_locked
        or session.date <= today
    )


def regenerate_future_sessions(
    patient: Patient,
    new_config: StartConfig,
    today: Optional[date] = None,
    id_factory: IdFactory = generate_id,
) -> List[Session]:
    """
    Replacement session list for `patient` under `new_config`.

    Keeps every frozen session untouched, drops future Scheduled ones and
    regenerates from tomorrow (or new_config.start_date if later). Completed
    and locked sessions count toward a SessionCount budget; absences do not.
    """
    today = today or date.today()
    tomorrow = today + timedelta(days=1)

    past = [s for s in patient.sessions if is_frozen(s, today)]
    consumed = sum(1 for s in past if s.counts_as_completed)
    discarded = len(patient.sessions) - len(past)

    start = new_config.start_date if new_config.start_date > tomorrow else tomorrow
    effective = StartConfig(
        start_date=start,
        schedule=new_config.schedule,
        duration=new_config.duration,
    )
    generated = generate_sessions(patient.id, effective, already_counted=consumed, id_factory=id_factory)

    logger.info(
        f"Regenerated {patient.id}: kept {len(past)}, discarded {discarded}, "
        f"consumed {consumed}, generated {len(generated)} from {start}"
    )
    return sort_sessions(past + generated)
