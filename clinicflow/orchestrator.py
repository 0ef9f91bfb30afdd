"""
orchestrator.py — Patient collection & engine composition

Owns the patient list and composes the engine:
  - create_patient:   validate + generate, reject a zero-session outcome
  - edit_patient:     regenerate future sessions when the cadence changes
                      (gated by a caller-supplied confirm function)
  - update_session:   status / date / time / lock edits; an Absent
                      transition on a count-bounded patient appends a makeup
  - apply_holidays:   holiday sessions -> Absent (+ makeups when counted)

Every function returns a new Patient. PatientBook swaps results into its
collection under a lock (compute new value, then replace).
"""

import dataclasses
import logging
import threading
from datetime import date
from typing import Any, Callable, Container, Dict, Iterable, List, Optional

from clinicflow.engine import (
    IdFactory,
    add_makeup_session,
    generate_id,
    generate_sessions,
    regenerate_future_sessions,
)
from clinicflow.models import (
    Coordinates,
    LocationType,
    Patient,
    Session,
    SessionStatus,
    StartConfig,
    sort_sessions,
)
from clinicflow.validation import (
    PatientNotFoundError,
    ScheduleValidationError,
    SessionLockedError,
    SessionNotFoundError,
    ensure_valid_start_config,
)

logger = logging.getLogger(__name__)

HOLIDAY_NOTE_PREFIX = "Holiday: "
SESSION_FIELDS = {"status", "date", "time", "is_locked", "notes"}

ConfirmFn = Callable[[], bool]


# ---------------------------------------------------------------------------
# Patient lifecycle
# ---------------------------------------------------------------------------

def create_patient(
    name: str,
    nomenclature: str,
    start_config: StartConfig,
    location: LocationType = LocationType.CABINET,
    address: Optional[str] = None,
    coordinates: Optional[Coordinates] = None,
    id_factory: IdFactory = generate_id,
) -> Patient:
    """Build a new patient with its initial sessions. Raises ScheduleValidationError."""
    ensure_valid_start_config(start_config)

    patient_id = id_factory()
    sessions = generate_sessions(patient_id, start_config, id_factory=id_factory)
    if not sessions:
        raise ScheduleValidationError(
            ["Configuration resulted in 0 sessions. Please check dates."]
        )

    logger.info(f"Created patient {patient_id} ({name}) with {len(sessions)} sessions")
    return Patient(
        id=patient_id,
        name=name,
        nomenclature=nomenclature,
        location=location,
        address=address,
        coordinates=coordinates,
        start_config=start_config,
        sessions=tuple(sessions),
    )


def schedule_changed(old: StartConfig, new: StartConfig) -> bool:
    return (
        old.schedule != new.schedule
        or old.start_date != new.start_date
        or old.duration != new.duration
    )


def edit_patient(
    patient: Patient,
    start_config: StartConfig,
    confirm: Optional[ConfirmFn] = None,
    today: Optional[date] = None,
    id_factory: IdFactory = generate_id,
) -> Patient:
    """
    Store a new StartConfig for `patient`.

    When the schedule, start date or duration policy changed and `confirm()`
    agrees (no confirm function means yes), future sessions are regenerated.
    Otherwise the existing sessions are kept as they are.
    """
    ensure_valid_start_config(start_config)

    if not schedule_changed(patient.start_config, start_config):
        return dataclasses.replace(patient, start_config=start_config)

    if confirm is not None and not confirm():
        logger.info(f"Regeneration declined for {patient.id}; keeping existing sessions")
        return dataclasses.replace(patient, start_config=start_config)

    sessions = regenerate_future_sessions(patient, start_config, today=today, id_factory=id_factory)
    return dataclasses.replace(patient, start_config=start_config, sessions=tuple(sessions))


# ---------------------------------------------------------------------------
# Session edits
# ---------------------------------------------------------------------------

def update_session(
    patient: Patient,
    session_id: str,
    changes: Dict[str, Any],
    today: Optional[date] = None,
    id_factory: IdFactory = generate_id,
    skip_dates: Container[str] = (),
) -> Patient:
    """
    Apply a partial update to one session.

    changes keys: status, date, time, is_locked, notes.
    Locking forces status COMPLETED. Locked sessions only accept the lock
    toggle. A transition into ABSENT on a SessionCount patient appends one
    makeup session, placed past any ISO date in `skip_dates`.
    """
    unknown = set(changes) - SESSION_FIELDS
    if unknown:
        raise ValueError(f"Unknown session fields: {sorted(unknown)}")

    old = patient.find_session(session_id)
    if old is None:
        raise SessionNotFoundError(f"Session {session_id} not found for patient {patient.id}")

    if old.is_locked and set(changes) - {"is_locked", "status"}:
        raise SessionLockedError(f"Session {session_id} is validated and cannot be edited")
    if old.is_locked and changes.get("is_locked", True) and "status" in changes:
        if SessionStatus(changes["status"]) is not SessionStatus.COMPLETED:
            raise SessionLockedError(f"Session {session_id} is validated and cannot change status")

    updates = dict(changes)
    if "status" in updates:
        updates["status"] = SessionStatus(updates["status"])
    if "date" in updates and not isinstance(updates["date"], date):
        updates["date"] = date.fromisoformat(str(updates["date"]))
    if updates.get("is_locked"):
        updates["status"] = SessionStatus.COMPLETED

    new = dataclasses.replace(old, **updates)
    sessions: List[Session] = [new if s.id == session_id else s for s in patient.sessions]

    if (new.status is SessionStatus.ABSENT
            and old.status is not SessionStatus.ABSENT
            and patient.start_config.is_count_bounded):
        interim = dataclasses.replace(patient, sessions=tuple(sessions))
        sessions.append(add_makeup_session(
            interim, today=today, id_factory=id_factory, skip_dates=skip_dates,
        ))

    return dataclasses.replace(patient, sessions=tuple(sort_sessions(sessions)))


# ---------------------------------------------------------------------------
# Holidays
# ---------------------------------------------------------------------------

def apply_holidays(
    patient: Patient,
    holidays: Dict[str, str],
    today: Optional[date] = None,
    id_factory: IdFactory = generate_id,
) -> Patient:
    """
    Mark Scheduled, unlocked sessions on holiday dates as Absent.

    Count-bounded patients get one makeup per affected session, appended in
    list order so each makeup anchors the next. Makeups never land on a
    date in `holidays`, so one pass settles the whole mapping. Re-running
    with the same mapping is a no-op once those sessions are Absent.
    """
    sessions: List[Session] = []
    affected = 0
    for s in patient.sessions:
        name = holidays.get(s.date.isoformat())
        if name and s.status is SessionStatus.SCHEDULED and not s.is_locked:
            sessions.append(dataclasses.replace(
                s, status=SessionStatus.ABSENT, notes=f"{HOLIDAY_NOTE_PREFIX}{name}"
            ))
            affected += 1
        else:
            sessions.append(s)

    if affected == 0:
        return patient

    if patient.start_config.is_count_bounded:
        for _ in range(affected):
            interim = dataclasses.replace(patient, sessions=tuple(sessions))
            sessions.append(add_makeup_session(
                interim, today=today, id_factory=id_factory, skip_dates=holidays,
            ))

    logger.info(f"Holidays: {affected} session(s) of {patient.id} marked absent")
    return dataclasses.replace(patient, sessions=tuple(sort_sessions(sessions)))


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

class PatientBook:
    """
    In-memory patient collection.

    Each mutating method computes the replacement patient with the pure
    functions above, then swaps it in while holding the lock.
    """

    def __init__(
        self,
        patients: Optional[Iterable[Patient]] = None,
        holidays: Optional[Dict[str, str]] = None,
        id_factory: IdFactory = generate_id,
    ):
        self._patients: Dict[str, Patient] = {p.id: p for p in (patients or [])}
        self._holidays: Dict[str, str] = dict(holidays or {})
        self._id_factory = id_factory
        self._lock = threading.Lock()

    @property
    def patients(self) -> List[Patient]:
        return list(self._patients.values())

    @property
    def holidays(self) -> Dict[str, str]:
        return dict(self._holidays)

    def get(self, patient_id: str) -> Patient:
        try:
            return self._patients[patient_id]
        except KeyError:
            raise PatientNotFoundError(f"Patient {patient_id} not found")

    def search(self, term: str) -> List[Patient]:
        term = term.lower()
        return [p for p in self._patients.values() if term in p.name.lower()]

    def add(
        self,
        name: str,
        nomenclature: str,
        start_config: StartConfig,
        location: LocationType = LocationType.CABINET,
        address: Optional[str] = None,
        coordinates: Optional[Coordinates] = None,
    ) -> Patient:
        patient = create_patient(
            name, nomenclature, start_config,
            location=location, address=address, coordinates=coordinates, id_factory=self._id_factory,
        )
        with self._lock:
            self._patients[patient.id] = patient
        return patient

    def edit(
        self,
        patient_id: str,
        start_config: StartConfig,
        confirm: Optional[ConfirmFn] = None,
        today: Optional[date] = None,
    ) -> Patient:
        """
        Store a new StartConfig. `confirm()` is asked before the lock is
        taken, so it may block on the user or call back into the book.
        """
        decided: Optional[bool] = None
        if confirm is not None and schedule_changed(self.get(patient_id).start_config, start_config):
            decided = confirm()

        with self._lock:
            updated = edit_patient(
                self.get(patient_id), start_config,
                confirm=None if decided is None else (lambda: decided),
                today=today, id_factory=self._id_factory,
            )
            self._patients[patient_id] = updated
        return updated

    def update_session(
        self,
        patient_id: str,
        session_id: str,
        changes: Dict[str, Any],
        today: Optional[date] = None,
    ) -> Patient:
        with self._lock:
            updated = update_session(
                self.get(patient_id), session_id, changes,
                today=today, id_factory=self._id_factory, skip_dates=self._holidays,
            )
            self._patients[patient_id] = updated
        return updated

    def sync_holidays(
        self,
        holidays: Dict[str, str],
        today: Optional[date] = None,
    ) -> int:
        """Merge `holidays` into the book and apply them. Returns patients changed."""
        with self._lock:
            self._holidays.update(holidays)
            changed = 0
            for pid, patient in list(self._patients.items()):
                updated = apply_holidays(patient, self._holidays, today=today, id_factory=self._id_factory)
                if updated is not patient:
                    self._patients[pid] = updated
                    changed += 1
        logger.info(f"Holiday sync: {len(self._holidays)} dates, {changed} patient(s) updated")
        return changed
