"""
agenda.py — Calendar queries over the patient collection

Cancelled sessions never appear in any query here.
"""

import calendar
from datetime import date, timedelta
from typing import List, Tuple

from clinicflow.models import DayStats, Patient, Session, SessionStatus, sort_sessions

DaySession = Tuple[Patient, Session]


def sessions_on(patients: List[Patient], day: date) -> List[DaySession]:
    """(patient, session) pairs on `day`, sorted by time."""
    result: List[DaySession] = []
    for p in patients:
        for s in p.sessions:
            if s.date == day and s.status is not SessionStatus.CANCELLED:
                result.append((p, s))
    result.sort(key=lambda ps: ps[1].time or "00:00")
    return result


def day_stats(patients: List[Patient], day: date) -> DayStats:
    daily = [s for _, s in sessions_on(patients, day)]
    return DayStats(
        date=day,
        total_scheduled=len(daily),
        total_completed=sum(1 for s in daily if s.counts_as_completed),
        total_locked=sum(1 for s in daily if s.is_locked),
    )


def patient_progress(patient: Patient) -> int:
    """Rounded % of sessions completed or validated."""
    total = len(patient.sessions)
    if total == 0:
        return 0
    done = sum(1 for s in patient.sessions if s.counts_as_completed)
    return round(done / total * 100)


def last_active_session(patient: Patient):
    active = [s for s in patient.sessions if s.status is not SessionStatus.CANCELLED]
    if not active:
        return None
    return max(active, key=lambda s: s.sort_key)


def expiring_patients(
    patients: List[Patient],
    today: date,
    horizon_days: int = 30,
) -> List[Patient]:
    """Patients whose last non-cancelled session falls in (today, today + horizon]."""
    limit = today + timedelta(days=horizon_days)
    out = []
    for p in patients:
        last = last_active_session(p)
        if last is not None and today < last.date <= limit:
            out.append(p)
    return out


def unvalidated_sessions(patient: Patient) -> List[Session]:
    return sort_sessions([
        s for s in patient.sessions
        if not s.is_locked and s.status is not SessionStatus.CANCELLED
    ])


def dates_in_week(day: date) -> List[date]:
    """Sunday..Saturday week containing `day`."""
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    return [sunday + timedelta(days=i) for i in range(7)]


def dates_in_month(year: int, month: int) -> List[date]:
    _, n_days = calendar.monthrange(year, month)
    return [date(year, month, d) for d in range(1, n_days + 1)]
