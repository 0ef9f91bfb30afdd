"""
Tests for the session engine (generation, makeup sessions, regeneration)
"""

import itertools
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from clinicflow.engine import (
    FALLBACK_SESSION_TIME,
    MAKEUP_NOTE,
    MAX_GENERATION_DAYS,
    add_makeup_session,
    day_index,
    generate_id,
    generate_sessions,
    regenerate_future_sessions,
)
from clinicflow.models import (
    DateRange,
    Patient,
    ScheduleConfig,
    Session,
    SessionCount,
    SessionStatus,
    StartConfig,
)


def counter_ids(prefix="s"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


MON_WED = (ScheduleConfig(1, "09:00"), ScheduleConfig(3, "14:00"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    """Weekday and id helpers"""

    def test_day_index_sunday_is_zero(self):
        """Weekdays are numbered from Sunday = 0"""
        assert day_index(date(2024, 1, 7)) == 0   # Sunday
        assert day_index(date(2024, 1, 1)) == 1   # Monday
        assert day_index(date(2024, 1, 6)) == 6   # Saturday

    def test_generate_id_shape(self):
        """Ids are 9 lowercase alphanumerics"""
        ids = {generate_id() for _ in range(50)}
        assert len(ids) == 50
        for i in ids:
            assert len(i) == 9
            assert i.isalnum() and i == i.lower()


# ---------------------------------------------------------------------------
# generate_sessions
# ---------------------------------------------------------------------------

class TestGenerateSessions:
    """Expanding a weekly schedule into dated sessions"""

    def test_concrete_scenario(self):
        """Mon 09:00 + Wed 14:00 from 2024-01-01, 4 sessions"""
        config = StartConfig(date(2024, 1, 1), MON_WED, SessionCount(4))
        sessions = generate_sessions("p1", config, id_factory=counter_ids())
        assert [(s.date.isoformat(), s.time) for s in sessions] == [
            ("2024-01-01", "09:00"),
            ("2024-01-03", "14:00"),
            ("2024-01-08", "09:00"),
            ("2024-01-10", "14:00"),
        ]
        for s in sessions:
            assert s.status is SessionStatus.SCHEDULED
            assert s.is_locked is False
            assert s.patient_id == "p1"
            assert s.notes is None

    def test_deterministic(self):
        """Same config and id factory give the same sessions"""
        config = StartConfig(date(2024, 3, 4), MON_WED, SessionCount(12))
        first = generate_sessions("p1", config, id_factory=counter_ids())
        second = generate_sessions("p1", config, id_factory=counter_ids())
        assert first == second

    def test_count_termination(self):
        """Exactly `total` sessions, all on scheduled weekdays"""
        config = StartConfig(date(2024, 2, 14), MON_WED, SessionCount(15))
        sessions = generate_sessions("p1", config)
        assert len(sessions) == 15
        allowed = {e.day for e in MON_WED}
        assert all(day_index(s.date) in allowed for s in sessions)
        dates = [s.date for s in sessions]
        assert dates == sorted(dates)

    def test_already_counted_reduces_output(self):
        """Consumed sessions reduce what is generated"""
        config = StartConfig(date(2024, 1, 1), MON_WED, SessionCount(10))
        assert len(generate_sessions("p1", config, already_counted=7)) == 3
        assert generate_sessions("p1", config, already_counted=10) == []
        assert generate_sessions("p1", config, already_counted=12) == []

    def test_date_range_inclusive(self):
        """Every scheduled weekday up to and including the end date"""
        start, end = date(2024, 1, 1), date(2024, 1, 31)
        config = StartConfig(start, MON_WED, DateRange(end))
        sessions = generate_sessions("p1", config)
        assert all(start <= s.date <= end for s in sessions)
        # every Monday and Wednesday of January 2024
        expected = [
            start + timedelta(days=i) for i in range(31)
            if day_index(start + timedelta(days=i)) in (1, 3)
        ]
        assert [s.date for s in sessions] == expected
        assert sessions[-1].date == date(2024, 1, 31)   # Wednesday, bound included

    def test_date_range_end_before_start(self):
        """An inverted range yields nothing"""
        config = StartConfig(date(2024, 1, 10), MON_WED, DateRange(date(2024, 1, 1)))
        assert generate_sessions("p1", config) == []

    def test_empty_schedule_terminates(self):
        """No weekdays selected still terminates"""
        config = StartConfig(date(2024, 1, 1), (), SessionCount(5))
        assert generate_sessions("p1", config) == []

    def test_safety_bound_caps_generation(self):
        """An unreachable total stops at the day bound"""
        # one slot a week: 500 days hold 72 Mondays at most
        config = StartConfig(date(2024, 1, 1), (ScheduleConfig(1, "09:00"),), SessionCount(1000))
        sessions = generate_sessions("p1", config)
        assert 0 < len(sessions) < 1000
        assert sessions[-1].date < date(2024, 1, 1) + timedelta(days=MAX_GENERATION_DAYS)

    def test_long_date_range_capped(self):
        """A multi-year range stops at the day bound"""
        config = StartConfig(
            date(2024, 1, 1), (ScheduleConfig(1, "09:00"),), DateRange(date(2030, 1, 1))
        )
        sessions = generate_sessions("p1", config)
        assert sessions[-1].date < date(2024, 1, 1) + timedelta(days=MAX_GENERATION_DAYS)


# ---------------------------------------------------------------------------
# add_makeup_session
# ---------------------------------------------------------------------------

class TestAddMakeupSession:
    """Replacement session after an absence"""

    @pytest.fixture
    def monday_patient(self):
        config = StartConfig(date(2024, 1, 1), (ScheduleConfig(1, "09:00"),), SessionCount(2))
        sessions = (
            Session("a", "p1", date(2024, 1, 1), "09:00", SessionStatus.COMPLETED),
            Session("b", "p1", date(2024, 1, 8), "09:00", SessionStatus.ABSENT),
        )
        return Patient("p1", "Jane Doe", "AMS 7.5", config, sessions)

    def test_next_week_same_time(self, monday_patient):
        """Absence on a Monday gets next Monday at the same time"""
        makeup = add_makeup_session(monday_patient, id_factory=lambda: "m1")
        assert makeup.date == date(2024, 1, 15)
        assert makeup.time == "09:00"
        assert makeup.status is SessionStatus.SCHEDULED
        assert makeup.is_locked is False
        assert makeup.notes == MAKEUP_NOTE
        assert makeup.id == "m1"
        assert makeup.patient_id == "p1"

    def test_uses_chronological_last(self, monday_patient):
        """The anchor is the latest session, not the last list entry"""
        # list order no longer chronological
        shuffled = Patient(
            "p1", "Jane Doe", "AMS 7.5", monday_patient.start_config,
            tuple(reversed(monday_patient.sessions)),
        )
        assert add_makeup_session(shuffled).date == date(2024, 1, 15)

    def test_picks_first_matching_weekday(self):
        """The first scheduled weekday after the anchor wins"""
        config = StartConfig(date(2024, 1, 1), MON_WED, SessionCount(4))
        sessions = (Session("a", "p1", date(2024, 1, 1), "09:00"),)
        patient = Patient("p1", "Jane", "", config, sessions)
        makeup = add_makeup_session(patient)
        assert (makeup.date, makeup.time) == (date(2024, 1, 3), "14:00")

    def test_skips_given_dates(self, monday_patient):
        """Dates in skip_dates are passed over"""
        makeup = add_makeup_session(monday_patient, skip_dates={"2024-01-15", "2024-01-22"})
        assert makeup.date == date(2024, 1, 29)

    def test_no_sessions_searches_from_today(self):
        """Without sessions the search starts today"""
        config = StartConfig(date(2024, 1, 1), (ScheduleConfig(5, "10:30"),), SessionCount(4))
        patient = Patient("p1", "Jane", "", config, ())
        today = date(2024, 5, 1)   # Wednesday
        makeup = add_makeup_session(patient, today=today)
        assert makeup.date == date(2024, 5, 3)   # Friday
        assert makeup.time == "10:30"

    def test_today_counts_when_no_sessions(self):
        """Today itself is a valid makeup date"""
        config = StartConfig(date(2024, 1, 1), (ScheduleConfig(3, "10:30"),), SessionCount(4))
        patient = Patient("p1", "Jane", "", config, ())
        assert add_makeup_session(patient, today=date(2024, 5, 1)).date == date(2024, 5, 1)

    def test_fallback_when_schedule_empty(self):
        """No weekday found: today at the fallback time"""
        config = StartConfig(date(2024, 1, 1), (), SessionCount(4))
        patient = Patient("p1", "Jane", "", config, ())
        today = date(2024, 6, 1)
        makeup = add_makeup_session(patient, today=today)
        assert makeup.date == today
        assert makeup.time == FALLBACK_SESSION_TIME
        assert makeup.status is SessionStatus.SCHEDULED
        assert makeup.notes == MAKEUP_NOTE


# ---------------------------------------------------------------------------
# regenerate_future_sessions
# ---------------------------------------------------------------------------

class TestRegenerateFutureSessions:
    """Rebuilding future sessions after a schedule edit"""

    TODAY = date(2024, 2, 1)   # Thursday

    @pytest.fixture
    def patient(self):
        """Mondays, budget 10; history before today, a mix of touched and untouched after."""
        config = StartConfig(date(2024, 1, 1), (ScheduleConfig(1, "09:00"),), SessionCount(10))
        S = SessionStatus
        sessions = (
            Session("c1", "p1", date(2024, 1, 1), "09:00", S.COMPLETED),
            Session("c2", "p1", date(2024, 1, 8), "09:00", S.COMPLETED),
            Session("a1", "p1", date(2024, 1, 15), "09:00", S.ABSENT, notes="sick"),
            Session("c3", "p1", date(2024, 1, 22), "09:00", S.COMPLETED),
            Session("c4", "p1", date(2024, 1, 29), "09:00", S.COMPLETED, is_locked=True),
            Session("x1", "p1", date(2024, 2, 1), "09:00", S.SCHEDULED),   # today
            Session("f1", "p1", date(2024, 2, 5), "09:00", S.SCHEDULED),
            Session("f2", "p1", date(2024, 2, 12), "09:00", S.ABSENT),     # future, interacted
            Session("f3", "p1", date(2024, 2, 19), "09:00", S.SCHEDULED),
            Session("f4", "p1", date(2024, 2, 26), "09:00", S.SCHEDULED, is_locked=True),
        )
        return Patient("p1", "Jane", "AMS", config, sessions)

    def _regen(self, patient, config):
        return regenerate_future_sessions(patient, config, today=self.TODAY, id_factory=counter_ids("n"))

    def test_preserves_history(self, patient):
        """Touched, locked and past sessions survive unchanged"""
        new_config = StartConfig(date(2024, 1, 1), MON_WED, SessionCount(10))
        result = self._regen(patient, new_config)
        kept = {"c1", "c2", "a1", "c3", "c4", "x1", "f2", "f4"}
        by_id = {s.id: s for s in result}
        for s in patient.sessions:
            if s.id in kept:
                assert by_id[s.id] == s
        assert "f1" not in by_id and "f3" not in by_id

    def test_budget_continuity(self, patient):
        """Completed and locked sessions count toward the total"""
        # consumed = c1, c2, c3, c4 (locked), f4 (locked) = 5; absences don't count
        new_config = StartConfig(date(2024, 1, 1), MON_WED, SessionCount(10))
        result = self._regen(patient, new_config)
        new = [s for s in result if s.id.startswith("n")]
        assert len(new) == 5
        assert all(s.date > self.TODAY for s in new)
        assert all(s.status is SessionStatus.SCHEDULED for s in new)

    def test_four_completed_gives_six(self):
        """10 total with 4 completed regenerates 6"""
        config = StartConfig(date(2024, 1, 1), (ScheduleConfig(1, "09:00"),), SessionCount(10))
        S = SessionStatus
        sessions = (
            Session("c1", "p1", date(2024, 1, 1), "09:00", S.COMPLETED),
            Session("a1", "p1", date(2024, 1, 8), "09:00", S.ABSENT),
            Session("c2", "p1", date(2024, 1, 15), "09:00", S.COMPLETED),
            Session("c3", "p1", date(2024, 1, 22), "09:00", S.COMPLETED),
            Session("c4", "p1", date(2024, 1, 29), "09:00", S.COMPLETED),
            Session("f1", "p1", date(2024, 2, 5), "09:00", S.SCHEDULED),
        )
        patient = Patient("p1", "Jane", "", config, sessions)
        result = self._regen(patient, config)
        new = [s for s in result if s.id.startswith("n")]
        assert len(new) == 6
        assert new[0].date == date(2024, 2, 5)

    def test_starts_tomorrow_when_config_in_past(self, patient):
        """Generation never restarts before tomorrow"""
        # Thursday/Friday cadence; tomorrow (Friday 2024-02-02) is eligible
        new_config = StartConfig(
            date(2023, 12, 1), (ScheduleConfig(4, "08:00"), ScheduleConfig(5, "08:00")), SessionCount(10)
        )
        result = self._regen(patient, new_config)
        new = [s for s in result if s.id.startswith("n")]
        assert new[0].date == date(2024, 2, 2)
        assert not any(s.date == self.TODAY for s in new)

    def test_future_start_date_honoured(self, patient):
        """A later start date is respected"""
        new_config = StartConfig(date(2024, 3, 4), MON_WED, SessionCount(10))
        result = self._regen(patient, new_config)
        new = [s for s in result if s.id.startswith("n")]
        assert new[0].date == date(2024, 3, 4)

    def test_result_sorted(self, patient):
        """Result is in (date, time) order"""
        new_config = StartConfig(date(2024, 1, 1), MON_WED, DateRange(date(2024, 3, 31)))
        result = self._regen(patient, new_config)
        keys = [s.sort_key for s in result]
        assert keys == sorted(keys)

    def test_date_range_ignores_consumption(self, patient):
        """Date ranges regenerate every remaining weekday"""
        new_config = StartConfig(date(2024, 1, 1), (ScheduleConfig(1, "09:00"),), DateRange(date(2024, 2, 29)))
        result = self._regen(patient, new_config)
        new = [s for s in result if s.id.startswith("n")]
        assert [s.date for s in new] == [
            date(2024, 2, 5), date(2024, 2, 12), date(2024, 2, 19), date(2024, 2, 26),
        ]

    def test_does_not_mutate_input(self, patient):
        """The input patient is left untouched"""
        before = patient.sessions
        self._regen(patient, StartConfig(date(2024, 1, 1), MON_WED, SessionCount(10)))
        assert patient.sessions is before
