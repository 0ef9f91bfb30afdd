"""
models.py — Patient / Session data model for ClinicFlow

Value types shared by the engine, the orchestrator and the persistence layer.
All of them are frozen dataclasses: operations build new values, they never
edit in place.

Persisted JSON shape (camelCase, kept for compatibility with stored data):
  {
    "id", "name", "nomenclature", "location", "address",
    "startConfig": {"startDate", "schedule": [{"day", "time"}],
                    "durationType", "endDate", "totalSessions"},
    "sessions": [{"id", "patientId", "date", "time", "status",
                  "isLocked", "notes"}]
  }

  day:  0-6, 0 = Sunday
  time: 24-hour HH:MM
  date: ISO YYYY-MM-DD
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class SessionStatus(Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"   # session took place
    ABSENT = "ABSENT"         # patient cancelled / missed
    CANCELLED = "CANCELLED"   # removed entirely, kept for audit


class DurationType(Enum):
    DATE_RANGE = "DATE_RANGE"
    SESSION_COUNT = "SESSION_COUNT"


class LocationType(Enum):
    CABINET = "CABINET"
    HOME = "HOME"


def parse_iso_date(value: Any, key: str = "date") -> date:
    """Parse YYYY-MM-DD (date objects pass through)."""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid ISO date for '{key}': {value!r}")


# ---------------------------------------------------------------------------
# Schedule configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScheduleConfig:
    """One weekly slot: weekday (0 = Sunday) and start time."""
    day: int
    time: str

    def to_dict(self) -> Dict[str, Any]:
        return {"day": self.day, "time": self.time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleConfig":
        try:
            return cls(day=int(data["day"]), time=str(data["time"]))
        except KeyError as e:
            raise ValueError(f"Schedule entry missing key {e}: {data!r}")


@dataclass(frozen=True)
class SessionCount:
    total: int

    @property
    def duration_type(self) -> DurationType:
        return DurationType.SESSION_COUNT


@dataclass(frozen=True)
class DateRange:
    end_date: date   # inclusive

    @property
    def duration_type(self) -> DurationType:
        return DurationType.DATE_RANGE


DurationPolicy = Union[SessionCount, DateRange]


@dataclass(frozen=True)
class StartConfig:
    start_date: date
    schedule: Tuple[ScheduleConfig, ...]
    duration: DurationPolicy

    def time_for_day(self, day: int) -> Optional[str]:
        """Scheduled time for weekday index `day` (0 = Sunday), or None."""
        for entry in self.schedule:
            if entry.day == day:
                return entry.time
        return None

    @property
    def is_count_bounded(self) -> bool:
        return isinstance(self.duration, SessionCount)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "startDate": self.start_date.isoformat(),
            "schedule": [s.to_dict() for s in self.schedule],
            "durationType": self.duration.duration_type.value,
        }
        if isinstance(self.duration, SessionCount):
            data["totalSessions"] = self.duration.total
        else:
            data["endDate"] = self.duration.end_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StartConfig":
        if "startDate" not in data:
            raise ValueError("startConfig missing key 'startDate'")
        raw_type = data.get("durationType", DurationType.SESSION_COUNT.value)
        try:
            duration_type = DurationType(raw_type)
        except ValueError:
            raise ValueError(f"Unknown durationType: {raw_type!r}")

        duration: DurationPolicy
        if duration_type is DurationType.SESSION_COUNT:
            if data.get("totalSessions") is None:
                raise ValueError("SESSION_COUNT startConfig missing 'totalSessions'")
            duration = SessionCount(total=int(data["totalSessions"]))
        else:
            if not data.get("endDate"):
                raise ValueError("DATE_RANGE startConfig missing 'endDate'")
            duration = DateRange(end_date=parse_iso_date(data["endDate"], "endDate"))

        return cls(
            start_date=parse_iso_date(data["startDate"], "startDate"),
            schedule=tuple(ScheduleConfig.from_dict(s) for s in data.get("schedule", [])),
            duration=duration,
        )


# ---------------------------------------------------------------------------
# Sessions & patients
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Session:
    id: str
    patient_id: str
    date: date
    time: str
    status: SessionStatus = SessionStatus.SCHEDULED
    is_locked: bool = False
    notes: Optional[str] = None

    @property
    def sort_key(self) -> Tuple[date, str]:
        return self.date, self.time

    @property
    def counts_as_completed(self) -> bool:
        """Locked (validated) sessions count as completed whatever their status."""
        return self.status is SessionStatus.COMPLETED or self.is_locked

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "patientId": self.patient_id,
            "date": self.date.isoformat(),
            "time": self.time,
            "status": self.status.value,
            "isLocked": self.is_locked,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        try:
            return cls(
                id=str(data["id"]),
                patient_id=str(data["patientId"]),
                date=parse_iso_date(data["date"]),
                time=str(data["time"]),
                status=SessionStatus(data.get("status", SessionStatus.SCHEDULED.value)),
                is_locked=bool(data.get("isLocked", False)),
                notes=data.get("notes"),
            )
        except KeyError as e:
            raise ValueError(f"Session record missing key {e}: {data!r}")


@dataclass(frozen=True)
class Coordinates:
    """Home-visit location, persisted as {"lat": .., "lng": ..}."""
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        try:
            return cls(lat=float(data["lat"]), lng=float(data["lng"]))
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Invalid coordinates: {data!r}")


@dataclass(frozen=True)
class Patient:
    id: str
    name: str
    nomenclature: str
    start_config: StartConfig
    sessions: Tuple[Session, ...] = ()
    location: LocationType = LocationType.CABINET
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    def find_session(self, session_id: str) -> Optional[Session]:
        for s in self.sessions:
            if s.id == session_id:
                return s
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "nomenclature": self.nomenclature,
            "location": self.location.value,
            "startConfig": self.start_config.to_dict(),
            "sessions": [s.to_dict() for s in self.sessions],
        }
        if self.address:
            data["address"] = self.address
        if self.coordinates is not None:
            data["coordinates"] = self.coordinates.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Patient":
        try:
            return cls(
                id=str(data["id"]),
                name=str(data.get("name", "")),
                nomenclature=str(data.get("nomenclature", "")),
                location=LocationType(data.get("location", LocationType.CABINET.value)),
                address=data.get("address"),
                coordinates=(
                    Coordinates.from_dict(data["coordinates"])
                    if data.get("coordinates") else None
                ),
                start_config=StartConfig.from_dict(data["startConfig"]),
                sessions=tuple(Session.from_dict(s) for s in data.get("sessions", [])),
            )
        except KeyError as e:
            raise ValueError(f"Patient record missing key {e}")


@dataclass(frozen=True)
class DayStats:
    date: date
    total_scheduled: int
    total_completed: int
    total_locked: int


def sort_sessions(sessions: List[Session]) -> List[Session]:
    """Ascending by (date, time); stable for equal keys."""
    return sorted(sessions, key=lambda s: s.sort_key)
