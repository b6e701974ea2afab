"""
daysync.tier0_core.snapshot
────────────────────────────
Value types shared by every component: the immutable TimeSnapshot, the
process-wide SyncState, and the DayChangeEvent.

SyncState is frozen too. SyncStateStore swaps the whole value in a single
assignment, so a reader never sees a half-applied multi-field update even
when the writer suspends between computing and committing it.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class SnapshotSource(str, Enum):
    AUTHORITY = "authority"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DayBoundaries:
    """UTC instants bounding the user's local calendar day."""
    start_utc: str
    end_utc: str


@dataclass(frozen=True)
class TimeSnapshot:
    """Date/time facts for the user, replaced wholesale on every refresh."""
    user_date: str              # "2025-06-23"
    user_datetime: str          # "2025-06-23T14:30:45"
    user_timezone: str          # "America/New_York"
    utc_datetime: str           # "2025-06-23T18:30:45Z"
    is_mock_date: bool
    day_of_week: str            # "Monday"
    week_number: int
    is_weekend: bool
    day_boundaries: DayBoundaries
    source: SnapshotSource = SnapshotSource.AUTHORITY

    @property
    def is_authoritative(self) -> bool:
        return self.source is SnapshotSource.AUTHORITY

    def as_dict(self) -> dict[str, Any]:
        return {
            "user_date": self.user_date,
            "user_datetime": self.user_datetime,
            "user_timezone": self.user_timezone,
            "utc_datetime": self.utc_datetime,
            "is_mock_date": self.is_mock_date,
            "day_of_week": self.day_of_week,
            "week_number": self.week_number,
            "is_weekend": self.is_weekend,
            "day_boundaries": {
                "start_utc": self.day_boundaries.start_utc,
                "end_utc": self.day_boundaries.end_utc,
            },
            "source": self.source.value,
        }


@dataclass(frozen=True)
class DayChangeEvent:
    old_date: str
    new_date: str
    timezone: str


@dataclass(frozen=True)
class SyncState:
    current_time: TimeSnapshot | None = None
    last_sync_at: datetime | None = None
    is_online: bool = True
    sync_in_progress: bool = False
    consecutive_sync_errors: int = 0
    is_ready: bool = False


@dataclass
class SyncStateStore:
    """Holds the single SyncState for a TimeService instance."""
    _state: SyncState = field(default_factory=SyncState)

    @property
    def state(self) -> SyncState:
        return self._state

    def update(self, **changes: Any) -> SyncState:
        """Commit *changes* as one new SyncState. is_ready never reverts to False."""
        if self._state.is_ready:
            changes["is_ready"] = True
        self._state = replace(self._state, **changes)
        return self._state


__all__ = [
    "SnapshotSource",
    "DayBoundaries",
    "TimeSnapshot",
    "DayChangeEvent",
    "SyncState",
    "SyncStateStore",
]
