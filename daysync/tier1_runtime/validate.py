"""
daysync.tier1_runtime.validate
───────────────────────────────
Parse-and-validate for time authority responses via Pydantic v2.

parse_time_payload never raises: it returns a tagged result, either
ParsedSnapshot or ContractViolation, so the "missing field" path is an
ordinary branch in the sync coordinator. validate_input raises
ContractViolationError (not raw Pydantic errors) for auxiliary endpoints.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic import field_validator

from daysync.tier0_core.errors import ContractViolationError
from daysync.tier0_core.redact import redact_dict
from daysync.tier0_core.snapshot import DayBoundaries, SnapshotSource, TimeSnapshot
from daysync.tier1_runtime.clock import Clock, format_utc

T = TypeVar("T", bound=BaseModel)


# ── Wire contract: GET /time/current ─────────────────────────────────────────

class DayBoundariesPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start_utc: str
    end_utc: str


class TimePayload(BaseModel):
    """Canonical response body of the time authority."""

    model_config = ConfigDict(extra="ignore")

    user_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    user_datetime: str = Field(min_length=1)
    timezone_id: str = Field(min_length=1)
    server_utc: str | None = None
    is_mock_enabled: bool = False
    day_of_week: str = "Unknown"
    week_number: int = 0
    is_weekend: bool = False
    day_boundaries: DayBoundariesPayload | None = None

    @field_validator("user_date")
    @classmethod
    def validate_calendar_date(cls, v: str) -> str:
        date.fromisoformat(v)
        return v


# ── Tagged parse result ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParsedSnapshot:
    snapshot: TimeSnapshot


@dataclass(frozen=True)
class ContractViolation:
    error: ContractViolationError


ParseResult = Union[ParsedSnapshot, ContractViolation]


def _field_errors(exc: PydanticValidationError) -> dict[str, str]:
    return {
        ".".join(str(loc) for loc in err["loc"]) or "__root__": err["msg"]
        for err in exc.errors()
    }


def parse_time_payload(payload: Any, clock: Clock) -> ParseResult:
    """
    Transform a raw /time/current body into an authoritative TimeSnapshot.
    Optional fields the authority omits get neutral defaults; the server
    instant defaults to the device clock.
    """
    safe_payload = redact_dict(payload) if isinstance(payload, dict) else payload
    if not isinstance(payload, dict):
        return ContractViolation(ContractViolationError(
            detail=f"expected a JSON object, got {type(payload).__name__}",
            fields={"__root__": "expected a JSON object"},
            payload=safe_payload,
        ))

    try:
        body = TimePayload.model_validate(payload)
    except PydanticValidationError as exc:
        fields = _field_errors(exc)
        return ContractViolation(ContractViolationError(
            detail=f"time authority response failed validation: {sorted(fields)}",
            fields=fields,
            payload=safe_payload,
        ))

    server_utc = body.server_utc or format_utc(clock.now())
    boundaries = body.day_boundaries
    snapshot = TimeSnapshot(
        user_date=body.user_date,
        user_datetime=body.user_datetime,
        user_timezone=body.timezone_id,
        utc_datetime=server_utc,
        is_mock_date=body.is_mock_enabled,
        day_of_week=body.day_of_week,
        week_number=body.week_number,
        is_weekend=body.is_weekend,
        day_boundaries=DayBoundaries(
            start_utc=boundaries.start_utc if boundaries else server_utc,
            end_utc=boundaries.end_utc if boundaries else server_utc,
        ),
        source=SnapshotSource.AUTHORITY,
    )
    return ParsedSnapshot(snapshot)


# ── Auxiliary contracts ──────────────────────────────────────────────────────

def validate_input(model: Type[T], data: Any) -> T:
    """
    Validate raw data against a Pydantic model.
    Raises ContractViolationError (not Pydantic's) on failure.

    Usage:
        info = validate_input(WeekInfo, response_body)
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ContractViolationError(
            user_message=f"{model.__name__} response failed validation.",
            fields=_field_errors(exc),
            payload=redact_dict(data) if isinstance(data, dict) else data,
        ) from exc


__all__ = [
    "TimePayload",
    "ParsedSnapshot",
    "ContractViolation",
    "ParseResult",
    "parse_time_payload",
    "validate_input",
]
