"""
daysync
────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from daysync.tier0_core.logging import get_logger
from daysync.tier0_core.errors import (
    TimeSyncError,
    AuthRequiredError,
    ForbiddenError,
    NetworkUnavailableError,
    SyncTimeoutError,
    UpstreamError,
    ContractViolationError,
    UserCommandError,
    ConfigurationError,
    configure_sentry,
)
from daysync.tier0_core.config import get_config, TimeSyncConfig
from daysync.tier0_core.snapshot import (
    DayBoundaries,
    DayChangeEvent,
    SnapshotSource,
    SyncState,
    TimeSnapshot,
)

from daysync.tier1_runtime.clock import Clock, resolve_local_timezone
from daysync.tier1_runtime.dates import (
    TimeFilter,
    format_relative_date,
    format_user_date,
    get_date_range,
    get_month_range,
    get_start_of_month,
    get_start_of_week,
    get_week_range,
)

from daysync.tier2_reliability.cache import DateKeyedCache, MemoryCache
from daysync.tier2_reliability.fallback import build_fallback_snapshot

from daysync.tier3_platform.api_client import TimeApiClient
from daysync.tier3_platform.timezones import TimezoneInfo, WeekInfo, TimeSyncCheck

from daysync.service import TimeService

__version__ = "0.1.0"
__all__ = [
    # facade
    "TimeService",
    # logging
    "get_logger",
    # errors
    "TimeSyncError", "AuthRequiredError", "ForbiddenError",
    "NetworkUnavailableError", "SyncTimeoutError", "UpstreamError",
    "ContractViolationError", "UserCommandError", "ConfigurationError",
    "configure_sentry",
    # config
    "get_config", "TimeSyncConfig",
    # data model
    "DayBoundaries", "DayChangeEvent", "SnapshotSource", "SyncState", "TimeSnapshot",
    # clock
    "Clock", "resolve_local_timezone",
    # dates
    "TimeFilter", "format_relative_date", "format_user_date", "get_date_range",
    "get_month_range", "get_start_of_month", "get_start_of_week", "get_week_range",
    # cache
    "DateKeyedCache", "MemoryCache",
    # fallback
    "build_fallback_snapshot",
    # http
    "TimeApiClient",
    # auxiliary endpoints
    "TimezoneInfo", "WeekInfo", "TimeSyncCheck",
]
