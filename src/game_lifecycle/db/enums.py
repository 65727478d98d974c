from __future__ import annotations

from enum import Enum, StrEnum


class ProviderEnum(StrEnum):
    API_SPORTS = "api_sports"


class LeagueEnum(str, Enum):
    NFL = "NFL"
    NBA = "NBA"
    NHL = "NHL"
    MLB = "MLB"
    SOCCER = "SOCCER"


class GameStatusEnum(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINAL = "FINAL"
    POSTPONED = "POSTPONED"
    CANCELED = "CANCELED"
    UNKNOWN = "UNKNOWN"


class WinnerSideEnum(str, Enum):
    HOME = "HOME"
    AWAY = "AWAY"
    DRAW = "DRAW"


class SettlementStatusEnum(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class JobNameEnum(StrEnum):
    DISCOVER = "discover"
    SYNC = "sync"
    FINALIZE = "finalize"
    SETTLE = "settle"
    FULL = "full"
    BACKFILL = "backfill"


class JobRunStatusEnum(StrEnum):
    RUNNING = "running"
    OK = "ok"
    ERROR = "error"


class RunTypeEnum(StrEnum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


TERMINAL_STATUSES = frozenset(
    {GameStatusEnum.FINAL, GameStatusEnum.CANCELED, GameStatusEnum.POSTPONED}
)
