from game_lifecycle.db.models.core.game import Game
from game_lifecycle.db.models.ingestion.ingested_payload import IngestedPayload
from game_lifecycle.db.models.lifecycle.job_cursor import JobCursor
from game_lifecycle.db.models.lifecycle.job_lock import JobLock
from game_lifecycle.db.models.lifecycle.job_run import JobRun
from game_lifecycle.db.models.lifecycle.settlement_queue_item import SettlementQueueItem

__all__ = [
    "Game",
    "IngestedPayload",
    "JobCursor",
    "JobLock",
    "JobRun",
    "SettlementQueueItem",
]
