from game_lifecycle.db.base import Base
from game_lifecycle.db.engine import DatabaseConfig, create_db_engine, create_session_factory

__all__ = [
    "Base",
    "DatabaseConfig",
    "create_db_engine",
    "create_session_factory",
]
