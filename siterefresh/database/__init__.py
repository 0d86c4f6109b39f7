"""
Database Package

SQLAlchemy models, session management and the repository used by the
pipeline and the API.
"""

from .models import (
    Base,
    UrlProfile,
    AnalysisRun,
    RunLayout,
    AgentSkill,
    IndustryBenchmark,
    PromptLog,
    RunStatus,
    TERMINAL_STATUSES,
    RESULT_STATUSES,
    MAX_LAYOUT_SLOTS,
)
from .session import (
    get_database_url,
    create_db_engine,
    get_engine,
    make_session_factory,
    get_session_factory,
    get_db_context,
    init_db,
    check_db_connection,
)
from .repository import Repository, TIMED_OUT_MESSAGE

__all__ = [
    "Base",
    "UrlProfile",
    "AnalysisRun",
    "RunLayout",
    "AgentSkill",
    "IndustryBenchmark",
    "PromptLog",
    "RunStatus",
    "TERMINAL_STATUSES",
    "RESULT_STATUSES",
    "MAX_LAYOUT_SLOTS",
    "get_database_url",
    "create_db_engine",
    "get_engine",
    "make_session_factory",
    "get_session_factory",
    "get_db_context",
    "init_db",
    "check_db_connection",
    "Repository",
    "TIMED_OUT_MESSAGE",
]
