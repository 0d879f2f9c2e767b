# Re-export the canonical database helpers so app code can depend on app.persistence.database
from ..database import engine, create_db_and_tables, get_session, session_scope

__all__ = [
    "engine",
    "create_db_and_tables",
    "get_session",
    "session_scope",
]
