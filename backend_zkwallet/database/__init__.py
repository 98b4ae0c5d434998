"""
Persistence layer: SQLAlchemy tables (tables.py), detached records (models.py)
and query functions (repositories.py).
"""

from backend_zkwallet.database.tables import init_db, reset_engine_for_test, session_scope

__all__ = ["init_db", "reset_engine_for_test", "session_scope"]
