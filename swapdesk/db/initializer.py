import logging

log = logging.getLogger(__name__)


async def initialize_database(db_manager, config=None):
    log.info("Initializing database schema...")

    # one row per chat; data is the JSON-encoded session state
    session_state_table = """
    CREATE TABLE IF NOT EXISTS session_state (
        session_id TEXT PRIMARY KEY,
        data TEXT NOT NULL,
        expires_at REAL NOT NULL
    );
    """

    session_expiry_index = """
    CREATE INDEX IF NOT EXISTS idx_session_state_expires
        ON session_state (expires_at);
    """

    await db_manager.execute(session_state_table)
    await db_manager.execute(session_expiry_index)

    log.info("Database schema initialized")
