"""KuzuDB embedded database holding the school roster."""
import os
import logging
import kuzu
from pathlib import Path

logger = logging.getLogger(__name__)

DB_PATH = Path(os.environ.get("DB_PATH", Path(__file__).resolve().parent.parent / "roster_data"))
_database = None


def get_database():
    global _database
    if _database is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _database = kuzu.Database(str(DB_PATH))
        _init_schema(_database)
        logger.info("Roster database opened at %s", DB_PATH)
    return _database


def _init_schema(db):
    conn = kuzu.Connection(db)

    # ── Roster ──
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Student("
        "id STRING, school_id STRING, name STRING, notes STRING, "
        "PRIMARY KEY(id))"
    )
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Guardian("
        "id STRING, school_id STRING, student_id STRING, name STRING, "
        "relation STRING, email STRING, phone STRING, "
        "PRIMARY KEY(id))"
    )
    conn.execute("CREATE REL TABLE IF NOT EXISTS GUARDIAN_OF(FROM Guardian TO Student)")

    # ── RosterChange (audit log) ──
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS RosterChange("
        "id STRING, school_id STRING, action STRING, entity_type STRING, "
        "entity_id STRING, details STRING, created_at STRING, "
        "PRIMARY KEY(id))"
    )


def get_conn():
    db = get_database()
    conn = kuzu.Connection(db)
    try:
        yield conn
    finally:
        pass
