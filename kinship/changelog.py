"""Roster change audit log."""
import uuid
from datetime import datetime, timezone
import kuzu


def record_change(conn: kuzu.Connection, school_id: str, action: str,
                  entity_type: str, entity_id: str, details: str = ""):
    """Record a roster change for the audit log."""
    cid = str(uuid.uuid4())
    now = datetime.now(timezone.utc).isoformat()
    conn.execute(
        "CREATE (c:RosterChange {id: $id, school_id: $sch, action: $action, "
        "entity_type: $etype, entity_id: $eid, details: $details, created_at: $ts})",
        {"id": cid, "sch": school_id, "action": action, "etype": entity_type,
         "eid": entity_id, "details": details, "ts": now}
    )
    return {"id": cid, "created_at": now}


def list_changes(conn: kuzu.Connection, school_id: str, limit: int = 50, offset: int = 0):
    """List recent changes for a school, newest first."""
    limit = max(1, min(int(limit), 200))
    offset = max(0, int(offset))
    result = conn.execute(
        f"MATCH (c:RosterChange) WHERE c.school_id = $sch "
        f"RETURN c.id, c.school_id, c.action, c.entity_type, c.entity_id, "
        f"c.details, c.created_at "
        f"ORDER BY c.created_at DESC "
        f"SKIP {offset} LIMIT {limit}",
        {"sch": school_id}
    )
    changes = []
    while result.has_next():
        row = result.get_next()
        changes.append({
            "id": row[0],
            "school_id": row[1],
            "action": row[2],
            "entity_type": row[3],
            "entity_id": row[4],
            "details": row[5],
            "created_at": row[6],
        })
    return changes
