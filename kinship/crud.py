"""Roster CRUD: students, guardians, and stored notes."""
import uuid
import kuzu

from .models import Guardian, GuardianRole, Student

_ROLES = {r.value for r in GuardianRole}


def _student(row) -> Student:
    return Student(id=row[0], school_id=row[1], name=row[2], notes=row[3] or None)


def _guardian(row) -> Guardian:
    return Guardian(id=row[0], school_id=row[1], student_id=row[2], name=row[3],
                    relation=row[4], email=row[5] or None, phone=row[6] or None)


def create_student(conn: kuzu.Connection, school_id: str, name: str,
                   notes: str | None = None, student_id: str | None = None) -> Student:
    name = (name or "").strip()
    if not name:
        raise ValueError("Student name is required")
    sid = student_id or str(uuid.uuid4())
    conn.execute(
        "CREATE (s:Student {id: $id, school_id: $sch, name: $name, notes: $notes})",
        {"id": sid, "sch": school_id, "name": name, "notes": notes or ""}
    )
    return Student(id=sid, school_id=school_id, name=name, notes=notes or None)


def get_student(conn: kuzu.Connection, student_id: str, school_id: str | None = None) -> Student | None:
    result = conn.execute(
        "MATCH (s:Student) WHERE s.id = $id RETURN s.id, s.school_id, s.name, s.notes",
        {"id": student_id}
    )
    if result.has_next():
        student = _student(result.get_next())
        if school_id is None or student.school_id == school_id:
            return student
    return None


def list_students(conn: kuzu.Connection, school_id: str) -> list[Student]:
    result = conn.execute(
        "MATCH (s:Student) WHERE s.school_id = $sch "
        "RETURN s.id, s.school_id, s.name, s.notes ORDER BY s.name",
        {"sch": school_id}
    )
    students = []
    while result.has_next():
        students.append(_student(result.get_next()))
    return students


def update_student_notes(conn: kuzu.Connection, student_id: str, notes: str):
    if get_student(conn, student_id) is None:
        raise ValueError(f"Student {student_id} not found")
    conn.execute(
        "MATCH (s:Student) WHERE s.id = $id SET s.notes = $notes",
        {"id": student_id, "notes": notes or ""}
    )


def create_guardian(conn: kuzu.Connection, student_id: str, name: str, relation: str,
                    email: str | None = None, phone: str | None = None) -> Guardian:
    student = get_student(conn, student_id)
    if student is None:
        raise ValueError(f"Student {student_id} not found")
    if relation not in _ROLES:
        raise ValueError(f"Unknown guardian relation {relation!r}")
    name = (name or "").strip()
    if not name:
        raise ValueError("Guardian name is required")
    gid = str(uuid.uuid4())
    conn.execute(
        "CREATE (g:Guardian {id: $id, school_id: $sch, student_id: $sid, name: $name, "
        "relation: $rel, email: $email, phone: $phone})",
        {"id": gid, "sch": student.school_id, "sid": student_id, "name": name,
         "rel": relation, "email": email or "", "phone": phone or ""}
    )
    conn.execute(
        "MATCH (g:Guardian), (s:Student) WHERE g.id = $gid AND s.id = $sid "
        "CREATE (g)-[:GUARDIAN_OF]->(s)",
        {"gid": gid, "sid": student_id}
    )
    return Guardian(id=gid, school_id=student.school_id, student_id=student_id, name=name,
                    relation=relation, email=email or None, phone=phone or None)


def list_guardians(conn: kuzu.Connection, school_id: str,
                   student_ids: set[str] | None = None) -> list[Guardian]:
    """Guardians of a school's students, optionally narrowed to ``student_ids``."""
    result = conn.execute(
        "MATCH (g:Guardian)-[:GUARDIAN_OF]->(s:Student) WHERE s.school_id = $sch "
        "RETURN g.id, g.school_id, g.student_id, g.name, g.relation, g.email, g.phone "
        "ORDER BY g.name",
        {"sch": school_id}
    )
    guardians = []
    while result.has_next():
        g = _guardian(result.get_next())
        if student_ids is None or g.student_id in student_ids:
            guardians.append(g)
    return guardians
