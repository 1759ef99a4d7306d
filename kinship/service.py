"""Fetch a school's snapshot, run the engine, and apply side effects one student at a time."""
import logging
import kuzu

from . import changelog, crud
from .cleaner import FixResult, clean_invalid_relationships
from .diagnose import DiagnosisResult, diagnose_relationships
from .families import FamilyMetrics, family_metrics, filter_families, group_families
from .graph import TreeGraph, build_family_tree
from .propagate import PropagationResult, merge_inferred, propagate_relationships

logger = logging.getLogger(__name__)


def load_snapshot(conn: kuzu.Connection, school_id: str):
    students = crud.list_students(conn, school_id)
    guardians = crud.list_guardians(conn, school_id, {s.id for s in students})
    return students, guardians


def run_diagnosis(conn: kuzu.Connection, school_id: str, collapse_pairs: bool = False) -> DiagnosisResult:
    students, guardians = load_snapshot(conn, school_id)
    return diagnose_relationships(students, guardians, collapse_pairs=collapse_pairs)


def run_cleanup(conn: kuzu.Connection, school_id: str) -> list[FixResult]:
    students = crud.list_students(conn, school_id)

    def save(student_id: str, blob: str):
        crud.update_student_notes(conn, student_id, blob)

    fixes = clean_invalid_relationships(students, save)
    for fix in fixes:
        if fix.action.startswith("removed"):
            changelog.record_change(
                conn, school_id, fix.action, "student", fix.student_id,
                f"{fix.field}: {fix.invalid_type}",
            )
    return fixes


def run_propagation(conn: kuzu.Connection, school_id: str, apply: bool = False,
                    student_id: str | None = None) -> tuple[PropagationResult, list[str]]:
    """Propagate and optionally merge the result into stored notes.

    Returns the result (narrowed to ``student_id`` when given) and the
    per-student persistence errors.
    """
    students = crud.list_students(conn, school_id)
    result = propagate_relationships(students)
    if student_id is not None:
        narrowed = result.new_relationships.get(student_id, [])
        result = PropagationResult(
            new_relationships={student_id: narrowed} if narrowed else {},
            count=len(narrowed),
            details=[d for d in result.details if d.student_a_id == student_id],
            skipped=result.skipped,
        )

    errors: list[str] = []
    if not apply:
        return result, errors

    by_id = {s.id: s for s in students}
    for sid, inferred in result.new_relationships.items():
        student = by_id.get(sid)
        if student is None:
            continue
        try:
            crud.update_student_notes(conn, sid, merge_inferred(student.notes, inferred))
            changelog.record_change(conn, school_id, "propagate", "student", sid,
                                    f"{len(inferred)} inferred relationship(s)")
        except Exception as e:
            logger.error("Could not save inferred relationships for %s: %s", student.name, e)
            errors.append(f"{student.name}: {e}")
    return result, errors


def list_families(conn: kuzu.Connection, school_id: str, search: str = ""):
    students, guardians = load_snapshot(conn, school_id)
    return filter_families(group_families(students, guardians), search)


def school_metrics(conn: kuzu.Connection, school_id: str) -> tuple[FamilyMetrics, list]:
    students, guardians = load_snapshot(conn, school_id)
    families = group_families(students, guardians)
    return family_metrics(families, guardians), families


def build_school_tree(conn: kuzu.Connection, school_id: str, search: str = "") -> TreeGraph:
    return build_family_tree(list_families(conn, school_id, search))
