"""Strip relationship records whose type is outside the closed taxonomy.

Chiefly legacy ``GODPARENT_GODCHILD`` values that ended up on
student<->student records; that kind only exists on guardian->student links.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from .models import Student
from .notes import parse_notes, stringify_notes
from .taxonomy import RelationshipTaxonomy

logger = logging.getLogger(__name__)

FAMILY_FIELD = "familyRelationships"
GUARDIAN_FIELD = "guardianRelationships"


@dataclass(frozen=True)
class FixResult:
    student_id: str
    student_name: str
    invalid_type: Optional[str]
    action: str  # removed | removed_self_reference | save_failed | skipped_unparseable
    field: str = ""


@dataclass
class MigrationResult:
    needs_migration: bool
    migrated_blob: Optional[str] = None
    removed: List[tuple] = field(default_factory=list)  # (field, invalid_type, reason)


def is_valid_student_relationship(value) -> bool:
    return RelationshipTaxonomy.is_valid_student_relationship(value)


def is_valid_guardian_relationship(value) -> bool:
    return RelationshipTaxonomy.is_valid_guardian_relationship(value)


def migrate_invalid_relationships(blob: Optional[str], student_id: Optional[str] = None) -> MigrationResult:
    """Dry run: report whether ``blob`` needs cleaning and return the cleaned blob.

    Nothing is persisted. When ``student_id`` is given, relationships pointing
    back at that student are stripped too.
    """
    notes = parse_notes(blob)
    if notes is None:
        return MigrationResult(needs_migration=False)

    removed: List[tuple] = []
    family = []
    for rel in notes.family_relationships:
        if not is_valid_student_relationship(rel.relationship_type):
            removed.append((FAMILY_FIELD, rel.relationship_type, "removed"))
        elif student_id is not None and rel.related_student_id == student_id:
            removed.append((FAMILY_FIELD, rel.relationship_type, "removed_self_reference"))
        else:
            family.append(rel)

    guardian = []
    for rel in notes.guardian_relationships:
        if is_valid_guardian_relationship(rel.relationship_type):
            guardian.append(rel)
        else:
            removed.append((GUARDIAN_FIELD, rel.relationship_type, "removed"))

    if not removed:
        return MigrationResult(needs_migration=False)

    notes.family_relationships = family
    notes.guardian_relationships = guardian
    migrated = stringify_notes(notes)
    if not migrated:
        # never trade a dirty blob for an empty one
        logger.error("Cleaned notes failed to serialize; leaving blob unchanged")
        return MigrationResult(needs_migration=False)
    return MigrationResult(needs_migration=True, migrated_blob=migrated, removed=removed)


def clean_invalid_relationships(
    students: Iterable[Student],
    save_notes: Callable[[str, str], None],
) -> List[FixResult]:
    """Clean every student's notes and persist through ``save_notes(student_id, blob)``.

    One student's malformed data or failed write never aborts the rest; those
    show up as ``skipped_unparseable`` / ``save_failed`` entries. Running it
    again after a partial run only touches the students still dirty.
    """
    fixes: List[FixResult] = []
    for student in students:
        if student.notes and student.notes.strip() and parse_notes(student.notes) is None:
            logger.warning("Skipping student %s (%s): unparseable notes", student.id, student.name)
            fixes.append(FixResult(student.id, student.name, None, "skipped_unparseable"))
            continue

        migration = migrate_invalid_relationships(student.notes, student_id=student.id)
        if not migration.needs_migration:
            continue

        try:
            save_notes(student.id, migration.migrated_blob)
            saved = True
        except Exception as e:
            logger.error("Could not save cleaned notes for %s: %s", student.id, e)
            saved = False

        for field_name, invalid_type, action in migration.removed:
            fixes.append(FixResult(
                student_id=student.id,
                student_name=student.name,
                invalid_type=invalid_type,
                action=action if saved else "save_failed",
                field=field_name,
            ))
        logger.info("Removed %d invalid relationship(s) from %s%s",
                    len(migration.removed), student.name, "" if saved else " (not saved)")

    return fixes
