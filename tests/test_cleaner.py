"""Tests for kinship/cleaner.py — removal of out-of-taxonomy relationship records."""
import json

from kinship.cleaner import (
    clean_invalid_relationships,
    is_valid_guardian_relationship,
    is_valid_student_relationship,
    migrate_invalid_relationships,
)
from kinship.models import Student
from kinship.notes import parse_notes

from conftest import notes_blob, rel, student


def _guardian_rel(rel_type, guardian_of="a"):
    return {"guardianId": "g9", "guardianName": "Tia", "guardianOf": guardian_of, "relationshipType": rel_type}


class TestValidity:
    def test_student(self):
        assert is_valid_student_relationship("COUSIN")
        assert not is_valid_student_relationship("GODPARENT_GODCHILD")

    def test_guardian(self):
        assert is_valid_guardian_relationship("GODPARENT")
        assert not is_valid_guardian_relationship("COUSIN")


class TestMigrate:
    def test_clean_blob_untouched(self):
        result = migrate_invalid_relationships(notes_blob(rel("b", "SIBLING")))
        assert result.needs_migration is False
        assert result.migrated_blob is None

    def test_empty_and_malformed(self):
        assert migrate_invalid_relationships(None).needs_migration is False
        assert migrate_invalid_relationships("{bad").needs_migration is False

    def test_removes_legacy_godparent(self):
        blob = notes_blob(rel("b", "SIBLING"), rel("c", "GODPARENT_GODCHILD"))
        result = migrate_invalid_relationships(blob)
        assert result.needs_migration is True
        kept = parse_notes(result.migrated_blob).family_relationships
        assert [r.related_student_id for r in kept] == ["b"]
        assert result.removed == [("familyRelationships", "GODPARENT_GODCHILD", "removed")]

    def test_removes_invalid_guardian_relationships(self):
        blob = notes_blob(guardian=[_guardian_rel("GODPARENT"), _guardian_rel("SIBLING")])
        result = migrate_invalid_relationships(blob)
        kept = parse_notes(result.migrated_blob).guardian_relationships
        assert [g.relationship_type for g in kept] == ["GODPARENT"]
        assert result.removed[0][0] == "guardianRelationships"

    def test_self_reference(self):
        result = migrate_invalid_relationships(notes_blob(rel("a", "SIBLING")), student_id="a")
        assert result.needs_migration is True
        assert parse_notes(result.migrated_blob).family_relationships == []
        assert result.removed[0][2] == "removed_self_reference"

    def test_preserves_unknown_keys(self):
        blob = notes_blob(rel("c", "GODPARENT_GODCHILD"), medical="asthma")
        result = migrate_invalid_relationships(blob)
        assert json.loads(result.migrated_blob)["medical"] == "asthma"


class TestCleanInvalid:
    def test_saves_and_reports(self):
        saved = {}
        students = [
            student("a", "A", rel("b", "GODPARENT_GODCHILD")),
            student("b", "B", rel("a", "SIBLING")),
        ]
        fixes = clean_invalid_relationships(students, lambda sid, blob: saved.__setitem__(sid, blob))
        assert list(saved) == ["a"]
        assert len(fixes) == 1
        fix = fixes[0]
        assert fix.student_id == "a"
        assert fix.invalid_type == "GODPARENT_GODCHILD"
        assert fix.action == "removed"
        assert fix.field == "familyRelationships"

    def test_save_failure_does_not_abort(self):
        saved = {}

        def save(sid, blob):
            if sid == "a":
                raise RuntimeError("disk full")
            saved[sid] = blob

        students = [
            student("a", "A", rel("x", "GODPARENT_GODCHILD")),
            student("b", "B", rel("y", "GODPARENT_GODCHILD")),
        ]
        fixes = clean_invalid_relationships(students, save)
        assert [f.action for f in fixes] == ["save_failed", "removed"]
        assert list(saved) == ["b"]

    def test_unparseable_skipped(self):
        saved = {}
        students = [Student(id="a", name="A", notes="not json")]
        fixes = clean_invalid_relationships(students, lambda sid, blob: saved.__setitem__(sid, blob))
        assert saved == {}
        assert fixes[0].action == "skipped_unparseable"

    def test_idempotent(self):
        saved = {}
        students = [student("a", "A", rel("b", "GODPARENT_GODCHILD"), rel("b", "COUSIN"))]
        clean_invalid_relationships(students, lambda sid, blob: saved.__setitem__(sid, blob))
        cleaned = [Student(id="a", name="A", notes=saved["a"])]
        assert clean_invalid_relationships(cleaned, lambda sid, blob: saved.__setitem__(sid, blob)) == []
