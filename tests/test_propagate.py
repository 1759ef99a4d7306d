"""Tests for kinship/propagate.py — transitive inference."""
from kinship.models import Student
from kinship.notes import parse_notes
from kinship.propagate import merge_inferred, propagate_for_student, propagate_relationships
from kinship.taxonomy import RelationshipTaxonomy

from conftest import rel, student

NOW = "2024-01-01T00:00:00+00:00"


def _chain():
    """A -SIBLING-> B -COUSIN-> C."""
    return [
        student("a", "Ana", rel("b", "SIBLING", "Bruno")),
        student("b", "Bruno", rel("c", "COUSIN", "Caio")),
        student("c", "Caio"),
    ]


class TestPropagate:
    def test_sibling_then_cousin(self):
        result = propagate_relationships(_chain(), now=NOW)
        assert result.count == 1
        inferred = result.new_relationships["a"][0]
        assert inferred.related_student_id == "c"
        assert inferred.related_student_name == "Caio"
        assert inferred.relationship_type == "COUSIN"
        assert inferred.confidence == "MEDIUM"
        assert inferred.inferred_from == "via Bruno"
        assert inferred.created_at == NOW

    def test_details(self):
        detail = propagate_relationships(_chain(), now=NOW).details[0]
        assert (detail.student_a, detail.via_student, detail.student_c) == ("Ana", "Bruno", "Caio")
        assert detail.student_a_id == "a"
        assert detail.student_c_id == "c"

    def test_no_rule(self):
        students = [
            student("a", "A", rel("b", "UNCLE_NEPHEW")),
            student("b", "B", rel("c", "COUSIN")),
            student("c", "C"),
        ]
        assert propagate_relationships(students).count == 0

    def test_declared_wins(self):
        students = [
            student("a", "A", rel("b", "SIBLING"), rel("c", "OTHER")),
            student("b", "B", rel("c", "SIBLING")),
            student("c", "C"),
        ]
        assert propagate_relationships(students).count == 0

    def test_no_self_inference(self):
        students = [
            student("a", "A", rel("b", "SIBLING")),
            student("b", "B", rel("a", "SIBLING")),
        ]
        assert propagate_relationships(students).count == 0

    def test_one_inference_per_pair(self):
        students = [
            student("a", "A", rel("b", "SIBLING"), rel("d", "SIBLING")),
            student("b", "B", rel("c", "SIBLING")),
            student("d", "D", rel("c", "SIBLING")),
            student("c", "C"),
        ]
        result = propagate_relationships(students)
        assert [r.related_student_id for r in result.new_relationships["a"]] == ["c"]

    def test_single_hop(self):
        students = [
            student("a", "A", rel("b", "SIBLING")),
            student("b", "B", rel("c", "SIBLING")),
            student("c", "C", rel("d", "SIBLING")),
            student("d", "D"),
        ]
        result = propagate_relationships(students)
        assert [r.related_student_id for r in result.new_relationships["a"]] == ["c"]
        assert [r.related_student_id for r in result.new_relationships["b"]] == ["d"]

    def test_missing_intermediate(self):
        result = propagate_relationships([student("a", "A", rel("ghost", "SIBLING"))])
        assert result.count == 0
        assert result.skipped == ["a->ghost: related student not found"]

    def test_missing_target(self):
        students = [
            student("a", "A", rel("b", "SIBLING")),
            student("b", "B", rel("ghost", "SIBLING")),
        ]
        result = propagate_relationships(students)
        assert result.count == 0
        assert "b->ghost: related student not found" in result.skipped

    def test_input_not_mutated(self):
        students = _chain()
        before = students[0].notes
        propagate_relationships(students)
        assert students[0].notes == before

    def test_custom_taxonomy(self):
        students = [
            student("a", "A", rel("b", "COUSIN")),
            student("b", "B", rel("c", "UNCLE_NEPHEW")),
            student("c", "C"),
        ]
        taxonomy = RelationshipTaxonomy({("COUSIN", "UNCLE_NEPHEW"): "UNCLE_NEPHEW"})
        result = propagate_relationships(students, taxonomy=taxonomy)
        assert result.new_relationships["a"][0].relationship_type == "UNCLE_NEPHEW"

    def test_repeat_run_same_result(self):
        students = [
            student("a", "A", rel("b", "SIBLING"), rel("d", "COUSIN")),
            student("b", "B", rel("c", "SIBLING"), rel("e", "UNCLE_NEPHEW")),
            student("d", "D", rel("c", "SIBLING"), rel("f", "COUSIN")),
            student("c", "C"),
            student("e", "E"),
            student("f", "F"),
        ]

        def triples(result):
            return {(d.student_a_id, d.student_c_id, d.relationship_type) for d in result.details}

        first = propagate_relationships(students)
        second = propagate_relationships(students)
        assert first.count == second.count == 3
        assert triples(first) == triples(second) == {
            ("a", "c", "SIBLING"),
            ("a", "e", "UNCLE_NEPHEW"),
            ("a", "f", "COUSIN"),
        }


def test_propagate_for_student():
    inferred = propagate_for_student(_chain(), "a")
    assert [r.related_student_id for r in inferred] == ["c"]
    assert propagate_for_student(_chain(), "c") == []


class TestMergeInferred:
    def test_appends(self):
        students = _chain()
        inferred = propagate_relationships(students, now=NOW).new_relationships["a"]
        merged = merge_inferred(students[0].notes, inferred)
        rels = parse_notes(merged).family_relationships
        assert [r.related_student_id for r in rels] == ["b", "c"]

    def test_idempotent(self):
        students = _chain()
        inferred = propagate_relationships(students, now=NOW).new_relationships["a"]
        once = merge_inferred(students[0].notes, inferred)
        assert merge_inferred(once, inferred) == once

    def test_second_run_finds_nothing_new(self):
        students = _chain()
        inferred = propagate_relationships(students, now=NOW).new_relationships["a"]
        updated = [Student(id="a", name="Ana", notes=merge_inferred(students[0].notes, inferred))] + students[1:]
        assert propagate_relationships(updated).count == 0
