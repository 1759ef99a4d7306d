"""Transitive inference of student relationships.

For every declared A->B and B->C the taxonomy's composition table may imply
A->C. Inferred edges are returned, never written: merging them into stored
notes is a separate step (see ``merge_inferred``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import Student
from .notes import parse_notes, update_notes
from .roster import index_roster
from .schemas import FamilyRelationship
from .taxonomy import DEFAULT_TAXONOMY, RelationshipTaxonomy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropagationDetail:
    student_a: str
    student_c: str
    via_student: str
    relationship_type: str
    student_a_id: str = ""
    student_c_id: str = ""


@dataclass
class PropagationResult:
    new_relationships: Dict[str, List[FamilyRelationship]] = field(default_factory=dict)
    count: int = 0
    details: List[PropagationDetail] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def propagate_relationships(
    students: Iterable[Student],
    taxonomy: RelationshipTaxonomy = DEFAULT_TAXONOMY,
    now: Optional[str] = None,
) -> PropagationResult:
    """One hop of transitive closure over the whole roster.

    Declared A->C always wins; at most one inferred A->C per pair per run.
    """
    roster = index_roster(students)
    created_at = now or datetime.now(timezone.utc).isoformat()
    confidence = taxonomy.transitive_confidence().value
    result = PropagationResult(skipped=[f"student {sid}: unparseable notes" for sid in roster.unparseable])

    logger.info("Propagating relationships across %d students", len(roster.students))

    for student_a in roster.students.values():
        declared = roster.relationships(student_a.id)
        known = {r.related_student_id for r in declared}
        inferred: List[FamilyRelationship] = []
        inferred_ids = set()

        for rel_ab in declared:
            b_id = rel_ab.related_student_id
            if b_id not in roster:
                logger.warning("Student B not found: %s (from %s)", b_id, student_a.name)
                result.skipped.append(f"{student_a.id}->{b_id}: related student not found")
                continue
            student_b = roster.students[b_id]

            for rel_bc in roster.relationships(b_id):
                transitive = taxonomy.compose(rel_ab.relationship_type, rel_bc.relationship_type)
                if transitive is None:
                    continue
                c_id = rel_bc.related_student_id
                if c_id == student_a.id or c_id == b_id:
                    continue
                if c_id in known:
                    logger.debug("A->C already declared: %s -> %s", student_a.name, c_id)
                    continue
                if c_id in inferred_ids:
                    continue
                if c_id not in roster:
                    logger.warning("Student C not found: %s (via %s)", c_id, student_b.name)
                    result.skipped.append(f"{b_id}->{c_id}: related student not found")
                    continue

                c_name = rel_bc.related_student_name or roster.name_of(c_id)
                inferred.append(FamilyRelationship(
                    related_student_id=c_id,
                    related_student_name=c_name,
                    relationship_type=transitive.value,
                    confidence=confidence,
                    inferred_from=f"via {student_b.name}",
                    created_at=created_at,
                ))
                inferred_ids.add(c_id)
                result.details.append(PropagationDetail(
                    student_a=student_a.name,
                    student_c=c_name,
                    via_student=student_b.name,
                    relationship_type=transitive.value,
                    student_a_id=student_a.id,
                    student_c_id=c_id,
                ))
                logger.info("Inferred %s -> %s (%s) via %s",
                            student_a.name, c_name, transitive.value, student_b.name)

        if inferred:
            result.new_relationships[student_a.id] = inferred

    result.count = sum(len(rels) for rels in result.new_relationships.values())
    logger.info("Propagation finished: %d new relationship(s)", result.count)
    return result


def propagate_for_student(
    students: Iterable[Student],
    target_student_id: str,
    taxonomy: RelationshipTaxonomy = DEFAULT_TAXONOMY,
) -> List[FamilyRelationship]:
    """Run propagation for the roster, keep only what concerns one student."""
    result = propagate_relationships(students, taxonomy=taxonomy)
    return result.new_relationships.get(target_student_id, [])


def merge_inferred(blob: Optional[str], inferred: List[FamilyRelationship]) -> str:
    """Append inferred relationships to a stored blob, skipping pairs that are
    already present so re-applying the same result is a no-op."""
    notes = parse_notes(blob)
    current = list(notes.family_relationships) if notes else []
    existing = {r.related_student_id for r in current}
    additions = [r for r in inferred if r.related_student_id not in existing]
    return update_notes(blob, {"family_relationships": current + additions})
