"""Cross-check declared student relationships against shared-guardian evidence.

Read-only: produces issues, never touches stored notes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import Confidence, Guardian, GuardianRole, SEVERITY_ORDER, Severity, Student
from .roster import index_guardians, index_roster, pair_key, same_contact

logger = logging.getLogger(__name__)

PARENT_ROLES = {GuardianRole.MAE.value, GuardianRole.PAI.value}
SHARED_PARENT_ROLES = PARENT_ROLES | {GuardianRole.IRMAO.value}
UNCLE_ROLE = GuardianRole.TIO.value


@dataclass(frozen=True)
class GuardianEvidence:
    guardian_name: str
    guardian_role: str
    shared_by: str  # "both" | "parent-uncle"


@dataclass
class Issue:
    id: str
    severity: Severity
    student1_id: str
    student1_name: str
    student2_id: str
    student2_name: str
    current_relationship: str
    expected_relationship: str
    reason: str
    confidence: Confidence
    guardian_evidence: Optional[GuardianEvidence] = None


@dataclass
class DiagnosisResult:
    total_issues: int
    critical_issues: int
    high_issues: int
    medium_issues: int
    low_issues: int
    issues: List[Issue]
    timestamp: str
    skipped: List[str] = field(default_factory=list)


def _find_shared_parent(mine: List[Guardian], theirs: List[Guardian]) -> Optional[Guardian]:
    for g in mine:
        if g.relation not in SHARED_PARENT_ROLES:
            continue
        if any(o.relation == g.relation and same_contact(g, o) for o in theirs):
            return g
    return None


def _find_parent_uncle(mine: List[Guardian], theirs: List[Guardian],
                       my_roles: set, their_roles: set):
    """First (my guardian, their guardian) pair that is the same person under
    ``my_roles`` on my side and ``their_roles`` on theirs."""
    for g in mine:
        if g.relation not in my_roles:
            continue
        for o in theirs:
            if o.relation in their_roles and same_contact(g, o):
                return g, o
    return None


def _collapse_pairs(issues: List[Issue]) -> List[Issue]:
    kept: Dict[tuple, Issue] = {}
    for issue in issues:
        key = pair_key(issue.student1_id, issue.student2_id) + (issue.expected_relationship,)
        current = kept.get(key)
        if current is None or SEVERITY_ORDER[issue.severity] < SEVERITY_ORDER[current.severity]:
            kept[key] = issue
    return list(kept.values())


def diagnose_relationships(
    students: Iterable[Student],
    guardians: Iterable[Guardian],
    collapse_pairs: bool = False,
) -> DiagnosisResult:
    """Diagnose declared relationships against guardians shared between students.

    Rules, per declared A->B:
      1. A and B share a MAE/PAI/IRMAO guardian (same role, email or phone)
         -> must be SIBLING (CRITICAL).
      2. A's MAE/PAI is B's TIO -> must be COUSIN (HIGH).
      3. A's TIO is B's MAE/PAI -> must be COUSIN (HIGH).
      4. Declared UNCLE_NEPHEW while rule 1 holds -> SIBLING (CRITICAL),
         reported in addition to rule 1.

    Issues are de-duplicated by id; ``collapse_pairs`` also folds issues for
    the same unordered pair and expected relationship into the most severe.
    """
    roster = index_roster(students)
    by_student = index_guardians(guardians)
    skipped: List[str] = [f"student {sid}: unparseable notes" for sid in roster.unparseable]
    issues: List[Issue] = []

    for student in roster.students.values():
        mine = by_student.get(student.id, [])
        for rel in roster.relationships(student.id):
            other_id = rel.related_student_id
            if other_id == student.id:
                continue
            if other_id not in roster:
                logger.warning("Related student %s of %s not in roster", other_id, student.name)
                skipped.append(f"{student.id}->{other_id}: related student not found")
                continue

            theirs = by_student.get(other_id, [])
            other_name = rel.related_student_name or roster.name_of(other_id)
            declared = rel.relationship_type
            base = dict(
                student1_id=student.id, student1_name=student.name,
                student2_id=other_id, student2_name=other_name,
                confidence=Confidence.HIGH,
            )

            shared = _find_shared_parent(mine, theirs)
            if shared and declared != "SIBLING":
                issues.append(Issue(
                    id=f"{student.id}-{other_id}-sibling",
                    severity=Severity.CRITICAL,
                    current_relationship=declared,
                    expected_relationship="SIBLING",
                    reason=f'Both share the same guardian "{shared.name}" ({shared.relation})',
                    guardian_evidence=GuardianEvidence(shared.name, shared.relation, "both"),
                    **base,
                ))
                logger.info("CRITICAL: %s <-> %s should be SIBLING (share %s)",
                            student.name, other_name, shared.relation)

            forward = _find_parent_uncle(mine, theirs, PARENT_ROLES, {UNCLE_ROLE})
            if forward and declared != "COUSIN":
                parent, uncle = forward
                issues.append(Issue(
                    id=f"{student.id}-{other_id}-cousin",
                    severity=Severity.HIGH,
                    current_relationship=declared,
                    expected_relationship="COUSIN",
                    reason=(f'"{uncle.name}" is {parent.relation} of {student.name} '
                            f'and TIO of {other_name}'),
                    guardian_evidence=GuardianEvidence(uncle.name, UNCLE_ROLE, "parent-uncle"),
                    **base,
                ))

            reverse = _find_parent_uncle(mine, theirs, {UNCLE_ROLE}, PARENT_ROLES)
            if reverse and declared != "COUSIN":
                uncle, parent = reverse
                issues.append(Issue(
                    id=f"{student.id}-{other_id}-cousin-inverse",
                    severity=Severity.HIGH,
                    current_relationship=declared,
                    expected_relationship="COUSIN",
                    reason=(f'"{uncle.name}" is TIO of {student.name} '
                            f'and {parent.relation} of {other_name}'),
                    guardian_evidence=GuardianEvidence(uncle.name, UNCLE_ROLE, "parent-uncle"),
                    **base,
                ))

            if declared == "UNCLE_NEPHEW" and shared:
                issues.append(Issue(
                    id=f"{student.id}-{other_id}-uncle-wrong",
                    severity=Severity.CRITICAL,
                    current_relationship="UNCLE_NEPHEW",
                    expected_relationship="SIBLING",
                    reason=(f"Registered as UNCLE_NEPHEW but both share the same "
                            f'{shared.relation}: "{shared.name}"'),
                    guardian_evidence=GuardianEvidence(shared.name, shared.relation, "both"),
                    **base,
                ))

    unique = list({issue.id: issue for issue in issues}.values())
    if collapse_pairs:
        unique = _collapse_pairs(unique)
    unique.sort(key=lambda i: SEVERITY_ORDER[i.severity])

    counts = {s: sum(1 for i in unique if i.severity == s) for s in Severity}
    logger.info("Diagnosis finished: %d issue(s) (%d critical, %d high)",
                len(unique), counts[Severity.CRITICAL], counts[Severity.HIGH])
    return DiagnosisResult(
        total_issues=len(unique),
        critical_issues=counts[Severity.CRITICAL],
        high_issues=counts[Severity.HIGH],
        medium_issues=counts[Severity.MEDIUM],
        low_issues=counts[Severity.LOW],
        issues=unique,
        timestamp=datetime.now(timezone.utc).isoformat(),
        skipped=skipped,
    )
