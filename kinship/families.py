"""Family grouping, search, and summary metrics."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .models import FamilyGroup, Guardian, Student
from .roster import normalize_email, normalize_phone


@dataclass
class FamilyMetrics:
    total_families: int = 0
    multi_student_families: int = 0
    avg_students_per_family: float = 0.0
    relationship_distribution: Dict[str, int] = field(default_factory=dict)
    top_guardians: List[dict] = field(default_factory=list)


def contact_key(guardian: Guardian) -> str:
    """Email first, phone otherwise. Empty when the guardian has neither."""
    return normalize_email(guardian.email) or normalize_phone(guardian.phone)


def group_families(
    students: Iterable[Student],
    guardians: Iterable[Guardian],
    min_students: int = 2,
) -> List[FamilyGroup]:
    """Cluster students under the guardian they share (matched by contact key).

    Returns families with at least ``min_students`` students, largest first.
    """
    by_id = {s.id: s for s in students}
    heads: Dict[str, Guardian] = {}
    members: Dict[str, List[Student]] = {}

    for g in guardians:
        key = contact_key(g)
        if not key:
            continue
        student = by_id.get(g.student_id)
        if student is None:
            continue
        heads.setdefault(key, g)
        kids = members.setdefault(key, [])
        if all(k.id != student.id for k in kids):
            kids.append(student)

    families = [
        FamilyGroup(
            guardian_id=heads[key].id,
            guardian_name=heads[key].name,
            students=tuple(kids),
            guardian_email=heads[key].email,
            guardian_phone=heads[key].phone,
            family_key=key,
        )
        for key, kids in members.items()
        if len(kids) >= min_students
    ]
    families.sort(key=lambda f: (-f.student_count, f.guardian_name))
    return families


def filter_families(families: Iterable[FamilyGroup], search: str = "") -> List[FamilyGroup]:
    term = (search or "").strip().lower()
    if not term:
        return list(families)
    return [
        f for f in families
        if term in f.guardian_name.lower()
        or term in (f.guardian_email or "").lower()
        or any(term in s.name.lower() for s in f.students)
    ]


def family_metrics(families: List[FamilyGroup], guardians: Iterable[Guardian],
                   top: int = 5) -> FamilyMetrics:
    if not families:
        return FamilyMetrics()

    counted = {s.id for f in families for s in f.students}
    distribution = Counter(g.relation for g in guardians if g.student_id in counted)
    ranked = sorted(families, key=lambda f: (-f.student_count, f.guardian_name))

    return FamilyMetrics(
        total_families=len(families),
        multi_student_families=sum(1 for f in families if f.student_count > 1),
        avg_students_per_family=sum(f.student_count for f in families) / len(families),
        relationship_distribution=dict(distribution.most_common()),
        top_guardians=[
            {
                "name": f.guardian_name,
                "email": f.guardian_email,
                "phone": f.guardian_phone,
                "student_count": f.student_count,
                "students": [s.name for s in f.students],
            }
            for f in ranked[:top]
        ],
    )
