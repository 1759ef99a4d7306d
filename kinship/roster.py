"""Indexed snapshot of a school's students and their parsed annotations."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Guardian, Student
from .notes import parse_notes
from .schemas import FamilyRelationship, GuardianRelationship, StudentNotes

logger = logging.getLogger(__name__)


def pair_key(a: str, b: str) -> Tuple[str, str]:
    """Order-independent key for an undirected student pair."""
    return (a, b) if a <= b else (b, a)


@dataclass
class Roster:
    students: Dict[str, Student] = field(default_factory=dict)
    notes: Dict[str, Optional[StudentNotes]] = field(default_factory=dict)
    unparseable: List[str] = field(default_factory=list)

    def relationships(self, student_id: str) -> List[FamilyRelationship]:
        notes = self.notes.get(student_id)
        return list(notes.family_relationships) if notes else []

    def guardian_relationships(self, student_id: str) -> List[GuardianRelationship]:
        notes = self.notes.get(student_id)
        return list(notes.guardian_relationships) if notes else []

    def name_of(self, student_id: str, fallback: str = "") -> str:
        student = self.students.get(student_id)
        return student.name if student else (fallback or student_id)

    def __contains__(self, student_id: str) -> bool:
        return student_id in self.students


def index_roster(students: Iterable[Student]) -> Roster:
    """Parse every student's notes once. Students whose non-empty blob fails
    to parse are recorded in ``unparseable`` and treated as having no notes."""
    roster = Roster()
    for s in students:
        roster.students[s.id] = s
        notes = parse_notes(s.notes)
        if notes is None and s.notes and s.notes.strip():
            logger.warning("Skipping unparseable notes for student %s (%s)", s.id, s.name)
            roster.unparseable.append(s.id)
        roster.notes[s.id] = notes
    return roster


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().casefold()


def normalize_phone(phone: Optional[str]) -> str:
    return "".join(ch for ch in (phone or "") if ch.isdigit())


def same_contact(g1: Guardian, g2: Guardian) -> bool:
    """Guardian identity match: email OR phone. Names are not identifiers."""
    email = normalize_email(g1.email)
    if email and email == normalize_email(g2.email):
        return True
    phone = normalize_phone(g1.phone)
    return bool(phone) and phone == normalize_phone(g2.phone)


def index_guardians(guardians: Iterable[Guardian]) -> Dict[str, List[Guardian]]:
    by_student: Dict[str, List[Guardian]] = defaultdict(list)
    for g in guardians:
        by_student[g.student_id].append(g)
    return dict(by_student)
