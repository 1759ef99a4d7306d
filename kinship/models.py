import enum
from dataclasses import dataclass, field
from typing import Optional


class RelationshipType(str, enum.Enum):
    """Student <-> student relationship kinds."""
    SIBLING = "SIBLING"
    COUSIN = "COUSIN"
    UNCLE_NEPHEW = "UNCLE_NEPHEW"
    OTHER = "OTHER"


class GuardianRelationshipType(str, enum.Enum):
    """Guardian -> student relationship kinds (guardian is not the primary one)."""
    GODPARENT = "GODPARENT"
    EXTENDED_FAMILY = "EXTENDED_FAMILY"
    OTHER = "OTHER"


class GuardianRole(str, enum.Enum):
    MAE = "MAE"      # mother
    PAI = "PAI"      # father
    IRMAO = "IRMAO"  # sibling acting as guardian
    TIO = "TIO"      # uncle / aunt
    AVO = "AVO"      # grandparent
    OUTRO = "OUTRO"


class Severity(str, enum.Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Confidence(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.HIGH: 1, Severity.MEDIUM: 2, Severity.LOW: 3}


@dataclass(frozen=True)
class Student:
    id: str
    name: str
    notes: Optional[str] = None
    school_id: str = ""


@dataclass(frozen=True)
class Guardian:
    id: str
    student_id: str
    name: str
    relation: str
    email: Optional[str] = None
    phone: Optional[str] = None
    school_id: str = ""


@dataclass(frozen=True)
class FamilyGroup:
    """One guardian and the students they are primary guardian of."""
    guardian_id: str
    guardian_name: str
    students: tuple = field(default_factory=tuple)
    guardian_email: Optional[str] = None
    guardian_phone: Optional[str] = None
    family_key: str = ""

    @property
    def key(self) -> str:
        return self.family_key or self.guardian_id

    @property
    def student_count(self) -> int:
        return len(self.students)
