"""Closed relationship vocabulary and the transitive composition table."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .models import Confidence, GuardianRelationshipType, RelationshipType

S = RelationshipType

# (A->B, B->C) -> A->C. Pairs not listed compose to None.
DEFAULT_COMPOSITION_RULES: Mapping[Tuple[RelationshipType, RelationshipType], RelationshipType] = (
    MappingProxyType({
        (S.SIBLING, S.SIBLING): S.SIBLING,
        (S.SIBLING, S.COUSIN): S.COUSIN,
        (S.SIBLING, S.UNCLE_NEPHEW): S.UNCLE_NEPHEW,
        (S.COUSIN, S.SIBLING): S.COUSIN,
        (S.COUSIN, S.COUSIN): S.COUSIN,
        (S.UNCLE_NEPHEW, S.SIBLING): S.UNCLE_NEPHEW,
    })
)

RELATIONSHIP_LABELS = {
    "SIBLING": "Siblings",
    "COUSIN": "Cousins",
    "UNCLE_NEPHEW": "Uncle/Nephew",
    "OTHER": "Other",
    "NOT_REGISTERED": "Not registered",
    "GODPARENT": "Godparent",
    "EXTENDED_FAMILY": "Extended family",
}

STUDENT_RELATIONSHIP_VALUES = frozenset(t.value for t in RelationshipType)
GUARDIAN_RELATIONSHIP_VALUES = frozenset(t.value for t in GuardianRelationshipType)


def _coerce(value) -> Optional[RelationshipType]:
    if isinstance(value, RelationshipType):
        return value
    try:
        return RelationshipType(value)
    except ValueError:
        return None


class RelationshipTaxonomy:
    """Immutable lookup over a composition table.

    ``compose`` follows the directed path A->B->C, so it is not commutative.
    """

    def __init__(self, rules: Mapping = DEFAULT_COMPOSITION_RULES):
        self._rules = MappingProxyType({(S(a), S(b)): S(c) for (a, b), c in rules.items()})

    @property
    def rules(self) -> Mapping:
        return self._rules

    def compose(self, relation_ab, relation_bc) -> Optional[RelationshipType]:
        ab, bc = _coerce(relation_ab), _coerce(relation_bc)
        if ab is None or bc is None:
            return None
        return self._rules.get((ab, bc))

    @staticmethod
    def is_valid_student_relationship(value) -> bool:
        return _value(value) in STUDENT_RELATIONSHIP_VALUES

    @staticmethod
    def is_valid_guardian_relationship(value) -> bool:
        return _value(value) in GUARDIAN_RELATIONSHIP_VALUES

    @staticmethod
    def transitive_confidence() -> Confidence:
        return Confidence.MEDIUM


def _value(value):
    return value.value if isinstance(value, (RelationshipType, GuardianRelationshipType)) else value


def relationship_label(value, custom: Optional[str] = None) -> str:
    if value is None:
        return RELATIONSHIP_LABELS["NOT_REGISTERED"]
    value = _value(value)
    if value == "OTHER" and custom:
        return custom
    return RELATIONSHIP_LABELS.get(value, str(value))


DEFAULT_TAXONOMY = RelationshipTaxonomy()


def compose(relation_ab, relation_bc) -> Optional[RelationshipType]:
    return DEFAULT_TAXONOMY.compose(relation_ab, relation_bc)


def transitive_confidence() -> Confidence:
    return RelationshipTaxonomy.transitive_confidence()
