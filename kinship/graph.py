"""Positioned node/edge graph of family groups and the relationships between them."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import FamilyGroup
from .roster import index_roster, pair_key
from .schemas import FamilyRelationship, GuardianRelationship
from .taxonomy import RelationshipTaxonomy, relationship_label

logger = logging.getLogger(__name__)

GUARDIAN_COLOR = "#6366F1"

EDGE_STYLES = {
    "RESPONSIBLE": {"stroke": GUARDIAN_COLOR, "strokeWidth": 2},
    "SIBLING": {"stroke": "#10B981", "strokeWidth": 2, "strokeDasharray": "5,5"},
    "COUSIN": {"stroke": "#F59E0B", "strokeWidth": 2, "strokeDasharray": "10,5"},
    "UNCLE_NEPHEW": {"stroke": "#EF4444", "strokeWidth": 2, "strokeDasharray": "2,4"},
    "GUARDIAN_LINK": {"stroke": "#EC4899", "strokeWidth": 2, "strokeDasharray": "8,4"},
    "NOT_REGISTERED": {"stroke": "#9CA3AF", "strokeWidth": 1, "strokeDasharray": "3,3", "opacity": 0.5},
}


@dataclass
class TreeGraph:
    nodes: List[dict] = field(default_factory=list)
    edges: List[dict] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"nodes": self.nodes, "edges": self.edges}


def edge_style(relationship_type: Optional[str]) -> dict:
    return dict(EDGE_STYLES.get(relationship_type or "", EDGE_STYLES["NOT_REGISTERED"]))


def guardian_node_id(family: FamilyGroup) -> str:
    return f"guardian-{family.key}"


def student_node_id(student_id: str) -> str:
    return f"student-{student_id}"


def relationship_edge_id(a: str, b: str) -> str:
    first, second = pair_key(a, b)
    return f"rel-{first}-{second}"


def _family_row_layout(
    families: Sequence[FamilyGroup],
    family_gap: float = 400.0,
    layer_gap: float = 150.0,
    sibling_gap: float = 250.0,
) -> Tuple[Dict[str, Tuple[float, float]], Dict[str, Tuple[float, float]]]:
    """
    Guardian centered at x=0 above a row of its students; families stacked
    downward by ``family_gap``. A student already placed by an earlier family
    keeps its first position.
    """
    guardian_pos: Dict[str, Tuple[float, float]] = {}
    student_pos: Dict[str, Tuple[float, float]] = {}

    for idx, family in enumerate(families):
        y = idx * family_gap
        guardian_pos[family.key] = (0.0, y)
        n = len(family.students)
        start_x = -(n - 1) * sibling_gap / 2.0
        for i, s in enumerate(family.students):
            if s.id not in student_pos:
                student_pos[s.id] = (start_x + i * sibling_gap, y + layer_gap)

    return guardian_pos, student_pos


def _edge(edge_id, source, target, source_handle, target_handle, style, kind,
          relationship_type=None, label=""):
    return {
        "id": edge_id,
        "source": source,
        "target": target,
        "sourceHandle": source_handle,
        "targetHandle": target_handle,
        "style": style,
        "data": {"relationshipType": relationship_type, "relationshipLabel": label, "kind": kind},
    }


def _relationship_edge(rel: FamilyRelationship, a: str, b: str, handles: Tuple[str, str]) -> dict:
    rel_type = rel.relationship_type
    return _edge(
        relationship_edge_id(a, b), student_node_id(a), student_node_id(b),
        handles[0], handles[1], edge_style(rel_type), "relationship",
        relationship_type=rel_type,
        label=relationship_label(rel_type, rel.custom_relationship),
    )


def _valid_relationships(rels_by_student, graph: TreeGraph) -> Dict[str, List[FamilyRelationship]]:
    valid: Dict[str, List[FamilyRelationship]] = {}
    for sid, rels in rels_by_student.items():
        kept = []
        for rel in rels:
            if RelationshipTaxonomy.is_valid_student_relationship(rel.relationship_type):
                kept.append(rel)
                continue
            msg = f"relationship {sid}->{rel.related_student_id}: invalid type {rel.relationship_type}"
            logger.warning(msg)
            graph.warnings.append(msg)
        valid[sid] = kept
    return valid


def build_family_tree(
    families: Sequence[FamilyGroup],
    relationships: Optional[Mapping[str, Iterable[FamilyRelationship]]] = None,
    guardian_relationships: Optional[Iterable[GuardianRelationship]] = None,
    family_gap: float = 400.0,
    layer_gap: float = 150.0,
    sibling_gap: float = 250.0,
) -> TreeGraph:
    """Assemble a positioned graph for an external renderer.

    ``relationships`` maps student id -> relationships (declared, cleaned or
    propagated). When omitted, relationships and guardian links are read from
    the students' own notes. Types outside the taxonomy are dropped with a
    warning.
    """
    graph = TreeGraph()
    roster = index_roster(s for f in families for s in f.students)

    if relationships is None:
        relationships = {sid: roster.relationships(sid) for sid in roster.students}
    rels_by_student = _valid_relationships(relationships, graph)
    if guardian_relationships is None:
        guardian_relationships = [
            gr.model_copy(update={"student_id": gr.student_id or sid})
            for sid in roster.students for gr in roster.guardian_relationships(sid)
        ]

    # first declaration wins for a pair
    by_pair: Dict[Tuple[str, str], FamilyRelationship] = {}
    for a, rels in rels_by_student.items():
        for rel in rels:
            if rel.related_student_id != a:
                by_pair.setdefault(pair_key(a, rel.related_student_id), rel)

    guardian_pos, student_pos = _family_row_layout(
        families, family_gap=family_gap, layer_gap=layer_gap, sibling_gap=sibling_gap,
    )
    home_family: Dict[str, FamilyGroup] = {}
    member_of: Dict[str, List[FamilyGroup]] = {}
    co_located = set()
    seen_edges = set()

    def add(edge: dict):
        if edge["id"] in seen_edges:
            return
        seen_edges.add(edge["id"])
        graph.edges.append(edge)

    def warn(msg: str):
        logger.warning(msg)
        graph.warnings.append(msg)

    for family in families:
        gid = guardian_node_id(family)
        gx, gy = guardian_pos[family.key]
        graph.nodes.append({
            "id": gid,
            "kind": "guardian",
            "position": {"x": gx, "y": gy},
            "data": {
                "name": family.guardian_name,
                "email": family.guardian_email,
                "phone": family.guardian_phone,
                "studentCount": family.student_count,
            },
        })

        for s in family.students:
            member_of.setdefault(s.id, []).append(family)
            if s.id not in home_family:
                home_family[s.id] = family
                sx, sy = student_pos[s.id]
                graph.nodes.append({
                    "id": student_node_id(s.id),
                    "kind": "student",
                    "position": {"x": sx, "y": sy},
                    "data": {"name": s.name, "familyKey": family.key},
                })
            add(_edge(
                f"e-{gid}-{student_node_id(s.id)}", gid, student_node_id(s.id),
                "bottom", "top", edge_style("RESPONSIBLE"), "responsible",
                label="Responsible",
            ))

        kids = list(family.students)
        for i, s1 in enumerate(kids):
            for s2 in kids[i + 1:]:
                if s1.id == s2.id:
                    continue
                co_located.add(pair_key(s1.id, s2.id))
                rel = by_pair.get(pair_key(s1.id, s2.id))
                if rel is None:
                    logger.debug("No relationship registered between %s and %s", s1.name, s2.name)
                    continue
                # left node routes out of its right side
                left, right = (s1, s2) if student_pos[s1.id][0] <= student_pos[s2.id][0] else (s2, s1)
                add(_relationship_edge(rel, left.id, right.id, ("right", "left")))

    for gr in guardian_relationships:
        target = gr.student_id
        rel_type = gr.relationship_type
        if not RelationshipTaxonomy.is_valid_guardian_relationship(rel_type):
            warn(f"guardian link {gr.guardian_id}->{target}: invalid type {rel_type}")
            continue
        candidates = member_of.get(gr.guardian_of, [])
        if not candidates or target not in home_family:
            warn(f"guardian link {gr.guardian_id}: student {target if candidates else gr.guardian_of} not in roster")
            continue
        family = next((f for f in candidates if f.guardian_id == gr.guardian_id), candidates[0])
        add(_edge(
            f"guardian-link-{gr.guardian_id}-{target}",
            guardian_node_id(family), student_node_id(target),
            "bottom", "top", edge_style("GUARDIAN_LINK"), "guardian_link",
            relationship_type=rel_type,
            label=relationship_label(rel_type, gr.custom_relationship),
        ))

    for a, rels in rels_by_student.items():
        if a not in home_family:
            if rels:
                warn(f"relationships of {a}: student {a} not in any family")
            continue
        for rel in rels:
            b = rel.related_student_id
            if b == a or pair_key(a, b) in co_located:
                continue
            if b not in home_family:
                warn(f"relationship {a}->{b}: student {b} not in roster")
                continue
            add(_relationship_edge(by_pair[pair_key(a, b)], a, b, ("bottom", "top")))

    logger.info("Built family tree: %d nodes, %d edges", len(graph.nodes), len(graph.edges))
    return graph
