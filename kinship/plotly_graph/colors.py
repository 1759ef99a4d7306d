from __future__ import annotations
from typing import Dict, List

GUARDIAN_NODE_COLOR = "#6366F1"


def build_family_colors(nodes: List[dict]) -> List[str]:
    """One palette color per family for student nodes; guardians share one color."""
    family_palette = [
        "#FFA07A", "#98FB98", "#87CEFA", "#DDA0DD", "#F4A460",
        "#66CDAA", "#FFB6C1", "#E6E6FA", "#20B2AA"
    ]

    family_keys: List[str] = []
    for node in nodes:
        key = node.get("data", {}).get("familyKey")
        if key and key not in family_keys:
            family_keys.append(key)
    family_color_map: Dict[str, str] = {
        k: family_palette[i % len(family_palette)] for i, k in enumerate(family_keys)
    }

    node_colors: List[str] = []
    for node in nodes:
        if node.get("kind") == "guardian":
            node_colors.append(GUARDIAN_NODE_COLOR)
        else:
            key = node.get("data", {}).get("familyKey")
            node_colors.append(family_color_map.get(key, "#D3D3D3"))
    return node_colors
