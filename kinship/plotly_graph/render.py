from __future__ import annotations

from typing import Dict, List, Tuple
from plotly import graph_objects as go

from ..graph import TreeGraph
from .colors import build_family_colors

LEGEND_NAMES = {
    "responsible": "Responsible",
    "guardian_link": "Godparent / extended family",
}


def _edge_group(edge: dict) -> str:
    kind = edge["data"].get("kind", "relationship")
    if kind != "relationship":
        return LEGEND_NAMES.get(kind, kind)
    return edge["data"].get("relationshipLabel") or "Not registered"


def build_plotly_figure(graph: TreeGraph) -> go.Figure:
    if not graph.nodes:
        fig = go.Figure()
        fig.update_layout(title="No family data found")
        return fig

    # Renderer y grows downward; plotly y grows upward.
    pos: Dict[str, Tuple[float, float]] = {
        n["id"]: (n["position"]["x"], -n["position"]["y"]) for n in graph.nodes
    }

    # One trace per edge group so the legend distinguishes relationship kinds
    groups: Dict[str, dict] = {}
    for e in graph.edges:
        if e["source"] not in pos or e["target"] not in pos:
            continue
        name = _edge_group(e)
        g = groups.setdefault(name, {"x": [], "y": [], "text": [], "style": e["style"]})
        x0, y0 = pos[e["source"]]
        x1, y1 = pos[e["target"]]
        g["x"] += [x0, x1, None]
        g["y"] += [y0, y1, None]
        g["text"] += [name, name, ""]

    traces: List[go.Scatter] = []
    for name, g in groups.items():
        style = g["style"]
        dash = "dash" if style.get("strokeDasharray") else "solid"
        traces.append(go.Scatter(
            x=g["x"],
            y=g["y"],
            mode="lines",
            name=name,
            hoverinfo="text",
            hovertext=g["text"],
            opacity=style.get("opacity", 1.0),
            line=dict(width=style.get("strokeWidth", 1), color=style.get("stroke", "#555"), dash=dash),
        ))

    node_x, node_y, texts, hover_texts = [], [], [], []
    for n in graph.nodes:
        x, y = pos[n["id"]]
        node_x.append(x)
        node_y.append(y)
        texts.append(n["data"].get("name", n["id"]))
        hover_texts.append(f"{n['data'].get('name', n['id'])}<br>{n['kind'].title()}")

    node_trace = go.Scatter(
        x=node_x,
        y=node_y,
        mode="markers+text",
        text=texts,
        textposition="top center",
        hoverinfo="text",
        hovertext=hover_texts,
        customdata=[n["id"] for n in graph.nodes],
        marker=dict(size=18, color=build_family_colors(graph.nodes), line=dict(width=1, color="#333")),
        textfont=dict(size=9),
        showlegend=False,
    )

    fig = go.Figure(data=traces + [node_trace])
    fig.update_layout(
        hovermode="closest",
        dragmode="pan",
        autosize=True,
        margin=dict(l=0, r=0, t=0, b=0),
        plot_bgcolor="white",
        paper_bgcolor="white",
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
    )
    return fig


def write_html(fig: go.Figure, out_path: str) -> None:
    config = {"scrollZoom": True, "displayModeBar": True, "responsive": True}
    fig.write_html(out_path, include_plotlyjs="cdn", full_html=True, config=config)
