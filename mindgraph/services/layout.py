"""
Layout converter and layered layout engine.

``to_render_graph`` flattens the hierarchical tree into styled render nodes
and edges under a node cap; ``apply_layered_layout`` assigns top-to-bottom
coordinates ranked by level. Both are pure and deterministic.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx
from pydantic import BaseModel

from mindgraph.core.config import settings
from mindgraph.schemas.graph import HierarchicalNode
from mindgraph.schemas.mindmap import (
    MindMapData,
    NodeData,
    Position,
    RenderEdge,
    RenderNode,
)

logger = logging.getLogger(__name__)

DEFAULT_RELATIONSHIP_TEXT = "relates to"

# Coarser styling as level increases; the last tier covers every deeper level
_NODE_TIERS = [
    {"bg": "linear-gradient(135deg, #667eea 0%, #764ba2 100%)", "border": "#4c63d2", "font": "15px", "padding": "14px 18px"},
    {"bg": "linear-gradient(135deg, #f093fb 0%, #f5576c 100%)", "border": "#e91e63", "font": "14px", "padding": "12px 16px"},
    {"bg": "linear-gradient(135deg, #4facfe 0%, #00f2fe 100%)", "border": "#2196f3", "font": "13px", "padding": "10px 14px"},
    {"bg": "linear-gradient(135deg, #a8edea 0%, #fed6e3 100%)", "border": "#4dd0e1", "font": "12px", "padding": "8px 12px", "color": "#333"},
    {"bg": "rgba(255, 255, 255, 0.9)", "border": "#e0e0e0", "font": "11px", "padding": "6px 10px", "color": "#666"},
]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# STYLES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def node_style(level: int) -> Dict[str, Any]:
    tier = _NODE_TIERS[min(max(level, 0), len(_NODE_TIERS) - 1)]
    return {
        "borderRadius": "12px",
        "border": "2px solid",
        "wordBreak": "break-word",
        "whiteSpace": "normal",
        "background": tier["bg"],
        "color": tier.get("color", "white"),
        "borderColor": tier["border"],
        "fontSize": tier["font"],
        "padding": tier["padding"],
        "fontWeight": "600" if level < 2 else "500",
    }


def edge_style(level: int) -> Dict[str, Any]:
    stroke_width = max(3 - level * 0.5, 1)
    opacity = max(1 - level * 0.1, 0.6)
    if level <= 1:
        stroke = "#667eea"
    elif level <= 2:
        stroke = "#f093fb"
    else:
        stroke = "#4facfe"
    return {"stroke": stroke, "strokeWidth": f"{stroke_width:g}px", "opacity": f"{opacity:g}"}


def edge_label_style(level: int) -> Dict[str, Any]:
    return {
        "fill": "#666",
        "fontWeight": "600" if level <= 1 else "500",
        "fontSize": "12px" if level <= 1 else "11px",
    }


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def make_edge(source: str, target: str, label: str, level: int) -> RenderEdge:
    """Parent → child edge styled by the child's level."""
    return RenderEdge(
        id=f"edge-{source}-{target}",
        source=source,
        target=target,
        label=label,
        animated=level <= 2,
        style=edge_style(level),
        label_style=edge_label_style(level),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TREE → RENDER GRAPH
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def enforce_node_cap(data: MindMapData, max_nodes: int) -> MindMapData:
    """
    Drop the deepest nodes until at most ``max_nodes`` remain. Level-0 nodes
    are never removed; edges touching a removed node go with it.
    """
    if len(data.nodes) <= max_nodes:
        return data

    removed = set()
    remaining = len(data.nodes)
    for node in sorted(data.nodes, key=lambda n: n.data.level, reverse=True):
        if remaining <= max_nodes:
            break
        if node.data.level == 0:
            continue
        removed.add(node.id)
        remaining -= 1

    logger.info(f"[LAYOUT] Node cap {max_nodes}: removed {len(removed)} deepest nodes")
    return MindMapData(
        nodes=[n for n in data.nodes if n.id not in removed],
        edges=[e for e in data.edges if e.source not in removed and e.target not in removed],
    )


def to_render_graph(
    tree: HierarchicalNode,
    max_levels: int,
    max_nodes: Optional[int] = None,
    max_label_length: Optional[int] = None,
    max_relationship_length: Optional[int] = None,
) -> MindMapData:
    """Pre-order walk of the tree into one node per tree node and one edge per parent link."""
    if max_nodes is None:
        max_nodes = settings.MAX_NODES
    if max_label_length is None:
        max_label_length = settings.MAX_LABEL_LENGTH
    if max_relationship_length is None:
        max_relationship_length = settings.MAX_RELATIONSHIP_LENGTH

    if tree is None or not tree.id or not (tree.label or "").strip():
        return MindMapData()

    nodes: List[RenderNode] = []
    edges: List[RenderEdge] = []
    emitted = set()

    stack: List[Tuple[HierarchicalNode, Optional[str]]] = [(tree, None)]
    while stack:
        node, parent_id = stack.pop()
        if node.level > max_levels or node.id in emitted:
            continue
        if not node.id or not (node.label or "").strip():
            continue

        nodes.append(
            RenderNode(
                id=node.id,
                position=Position(x=0, y=0),
                data=NodeData(
                    label=truncate(node.label, max_label_length),
                    level=node.level,
                    summary=node.summary,
                    node_type=node.node_type or "concept",
                ),
                style=node_style(node.level),
            )
        )
        emitted.add(node.id)

        if parent_id and parent_id != node.id:
            relationship = truncate(node.relationship or DEFAULT_RELATIONSHIP_TEXT, max_relationship_length)
            edges.append(make_edge(parent_id, node.id, relationship, node.level))

        for child in reversed(node.children):
            stack.append((child, node.id))

    edges = [e for e in edges if e.source in emitted and e.target in emitted]
    return enforce_node_cap(MindMapData(nodes=nodes, edges=edges), max_nodes)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# LAYERED LAYOUT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class LayoutSpacing(BaseModel):
    """Spacing constants of the top-to-bottom layout, in pixels."""
    nodesep: float = 120
    ranksep: float = 180
    marginx: float = 75
    marginy: float = 75
    base_width: float = 180
    width_step: float = 20
    min_width: float = 100
    root_height: float = 60
    node_height: float = 50


def box_size(level: int, spacing: LayoutSpacing) -> Tuple[float, float]:
    width = max(spacing.base_width - level * spacing.width_step, spacing.min_width)
    height = spacing.root_height if level == 0 else spacing.node_height
    return width, height


def apply_layered_layout(data: MindMapData, spacing: Optional[LayoutSpacing] = None) -> MindMapData:
    """
    Rank nodes by level, stack ranks top to bottom, give leaves consecutive
    horizontal slots in tree order and center every parent over its children.
    Positions are the top-left corner of each box.
    """
    spacing = spacing or LayoutSpacing()
    if not data.nodes:
        return MindMapData(nodes=[], edges=list(data.edges))

    g = nx.DiGraph()
    for node in data.nodes:
        g.add_node(node.id, level=node.data.level, size=box_size(node.data.level, spacing))
    for edge in data.edges:
        if edge.source in g and edge.target in g and edge.source != edge.target:
            g.add_edge(edge.source, edge.target)

    # Rank geometry
    rank_height: Dict[int, float] = {}
    for node_id, attrs in g.nodes(data=True):
        rank_height[attrs["level"]] = max(rank_height.get(attrs["level"], 0.0), attrs["size"][1])
    rank_center: Dict[int, float] = {}
    y = spacing.marginy
    for rank in sorted(rank_height):
        rank_center[rank] = y + rank_height[rank] / 2
        y += rank_height[rank] + spacing.ranksep

    centers: Dict[str, float] = {}
    cursor = spacing.marginx

    def place(node_id: str) -> float:
        nonlocal cursor
        width = g.nodes[node_id]["size"][0]
        centers[node_id] = 0.0  # claims the node before descending
        child_centers = []
        for child_id in g.successors(node_id):
            if child_id not in centers:
                child_centers.append(place(child_id))
        if child_centers:
            center = (child_centers[0] + child_centers[-1]) / 2
        else:
            center = cursor + width / 2
            cursor += width + spacing.nodesep
        centers[node_id] = center
        return center

    roots = [n for n in g.nodes if g.in_degree(n) == 0]
    for node_id in roots + list(g.nodes):
        if node_id not in centers:
            place(node_id)

    # Shift so the leftmost box edge sits on the margin
    min_left = min(centers[n] - g.nodes[n]["size"][0] / 2 for n in g.nodes)
    shift = spacing.marginx - min_left

    positioned: List[RenderNode] = []
    for node in data.nodes:
        width, height = g.nodes[node.id]["size"]
        cx = centers[node.id] + shift
        cy = rank_center[node.data.level]
        positioned.append(
            node.model_copy(update={"position": Position(x=cx - width / 2, y=cy - height / 2)})
        )
    return MindMapData(nodes=positioned, edges=list(data.edges))
