from typing import List

from mindgraph.schemas.mindmap import MindMapData, NodeData, Position, RenderEdge, RenderNode
from mindgraph.services.layout import apply_layered_layout, make_edge, node_style

MAX_ROOT_LABEL_LENGTH = 70
EMPTY_QUERY_LABEL = "Mind Map"

_BRANCHES = [
    ("concept1", "Key Concepts", "explores", -250.0),
    ("concept2", "Main Findings", "reveals", 0.0),
    ("concept3", "Applications", "leads to", 250.0),
]


def root_label(query: str) -> str:
    text = (query or "").strip()
    if not text:
        return EMPTY_QUERY_LABEL
    if len(text) > MAX_ROOT_LABEL_LENGTH:
        return text[:MAX_ROOT_LABEL_LENGTH] + "..."
    return text


def _node(node_id: str, label: str, level: int, x: float = 0.0, y: float = 0.0) -> RenderNode:
    return RenderNode(
        id=node_id,
        position=Position(x=x, y=y),
        data=NodeData(label=label, level=level, node_type="concept"),
        style=node_style(level),
    )


def fallback_mind_map(query: str) -> MindMapData:
    """Fixed four-node graph returned whenever the pipeline cannot produce a map."""
    nodes = [_node("root", root_label(query), 0)]
    edges: List[RenderEdge] = []
    for node_id, label, relationship, x in _BRANCHES:
        nodes.append(_node(node_id, label, 1, x=x, y=150.0))
        edges.append(make_edge("root", node_id, relationship, 1))
    return MindMapData(nodes=nodes, edges=edges)


def simple_mind_map(topic: str, concepts: List[str]) -> MindMapData:
    """Root plus up to six concept branches, laid out like a generated map."""
    nodes = [_node("root", root_label(topic), 0)]
    edges: List[RenderEdge] = []
    for index, concept in enumerate(c.strip() for c in concepts if c and c.strip()):
        if index >= 6:
            break
        node_id = f"concept{index + 1}"
        nodes.append(_node(node_id, concept, 1))
        edges.append(make_edge("root", node_id, "includes", 1))
    return apply_layered_layout(MindMapData(nodes=nodes, edges=edges))
