"""
Tree builder.

Converts the (possibly cyclic) master graph into a rooted tree by
breadth-first traversal. The first path that reaches an entity wins: later
paths never re-parent it, which keeps every node single-parented and makes
cycles harmless.
"""

import logging
import uuid
from typing import Dict, Iterable, Optional

import networkx as nx

from mindgraph.schemas.graph import AtomicGraph, HierarchicalNode

logger = logging.getLogger(__name__)

DEGENERATE_ROOT_PREFIX = "root_fallback_"
ROOT_RELATIONSHIP = "Central Topic"
DEFAULT_RELATIONSHIP = "Related To"
UNREACHABLE_RELATIONSHIP = "Also Related"


def to_digraph(graph: AtomicGraph) -> nx.DiGraph:
    """
    Directed graph keyed by entity id, in insertion order.
    The first relationship between a pair supplies the edge label; relationships
    with a missing endpoint are dropped.
    """
    g = nx.DiGraph()
    for entity in graph.entities:
        if entity.id not in g:
            g.add_node(entity.id, entity=entity)
    for rel in graph.relationships:
        source, target = rel.source_id, rel.target_id
        if source not in g or target not in g:
            logger.warning(f"[TREE] Dropping relationship with unknown endpoint: {source} -> {target}")
            continue
        if source == target or g.has_edge(source, target):
            continue
        g.add_edge(source, target, label=rel.label)
    return g


def degenerate_root(query: str) -> HierarchicalNode:
    return HierarchicalNode(
        id=f"{DEGENERATE_ROOT_PREFIX}{uuid.uuid4().hex[:8]}",
        label=query or "Graph Topic",
        relationship="Central Query",
        level=0,
        children=[],
        node_type="concept",
        summary="This is the central query or topic.",
    )


def is_degenerate_root(node: Optional[HierarchicalNode]) -> bool:
    return node is None or node.id.startswith(DEGENERATE_ROOT_PREFIX)


def _make_node(g: nx.DiGraph, entity_id: str, level: int, relationship: str) -> HierarchicalNode:
    entity = g.nodes[entity_id]["entity"]
    return HierarchicalNode(
        id=entity.id,
        label=entity.name,
        relationship=relationship or DEFAULT_RELATIONSHIP,
        level=level,
        children=[],
        summary=entity.description,
        node_type=entity.type.value,
    )


def _grow(g: nx.DiGraph, top: HierarchicalNode, nodes: Dict[str, HierarchicalNode]) -> None:
    """Attach the BFS tree below ``top`` using only entities not yet in ``nodes``."""
    allowed = [n for n in g.nodes if n not in nodes or n == top.id]
    view = g.subgraph(allowed)
    for parent_id, child_id in nx.bfs_edges(view, top.id):
        parent = nodes[parent_id]
        child = _make_node(g, child_id, parent.level + 1, g.edges[parent_id, child_id].get("label"))
        nodes[child_id] = child
        parent.children.append(child)


def build_tree(
    graph: AtomicGraph,
    root_id: Optional[str],
    query: str,
    attach_unreachable: bool = False,
) -> HierarchicalNode:
    """
    BFS tree rooted at ``root_id``; level is the BFS distance from the root.

    Entities unreachable from the root are left out unless
    ``attach_unreachable`` is set, in which case each unreachable component
    hangs off the root as a secondary branch.
    """
    if not root_id or not graph.entities:
        logger.warning("[TREE] No root entity or empty graph, returning degenerate root")
        return degenerate_root(query)

    g = to_digraph(graph)
    if root_id not in g:
        logger.error(f"[TREE] Root entity {root_id} not found in master graph")
        return degenerate_root(query)

    root = _make_node(g, root_id, 0, ROOT_RELATIONSHIP)
    nodes: Dict[str, HierarchicalNode] = {root_id: root}
    _grow(g, root, nodes)

    unreachable = [n for n in g.nodes if n not in nodes]
    if unreachable:
        if attach_unreachable:
            _attach_unreachable(g, root, nodes, unreachable)
        else:
            logger.warning(
                f"[TREE] {len(unreachable)} entities unreachable from root '{root.label}' are excluded"
            )

    logger.info(f"[TREE] ✓ Tree rooted at '{root.label}' with {len(nodes)} nodes")
    return root


def _attach_unreachable(
    g: nx.DiGraph,
    root: HierarchicalNode,
    nodes: Dict[str, HierarchicalNode],
    unreachable: Iterable[str],
) -> None:
    attached = 0
    for entity_id in unreachable:
        if entity_id in nodes:
            continue
        branch = _make_node(g, entity_id, 1, UNREACHABLE_RELATIONSHIP)
        nodes[entity_id] = branch
        root.children.append(branch)
        _grow(g, branch, nodes)
        attached += 1
    logger.info(f"[TREE] Attached {attached} unreachable branches under the root")
