from mindgraph.schemas.graph import AtomicEntity, AtomicGraph, AtomicRelationship
from mindgraph.services.tree_builder import (
    DEFAULT_RELATIONSHIP,
    ROOT_RELATIONSHIP,
    UNREACHABLE_RELATIONSHIP,
    build_tree,
    is_degenerate_root,
)
from tests.helpers import iter_tree


def _graph(names, edges):
    """Entities e0..eN named after ``names``; edges as (src_idx, tgt_idx, label)."""
    return AtomicGraph(
        entities=[
            AtomicEntity(id=f"e{i}", name=name, description=f"{name} summary", type="Concept")
            for i, name in enumerate(names)
        ],
        relationships=[
            AtomicRelationship(source_id=f"e{s}", target_id=f"e{t}", label=label) for s, t, label in edges
        ],
    )


def _by_id(tree):
    return {node.id: node for node in iter_tree(tree)}


def test_levels_are_bfs_distances():
    graph = _graph(["Root", "A", "B", "C"], [(0, 1, "has"), (0, 2, "has"), (1, 3, "leads to"), (3, 0, "loops")])
    tree = build_tree(graph, "e0", "query")
    nodes = _by_id(tree)

    assert tree.level == 0
    assert tree.relationship == ROOT_RELATIONSHIP
    assert [c.id for c in tree.children] == ["e1", "e2"]
    assert nodes["e3"].level == 2
    assert nodes["e3"].relationship == "leads to"
    assert nodes["e1"].summary == "A summary"


def test_cycles_do_not_duplicate_nodes():
    graph = _graph(["A", "B", "C"], [(0, 1, "x"), (1, 2, "y"), (2, 0, "z"), (2, 1, "w")])
    tree = build_tree(graph, "e0", "q")
    ids = [node.id for node in iter_tree(tree)]
    assert sorted(ids) == ["e0", "e1", "e2"]


def test_first_path_wins_for_shared_descendants():
    graph = _graph(["Root", "A", "B", "Shared"], [(0, 1, "a"), (0, 2, "b"), (1, 3, "via a"), (2, 3, "via b")])
    nodes = _by_id(build_tree(graph, "e0", "q"))

    assert [c.id for c in nodes["e1"].children] == ["e3"]
    assert nodes["e2"].children == []
    assert nodes["e3"].relationship == "via a"


def test_every_child_is_one_level_below_its_parent():
    graph = _graph(list("ABCDEFG"), [(0, 1, ""), (0, 2, ""), (1, 3, ""), (3, 4, ""), (2, 5, ""), (5, 6, "")])
    tree = build_tree(graph, "e0", "q")
    for node in iter_tree(tree):
        for child in node.children:
            assert child.level == node.level + 1


def test_empty_label_gets_default_relationship():
    tree = build_tree(_graph(["A", "B"], [(0, 1, "")]), "e0", "q")
    assert tree.children[0].relationship == DEFAULT_RELATIONSHIP


def test_unreachable_entities_are_excluded_by_default():
    graph = _graph(["Root", "A", "Island", "Islet"], [(0, 1, "has"), (2, 3, "near"), (2, 0, "points at")])
    ids = set(_by_id(build_tree(graph, "e0", "q")))
    assert ids == {"e0", "e1"}


def test_unreachable_entities_can_be_attached_as_branches():
    graph = _graph(["Root", "A", "Island", "Islet"], [(0, 1, "has"), (2, 3, "near")])
    tree = build_tree(graph, "e0", "q", attach_unreachable=True)
    nodes = _by_id(tree)

    assert [c.id for c in tree.children] == ["e1", "e2"]
    assert nodes["e2"].level == 1
    assert nodes["e2"].relationship == UNREACHABLE_RELATIONSHIP
    assert nodes["e3"].level == 2
    assert nodes["e3"].relationship == "near"


def test_relationships_with_unknown_endpoints_are_ignored():
    graph = _graph(["Root", "A"], [(0, 1, "has")])
    graph.relationships.append(AtomicRelationship(source_id="e0", target_id="ghost", label="haunts"))
    tree = build_tree(graph, "e0", "q")
    assert [c.id for c in tree.children] == ["e1"]


def test_missing_root_yields_degenerate_tree():
    graph = _graph(["A"], [])
    tree = build_tree(graph, "nope", "photosynthesis")
    assert is_degenerate_root(tree)
    assert tree.label == "photosynthesis"
    assert tree.children == []

    assert build_tree(AtomicGraph(), None, "").label == "Graph Topic"
    assert is_degenerate_root(None)
    assert not is_degenerate_root(build_tree(graph, "e0", "q"))
