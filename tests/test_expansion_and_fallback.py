import asyncio
import json

import pytest

from mindgraph.ai_engine import RateGate
from mindgraph.schemas.mindmap import MindMapData, NodeData, Position, RenderNode
from mindgraph.services.expansion import NodeExpander
from mindgraph.services.fallback import fallback_mind_map, root_label, simple_mind_map
from tests.helpers import FakeReasoningClient


def _graph():
    return MindMapData(nodes=[
        RenderNode(id="root", position=Position(x=0, y=0), data=NodeData(label="Photosynthesis", level=0)),
        RenderNode(id="light", position=Position(x=100, y=200), data=NodeData(label="Light Reactions", level=1)),
    ])


def _items(*labels, **extra):
    return json.dumps([
        {"label": label, "relationship": "part of", "nodeType": extra.get("node_type", "detail"),
         "description": f"{label} explained."}
        for label in labels
    ])


def _expand(responses, node_id="light"):
    client = FakeReasoningClient(responses)
    expander = NodeExpander(client, RateGate(0))
    return asyncio.run(expander.expand(node_id, _graph(), "plant biology")), client


# ── Expansion ────────────────────────────────────────────────────────────────

def test_children_are_spread_below_the_parent():
    result, client = _expand([_items("Photosystem II", "Electron Transport", "ATP Synthase")])

    assert len(result.new_nodes) == 3
    assert [n.position.x for n in result.new_nodes] == pytest.approx([-100.0, 100.0, 300.0])
    assert all(n.position.y == pytest.approx(350.0) for n in result.new_nodes)
    assert all(n.data.level == 2 for n in result.new_nodes)
    assert all(n.id.startswith("light-exp-") for n in result.new_nodes)
    assert [e.source for e in result.new_edges] == ["light"] * 3
    assert [e.target for e in result.new_edges] == [n.id for n in result.new_nodes]
    assert result.new_nodes[0].data.node_type == "detail"
    assert "'Light Reactions'" in client.prompts[0]
    assert client.calls[0]["json_mode"] is False


def test_new_ids_do_not_collide_with_existing_nodes():
    result, _ = _expand([_items("One", "Two", "Three", "Four")])
    new_ids = {n.id for n in result.new_nodes}
    assert len(new_ids) == 4
    assert not new_ids & {"root", "light"}


def test_more_than_four_items_are_capped():
    result, _ = _expand(["```json\n" + _items("A", "B", "C", "D", "E", "F") + "\n```"])
    assert [n.data.label for n in result.new_nodes] == ["A", "B", "C", "D"]


def test_unknown_node_type_becomes_concept():
    result, _ = _expand([_items("A", "B", node_type="Widget")])
    assert {n.data.node_type for n in result.new_nodes} == {"concept"}


def test_too_few_items_is_an_empty_result():
    result, _ = _expand([_items("Only One")])
    assert result.new_nodes == [] and result.new_edges == []


def test_unknown_node_makes_no_call():
    result, client = _expand([], node_id="missing")
    assert result.new_nodes == []
    assert client.prompts == []


@pytest.mark.parametrize("response", [RuntimeError("rate limited"), "no array here", '{"label": "A"}'])
def test_failures_yield_empty_result(response):
    result, _ = _expand([response])
    assert result.new_nodes == [] and result.new_edges == []


def test_result_serializes_with_camel_case_keys():
    result, _ = _expand([_items("A", "B")])
    dumped = result.model_dump(by_alias=True)
    assert set(dumped) == {"newNodes", "newEdges"}
    assert "nodeType" in dumped["newNodes"][0]["data"]
    assert "labelStyle" in dumped["newEdges"][0]


# ── Fallback ─────────────────────────────────────────────────────────────────

def test_fallback_shape():
    data = fallback_mind_map("photosynthesis")

    assert [n.id for n in data.nodes] == ["root", "concept1", "concept2", "concept3"]
    assert [n.data.label for n in data.nodes] == ["photosynthesis", "Key Concepts", "Main Findings", "Applications"]
    assert [e.label for e in data.edges] == ["explores", "reveals", "leads to"]
    assert all(e.source == "root" for e in data.edges)
    assert [(n.position.x, n.position.y) for n in data.nodes[1:]] == [(-250, 150), (0, 150), (250, 150)]
    assert data.nodes[0].data.level == 0


def test_fallback_root_label():
    assert root_label("") == "Mind Map"
    assert root_label("x" * 80) == "x" * 70 + "..."
    assert fallback_mind_map("x" * 70).nodes[0].data.label == "x" * 70


def test_simple_mind_map_caps_concepts_and_lays_out():
    data = simple_mind_map("Cells", ["Nucleus", " ", "Membrane", "A", "B", "C", "D", "E"])

    assert [n.data.label for n in data.nodes[1:]] == ["Nucleus", "Membrane", "A", "B", "C", "D"]
    assert {e.label for e in data.edges} == {"includes"}
    assert data.nodes[0].position.y < data.nodes[1].position.y
