import asyncio

from mindgraph.ai_engine import RateGate
from mindgraph.schemas.graph import AtomicEntity, AtomicGraph
from mindgraph.services.topic_selector import CentralTopicSelector, match_entity
from tests.helpers import FakeReasoningClient


GRAPH = AtomicGraph(entities=[
    AtomicEntity(id="master_entity_0", name="Chlorophyll"),
    AtomicEntity(id="master_entity_1", name="Photosynthesis"),
    AtomicEntity(id="master_entity_2", name="Calvin Cycle"),
])


def _select(responses, graph=GRAPH):
    client = FakeReasoningClient(responses)
    selector = CentralTopicSelector(client, RateGate(0))
    return asyncio.run(selector.select(graph, "how do plants make food")), client


def test_exact_name_is_selected():
    root_id, client = _select(["Photosynthesis"])
    assert root_id == "master_entity_1"
    assert client.calls[0]["json_mode"] is False
    assert "Chlorophyll, Photosynthesis, Calvin Cycle" in client.prompts[0]


def test_quoted_answer_with_trailing_period_is_cleaned():
    root_id, _ = _select(['"Calvin Cycle".\nIt ties everything together.'])
    assert root_id == "master_entity_2"


def test_partial_match_in_either_direction():
    assert match_entity(GRAPH, "The Calvin Cycle stage").id == "master_entity_2"
    assert match_entity(GRAPH, "Chloro").id == "master_entity_0"


def test_unmatched_answer_falls_back_to_first_entity():
    root_id, _ = _select(["Mitochondria"])
    assert root_id == "master_entity_0"


def test_failed_call_falls_back_to_first_entity():
    root_id, _ = _select([RuntimeError("timeout")])
    assert root_id == "master_entity_0"


def test_empty_graph_has_no_root_and_makes_no_call():
    root_id, client = _select([], graph=AtomicGraph())
    assert root_id is None
    assert client.prompts == []
