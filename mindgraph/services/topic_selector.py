import logging
from typing import Optional

from mindgraph.ai_engine import RateGate, ReasoningClient
from mindgraph.schemas.graph import AtomicEntity, AtomicGraph

logger = logging.getLogger(__name__)


CENTRAL_TOPIC_PROMPT = (
    "Given the following list of entity names extracted from a document: [{names}]\n"
    'And the user\'s original query: "{query}"\n'
    "Which entity NAME from the list is the most central and relevant starting point for a mind map "
    "related to the query?\n"
    "Respond with ONLY the entity NAME from the list. If no single entity is clearly central, pick the "
    "one that seems like the best overall theme.\n"
    "If multiple entities seem equally central, pick the one that appears first in the provided list.\n"
    "Your response must be exactly one of the names from the provided list.\n"
)


def _clean_answer(text: str) -> str:
    lines = (text or "").strip().splitlines()
    if not lines:
        return ""
    return lines[0].strip().strip("`\"'*.").strip()


def match_entity(graph: AtomicGraph, answer: str) -> AtomicEntity:
    """Exact name, then substring in either direction, then the first entity."""
    for entity in graph.entities:
        if entity.name == answer:
            return entity
    if answer:
        for entity in graph.entities:
            if entity.name in answer or answer in entity.name:
                logger.info(f"[TOPIC] Partial match '{answer}' → '{entity.name}'")
                return entity
    logger.warning(f"[TOPIC] '{answer}' matches no entity, using first entity")
    return graph.entities[0]


class CentralTopicSelector:
    """Picks the entity that roots the tree."""

    def __init__(self, client: ReasoningClient, gate: RateGate):
        self.client = client
        self.gate = gate

    async def select(self, graph: AtomicGraph, original_query: str) -> Optional[str]:
        if not graph.entities:
            logger.warning("[TOPIC] Master graph has no entities")
            return None

        names = ", ".join(e.name for e in graph.entities)
        prompt = CENTRAL_TOPIC_PROMPT.format(names=names, query=original_query)
        try:
            await self.gate.acquire()
            raw = await self.client.complete(prompt, temperature=0.2, max_tokens=50, json_mode=False)
        except Exception as e:
            logger.error(f"[TOPIC] Reasoning call failed, using first entity: {str(e)[:200]}")
            return graph.entities[0].id

        answer = _clean_answer(raw)
        logger.info(f"[TOPIC] Model suggested central entity: '{answer}'")
        return match_entity(graph, answer).id
