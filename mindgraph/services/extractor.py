import json
import logging
from typing import Any, List

from mindgraph.ai_engine import RateGate, ReasoningClient
from mindgraph.schemas.graph import AtomicEntity, AtomicGraph, AtomicRelationship
from mindgraph.services.response_parser import parse_structured_response

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = (
    'Context: The user\'s original query is "{query}".\n'
    "Text Chunk to Analyze:\n"
    "---\n"
    "{chunk}\n"
    "---\n"
    "Your Mission: Act as a knowledge architect. From ONLY the Text Chunk provided above, "
    "identify fundamental building blocks of knowledge.\n"
    "Output Format: Respond with ONLY a single, raw JSON object matching this exact structure:\n"
    "{{\n"
    '  "entities": [\n'
    '    {{ "id": "temp_id_1", "name": "Entity Name (2-3 words MAX)", '
    '"description": "One-sentence summary based ONLY on this chunk.", '
    '"type": "Concept | Person | Organization | Location | Event | Other" }}\n'
    "  ],\n"
    '  "relationships": [\n'
    '    {{ "sourceName": "Name of Source Entity from entities list", '
    '"targetName": "Name of Target Entity from entities list", '
    '"label": "Action phrase (1-3 words MAX)" }}\n'
    "  ]\n"
    "}}\n\n"
    "Instructions:\n"
    "1. Entities:\n"
    "   - 'name': a highly concise keyphrase, 2-3 words MAXIMUM. This is the node title.\n"
    "   - 'description': a single sentence on the entity's role within this chunk.\n"
    "   - 'type': one of Concept, Person, Organization, Location, Event, Other.\n"
    "   - 'id': a temporary id unique within this response (temp_id_1, temp_id_2, ...).\n"
    "2. Relationships:\n"
    "   - 'sourceName' and 'targetName' MUST EXACTLY match the 'name' of an entity in your list.\n"
    "   - 'label': a directional action phrase, 1-3 words MAXIMUM "
    '(e.g. "influences", "is part of", "developed by").\n'
    "3. Accuracy: use only the Text Chunk. Do not infer or use external knowledge.\n"
    "4. Output ONLY the raw JSON object — no markdown fences, no commentary.\n"
)


def fragment_from_payload(payload: Any) -> AtomicGraph:
    """
    Build a fragment from a decoded extraction response.
    Entities keep chunk-local ids; relationships keep names.
    """
    if not isinstance(payload, dict):
        return AtomicGraph()
    raw_entities = payload.get("entities")
    raw_relationships = payload.get("relationships")
    if not isinstance(raw_entities, list) or not isinstance(raw_relationships, list):
        return AtomicGraph()

    entities: List[AtomicEntity] = []
    seen_ids = set()
    for n, row in enumerate(raw_entities, start=1):
        if not isinstance(row, dict):
            continue
        name = str(row.get("name") or "").strip()
        if not name:
            continue
        temp_id = str(row.get("id") or "").strip() or f"temp_id_{n}"
        if temp_id in seen_ids:
            temp_id = f"{temp_id}_{n}"
        seen_ids.add(temp_id)
        entities.append(
            AtomicEntity(
                id=temp_id,
                name=name,
                description=str(row.get("description") or "").strip(),
                type=row.get("type"),
            )
        )

    relationships: List[AtomicRelationship] = []
    for row in raw_relationships:
        if not isinstance(row, dict):
            continue
        source = str(row.get("sourceName") or "").strip()
        target = str(row.get("targetName") or "").strip()
        if not source or not target:
            continue
        relationships.append(
            AtomicRelationship(
                source_name=source,
                target_name=target,
                label=str(row.get("label") or "").strip(),
            )
        )

    return AtomicGraph(entities=entities, relationships=relationships)


class KnowledgeExtractor:
    """Turns one chunk + query into a small entity/relationship fragment."""

    def __init__(self, client: ReasoningClient, gate: RateGate):
        self.client = client
        self.gate = gate

    async def extract(self, chunk_text: str, original_query: str) -> AtomicGraph:
        """Never raises: every failure yields an empty fragment."""
        prompt = EXTRACTION_PROMPT.format(query=original_query, chunk=chunk_text)
        try:
            await self.gate.acquire()
            raw = await self.client.complete(prompt, temperature=0.3, max_tokens=1500)
        except Exception as e:
            logger.error(f"[EXTRACT] Reasoning call failed: {str(e)[:200]}")
            return AtomicGraph()

        parsed = parse_structured_response(raw, expect="object")
        if not parsed.ok:
            logger.error(f"[EXTRACT] Unparsable response: {parsed.error}")
            return AtomicGraph()

        fragment = fragment_from_payload(parsed.value)
        if fragment.is_empty:
            logger.warning(
                "[EXTRACT] Response is not an entity/relationship graph: "
                f"{json.dumps(parsed.value)[:200]}"
            )
        else:
            logger.info(
                f"[EXTRACT] ✓ {len(fragment.entities)} entities, "
                f"{len(fragment.relationships)} relationships"
            )
        return fragment
