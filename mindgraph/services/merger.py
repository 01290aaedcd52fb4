"""
Graph merger.

Folds chunk fragments into the master graph. The first fragment is adopted
locally; every later fragment goes through one reasoning call that sees the
whole master graph and decides which new entities are the same real-world
concept as existing ones.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from mindgraph.ai_engine import RateGate, ReasoningClient
from mindgraph.schemas.graph import (
    MASTER_ID_PREFIX,
    AtomicEntity,
    AtomicGraph,
    AtomicRelationship,
)
from mindgraph.services.response_parser import parse_structured_response

logger = logging.getLogger(__name__)

_MASTER_ID_RE = re.compile(rf"^{MASTER_ID_PREFIX}(\d+)$")


MERGE_PROMPT = (
    'Context: The user\'s original query is "{query}".\n'
    "Your Mission: You are a master cartographer and knowledge synthesizer. You have an existing "
    '"MasterGraph" and a "NewAtomicGraph" (from a new text chunk). Create an updated MasterGraph '
    "by intelligently incorporating information from NewAtomicGraph.\n\n"
    "MasterGraph:\n{master}\n\n"
    "NewAtomicGraph:\n{fragment}\n\n"
    "Instructions for Updating MasterGraph:\n"
    "1. De-duplicate Entities. For each entity in NewAtomicGraph.entities:\n"
    "   - Assess if it represents the SAME REAL-WORLD CONCEPT as an entity already in "
    "MasterGraph.entities (semantic similarity, not just exact name match). Use 'description' "
    "and 'type' for better matching.\n"
    "   - If YES: do NOT add it. Keep the existing entity and its 'id'. SYNTHESIZE both "
    "descriptions into one new, more comprehensive sentence that replaces the old one. The name "
    "may be refined for clarity (still 2-3 words).\n"
    '   - If NO: add it with a new id "{prefix}X", where X is the next available integer '
    '(the next id is "{prefix}{next_id}").\n'
    "2. Integrate Relationships. For each relationship in NewAtomicGraph.relationships:\n"
    "   - Convert sourceName/targetName to sourceId/targetId of the updated MasterGraph entities.\n"
    "   - If a relationship with the same sourceId, targetId and an equivalent label meaning "
    "already exists, do NOT add it.\n"
    "   - Otherwise add it, preserving its 1-3 word 'label'.\n"
    "3. Output Format: respond with ONLY a single raw JSON object representing the updated "
    "MasterGraph:\n"
    '{{ "entities": [ {{ "id": "{prefix}...", "name": "...", "description": "...", "type": "..." }} ], '
    '"relationships": [ {{ "sourceId": "{prefix}...", "targetId": "{prefix}...", "label": "..." }} ] }}\n'
    "   - Relationships MUST use sourceId/targetId referring to ids in your returned entities.\n"
    '   - ALL entity ids MUST follow the "{prefix}X" format.\n\n'
    "Respond with the updated MasterGraph JSON only.\n"
)


def master_id(n: int) -> str:
    return f"{MASTER_ID_PREFIX}{n}"


def next_master_index(graph: AtomicGraph) -> int:
    """One past the highest master_entity_N suffix in use."""
    highest = -1
    for entity in graph.entities:
        match = _MASTER_ID_RE.match(entity.id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def _relationship_key(rel: AtomicRelationship):
    return (rel.source_id, rel.target_id, " ".join(rel.label.lower().split()))


def adopt_fragment(fragment: AtomicGraph, start_index: int = 0) -> AtomicGraph:
    """
    Re-key a fragment into the master id scheme and resolve relationship
    names to the new ids. Unresolvable relationships are dropped.
    """
    entities: List[AtomicEntity] = []
    name_to_id: Dict[str, str] = {}
    folded_to_id: Dict[str, str] = {}
    for offset, entity in enumerate(fragment.entities):
        new_id = master_id(start_index + offset)
        entities.append(entity.model_copy(update={"id": new_id}))
        name_to_id.setdefault(entity.name, new_id)
        folded_to_id.setdefault(entity.name.casefold(), new_id)

    def resolve(name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return name_to_id.get(name) or folded_to_id.get(name.casefold())

    relationships: List[AtomicRelationship] = []
    seen = set()
    for rel in fragment.relationships:
        source_id = resolve(rel.source_name)
        target_id = resolve(rel.target_name)
        if not (source_id and target_id):
            logger.warning(
                "[MERGE] Dropping relationship due to missing entity mapping: "
                f"{rel.source_name} -> {rel.target_name}"
            )
            continue
        adopted = AtomicRelationship(source_id=source_id, target_id=target_id, label=rel.label)
        key = _relationship_key(adopted)
        if key in seen:
            continue
        seen.add(key)
        relationships.append(adopted)

    return AtomicGraph(entities=entities, relationships=relationships)


def sanitize_merged_graph(payload: Any, master: AtomicGraph) -> Optional[AtomicGraph]:
    """
    Validate a merge response against the master id scheme.

    Entities the response forgot are carried over from the previous master,
    so a merge only ever grows the graph. Returns None when the response holds
    no usable entity.
    """
    if not isinstance(payload, dict):
        return None
    raw_entities = payload.get("entities")
    raw_relationships = payload.get("relationships")
    if not isinstance(raw_entities, list) or not isinstance(raw_relationships, list):
        return None

    returned: Dict[str, AtomicEntity] = {}
    for row in raw_entities:
        if not isinstance(row, dict):
            continue
        entity_id = str(row.get("id") or "").strip()
        name = str(row.get("name") or "").strip()
        if not _MASTER_ID_RE.match(entity_id) or not name:
            logger.warning(f"[MERGE] Dropping entity with invalid id or name: {entity_id!r}")
            continue
        if entity_id in returned:
            continue
        returned[entity_id] = AtomicEntity(
            id=entity_id,
            name=name,
            description=str(row.get("description") or "").strip(),
            type=row.get("type"),
        )

    if not returned:
        return None

    entities: List[AtomicEntity] = []
    for previous in master.entities:
        entities.append(returned.pop(previous.id, previous))
    entities.extend(returned.values())
    known_ids = {e.id for e in entities}

    relationships: List[AtomicRelationship] = []
    seen = set()
    candidates = list(master.relationships)
    for row in raw_relationships:
        if isinstance(row, dict):
            candidates.append(
                AtomicRelationship(
                    source_id=str(row.get("sourceId") or "").strip() or None,
                    target_id=str(row.get("targetId") or "").strip() or None,
                    label=str(row.get("label") or "").strip(),
                )
            )
    for rel in candidates:
        if rel.source_id not in known_ids or rel.target_id not in known_ids:
            logger.warning(
                f"[MERGE] Dropping relationship with unknown endpoint: {rel.source_id} -> {rel.target_id}"
            )
            continue
        key = _relationship_key(rel)
        if key in seen:
            continue
        seen.add(key)
        relationships.append(rel)

    return AtomicGraph(entities=entities, relationships=relationships)


class GraphMerger:
    """Accumulates fragments into the master graph of one pipeline run."""

    def __init__(self, client: ReasoningClient, gate: RateGate):
        self.client = client
        self.gate = gate

    def adopt(self, fragment: AtomicGraph) -> AtomicGraph:
        master = adopt_fragment(fragment)
        logger.info(
            f"[MERGE] Initial master graph: {len(master.entities)} entities, "
            f"{len(master.relationships)} relationships"
        )
        return master

    async def merge(self, master: AtomicGraph, fragment: AtomicGraph, original_query: str) -> AtomicGraph:
        """
        Merge one fragment. Any failure leaves the master graph unchanged.
        """
        if fragment.is_empty:
            logger.info("[MERGE] Fragment is empty, master graph unchanged")
            return master
        if not master.entities:
            logger.info("[MERGE] Master graph is empty, adopting fragment")
            return adopt_fragment(fragment, next_master_index(master))

        prompt = MERGE_PROMPT.format(
            query=original_query,
            master=json.dumps(master.to_prompt_json(), ensure_ascii=False),
            fragment=json.dumps(fragment.to_prompt_json(), ensure_ascii=False),
            prefix=MASTER_ID_PREFIX,
            next_id=next_master_index(master),
        )
        try:
            await self.gate.acquire()
            # The combined graph can be large
            raw = await self.client.complete(prompt, temperature=0.2, max_tokens=3800)
        except Exception as e:
            logger.error(f"[MERGE] Reasoning call failed, master graph unchanged: {str(e)[:200]}")
            return master

        parsed = parse_structured_response(raw, expect="object")
        if not parsed.ok:
            logger.error(f"[MERGE] Unparsable response, master graph unchanged: {parsed.error}")
            return master

        merged = sanitize_merged_graph(parsed.value, master)
        if merged is None:
            logger.error("[MERGE] Response is not a master graph, master graph unchanged")
            return master

        logger.info(
            f"[MERGE] ✓ Master graph now {len(merged.entities)} entities, "
            f"{len(merged.relationships)} relationships"
        )
        return merged
