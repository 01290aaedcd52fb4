import logging
import uuid
from typing import Any, List, Optional

from mindgraph.ai_engine import RateGate, ReasoningClient
from mindgraph.core.config import Settings, settings as default_settings
from mindgraph.schemas.mindmap import (
    ExpansionResult,
    MindMapData,
    NodeData,
    Position,
    RenderNode,
)
from mindgraph.services.layout import make_edge, node_style, truncate
from mindgraph.services.response_parser import parse_structured_response

logger = logging.getLogger(__name__)

MIN_CHILDREN = 2
MAX_CHILDREN = 4
CHILD_SPREAD_X = 200.0
CHILD_OFFSET_Y = 150.0
EXPANSION_NODE_TYPES = {"concept", "detail", "example"}


EXPANSION_PROMPT = (
    "Generate 2-4 sub-concepts for the mind map node titled '{label}' in the context of \"{context}\".\n"
    "Each new sub-concept 'label' MUST be a highly concise keyphrase of 2-3 words.\n"
    "For each new sub-concept, also provide a 'relationship' (a very short phrase of 1-3 words) that "
    "describes its connection to the parent node '{label}', and a one-sentence 'description'.\n"
    "Your response MUST be ONLY the raw JSON array itself. Do NOT include any markdown formatting.\n"
    "Return a JSON array of objects with this structure:\n"
    '[ {{ "label": "Concise Sub-concept", "relationship": "Short Connection", '
    '"nodeType": "concept|detail|example", "description": "One sentence." }} ]\n'
)


def _valid_items(payload: Any) -> List[dict]:
    if not isinstance(payload, list):
        return []
    items = []
    for row in payload:
        if isinstance(row, dict) and str(row.get("label") or "").strip():
            items.append(row)
    return items[:MAX_CHILDREN]


class NodeExpander:
    """Grows one rendered node into 2-4 children without re-laying out the map."""

    def __init__(self, client: ReasoningClient, gate: RateGate, config: Optional[Settings] = None):
        self.client = client
        self.gate = gate
        self.config = config or default_settings

    async def expand(self, node_id: str, current_graph: MindMapData, context: str) -> ExpansionResult:
        """Any failure yields an empty result."""
        parent = next((n for n in current_graph.nodes if n.id == node_id), None)
        if parent is None:
            logger.warning(f"[EXPAND] Node {node_id} not found in current graph")
            return ExpansionResult()

        prompt = EXPANSION_PROMPT.format(label=parent.data.label, context=context)
        try:
            await self.gate.acquire()
            raw = await self.client.complete(prompt, temperature=0.6, max_tokens=800, json_mode=False)
        except Exception as e:
            logger.error(f"[EXPAND] Reasoning call failed: {str(e)[:200]}")
            return ExpansionResult()

        parsed = parse_structured_response(raw, expect="array")
        if not parsed.ok:
            logger.error(f"[EXPAND] Unparsable response: {parsed.error}")
            return ExpansionResult()

        items = _valid_items(parsed.value)
        if len(items) < MIN_CHILDREN:
            logger.warning(f"[EXPAND] Only {len(items)} usable sub-concepts, expected {MIN_CHILDREN}-{MAX_CHILDREN}")
            return ExpansionResult()

        level = parent.data.level + 1
        taken = {n.id for n in current_graph.nodes}
        result = ExpansionResult()
        for index, item in enumerate(items):
            child_id = f"{node_id}-exp-{uuid.uuid4().hex[:8]}"
            while child_id in taken:
                child_id = f"{node_id}-exp-{uuid.uuid4().hex[:8]}"
            taken.add(child_id)

            node_type = str(item.get("nodeType") or "concept").strip().lower()
            offset = index - (len(items) - 1) / 2
            result.new_nodes.append(
                RenderNode(
                    id=child_id,
                    position=Position(
                        x=parent.position.x + offset * CHILD_SPREAD_X,
                        y=parent.position.y + CHILD_OFFSET_Y,
                    ),
                    data=NodeData(
                        label=truncate(str(item["label"]).strip(), self.config.MAX_LABEL_LENGTH),
                        level=level,
                        summary=str(item.get("description") or "").strip() or None,
                        node_type=node_type if node_type in EXPANSION_NODE_TYPES else "concept",
                    ),
                    style=node_style(level),
                )
            )
            relationship = str(item.get("relationship") or "relates to").strip()
            result.new_edges.append(
                make_edge(node_id, child_id, truncate(relationship, self.config.MAX_RELATIONSHIP_LENGTH), level)
            )

        logger.info(f"[EXPAND] ✓ Added {len(result.new_nodes)} children under {node_id}")
        return result
