"""
MindGraph — Mind Map Service
============================
Single entry point for the concept-map pipeline:

  chunk → extract (per chunk) → merge (accumulating) → central topic
        → BFS tree → render graph → layered layout

Every stage degrades softly (empty fragment, unchanged master graph, first
entity as root). Only an empty master graph, a degenerate root, or an
unexpected exception falls through to the fixed fallback graph, so callers
always receive a renderable map.
"""

import json
import logging
from typing import AsyncGenerator, List, Optional, Tuple, Union

from mindgraph.ai_engine import HybridReasoningClient, RateGate, ReasoningClient
from mindgraph.core.config import Settings, settings as default_settings
from mindgraph.schemas.graph import AtomicGraph
from mindgraph.schemas.mindmap import ExpansionResult, MindMapData
from mindgraph.services.chunker import chunk_text
from mindgraph.services.expansion import NodeExpander
from mindgraph.services.extractor import KnowledgeExtractor
from mindgraph.services.fallback import fallback_mind_map, simple_mind_map
from mindgraph.services.layout import apply_layered_layout, to_render_graph
from mindgraph.services.merger import GraphMerger
from mindgraph.services.topic_selector import CentralTopicSelector
from mindgraph.services.tree_builder import build_tree, is_degenerate_root

logger = logging.getLogger(__name__)

PipelineEvent = Tuple[str, Union[str, MindMapData]]


class MindMapService:
    """Owns the reasoning client and the rate gate for the service's lifetime."""

    def __init__(
        self,
        client: Optional[ReasoningClient] = None,
        gate: Optional[RateGate] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.client = client or HybridReasoningClient(self.config)
        self.gate = gate or RateGate(self.config.MIN_CALL_DELAY_MS / 1000.0)

        self.extractor = KnowledgeExtractor(self.client, self.gate)
        self.merger = GraphMerger(self.client, self.gate)
        self.topic_selector = CentralTopicSelector(self.client, self.gate)
        self.expander = NodeExpander(self.client, self.gate, self.config)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # PIPELINE
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def _build_master_graph(self, chunks, query: str) -> AsyncGenerator[PipelineEvent, None]:
        """Strictly sequential: each merge reasons over the current master graph."""
        master = AtomicGraph()
        for index, chunk in enumerate(chunks, start=1):
            yield "status", f"Extracting knowledge from chunk {index}/{len(chunks)}"
            fragment = await self.extractor.extract(chunk, query)
            if fragment.is_empty:
                logger.info(f"[MINDMAP] Chunk {index} yielded nothing, skipping")
                continue
            if not master.entities:
                master = self.merger.adopt(fragment)
            else:
                yield "status", f"Merging chunk {index}/{len(chunks)} into the knowledge graph"
                master = await self.merger.merge(master, fragment, query)
        yield "graph", master

    async def _pipeline(self, content: str, query: str, max_levels: int) -> AsyncGenerator[PipelineEvent, None]:
        if not self.client.is_configured:
            logger.error("[MINDMAP] No AI provider configured. Returning fallback mind map.")
            yield "result", fallback_mind_map(query)
            return

        chunks = chunk_text(content, self.config.CHUNK_SIZE, self.config.CHUNK_OVERLAP)
        if not chunks:
            logger.warning("[MINDMAP] No chunks created from content. Returning fallback.")
            yield "result", fallback_mind_map(query)
            return
        logger.info(f"[MINDMAP] Processing {len(chunks)} chunks")

        master = AtomicGraph()
        async for kind, payload in self._build_master_graph(chunks, query):
            if kind == "graph":
                master = payload
            else:
                yield kind, payload

        if not master.entities:
            logger.warning("[MINDMAP] Master graph is empty after all chunks. Returning fallback.")
            yield "result", fallback_mind_map(query)
            return
        logger.info(
            f"[MINDMAP] Final master graph: {len(master.entities)} entities, "
            f"{len(master.relationships)} relationships"
        )

        yield "status", "Selecting the central topic"
        root_id = await self.topic_selector.select(master, query)

        yield "status", "Building the concept hierarchy"
        tree = build_tree(master, root_id, query, attach_unreachable=self.config.ATTACH_UNREACHABLE)
        if is_degenerate_root(tree):
            logger.error("[MINDMAP] Tree has no usable root. Returning fallback.")
            yield "result", fallback_mind_map(query)
            return

        yield "status", "Laying out the mind map"
        render = to_render_graph(
            tree,
            max_levels,
            self.config.MAX_NODES,
            self.config.MAX_LABEL_LENGTH,
            self.config.MAX_RELATIONSHIP_LENGTH,
        )
        if not render.nodes:
            yield "result", fallback_mind_map(query)
            return
        logger.info(f"[MINDMAP] ✓ {len(render.nodes)} nodes, {len(render.edges)} edges")
        yield "result", apply_layered_layout(render)

    async def generate_mind_map(self, content: str, query: str, max_levels: Optional[int] = None) -> MindMapData:
        """Run the whole pipeline. Never raises; always returns a non-empty graph."""
        if max_levels is None:
            max_levels = self.config.MAX_LEVELS
        try:
            result = None
            async for kind, payload in self._pipeline(content or "", query or "", max_levels):
                if kind == "result":
                    result = payload
            return result or fallback_mind_map(query or "")
        except Exception as e:
            logger.error(f"[MINDMAP] Error in pipeline: {e}", exc_info=True)
            return fallback_mind_map(query or "")

    async def generate_mind_map_stream(
        self, content: str, query: str, max_levels: Optional[int] = None
    ) -> AsyncGenerator[str, None]:
        """Stream pipeline progress as JSON events, ending with the result."""
        if max_levels is None:
            max_levels = self.config.MAX_LEVELS
        result = None
        try:
            async for kind, payload in self._pipeline(content or "", query or "", max_levels):
                if kind == "result":
                    result = payload
                else:
                    yield json.dumps({"type": "status", "message": payload})
        except Exception as e:
            logger.error(f"[MINDMAP] Error in streamed pipeline: {e}", exc_info=True)
            result = None
        result = result or fallback_mind_map(query or "")
        yield json.dumps({"type": "status", "message": "Done", "progress": 100})
        yield json.dumps({"type": "result", "data": result.model_dump(mode="json", by_alias=True)})

    def generate_simple_mind_map(self, topic: str, concepts: List[str]) -> MindMapData:
        """Root plus up to six concept branches. No reasoning calls."""
        logger.info(f"[MINDMAP] Simple mind map for '{topic}' with {len(concepts)} concepts")
        return simple_mind_map(topic, concepts)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # EXPANSION
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def expand_node(self, node_id: str, current_graph: MindMapData, context: str) -> ExpansionResult:
        if not self.client.is_configured:
            logger.error("[EXPAND] No AI provider configured")
            return ExpansionResult()
        try:
            return await self.expander.expand(node_id, current_graph, context)
        except Exception as e:
            logger.error(f"[EXPAND] Unexpected error: {e}", exc_info=True)
            return ExpansionResult()
