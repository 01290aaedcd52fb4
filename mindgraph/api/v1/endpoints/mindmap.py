import asyncio
import logging
from functools import lru_cache

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from mindgraph.core.config import settings
from mindgraph.schemas.mindmap import (
    ExpandRequest,
    ExpansionResult,
    MindMapData,
    MindMapRequest,
    SimpleMindMapRequest,
)
from mindgraph.services.fallback import fallback_mind_map
from mindgraph.services.mindmap_service import MindMapService

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_mindmap_service() -> MindMapService:
    """One service, and so one rate gate, per process."""
    return MindMapService()


# ── Helper: SSE Event Stream ─────────────────────────────────────────────────

async def _sse_wrapper(generator):
    """Wraps an async generator into SSE format."""
    async for chunk in generator:
        yield f"data: {chunk}\n\n"
    yield "data: [DONE]\n\n"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. MIND MAP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/mindmap", response_model=MindMapData)
async def create_mindmap(request: MindMapRequest, service: MindMapService = Depends(get_mindmap_service)):
    """Generate a positioned concept map from text and a query."""
    try:
        return await asyncio.wait_for(
            service.generate_mind_map(request.content, request.query, request.max_levels),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error(f"[API] Mind map generation timed out after {settings.AI_TIMEOUT_SECONDS}s")
        return fallback_mind_map(request.query)


@router.post("/mindmap/stream")
async def create_mindmap_stream(request: MindMapRequest, service: MindMapService = Depends(get_mindmap_service)):
    """Stream mind map generation via Server-Sent Events."""
    return StreamingResponse(
        _sse_wrapper(service.generate_mind_map_stream(request.content, request.query, request.max_levels)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/mindmap/simple", response_model=MindMapData)
async def create_simple_mindmap(request: SimpleMindMapRequest, service: MindMapService = Depends(get_mindmap_service)):
    """Lay out a topic and a list of concepts without calling a model."""
    return service.generate_simple_mind_map(request.topic, request.concepts)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. NODE EXPANSION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/mindmap/expand", response_model=ExpansionResult)
async def expand_mindmap_node(request: ExpandRequest, service: MindMapService = Depends(get_mindmap_service)):
    """Grow one node of a rendered map into 2-4 children."""
    return await service.expand_node(request.node_id, request.graph, request.context)
