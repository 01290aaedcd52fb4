from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


# ── Request ──────────────────────────────────────────────────────────────────

class MindMapRequest(BaseModel):
    """Request body for mind map generation."""
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(default="", description="Source text to map")
    query: str = Field(default="", description="The user's question or topic")
    max_levels: int = Field(default=4, ge=0, le=10, alias="maxLevels", description="Deepest tree level to render")


class SimpleMindMapRequest(BaseModel):
    """Request body for a map built straight from a topic and its concepts."""
    topic: str
    concepts: List[str] = []


class ExpandRequest(BaseModel):
    """Request body for expanding one node of an already rendered map."""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    graph: MindMapData
    context: str = ""


# ── Response ─────────────────────────────────────────────────────────────────

class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class NodeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str
    level: int
    summary: Optional[str] = None
    node_type: str = Field(default="concept", alias="nodeType")


class RenderNode(BaseModel):
    """A positioned, styled node handed to the drawing surface."""
    id: str
    position: Position = Field(default_factory=Position)
    data: NodeData
    type: str = "custom"
    style: Dict[str, Any] = {}


class RenderEdge(BaseModel):
    """A styled parent → child edge."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: str
    target: str
    label: str = ""
    animated: bool = False
    style: Dict[str, Any] = {}
    label_style: Dict[str, Any] = Field(default={}, alias="labelStyle")


class MindMapData(BaseModel):
    """Flat node/edge list for rendering."""
    nodes: List[RenderNode] = []
    edges: List[RenderEdge] = []


class ExpansionResult(BaseModel):
    """Nodes and edges to append after expanding a node."""
    model_config = ConfigDict(populate_by_name=True)

    new_nodes: List[RenderNode] = Field(default=[], alias="newNodes")
    new_edges: List[RenderEdge] = Field(default=[], alias="newEdges")


class ErrorResponse(BaseModel):
    """Standard error envelope."""
    status: str = "error"
    message: str
    detail: Optional[str] = None


ExpandRequest.model_rebuild()
