"""
Knowledge-graph models
======================
Entities and relationships extracted from text chunks, the master graph they
accumulate into, and the rooted tree derived from it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


MASTER_ID_PREFIX = "master_entity_"


class EntityType(str, Enum):
    concept = "Concept"
    person = "Person"
    organization = "Organization"
    location = "Location"
    event = "Event"
    other = "Other"


# ── Atomic knowledge ─────────────────────────────────────────────────────────

class AtomicEntity(BaseModel):
    """A concept, person, organization, location or event surfaced from text."""
    id: str
    name: str
    description: str = ""
    type: EntityType = EntityType.other

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        if isinstance(v, EntityType):
            return v
        text = str(v or "").strip().lower()
        for member in EntityType:
            if member.value.lower() == text:
                return member
        return EntityType.other


class AtomicRelationship(BaseModel):
    """
    Directed, labeled link between two entities.
    Fragments reference endpoints by name, the master graph by id.
    """
    model_config = ConfigDict(populate_by_name=True)

    source_id: Optional[str] = Field(default=None, alias="sourceId")
    target_id: Optional[str] = Field(default=None, alias="targetId")
    source_name: Optional[str] = Field(default=None, alias="sourceName")
    target_name: Optional[str] = Field(default=None, alias="targetName")
    label: str = ""


class AtomicGraph(BaseModel):
    """A fragment (chunk-local ids) or the master graph (master_entity_N ids)."""
    entities: List[AtomicEntity] = []
    relationships: List[AtomicRelationship] = []

    @property
    def is_empty(self) -> bool:
        return not self.entities and not self.relationships

    def to_prompt_json(self) -> Dict[str, Any]:
        """Compact dict for prompts: camelCase keys, unset endpoints omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Hierarchical tree ────────────────────────────────────────────────────────

class HierarchicalNode(BaseModel):
    """One node of the rooted tree; children are owned, parents are implicit."""
    id: str
    label: str
    relationship: str = ""
    level: int = 0
    children: List[HierarchicalNode] = []
    summary: Optional[str] = None
    node_type: str = "concept"


# ── Parsing ──────────────────────────────────────────────────────────────────

class ParseResult(BaseModel):
    """Outcome of decoding a free-text model response."""
    ok: bool
    value: Any = None
    error: Optional[str] = None
