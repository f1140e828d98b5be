# /core/models.py

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Shared Pydantic data structures for the canonical graph and its collaborators.

class NodeKind(str, Enum):
    PERSON = "Person"
    ORGANIZATION = "Organization"
    LOCATION = "Location"
    EVENT = "Event"
    CONCEPT = "Concept"
    DOCUMENT = "Document"
    ARTIFACT = "Artifact"
    CLASS = "Class"  # T-Box ontology node


class Node(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Stable, caller-assigned identifier, e.g. 'UnitedNations'.")
    label: str = Field(description="Display string for the node.")
    kind: NodeKind = Field(alias="type", description="Entity category, or Class for schema nodes.")
    properties: Dict[str, Union[str, int, float]] = Field(default_factory=dict)

    @property
    def is_class(self) -> bool:
        return self.kind is NodeKind.CLASS


class Link(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str = Field(description="The ID of the source node.")
    target: str = Field(description="The ID of the target node.")
    predicate: str = Field(description="Relation name, e.g. org:memberOf or rdf:type.")
    label: str = Field(description="Readable label for the predicate.")
    is_ontology_link: bool = Field(False, description="True for typing/subsumption links or links touching a Class.")

    @property
    def key(self):
        return (self.source, self.target, self.predicate)


class KnowledgeGraph(BaseModel):
    nodes: List[Node] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)


class Fragment(BaseModel):
    """One batch of candidate nodes/links returned by an enrichment call, prior to merge."""
    nodes: List[Node] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)
    dropped_items: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.links


class ParseFailure(BaseModel):
    reason: str


ExtractionResult = Union[Fragment, ParseFailure]


class MergeResult(BaseModel):
    added_nodes: List[Node] = Field(default_factory=list)
    added_links: List[Link] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added_nodes and not self.added_links


class NodeBody(BaseModel):
    """Mutable physics record for one node, owned by the layout engine."""
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def is_pinned(self) -> bool:
        return self.fx is not None


class EnrichmentSubject(BaseModel):
    id: str
    title: str = ""
    text: str


class PendingItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: str
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
