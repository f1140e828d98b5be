# /core/filtered_view.py

from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import KnowledgeGraph, Link, Node, NodeKind


class ViewFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    type_filter: Optional[NodeKind] = Field(None, description="Keep only nodes of this kind; None means ALL. Class nodes are exempt.")
    show_ontology_layer: bool = Field(True, description="When False, Class nodes and ontology links are hidden.")
    search_term: str = Field("", description="Marks nodes whose label or id contains this text. Never hides anything.")


class GraphView(BaseModel):
    model_config = ConfigDict(frozen=True)

    nodes: List[Node] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)
    highlighted: FrozenSet[str] = frozenset()


def _keep_node(node: Node, filters: ViewFilters) -> bool:
    if node.is_class:
        return filters.show_ontology_layer
    return filters.type_filter is None or node.kind is filters.type_filter


def build_view(graph: KnowledgeGraph, filters: ViewFilters) -> GraphView:
    """
    Derives the renderable subset of the canonical graph. The canonical Node
    and Link objects are shared, not copied; they are immutable.
    """
    nodes = [node for node in graph.nodes if _keep_node(node, filters)]
    visible = {node.id for node in nodes}

    links = [
        link for link in graph.links
        if link.source in visible and link.target in visible
        and (filters.show_ontology_layer or not link.is_ontology_link)
    ]

    term = filters.search_term.strip().lower()
    highlighted = frozenset(
        node.id for node in nodes
        if term and (term in node.label.lower() or term in node.id.lower())
    )
    return GraphView(nodes=nodes, links=links, highlighted=highlighted)
