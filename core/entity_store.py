# /core/entity_store.py

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from core.fragments import coerce_items, coerce_link, coerce_node
from core.logger import get_logger
from core.models import KnowledgeGraph, Link, MergeResult, Node
from core.ontology import TYPE_PREDICATE, is_ontology_predicate, upper_ontology

logger = get_logger(__name__)

LinkKey = Tuple[str, str, str]


class EntityStore:
    """
    The canonical graph of one session. `merge` is the only way data gets in,
    and nothing is ever removed; a new session gets a new store.
    """

    def __init__(self, seed: Optional[Iterable[Node]] = None):
        self._nodes: Dict[str, Node] = {}
        self._links: Dict[LinkKey, Link] = {}
        self._typed: Set[str] = set()  # node ids with an outgoing rdf:type link
        self.version = 0

        for node in upper_ontology() if seed is None else seed:
            self._nodes.setdefault(node.id, node)

    # --- Read access ---

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def links(self) -> List[Link]:
        return list(self._links.values())

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def class_ids(self) -> List[str]:
        return [node.id for node in self._nodes.values() if node.is_class]

    def snapshot(self) -> KnowledgeGraph:
        return KnowledgeGraph(nodes=self.nodes, links=self.links)

    def __len__(self):
        return len(self._nodes)

    # --- Merge ---

    def merge(self, candidate_nodes: Any, candidate_links: Any) -> MergeResult:
        """
        Folds one fragment into the store.

        Args:
            candidate_nodes: List of Node objects or node-shaped dicts. Anything
                that is not a list is treated as empty.
            candidate_links: List of Link objects or link-shaped dicts.

        Returns:
            A MergeResult holding only the nodes and links that are new to the
            store. An empty result means nothing changed.
        """
        nodes, dropped_nodes = coerce_items(candidate_nodes, coerce_node)
        links, dropped_links = coerce_items(candidate_links, coerce_link)
        if dropped_nodes or dropped_links:
            logger.warning(
                "Merge input contained malformed items",
                extra={"dropped_nodes": dropped_nodes, "dropped_links": dropped_links},
            )

        added_nodes = self._partition_new_nodes(nodes)
        node_index = dict(self._nodes)
        node_index.update((node.id, node) for node in added_nodes)

        accepted: Dict[LinkKey, Link] = {}
        for link in links:
            self._accept_link(link, node_index, accepted)

        # Every instance node needs a typing edge; this also covers nodes from earlier merges
        typed = self._typed | {key[0] for key in accepted if key[2] == TYPE_PREDICATE}
        for node in node_index.values():
            if node.is_class or node.id in typed:
                continue
            synthesized = Link(
                source=node.id,
                target=node.kind.value,
                predicate=TYPE_PREDICATE,
                label="type",
                is_ontology_link=True,
            )
            self._accept_link(synthesized, node_index, accepted)

        result = MergeResult(added_nodes=added_nodes, added_links=list(accepted.values()))
        if result.is_empty:
            logger.debug("Merge produced no changes")
            return result

        for node in added_nodes:
            self._nodes[node.id] = node
        for key, link in accepted.items():
            self._links[key] = link
            if link.predicate == TYPE_PREDICATE:
                self._typed.add(link.source)
        self.version += 1

        logger.info(
            "Merged fragment",
            extra={
                "added_nodes": len(result.added_nodes),
                "added_links": len(result.added_links),
                "total_nodes": len(self._nodes),
                "total_links": len(self._links),
            },
        )
        return result

    def _partition_new_nodes(self, nodes: List[Node]) -> List[Node]:
        added: Dict[str, Node] = {}
        for node in nodes:
            existing = self._nodes.get(node.id) or added.get(node.id)
            if existing is None:
                added[node.id] = node
            elif existing.kind != node.kind or existing.label != node.label:
                # First write wins; later fragments never rewrite a node
                logger.debug(
                    "Ignored conflicting re-offer of node",
                    extra={
                        "node_id": node.id,
                        "kept": f"{existing.label} ({existing.kind.value})",
                        "offered": f"{node.label} ({node.kind.value})",
                    },
                )
        return list(added.values())

    def _accept_link(self, link: Link, node_index: Dict[str, Node], accepted: Dict[LinkKey, Link]) -> None:
        key = link.key
        if key in self._links or key in accepted:
            return

        source = node_index.get(link.source)
        target = node_index.get(link.target)
        if source is None or target is None:
            logger.debug(
                "Dropped link with a missing endpoint",
                extra={"source": link.source, "target": link.target, "predicate": link.predicate},
            )
            return

        is_ontology = is_ontology_predicate(link.predicate) or source.is_class or target.is_class
        if link.is_ontology_link != is_ontology:
            link = link.model_copy(update={"is_ontology_link": is_ontology})
        accepted[key] = link
