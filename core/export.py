# /core/export.py

import json
from typing import Any, Dict

from core.logger import get_logger
from core.models import KnowledgeGraph
from core.ontology import SCHEMA_VOCAB, prefix_map

logger = get_logger(__name__)

# Keys every node entry owns; a predicate with one of these names is not exported
RESERVED_KEYS = frozenset({"@id", "@type", "@context", "@graph", "name"})


def to_jsonld(graph: KnowledgeGraph) -> Dict[str, Any]:
    """
    Projects the graph onto a JSON-LD document, one object per node with each
    outgoing link as a `predicate: target id` property.

    This is lossy: several links sharing a source and a predicate collapse into
    one property (the last one wins) and links whose predicate is a reserved
    key are left out, so the result is an export, not a round-trippable
    serialization.
    """
    outgoing: Dict[str, Dict[str, str]] = {}
    for link in graph.links:
        if link.predicate in RESERVED_KEYS:
            logger.debug("Skipped link that would overwrite a node key", extra={"predicate": link.predicate})
            continue
        outgoing.setdefault(link.source, {})[link.predicate] = link.target

    context: Dict[str, Any] = {"@vocab": SCHEMA_VOCAB}
    context.update(prefix_map())

    entries = []
    for node in graph.nodes:
        entry: Dict[str, Any] = {
            "@id": node.id,
            "@type": node.kind.value,
            "name": node.label,
        }
        entry.update(outgoing.get(node.id, {}))
        entries.append(entry)

    return {"@context": context, "@graph": entries}


def dumps_jsonld(graph: KnowledgeGraph) -> str:
    return json.dumps(to_jsonld(graph), indent=2)
