# /core/fragments.py

import json
from typing import Any, Tuple

from pydantic import ValidationError

from core.logger import get_logger
from core.models import ExtractionResult, Fragment, Link, Node, NodeKind, ParseFailure

logger = get_logger(__name__)

_KINDS = {kind.value.lower(): kind for kind in NodeKind}


def _coerce_kind(raw: Any) -> NodeKind:
    if isinstance(raw, NodeKind):
        return raw
    if isinstance(raw, str):
        # Tolerate prefixed types such as "schema:Person" or "foaf:Person"
        name = raw.rsplit(":", 1)[-1].strip().lower()
        if name in _KINDS:
            return _KINDS[name]
    return NodeKind.CONCEPT


def coerce_node(item: Any) -> Node:
    """
    Turns one candidate item into a Node. Raises ValueError when the item
    cannot carry an identity; every other gap is filled with a default.
    """
    if isinstance(item, Node):
        return item
    if not isinstance(item, dict):
        raise ValueError(f"node item is {type(item).__name__}, not an object")

    node_id = item.get("id")
    if not isinstance(node_id, str) or not node_id.strip():
        raise ValueError("node item has no usable 'id'")
    node_id = node_id.strip()

    label = item.get("label") or item.get("name") or node_id
    properties = item.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    properties = {
        str(k): v for k, v in properties.items()
        if isinstance(v, (str, int, float)) and not isinstance(v, bool)
    }
    return Node(
        id=node_id,
        label=str(label),
        kind=_coerce_kind(item.get("kind", item.get("type"))),
        properties=properties,
    )


def coerce_link(item: Any) -> Link:
    if isinstance(item, Link):
        return item
    if not isinstance(item, dict):
        raise ValueError(f"link item is {type(item).__name__}, not an object")

    source = item.get("source")
    target = item.get("target")
    predicate = item.get("predicate") or item.get("label")
    # Links that already went through a renderer may carry node objects as endpoints
    if isinstance(source, dict):
        source = source.get("id")
    if isinstance(target, dict):
        target = target.get("id")
    for name, value in (("source", source), ("target", target), ("predicate", predicate)):
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"link item has no usable '{name}'")

    return Link(
        source=source.strip(),
        target=target.strip(),
        predicate=predicate.strip(),
        label=str(item.get("label") or predicate).strip(),
    )


def coerce_items(items: Any, coerce) -> Tuple[list, int]:
    """Applies `coerce` to every element of a list, dropping the ones that fail."""
    if not isinstance(items, list):
        return [], 0
    accepted, dropped = [], 0
    for item in items:
        try:
            accepted.append(coerce(item))
        except (ValueError, ValidationError) as e:
            dropped += 1
            logger.debug("Dropped malformed fragment item", extra={"reason": str(e)})
    return accepted, dropped


def parse_fragment(payload: Any) -> ExtractionResult:
    """
    Validates a collaborator response at the boundary.

    Args:
        payload: Decoded JSON (or the raw JSON text) returned by an enrichment call.

    Returns:
        A Fragment holding the items that could be parsed, or a ParseFailure
        when the response is not shaped like {nodes: [...], links: [...]}.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload or "{}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return ParseFailure(reason=f"response is not valid JSON: {e}")

    if not isinstance(payload, dict):
        return ParseFailure(reason=f"response is {type(payload).__name__}, expected an object")

    raw_nodes = payload.get("nodes", [])
    raw_links = payload.get("links", [])
    if not isinstance(raw_nodes, list) or not isinstance(raw_links, list):
        return ParseFailure(reason="'nodes' and 'links' must both be lists")

    nodes, dropped_nodes = coerce_items(raw_nodes, coerce_node)
    links, dropped_links = coerce_items(raw_links, coerce_link)
    return Fragment(nodes=nodes, links=links, dropped_items=dropped_nodes + dropped_links)

