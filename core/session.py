# /core/session.py

from typing import Any, Callable, List, Optional

from core.entity_store import EntityStore
from core.export import dumps_jsonld
from core.filtered_view import GraphView, ViewFilters, build_view
from core.layout_engine import LayoutEngine, TickCallback
from core.logger import get_logger
from core.models import Fragment, MergeResult
from core.position_allocator import PositionAllocator

logger = get_logger(__name__)

ViewListener = Callable[[GraphView], None]


class GraphSession:
    """
    Wires the canonical store, the position allocator, the filtered view and
    the layout engine together, and is the single writer of the graph.

    A topic change is a full reset: a fresh store, an idle layout and a new
    generation number. Results tagged with an older generation are discarded.
    """

    def __init__(self, allocator: Optional[PositionAllocator] = None, engine: Optional[LayoutEngine] = None):
        self.allocator = allocator or PositionAllocator()
        self.engine = engine or LayoutEngine(allocator=self.allocator)
        self.store = EntityStore()
        self.filters = ViewFilters()
        self.view = GraphView()
        self.generation = 0
        self.topic: Optional[str] = None
        self.ontology_loaded = False
        self._view_listeners: List[ViewListener] = []
        self._reset_listeners: List[Callable[[], None]] = []
        self._refresh_view()

    # --- Observers ---

    def subscribe(self, listener: ViewListener) -> None:
        """Registers a callback that receives every recomputed view."""
        self._view_listeners.append(listener)

    def on_reset(self, listener: Callable[[], None]) -> None:
        self._reset_listeners.append(listener)

    # --- Writes ---

    def merge(self, candidate_nodes: Any, candidate_links: Any) -> MergeResult:
        result = self.store.merge(candidate_nodes, candidate_links)
        if result.is_empty:
            return result

        self.allocator.place(result.added_nodes, self.engine.bodies)
        shown = (len(self.view.nodes), len(self.view.links))
        self._refresh_view()
        # The graph only grows, so an unchanged count means nothing new is on screen
        if (len(self.view.nodes), len(self.view.links)) != shown:
            self.engine.reheat()
        return result

    def merge_fragment(self, fragment: Fragment, generation: Optional[int] = None) -> MergeResult:
        """Merges a collaborator fragment unless it was requested by an earlier session."""
        if generation is not None and generation != self.generation:
            logger.info(
                "Discarded fragment from a previous session",
                extra={"fragment_generation": generation, "generation": self.generation},
            )
            return MergeResult()
        return self.merge(fragment.nodes, fragment.links)

    def merge_ontology(self, fragment: Fragment, generation: Optional[int] = None) -> MergeResult:
        """Merges a T-Box fragment and remembers that this session has a domain schema."""
        result = self.merge_fragment(fragment, generation=generation)
        if fragment.nodes and (generation is None or generation == self.generation):
            self.ontology_loaded = True
        return result

    def reset(self, topic: Optional[str] = None) -> int:
        """
        Starts a new session on `topic`.

        Returns:
            The new generation number.
        """
        self.generation += 1
        self.topic = topic
        self.ontology_loaded = False
        self.store = EntityStore()
        self.engine.reset()
        for listener in self._reset_listeners:
            listener()
        self._refresh_view()
        logger.info("Session reset", extra={"topic": topic, "generation": self.generation})
        return self.generation

    # --- Filters ---

    def set_filters(self, **changes) -> GraphView:
        """Updates some filter options, e.g. `set_filters(show_ontology_layer=False)`."""
        self.filters = ViewFilters(**{**self.filters.model_dump(), **changes})
        self._refresh_view()
        return self.view

    def _refresh_view(self) -> None:
        self.view = build_view(self.store.snapshot(), self.filters)
        self.engine.set_graph(self.view.nodes, self.view.links)
        for listener in self._view_listeners:
            listener(self.view)

    # --- Layout & interaction ---

    async def run_layout(self, on_tick: TickCallback) -> None:
        await self.engine.run(on_tick)

    def begin_drag(self, node_id: str) -> bool:
        return self.engine.begin_drag(node_id)

    def update_drag(self, node_id: str, x: float, y: float) -> None:
        self.engine.update_drag(node_id, x, y)

    def end_drag(self, node_id: str) -> None:
        self.engine.end_drag(node_id)

    # --- Export ---

    def export_jsonld(self) -> str:
        return dumps_jsonld(self.store.snapshot())
