# /ingestion/queue.py

import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, FrozenSet, Iterable, List, Optional

from core.config import settings
from core.filtered_view import GraphView
from core.logger import get_logger
from core.models import EnrichmentSubject, ExtractionResult, Fragment, MergeResult, ParseFailure, PendingItem
from core.session import GraphSession
from ingestion.sources import EnrichmentSource

logger = get_logger(__name__)

InFlightObserver = Callable[[FrozenSet[PendingItem]], None]


class IngestionQueue:
    """
    Feeds enrichment subjects to the source one at a time and merges what comes
    back into the session.

    The source is a rate-limited external call, so subjects never run
    concurrently: the first subject after an idle period starts at once and
    every following one waits `pacing_delay` seconds.
    """

    def __init__(self, session: GraphSession, source: EnrichmentSource, pacing_delay: Optional[float] = None):
        self.session = session
        self.source = source
        self.pacing_delay = settings.PACING_DELAY if pacing_delay is None else pacing_delay
        self._pending: Deque[EnrichmentSubject] = deque()
        self._in_flight: Dict[str, PendingItem] = {}
        self._observers: List[InFlightObserver] = []
        self._worker: Optional[asyncio.Task] = None
        session.on_reset(self.discard_pending)

    # --- Progress ---

    @property
    def in_flight(self) -> FrozenSet[PendingItem]:
        return frozenset(self._in_flight.values())

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def subscribe(self, observer: InFlightObserver) -> None:
        self._observers.append(observer)

    def _notify(self) -> None:
        snapshot = self.in_flight
        for observer in self._observers:
            observer(snapshot)

    # --- Queueing ---

    def enqueue(self, batch: Iterable[EnrichmentSubject]) -> None:
        """Appends subjects and makes sure a worker is draining them. Needs a running event loop."""
        subjects = list(batch) if batch is not None else []
        if not subjects:
            return
        self._pending.extend(subjects)
        logger.info("Enqueued enrichment subjects", extra={"count": len(subjects), "pending": len(self._pending)})
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def join(self) -> None:
        """Waits until every queued subject has been processed."""
        while self._worker is not None and not self._worker.done():
            await self._worker

    def discard_pending(self) -> None:
        """Drops queued subjects and forgets in-flight marks. A call still in flight settles into the void."""
        dropped = len(self._pending)
        self._pending.clear()
        self._in_flight.clear()
        if dropped:
            logger.info("Discarded pending enrichment subjects", extra={"count": dropped})
        self._notify()

    async def start_topic(self, topic: str, subjects: Iterable[EnrichmentSubject]) -> None:
        """
        Resets the session to `topic`, merges the domain ontology first so that
        instance nodes have classes to attach to, then queues the subjects.
        """
        generation = self.session.reset(topic)
        tbox = await self._call(f"Domain ontology for '{topic}'", self.source.generate_domain_ontology(topic))
        if tbox is not None:
            self.session.merge_ontology(tbox, generation=generation)

        if generation == self.session.generation:
            self.enqueue(subjects)

    async def show_ontology_layer(self, show: bool = True) -> GraphView:
        """
        Toggles the ontology layer. Switching it on when no domain schema was
        loaded first asks the source to infer classes from the instance nodes.
        """
        instances = [node for node in self.session.store.nodes if not node.is_class]
        if show and not self.session.ontology_loaded and instances:
            generation = self.session.generation
            logger.info("Inferring ontology layer from instance data", extra={"instances": len(instances)})
            tbox = await self._call("Ontology inference", self.source.infer_ontology_layer(instances))
            if tbox is not None:
                self.session.merge_ontology(tbox, generation=generation)
        return self.session.set_filters(show_ontology_layer=show)

    async def scan_pattern(self, query: str) -> MergeResult:
        """Merges the entities the source finds for a pattern description like "Politicians who ..."."""
        if not query or not query.strip():
            return MergeResult()
        generation = self.session.generation
        logger.info("Scanning for pattern", extra={"query": query[:80]})
        result = await self._call(
            f"Pattern scan '{query[:40]}'",
            self.source.pattern_scan(query, self.session.store.class_ids()),
        )
        if result is None:
            return MergeResult()
        merged = self.session.merge_fragment(result, generation=generation)
        logger.info("Pattern scan finished", extra={"added_nodes": len(merged.added_nodes)})
        return merged

    async def _call(self, what: str, call: Awaitable[ExtractionResult]) -> Optional[Fragment]:
        try:
            result = await call
        except Exception as e:
            logger.error(f"{what} failed: {e}", exc_info=True)
            return None
        if isinstance(result, ParseFailure):
            logger.warning(f"{what} returned a malformed response", extra={"reason": result.reason})
            return None
        return result

    async def _drain(self) -> None:
        first = True
        while self._pending:
            if not first:
                await asyncio.sleep(self.pacing_delay)
                if not self._pending:
                    break
            first = False
            await self._process(self._pending.popleft())

    async def _process(self, subject: EnrichmentSubject) -> None:
        generation = self.session.generation
        item = PendingItem(subject_id=subject.id)
        self._in_flight[subject.id] = item
        self._notify()

        result = None
        try:
            result = await self.source.extract(subject.text, self.session.store.class_ids())
        except Exception as e:
            logger.error(f"Enrichment failed for subject '{subject.id}': {e}", exc_info=True)
        finally:
            if self._in_flight.get(subject.id) is item:
                del self._in_flight[subject.id]
                self._notify()

        if result is None:
            return
        if isinstance(result, ParseFailure):
            logger.warning("Malformed enrichment response", extra={"subject_id": subject.id, "reason": result.reason})
            return

        merged = self.session.merge_fragment(result, generation=generation)
        if not merged.is_empty:
            logger.info(
                "Mapped subject into the graph",
                extra={"subject_id": subject.id, "title": subject.title[:40]},
            )
