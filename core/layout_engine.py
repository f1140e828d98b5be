# /core/layout_engine.py

import asyncio
import inspect
import math
import random
from enum import Enum
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from core.config import settings
from core.logger import get_logger
from core.models import Link, Node, NodeBody
from core.position_allocator import PositionAllocator

logger = get_logger(__name__)


class LayoutState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SETTLED = "settled"


class NodePosition(NamedTuple):
    id: str
    x: float
    y: float


class LinkSegment(NamedTuple):
    source: str
    target: str
    predicate: str
    x1: float
    y1: float
    x2: float
    y2: float
    mid_x: float
    mid_y: float


class TickFrame(NamedTuple):
    """What the renderer gets once per tick. Tuples all the way down, so it cannot be mutated."""
    alpha: float
    nodes: Tuple[NodePosition, ...]
    links: Tuple[LinkSegment, ...]


TickCallback = Callable[[TickFrame], object]


class LayoutEngine:
    """
    Continuous force-directed layout over whatever node/link set it was last
    given (always a filtered view, never the raw store).

    Physics state lives in `bodies`, keyed by node id. Bodies outlive the
    view: a node that is filtered out and shown again resumes where it was.
    """

    def __init__(self, allocator: Optional[PositionAllocator] = None, rng: Optional[random.Random] = None):
        self.allocator = allocator or PositionAllocator()
        self.rng = rng or random.Random()
        self.bodies: Dict[str, NodeBody] = {}
        self.state = LayoutState.IDLE

        self.alpha = 1.0
        self.alpha_min = settings.ALPHA_MIN
        self.alpha_decay = 1 - settings.ALPHA_MIN ** (1 / 300)
        self.alpha_target = 0.0
        self.velocity_decay = settings.VELOCITY_DECAY
        self.center = (settings.VIEWPORT_CENTER_X, settings.VIEWPORT_CENTER_Y)

        self._nodes: List[Node] = []
        self._links: List[Link] = []
        self._dragging: Set[str] = set()
        self._simulated: Set[str] = set()
        self._started = False
        self._wake: Optional[asyncio.Event] = None
        self._stopped = False
        self._pending_emits: Set[asyncio.Future] = set()

    # --- Data ---

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self._nodes]

    def set_graph(self, nodes: Iterable[Node], links: Iterable[Link]) -> int:
        """
        Replaces the simulated node/link set without touching existing bodies.
        Links must only reference nodes in `nodes`.

        Returns:
            The number of nodes that had no body yet and were placed.
        """
        self._nodes = list(nodes)
        self._links = list(links)
        placed = self.allocator.place(self._nodes, self.bodies)
        unseen = [node.id for node in self._nodes if node.id not in self._simulated]
        self._simulated.update(unseen)

        if not self._nodes:
            self.state = LayoutState.IDLE
        elif not self._started:
            # First data since a reset: a cold start, not a reheat
            self._started = True
            self.alpha = 1.0
            self._set_running()
        elif unseen:
            # Nodes never simulated before, including ones merged while hidden by a filter
            self.reheat()
        elif self.state is LayoutState.IDLE:
            # Nodes shown again after an empty view stay where they were
            self.state = LayoutState.SETTLED
        return placed

    def reheat(self, amount: Optional[float] = None) -> None:
        """Injects a bounded amount of energy; positions are left exactly where they are."""
        if not self._nodes:
            return
        amount = settings.REHEAT_ALPHA if amount is None else amount
        self.alpha = max(self.alpha, min(amount, 1.0))
        self._set_running()

    def reset(self) -> None:
        self.bodies.clear()
        self._nodes = []
        self._links = []
        self._dragging.clear()
        self._simulated.clear()
        self._started = False
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.state = LayoutState.IDLE

    def position_of(self, node_id: str) -> Optional[Tuple[float, float]]:
        body = self.bodies.get(node_id)
        return None if body is None else (body.x, body.y)

    # --- Drag interaction ---

    def begin_drag(self, node_id: str) -> bool:
        body = self.bodies.get(node_id)
        if body is None or node_id not in self.node_ids:
            logger.warning("Drag started on a node that is not displayed", extra={"node_id": node_id})
            return False
        self._dragging.add(node_id)
        body.fx, body.fy = body.x, body.y
        self.alpha_target = settings.REHEAT_ALPHA
        self._set_running()
        return True

    def update_drag(self, node_id: str, x: float, y: float) -> None:
        if node_id not in self._dragging:
            return
        body = self.bodies[node_id]
        body.fx, body.fy = x, y
        self._set_running()

    def end_drag(self, node_id: str) -> None:
        if node_id not in self._dragging:
            return
        self._dragging.discard(node_id)
        body = self.bodies.get(node_id)
        if body is not None:
            body.fx = body.fy = None
        if not self._dragging:
            self.alpha_target = 0.0

    # --- Simulation ---

    def tick(self) -> Optional[TickFrame]:
        """Advances the simulation by one step. Returns None when there is nothing to simulate."""
        if not self._nodes:
            self.state = LayoutState.IDLE
            return None

        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay

        bodies = [self.bodies[node.id] for node in self._nodes]
        xs = [b.x for b in bodies]
        ys = [b.y for b in bodies]
        vxs = [b.vx for b in bodies]
        vys = [b.vy for b in bodies]

        self._apply_links(xs, ys, vxs, vys)
        self._apply_charge(xs, ys, vxs, vys)
        self._apply_center(xs, ys)
        self._apply_collide(xs, ys, vxs, vys)

        retain = 1 - self.velocity_decay
        for i, body in enumerate(bodies):
            if body.fx is None:
                vxs[i] *= retain
                xs[i] += vxs[i]
            else:
                xs[i] = body.fx
                vxs[i] = 0.0
            if body.fy is None:
                vys[i] *= retain
                ys[i] += vys[i]
            else:
                ys[i] = body.fy
                vys[i] = 0.0
            body.x, body.y, body.vx, body.vy = xs[i], ys[i], vxs[i], vys[i]

        if self.alpha < self.alpha_min and not self._dragging:
            self.state = LayoutState.SETTLED
            logger.debug("Layout settled", extra={"nodes": len(self._nodes)})

        return self._frame()

    async def run(self, on_tick: TickCallback, frame_interval: Optional[float] = None) -> None:
        """
        Ticks continuously while RUNNING and sleeps while IDLE or SETTLED until
        new data or a drag perturbs the layout. Returns after `stop()`.
        """
        interval = settings.FRAME_INTERVAL if frame_interval is None else frame_interval
        self._wake = asyncio.Event()
        self._stopped = False
        while not self._stopped:
            if self.state is not LayoutState.RUNNING:
                self._wake.clear()
                await self._wake.wait()
                continue
            frame = self.tick()
            if frame is not None:
                self._emit(on_tick, frame)
            await asyncio.sleep(interval)

    def stop(self) -> None:
        self._stopped = True
        for future in list(self._pending_emits):
            future.cancel()
        if self._wake is not None:
            self._wake.set()

    def _set_running(self) -> None:
        self.state = LayoutState.RUNNING
        if self._wake is not None:
            self._wake.set()

    def _emit(self, on_tick: TickCallback, frame: TickFrame) -> None:
        try:
            result = on_tick(frame)
        except Exception as e:
            logger.error(f"Tick callback failed: {e}", exc_info=True)
            return
        if inspect.isawaitable(result):
            # Async renderers run alongside the loop; the next tick never waits for them
            future = asyncio.ensure_future(result)
            self._pending_emits.add(future)
            future.add_done_callback(self._emit_done)

    def _emit_done(self, future: asyncio.Future) -> None:
        self._pending_emits.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Tick callback failed: {error}", exc_info=(type(error), error, error.__traceback__))

    def _frame(self) -> TickFrame:
        nodes = tuple(
            NodePosition(node.id, self.bodies[node.id].x, self.bodies[node.id].y)
            for node in self._nodes
        )
        links = []
        for link in self._links:
            s = self.bodies[link.source]
            t = self.bodies[link.target]
            links.append(LinkSegment(
                link.source, link.target, link.predicate,
                s.x, s.y, t.x, t.y,
                (s.x + t.x) / 2, (s.y + t.y) / 2,
            ))
        return TickFrame(self.alpha, nodes, tuple(links))

    # --- Forces ---

    def _jiggle(self) -> float:
        return (self.rng.random() - 0.5) * 1e-6

    def _index(self) -> Dict[str, int]:
        return {node.id: i for i, node in enumerate(self._nodes)}

    def _apply_links(self, xs, ys, vxs, vys) -> None:
        index = self._index()
        pairs = []
        degree = [0] * len(xs)
        for link in self._links:
            s, t = index[link.source], index[link.target]
            if s == t:
                continue
            pairs.append((s, t, link))
            degree[s] += 1
            degree[t] += 1

        for s, t, link in pairs:
            distance = settings.ONTOLOGY_LINK_DISTANCE if link.is_ontology_link else settings.LINK_DISTANCE
            strength = 1 / min(degree[s], degree[t])
            bias = degree[s] / (degree[s] + degree[t])

            x = xs[t] + vxs[t] - xs[s] - vxs[s] or self._jiggle()
            y = ys[t] + vys[t] - ys[s] - vys[s] or self._jiggle()
            l = math.sqrt(x * x + y * y)
            l = (l - distance) / l * self.alpha * strength
            x *= l
            y *= l
            vxs[t] -= x * bias
            vys[t] -= y * bias
            vxs[s] += x * (1 - bias)
            vys[s] += y * (1 - bias)

    def _apply_charge(self, xs, ys, vxs, vys) -> None:
        n = len(xs)
        k = settings.CHARGE_STRENGTH * self.alpha
        for i in range(n):
            for j in range(n):
                if i == j:
                    continue
                x = xs[j] - xs[i] or self._jiggle()
                y = ys[j] - ys[i] or self._jiggle()
                l = x * x + y * y
                if l < 1:
                    l = math.sqrt(l)
                vxs[i] += x * k / l
                vys[i] += y * k / l

    def _apply_center(self, xs, ys) -> None:
        n = len(xs)
        cx, cy = self.center
        sx = cx - sum(xs) / n
        sy = cy - sum(ys) / n
        for i in range(n):
            xs[i] += sx
            ys[i] += sy

    def _apply_collide(self, xs, ys, vxs, vys) -> None:
        radii = [
            settings.CLASS_COLLIDE_RADIUS if node.is_class else settings.COLLIDE_RADIUS
            for node in self._nodes
        ]
        n = len(xs)
        for i in range(n):
            ri = radii[i]
            ri2 = ri * ri
            xi = xs[i] + vxs[i]
            yi = ys[i] + vys[i]
            for j in range(i + 1, n):
                rj = radii[j]
                r = ri + rj
                x = xi - xs[j] - vxs[j]
                y = yi - ys[j] - vys[j]
                l = x * x + y * y
                if l >= r * r:
                    continue
                if x == 0:
                    x = self._jiggle()
                    l += x * x
                if y == 0:
                    y = self._jiggle()
                    l += y * y
                l = math.sqrt(l)
                l = (r - l) / l * settings.COLLIDE_STRENGTH
                x *= l
                y *= l
                w = rj * rj / (ri2 + rj * rj)
                vxs[i] += x * w
                vys[i] += y * w
                vxs[j] -= x * (1 - w)
                vys[j] -= y * (1 - w)
