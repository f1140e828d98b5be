# /core/position_allocator.py

import random
from typing import Iterable, MutableMapping, Optional, Tuple

from core.config import settings
from core.models import Node, NodeBody


class PositionAllocator:
    """Gives genuinely new nodes a starting position close to the viewport center."""

    def __init__(
        self,
        center: Optional[Tuple[float, float]] = None,
        jitter: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.center = center or (settings.VIEWPORT_CENTER_X, settings.VIEWPORT_CENTER_Y)
        self.jitter = settings.PLACEMENT_JITTER if jitter is None else jitter
        self.rng = rng or random.Random()

    def place(self, new_nodes: Iterable[Node], bodies: MutableMapping[str, NodeBody]) -> int:
        """
        Creates a body for every node in `new_nodes` that does not own one yet.
        Bodies of any other node are never read or written.

        Returns:
            The number of bodies created.
        """
        cx, cy = self.center
        placed = 0
        for node in new_nodes:
            if node.id in bodies:
                continue
            bodies[node.id] = NodeBody(
                x=cx + self.rng.uniform(-self.jitter, self.jitter),
                y=cy + self.rng.uniform(-self.jitter, self.jitter),
            )
            placed += 1
        return placed
