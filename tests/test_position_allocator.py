import random
import unittest

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.models import Node, NodeBody, NodeKind
from core.position_allocator import PositionAllocator


def person(node_id):
    return Node(id=node_id, label=node_id, kind=NodeKind.PERSON)


class TestPositionAllocator(unittest.TestCase):

    def setUp(self):
        self.allocator = PositionAllocator(center=(400.0, 300.0), jitter=25.0, rng=random.Random(7))

    def test_new_nodes_land_near_the_center(self):
        bodies = {}
        placed = self.allocator.place([person(f"p{i}") for i in range(50)], bodies)

        self.assertEqual(placed, 50)
        for body in bodies.values():
            self.assertTrue(375.0 <= body.x <= 425.0)
            self.assertTrue(275.0 <= body.y <= 325.0)
            self.assertEqual((body.vx, body.vy), (0.0, 0.0))
            self.assertFalse(body.is_pinned)

    def test_existing_bodies_are_left_alone(self):
        """Only bodies for nodes in the batch are created; nothing else is touched."""
        settled = NodeBody(x=12.5, y=-40.0, vx=0.3, vy=-0.1)
        other = NodeBody(x=900.0, y=900.0)
        bodies = {"a": settled, "z": other}

        placed = self.allocator.place([person("a"), person("b")], bodies)

        self.assertEqual(placed, 1)
        self.assertIs(bodies["a"], settled)
        self.assertEqual((settled.x, settled.y, settled.vx, settled.vy), (12.5, -40.0, 0.3, -0.1))
        self.assertEqual((other.x, other.y), (900.0, 900.0))
        self.assertIn("b", bodies)

    def test_same_seed_gives_same_placement(self):
        a, b = {}, {}
        PositionAllocator(rng=random.Random(1)).place([person("x")], a)
        PositionAllocator(rng=random.Random(1)).place([person("x")], b)
        self.assertEqual((a["x"].x, a["x"].y), (b["x"].x, b["x"].y))


if __name__ == '__main__':
    unittest.main()
