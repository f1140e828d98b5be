import itertools
import unittest

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.entity_store import EntityStore
from core.filtered_view import ViewFilters, build_view
from core.models import NodeKind


class TestFilteredView(unittest.TestCase):

    def setUp(self):
        self.store = EntityStore()
        self.store.merge(
            [
                {"id": "AliceSmith", "type": "Person", "label": "Alice Smith"},
                {"id": "Acme", "type": "Organization", "label": "Acme Corp"},
                {"id": "Berlin", "type": "Location", "label": "Berlin"},
            ],
            [
                {"source": "AliceSmith", "target": "Acme", "predicate": "org:memberOf", "label": "member of"},
                {"source": "Acme", "target": "Berlin", "predicate": "spatial:locatedIn", "label": "located in"},
            ],
        )
        self.graph = self.store.snapshot()

    def test_type_filter_keeps_classes_and_drops_cut_links(self):
        """
        Filtering on Person keeps the Person node and the Class nodes, and drops
        the Organization node together with the link to it.
        """
        view = build_view(self.graph, ViewFilters(type_filter=NodeKind.PERSON, show_ontology_layer=True))

        ids = {node.id for node in view.nodes}
        self.assertIn("AliceSmith", ids)
        self.assertIn("Person", ids)
        self.assertNotIn("Acme", ids)
        self.assertNotIn("Berlin", ids)
        self.assertFalse(any(link.predicate == "org:memberOf" for link in view.links))
        self.assertIn(("AliceSmith", "Person", "rdf:type"), {link.key for link in view.links})

    def test_hiding_ontology_layer(self):
        view = build_view(self.graph, ViewFilters(show_ontology_layer=False))

        self.assertFalse(any(node.is_class for node in view.nodes))
        self.assertFalse(any(link.is_ontology_link for link in view.links))
        self.assertEqual(
            {link.predicate for link in view.links},
            {"org:memberOf", "spatial:locatedIn"},
        )

    def test_search_only_highlights(self):
        view = build_view(self.graph, ViewFilters(search_term="  acme "))

        self.assertEqual(view.highlighted, frozenset({"Acme"}))
        self.assertEqual(len(view.nodes), len(self.graph.nodes), "Search never removes nodes.")

    def test_empty_search_highlights_nothing(self):
        self.assertEqual(build_view(self.graph, ViewFilters()).highlighted, frozenset())

    def test_view_never_mutates_the_graph(self):
        before = self.graph.model_copy(deep=True)
        build_view(self.graph, ViewFilters(type_filter=NodeKind.LOCATION, show_ontology_layer=False, search_term="x"))
        self.assertEqual(self.graph, before)

    def test_every_filter_combination_is_sound(self):
        """No filter combination ever yields a link with a missing endpoint."""
        kinds = [None] + list(NodeKind)
        for kind, show in itertools.product(kinds, [True, False]):
            view = build_view(self.graph, ViewFilters(type_filter=kind, show_ontology_layer=show))
            ids = {node.id for node in view.nodes}
            for link in view.links:
                self.assertIn(link.source, ids, f"filter={kind}, ontology={show}")
                self.assertIn(link.target, ids, f"filter={kind}, ontology={show}")


if __name__ == '__main__':
    unittest.main()
