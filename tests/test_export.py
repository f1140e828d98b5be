import json
import unittest

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.entity_store import EntityStore
from core.export import dumps_jsonld, to_jsonld


class TestJsonLdExport(unittest.TestCase):

    def setUp(self):
        self.store = EntityStore()
        self.store.merge(
            [
                {"id": "UN", "type": "Organization", "label": "United Nations"},
                {"id": "NewYork", "type": "Location", "label": "New York"},
                {"id": "Geneva", "type": "Location", "label": "Geneva"},
            ],
            [
                {"source": "UN", "target": "NewYork", "predicate": "spatial:locatedIn"},
                {"source": "UN", "target": "Geneva", "predicate": "spatial:locatedIn"},
            ],
        )

    def test_one_entry_per_node(self):
        doc = to_jsonld(self.store.snapshot())

        self.assertEqual(len(doc["@graph"]), len(self.store))
        un = next(entry for entry in doc["@graph"] if entry["@id"] == "UN")
        self.assertEqual(un["@type"], "Organization")
        self.assertEqual(un["name"], "United Nations")
        self.assertEqual(un["rdf:type"], "Organization")

    def test_parallel_predicates_collapse(self):
        """Two locatedIn links from UN become a single property."""
        un = next(entry for entry in to_jsonld(self.store.snapshot())["@graph"] if entry["@id"] == "UN")
        self.assertIn(un["spatial:locatedIn"], {"NewYork", "Geneva"})

    def test_reserved_predicates_do_not_overwrite_node_keys(self):
        self.store.merge(
            [],
            [
                {"source": "UN", "target": "Geneva", "predicate": "name"},
                {"source": "UN", "target": "Geneva", "predicate": "@id"},
                {"source": "UN", "target": "Geneva", "predicate": "@type"},
            ],
        )

        un = next(entry for entry in to_jsonld(self.store.snapshot())["@graph"] if entry["@id"] == "UN")

        self.assertEqual(un["name"], "United Nations")
        self.assertEqual(un["@type"], "Organization")
        self.assertEqual(un["rdf:type"], "Organization")

    def test_context_declares_prefixes(self):
        context = to_jsonld(self.store.snapshot())["@context"]
        self.assertEqual(context["@vocab"], "https://schema.org/")
        self.assertEqual(context["rdf"], "http://www.w3.org/1999/02/22-rdf-syntax-ns#")

    def test_dumps_is_valid_json(self):
        self.assertEqual(json.loads(dumps_jsonld(self.store.snapshot())), to_jsonld(self.store.snapshot()))


if __name__ == '__main__':
    unittest.main()
