import json
import unittest
from unittest.mock import patch

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from langchain_core.language_models.fake_chat_models import FakeListChatModel

from core.models import Fragment, Node, NodeKind, ParseFailure
from ingestion.sources import EnrichmentSource, GeminiEnrichmentSource


class TestGeminiEnrichmentSource(unittest.IsolatedAsyncioTestCase):

    async def test_extract_parses_model_json(self):
        """The chain output goes through fragment parsing before anyone sees it."""
        # --- Arrange ---
        response = json.dumps({
            "nodes": [{"id": "UnitedNations", "label": "United Nations", "type": "Organization"}],
            "links": [{"source": "UnitedNations", "target": "Organization", "predicate": "rdf:type", "label": "is a"}],
        })
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=[response]))

        # --- Act ---
        result = await source.extract("The UN met today.", ["Person", "Organization"])

        # --- Assert ---
        self.assertIsInstance(result, Fragment)
        self.assertEqual(result.nodes[0].id, "UnitedNations")
        self.assertEqual(result.links[0].predicate, "rdf:type")

    async def test_extract_tolerates_code_fenced_json(self):
        response = "```json\n{\"nodes\": [{\"id\": \"X\", \"type\": \"Event\"}], \"links\": []}\n```"
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=[response]))

        result = await source.extract("text", [])

        self.assertIsInstance(result, Fragment)
        self.assertEqual(result.nodes[0].kind, NodeKind.EVENT)

    async def test_extract_returns_failure_for_prose(self):
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=["I could not find any entities."]))

        result = await source.extract("text", [])

        self.assertIsInstance(result, ParseFailure)

    async def test_extract_returns_failure_for_wrong_shape(self):
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=['[{"id": "X"}]']))

        result = await source.extract("text", [])

        self.assertIsInstance(result, ParseFailure)

    async def test_call_errors_become_failures(self):
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=["{}"]))
        with patch.object(FakeListChatModel, "_call", side_effect=RuntimeError("429 rate limited")):
            result = await source.extract("text", [])

        self.assertIsInstance(result, ParseFailure)
        self.assertIn("429", result.reason)

    async def test_domain_ontology_nodes_are_classes(self):
        response = json.dumps({
            "nodes": [
                {"id": "ThreatActor", "label": "Threat Actor", "type": "Class"},
                {"id": "CyberAttack", "label": "Cyber Attack", "type": "Event"},
            ],
            "links": [{"source": "CyberAttack", "target": "Event", "predicate": "rdfs:subClassOf", "label": "subclass of"}],
        })
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=[response]))

        result = await source.generate_domain_ontology("Cyber Threats")

        self.assertIsInstance(result, Fragment)
        self.assertTrue(all(node.kind is NodeKind.CLASS for node in result.nodes))
        self.assertEqual(len(result.links), 1)

    async def test_inferred_ontology_layer_keeps_only_new_classes(self):
        # --- Arrange ---
        response = json.dumps({
            "nodes": [
                {"id": "MiningCompany", "label": "Mining Company", "type": "Organization"},
                {"id": "Acme", "label": "Acme", "type": "Organization"},
            ],
            "links": [
                {"source": "MiningCompany", "target": "Organization", "predicate": "rdfs:subClassOf"},
                {"source": "Acme", "target": "MiningCompany", "predicate": "rdf:type"},
            ],
        })
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=[response]))
        acme = Node(id="Acme", label="Acme", kind=NodeKind.ORGANIZATION)

        # --- Act ---
        result = await source.infer_ontology_layer([acme])

        # --- Assert ---
        self.assertEqual([node.id for node in result.nodes], ["MiningCompany"])
        self.assertIs(result.nodes[0].kind, NodeKind.CLASS)
        self.assertEqual(len(result.links), 2)

    async def test_pattern_scan_parses_matches(self):
        response = json.dumps({
            "nodes": [{"id": "DeepGreen", "label": "Deep Green", "type": "Organization"}],
            "links": [],
        })
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=[response]))

        result = await source.pattern_scan("Organizations in deep sea mining", ["Organization"])

        self.assertIsInstance(result, Fragment)
        self.assertIs(result.nodes[0].kind, NodeKind.ORGANIZATION)

    async def test_pattern_scan_prose_is_a_failure(self):
        source = GeminiEnrichmentSource(llm=FakeListChatModel(responses=["Nothing matched, sorry."]))

        result = await source.pattern_scan("anything", [])

        self.assertIsInstance(result, ParseFailure)


class TestEnrichmentSourceDefaults(unittest.IsolatedAsyncioTestCase):

    async def test_default_domain_ontology_is_empty(self):
        class EchoSource(EnrichmentSource):
            async def extract(self, raw_text, known_class_ids):
                return Fragment()

        result = await EchoSource().generate_domain_ontology("anything")
        self.assertTrue(result.is_empty)

    async def test_default_inference_and_pattern_scan_are_empty(self):
        class EchoSource(EnrichmentSource):
            async def extract(self, raw_text, known_class_ids):
                return Fragment()

        source = EchoSource()
        self.assertTrue((await source.infer_ontology_layer([])).is_empty)
        self.assertTrue((await source.pattern_scan("anything", [])).is_empty)


if __name__ == '__main__':
    unittest.main()
