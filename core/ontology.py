# /core/ontology.py

from typing import Dict, List

from pydantic import BaseModel

from core.models import Node, NodeKind

TYPE_PREDICATE = "rdf:type"
SUBCLASS_PREDICATE = "rdfs:subClassOf"

# Predicates that describe typing or subsumption rather than a domain fact.
ONTOLOGY_PREDICATES = frozenset({TYPE_PREDICATE, SUBCLASS_PREDICATE})

SCHEMA_VOCAB = "https://schema.org/"


class OntologyPrefix(BaseModel):
    prefix: str
    uri: str
    description: str


ONTOLOGY_PREFIXES: List[OntologyPrefix] = [
    OntologyPrefix(prefix="rdf", uri="http://www.w3.org/1999/02/22-rdf-syntax-ns#", description="Resource Description Framework"),
    OntologyPrefix(prefix="rdfs", uri="http://www.w3.org/2000/01/rdf-schema#", description="RDF Schema"),
    OntologyPrefix(prefix="owl", uri="http://www.w3.org/2002/07/owl#", description="Web Ontology Language"),
    OntologyPrefix(prefix="shacl", uri="http://www.w3.org/ns/shacl#", description="Shapes Constraint Language"),
    OntologyPrefix(prefix="prov", uri="http://www.w3.org/ns/prov#", description="Provenance Ontology"),
    OntologyPrefix(prefix="dcat", uri="http://www.w3.org/ns/dcat#", description="Data Catalog Vocabulary"),
    OntologyPrefix(prefix="odrl", uri="http://www.w3.org/ns/odrl/2/", description="Open Digital Rights Language"),
    OntologyPrefix(prefix="hydra", uri="http://www.w3.org/ns/hydra/core#", description="Hydra Core Vocabulary"),
    OntologyPrefix(prefix="foaf", uri="http://xmlns.com/foaf/0.1/", description="Friend of a Friend"),
    OntologyPrefix(prefix="org", uri="http://www.w3.org/ns/org#", description="Organization Ontology"),
]


def prefix_map() -> Dict[str, str]:
    """Maps each known prefix to its namespace URI, for a JSON-LD @context."""
    return {p.prefix: p.uri for p in ONTOLOGY_PREFIXES}


def upper_ontology() -> List[Node]:
    """
    One Class node per instance kind. Seeding a fresh store with these means
    every instance node always has a Class to be typed against.
    """
    return [
        Node(id=kind.value, label=kind.value, kind=NodeKind.CLASS)
        for kind in NodeKind
        if kind is not NodeKind.CLASS
    ]


def is_ontology_predicate(predicate: str) -> bool:
    return predicate in ONTOLOGY_PREDICATES
