# /ingestion/sources.py

from abc import ABC, abstractmethod
from typing import List, Sequence

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI

from core.config import settings
from core.fragments import parse_fragment
from core.logger import get_logger
from core.models import ExtractionResult, Fragment, Node, NodeKind, ParseFailure
from core.ontology import SUBCLASS_PREDICATE, TYPE_PREDICATE

logger = get_logger(__name__)


class EnrichmentSource(ABC):
    """Abstract base class for whatever turns raw text into a graph fragment."""

    @abstractmethod
    async def extract(self, raw_text: str, known_class_ids: List[str]) -> ExtractionResult:
        """Returns the fragment found in `raw_text`, or a ParseFailure."""
        pass

    async def generate_domain_ontology(self, topic: str) -> ExtractionResult:
        """Returns Class nodes describing `topic`. Sources without a schema step return nothing."""
        return Fragment()

    async def infer_ontology_layer(self, nodes: Sequence[Node]) -> ExtractionResult:
        """Returns Class nodes that generalize the given instance nodes. Empty by default."""
        return Fragment()

    async def pattern_scan(self, query: str, known_class_ids: List[str]) -> ExtractionResult:
        """
        Returns entities matching a shape description such as
        "Organizations involved in deep sea mining and their funders".
        Sources that cannot search return nothing.
        """
        return Fragment()


EXTRACTION_SYSTEM_PROMPT = """
You are an expert at extracting information from intelligence text and structuring it
as a Knowledge Graph in RDF/OWL style.

--- ONTOLOGY ---
Allowed node types: {node_types}
Known ontology classes: {class_ids}
---

- Identify key entities. For each node you MUST provide a unique CamelCase 'id'
  (e.g. UnitedNations), a readable 'label' and a 'type'.
- Identify relationships between them using standard ontology predicates where
  possible (e.g. foaf:knows, org:memberOf, prov:wasStartedBy, spatial:locatedIn).
  For each link you MUST provide 'source', 'target', 'predicate' and 'label'.
- Only link to node ids that appear in your own 'nodes' list or in the known classes.

Return a JSON object with exactly two keys: "nodes" and "links".
"""

ONTOLOGY_SYSTEM_PROMPT = """
You are a knowledge architect. Design the T-Box (schema layer) for the domain below.

Upper ontology classes that already exist: {class_ids}

- Return 4 to 8 domain-specific classes. Each node needs a CamelCase 'id', a
  'label' and the type "Class".
- Connect every new class to one existing or new class with a link whose
  predicate is "{subclass}" and whose label is "subclass of".

Return a JSON object with exactly two keys: "nodes" and "links".
"""

INFERENCE_SYSTEM_PROMPT = """
You are a knowledge architect. Infer the T-Box (schema layer) behind the instance
data below.

Upper ontology classes that already exist: {class_ids}

- Return 3 to 8 classes that generalize the instances. Each node needs a CamelCase
  'id', a 'label' and the type "Class". Do not repeat the instances as nodes.
- Connect every new class to an upper class with a link whose predicate is
  "{subclass}" and whose label is "subclass of".
- Connect every instance you can classify to its new class with a link whose
  predicate is "{type_predicate}" and whose label is "type".

Return a JSON object with exactly two keys: "nodes" and "links".
"""

PATTERN_SCAN_SYSTEM_PROMPT = """
You are a SHACL validation agent. Turn the pattern below into a shape (a target
class and the properties an entity must have), then list real-world entities
from your knowledge that conform to it.

--- ONTOLOGY ---
Allowed node types: {node_types}
Known ontology classes: {class_ids}
---

- For each matching entity provide a unique CamelCase 'id', a readable 'label'
  and a 'type'.
- Link the entities with the relations that make them match, using standard
  ontology predicates (e.g. org:memberOf, prov:wasAssociatedWith). Each link
  needs 'source', 'target', 'predicate' and 'label'.
- Return no nodes when nothing matches.

Return a JSON object with exactly two keys: "nodes" and "links".
"""


class GeminiEnrichmentSource(EnrichmentSource):
    """Extracts fragments with a Gemini model through a LangChain prompt chain."""

    def __init__(self, llm=None):
        self._llm = llm

    @property
    def llm(self):
        # Built on first use so that constructing the source never needs credentials
        if self._llm is None:
            kwargs = {"model": settings.GENERATION_MODEL, "temperature": 0}
            if settings.GOOGLE_API_KEY:
                kwargs["google_api_key"] = settings.GOOGLE_API_KEY
            self._llm = ChatGoogleGenerativeAI(**kwargs)
        return self._llm

    async def extract(self, raw_text: str, known_class_ids: List[str]) -> ExtractionResult:
        prompt = ChatPromptTemplate.from_messages([
            ("system", EXTRACTION_SYSTEM_PROMPT),
            ("human", "Extract the knowledge graph from the following text:\n\n---\n{text}\n---"),
        ])
        chain = prompt | self.llm | JsonOutputParser()
        return await self._invoke(chain, {
            "node_types": ", ".join(kind.value for kind in NodeKind if kind is not NodeKind.CLASS),
            "class_ids": ", ".join(known_class_ids),
            "text": raw_text,
        })

    async def generate_domain_ontology(self, topic: str) -> ExtractionResult:
        prompt = ChatPromptTemplate.from_messages([
            ("system", ONTOLOGY_SYSTEM_PROMPT),
            ("human", "Domain: {topic}"),
        ])
        chain = prompt | self.llm | JsonOutputParser()
        result = await self._invoke(chain, {
            "class_ids": ", ".join(kind.value for kind in NodeKind if kind is not NodeKind.CLASS),
            "subclass": SUBCLASS_PREDICATE,
            "topic": topic,
        })
        return _as_classes(result)

    async def infer_ontology_layer(self, nodes: Sequence[Node]) -> ExtractionResult:
        prompt = ChatPromptTemplate.from_messages([
            ("system", INFERENCE_SYSTEM_PROMPT),
            ("human", "Instances (id: type):\n{instances}"),
        ])
        chain = prompt | self.llm | JsonOutputParser()
        instance_ids = {node.id for node in nodes}
        result = await self._invoke(chain, {
            "class_ids": ", ".join(kind.value for kind in NodeKind if kind is not NodeKind.CLASS),
            "subclass": SUBCLASS_PREDICATE,
            "type_predicate": TYPE_PREDICATE,
            "instances": "\n".join(f"{node.id}: {node.kind.value}" for node in nodes),
        })
        if isinstance(result, ParseFailure):
            return result
        # Instances echoed back by the model are not new classes
        result = result.model_copy(update={"nodes": [n for n in result.nodes if n.id not in instance_ids]})
        return _as_classes(result)

    async def pattern_scan(self, query: str, known_class_ids: List[str]) -> ExtractionResult:
        prompt = ChatPromptTemplate.from_messages([
            ("system", PATTERN_SCAN_SYSTEM_PROMPT),
            ("human", "Pattern: {query}"),
        ])
        chain = prompt | self.llm | JsonOutputParser()
        return await self._invoke(chain, {
            "node_types": ", ".join(kind.value for kind in NodeKind if kind is not NodeKind.CLASS),
            "class_ids": ", ".join(known_class_ids),
            "query": query,
        })

    async def _invoke(self, chain, inputs) -> ExtractionResult:
        try:
            payload = await chain.ainvoke(inputs)
        except OutputParserException as e:
            logger.warning(f"Model response was not valid JSON: {e}")
            return ParseFailure(reason=f"unparseable model response: {e}")
        except Exception as e:
            logger.error(f"Gemini extraction call failed: {e}", exc_info=True)
            return ParseFailure(reason=f"extraction call failed: {e}")
        return parse_fragment(payload)


def _as_classes(result: ExtractionResult) -> ExtractionResult:
    """Whatever the model labelled them, schema nodes are Class nodes."""
    if isinstance(result, ParseFailure):
        return result
    nodes = [
        node if node.is_class else node.model_copy(update={"kind": NodeKind.CLASS})
        for node in result.nodes
    ]
    return result.model_copy(update={"nodes": nodes})
