"""
Semantic edge extraction for Parallax.

Terms are sent to an LLM in one to three overlapping batches; the
relationship triples that come back are validated against the term set and
deduplicated into SemanticEdges.
"""
import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from parallax.config import get_config
from parallax.graph.llm import LLMClient
from parallax.utils.json_repair import extract_json

logger = logging.getLogger(__name__)

TERM_TYPES = ("unique", "convergent", "contradictory", "emergent")
EDGE_TYPES = ("analogical", "causal", "contradictory", "complementary", "hierarchical", "instantiates")
DEFAULT_EDGE_TYPE = "complementary"
DEFAULT_STRENGTH = 0.5
MAX_RATIONALE_LENGTH = 200

BATCH_THRESHOLD = 50
TWO_BATCH_LIMIT = 100
BATCH_OVERLAP = 10


@dataclass(frozen=True)
class Term:
    label: str
    type: str = "unique"
    slices: Tuple[int, ...] = ()  # discipline indexes, primary first
    centrality: float = 0.0

    @property
    def key(self) -> str:
        return self.label.lower().strip()

    @property
    def discipline(self) -> int:
        return self.slices[0] if self.slices else -1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Term":
        term_type = str(data.get("type") or "unique").lower()
        try:
            centrality = float(data.get("centrality") or 0.0)
        except (TypeError, ValueError):
            centrality = 0.0
        slices = []
        for value in data.get("slices") or ():
            try:
                slices.append(int(value))
            except (TypeError, ValueError):
                continue
        return cls(
            label=str(data.get("label") or "").strip(),
            type=term_type if term_type in TERM_TYPES else "unique",
            slices=tuple(slices),
            centrality=0.0 if math.isnan(centrality) else centrality,
        )


@dataclass(frozen=True)
class SemanticEdge:
    term_a: str
    term_b: str
    type: str = DEFAULT_EDGE_TYPE
    strength: float = DEFAULT_STRENGTH
    rationale: str = ""

    @property
    def pair_key(self) -> str:
        """Unordered, case-insensitive endpoint key."""
        return "|".join(sorted((self.term_a.lower(), self.term_b.lower())))

    def to_dict(self) -> dict:
        return {
            "term_a": self.term_a,
            "term_b": self.term_b,
            "type": self.type,
            "strength": self.strength,
            "rationale": self.rationale,
        }


@dataclass
class EdgeExtractionResult:
    relationships: List[SemanticEdge] = field(default_factory=list)
    generated_at: str = ""
    term_count: int = 0
    batch_count: int = 0

    def to_dict(self) -> dict:
        return {
            "relationships": [edge.to_dict() for edge in self.relationships],
            "generatedAt": self.generated_at,
            "termCount": self.term_count,
            "batchCount": self.batch_count,
        }


def build_term_index(terms: Sequence[Term]) -> Dict[str, int]:
    """Map lowercased, trimmed term labels to their position in terms."""
    return {term.key: i for i, term in enumerate(terms)}


def clamp_strength(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_STRENGTH
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_STRENGTH
    if math.isnan(number):
        return DEFAULT_STRENGTH
    return max(0.0, min(1.0, number))


def normalize_relationships(raw_relationships: Optional[Iterable[Any]],
                            term_index: Mapping[str, int],
                            terms: Optional[Sequence[Term]] = None) -> List[SemanticEdge]:
    """
    Validate and deduplicate raw LLM relationship records.

    Records are dropped when an endpoint is empty or unknown, or when both
    endpoints name the same term. Unknown types become "complementary",
    strength is clamped to [0, 1] (0.5 when missing or not a number) and the
    rationale is cut to 200 characters. Only the first record per unordered
    pair + type survives.

    Args:
        raw_relationships: Records with term_a, term_b, type, strength, rationale
        term_index: Output of build_term_index
        terms: When given, endpoints are rewritten to the canonical term labels

    Returns:
        List of SemanticEdge in input order
    """
    seen = set()
    edges = []
    dropped = 0
    for rel in raw_relationships or ():
        if not isinstance(rel, Mapping):
            dropped += 1
            continue
        a = str(rel.get("term_a") or "").strip()
        b = str(rel.get("term_b") or "").strip()
        if not a or not b or a.lower() == b.lower():
            dropped += 1
            continue
        if a.lower() not in term_index or b.lower() not in term_index:
            dropped += 1
            continue
        if terms is not None:
            a = terms[term_index[a.lower()]].label
            b = terms[term_index[b.lower()]].label

        edge_type = str(rel.get("type") or "").strip().lower()
        if edge_type not in EDGE_TYPES:
            edge_type = DEFAULT_EDGE_TYPE
        edge = SemanticEdge(
            term_a=a,
            term_b=b,
            type=edge_type,
            strength=clamp_strength(rel.get("strength")),
            rationale=str(rel.get("rationale") or "").strip()[:MAX_RATIONALE_LENGTH],
        )
        key = f"{edge.pair_key}|{edge.type}"
        if key in seen:
            continue
        seen.add(key)
        edges.append(edge)

    if dropped:
        logger.debug(f"Dropped {dropped} relationships with missing or unknown endpoints")
    return edges


def plan_batches(terms: Sequence[Term], threshold: int = BATCH_THRESHOLD,
                 overlap: int = BATCH_OVERLAP) -> List[List[Term]]:
    """
    Split terms into the batches sent to the LLM.

    Up to threshold terms go in one batch; up to 2*threshold in two halves,
    beyond that in three thirds. Neighbouring batches share overlap terms
    either side of each cut so relationships across the cut are still seen.
    """
    n = len(terms)
    if n == 0:
        return []
    if n <= threshold:
        return [list(terms)]
    if n <= 2 * threshold:
        mid = n // 2
        return [list(terms[:mid + overlap]), list(terms[max(0, mid - overlap):])]
    third = n // 3
    return [
        list(terms[:third + overlap]),
        list(terms[max(0, third - overlap):2 * third + overlap]),
        list(terms[max(0, 2 * third - overlap):]),
    ]


PromptBuilder = Callable[[str, Sequence[Term], Sequence[Term], Sequence[str]], Tuple[str, str]]


def default_relationship_prompts(target: str, batch: Sequence[Term], all_terms: Sequence[Term],
                                 disciplines: Sequence[str]) -> Tuple[str, str]:
    """Plain prompt pair used when the caller does not supply its own wording."""
    system = (
        "You identify semantic relationships between terms. Reply with a JSON object "
        '{"relationships": [{"term_a", "term_b", "type", "strength", "rationale"}]}. '
        f"type is one of: {', '.join(EDGE_TYPES)}. strength is between 0 and 1. "
        "Only use terms exactly as listed."
    )
    user = json.dumps({
        "topic": target,
        "disciplines": list(disciplines),
        "all_terms": [t.label for t in all_terms],
        "batch": [t.label for t in batch],
    })
    return system, user


def coerce_relationships(parsed: Any) -> List[Any]:
    """Accept {"relationships": [...]} or a bare list; anything else is empty."""
    if isinstance(parsed, Mapping):
        rels = parsed.get("relationships")
        return rels if isinstance(rels, list) else []
    if isinstance(parsed, list):
        return parsed
    return []


class SemanticEdgeExtractor:
    """
    Extracts typed relationships between the terms of a run.
    """
    def __init__(self, llm: LLMClient, prompt_builder: Optional[PromptBuilder] = None,
                 threshold: Optional[int] = None, overlap: Optional[int] = None):
        """
        Initialize the SemanticEdgeExtractor.

        Args:
            llm: Client used for every batch
            prompt_builder: (target, batch, all_terms, disciplines) -> (system, user)
            threshold: Largest single batch (edges.batch_threshold)
            overlap: Terms shared across batch cuts (edges.overlap)
        """
        self.llm = llm
        self.prompt_builder = prompt_builder or default_relationship_prompts
        self.threshold = threshold or get_config("edges.batch_threshold", BATCH_THRESHOLD)
        self.overlap = overlap if overlap is not None else get_config("edges.overlap", BATCH_OVERLAP)

    async def _call_batch(self, target: str, batch: Sequence[Term], terms: Sequence[Term],
                          disciplines: Sequence[str]) -> List[Any]:
        try:
            system, user = self.prompt_builder(target, batch, terms, disciplines)
            raw = await self.llm.call_json(system, user)
            relationships = coerce_relationships(extract_json(raw))
        except Exception as e:  # a failed batch must not sink the other batches
            logger.warning(f"Relationship batch of {len(batch)} terms failed: {e}")
            return []
        logger.debug(f"Batch of {len(batch)} terms returned {len(relationships)} raw relationships")
        return relationships

    async def extract(self, target: str, terms: Sequence[Term],
                      disciplines: Sequence[str] = ()) -> Optional[EdgeExtractionResult]:
        """
        Extract semantic edges between terms.

        Args:
            target: The run's topic
            terms: Every term of the run
            disciplines: Discipline names, indexed by Term.slices

        Returns:
            EdgeExtractionResult, or None when there are no terms
        """
        if not terms:
            return None
        batches = plan_batches(terms, self.threshold, self.overlap)
        results = await asyncio.gather(*(
            self._call_batch(target, batch, terms, disciplines) for batch in batches
        ))
        raw = [rel for batch_result in results for rel in batch_result]
        relationships = normalize_relationships(raw, build_term_index(terms), terms)
        logger.info(
            f"Extracted {len(relationships)} semantic edges from {len(raw)} raw relationships "
            f"({len(terms)} terms, {len(batches)} batches)"
        )
        return EdgeExtractionResult(
            relationships=relationships,
            generated_at=datetime.now(timezone.utc).isoformat(),
            term_count=len(terms),
            batch_count=len(batches),
        )
