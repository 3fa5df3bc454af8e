"""
Per-run state for Parallax.

Everything one research run accumulates (fingerprint, lens results, terms,
semantic edges, gallery navigation) lives on a RunSession so nothing is kept
in module globals between runs.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from parallax.config import get_config
from parallax.core.article import TopicFingerprint
from parallax.core.pipeline import LensRunResult
from parallax.core.scoring import build_fingerprint
from parallax.graph.edges import EdgeExtractionResult, SemanticEdge, Term, build_term_index
from parallax.graph.force import TARGET_RADIUS, refine_positions_with_edges
from parallax.graph.gallery import RING_SPACING, GalleryState

logger = logging.getLogger(__name__)


@dataclass
class RunSession:
    topic: str = ""
    fingerprint: Optional[TopicFingerprint] = None
    lens_results: Dict[str, LensRunResult] = field(default_factory=dict)
    terms: List[Term] = field(default_factory=list)
    edge_result: Optional[EdgeExtractionResult] = None
    gallery: GalleryState = field(
        default_factory=lambda: GalleryState(get_config("layout.ring_spacing", RING_SPACING))
    )

    @classmethod
    def start(cls, topic: str, entities: Iterable[str] = (),
              seed_date: Optional[datetime] = None) -> "RunSession":
        return cls(topic=topic, fingerprint=build_fingerprint(topic, entities, seed_date))

    @property
    def edges(self) -> List[SemanticEdge]:
        return list(self.edge_result.relationships) if self.edge_result else []

    @property
    def term_index(self) -> Dict[str, int]:
        return build_term_index(self.terms)

    def record_lens(self, result: LensRunResult) -> None:
        self.lens_results[result.lens.id] = result

    def set_terms(self, terms: Sequence[Term]) -> None:
        """Replace the run's terms; edges computed for the old terms are discarded."""
        self.terms = list(terms)
        self.edge_result = None
        self.gallery.refresh(self.terms)

    def set_edges(self, result: Optional[EdgeExtractionResult]) -> None:
        self.edge_result = result
        self.gallery.refresh(self.terms, self.edges)

    def refine_layout(self, points: Sequence[Sequence[float]],
                      radius: Optional[float] = None) -> List[List[float]]:
        """Refine one point per term with the run's semantic edges."""
        if len(points) != len(self.terms):
            raise ValueError(f"Expected {len(self.terms)} points, got {len(points)}")
        return refine_positions_with_edges(
            points, self.edges, self.term_index,
            radius if radius is not None else get_config("layout.target_radius", TARGET_RADIUS),
        )

    def reset(self) -> None:
        """Drop everything the run accumulated."""
        logger.debug(f"Resetting session for '{self.topic}'")
        self.topic = ""
        self.fingerprint = None
        self.lens_results.clear()
        self.terms = []
        self.edge_result = None
        self.gallery.reset()
