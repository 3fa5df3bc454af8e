"""
Radial neighborhood layout for the Parallax gallery view.

Each strand is a connected neighborhood of terms: a connected component of the
semantic edge graph, or (for terms no edge reaches) a group of terms sharing a
primary discipline. Within a strand the anchor sits at the origin and every
other term sits on a ring whose radius grows with its BFS distance from the
anchor.
"""
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from parallax.graph.edges import SemanticEdge, Term

logger = logging.getLogger(__name__)

RING_SPACING = 100
GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))
CENTRALITY_WEIGHT = 0.4
DEGREE_WEIGHT = 0.6
MIN_STRAND_SIZE = 2
EVEN_RING_MIN = 3


@dataclass
class LayoutNode:
    label: str  # lowercased lookup key
    term: Optional[Term]
    depth: int
    x: float = 0.0
    y: float = 0.0
    index_in_ring: int = 0
    ring_size: int = 1

    def to_dict(self) -> dict:
        return {
            "label": self.term.label if self.term else self.label,
            "depth": self.depth,
            "x": self.x,
            "y": self.y,
            "indexInRing": self.index_in_ring,
            "ringSize": self.ring_size,
        }


@dataclass
class Strand:
    nodes: List[LayoutNode] = field(default_factory=list)
    edges: List[SemanticEdge] = field(default_factory=list)
    anchor: str = ""
    anchor_term: Optional[Term] = None
    discipline_id: Optional[int] = None

    def node(self, label: str) -> Optional[LayoutNode]:
        key = label.lower().strip()
        for node in self.nodes:
            if node.label == key:
                return node
        return None

    def to_dict(self) -> dict:
        return {
            "anchor": self.anchor_term.label if self.anchor_term else self.anchor,
            "disciplineId": self.discipline_id,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


def _dedupe_pool(terms: Iterable[Term]) -> Dict[str, Term]:
    pool: Dict[str, Term] = {}
    for term in terms:
        if term.key and term.key not in pool:
            pool[term.key] = term
    return pool


def _edges_within(labels: Iterable[str], edges: Iterable[SemanticEdge]) -> List[SemanticEdge]:
    """Edges with both endpoints in labels, one per unordered pair."""
    label_set = set(labels)
    seen = set()
    found = []
    for edge in edges:
        a, b = edge.term_a.lower(), edge.term_b.lower()
        if a not in label_set or b not in label_set:
            continue
        if edge.pair_key in seen:
            continue
        seen.add(edge.pair_key)
        found.append(edge)
    return found


def build_strand(labels: Sequence[str], edges: Sequence[SemanticEdge], terms: Mapping[str, Term],
                 ring_spacing: float = RING_SPACING,
                 discipline_id: Optional[int] = None) -> Strand:
    """
    Lay out one neighborhood around its anchor.

    The anchor maximizes 0.4*centrality + 0.6*degree (first label wins ties).
    Rings holding three or more nodes are divided evenly, starting from a
    per-ring golden-angle offset; sparser rings continue a golden-angle
    sequence over all non-anchor nodes so they never stack on one spoke.

    Args:
        labels: Lowercased term keys of the neighborhood
        edges: Edges between those terms
        terms: Term lookup by key
        ring_spacing: Distance between consecutive rings
        discipline_id: Discipline shared by the terms, for discipline strands

    Returns:
        Strand with positioned nodes in BFS order, anchor first
    """
    adjacency: Dict[str, List[str]] = {label: [] for label in labels}
    for edge in edges:
        a, b = edge.term_a.lower(), edge.term_b.lower()
        if a in adjacency and b in adjacency:
            adjacency[a].append(b)
            adjacency[b].append(a)

    anchor = labels[0]
    best = -1.0
    for label in labels:
        term = terms.get(label)
        score = (term.centrality if term else 0.0) * CENTRALITY_WEIGHT \
            + len(adjacency[label]) * DEGREE_WEIGHT
        if score > best:
            best = score
            anchor = label

    depth = {anchor: 0}
    order = []
    queue = deque([anchor])
    while queue:
        current = queue.popleft()
        order.append(current)
        for neighbor in adjacency[current]:
            if neighbor not in depth:
                depth[neighbor] = depth[current] + 1
                queue.append(neighbor)

    unreached = [label for label in labels if label not in depth]
    if unreached:
        outer = max(depth.values()) + 1
        for label in unreached:
            depth[label] = outer
            order.append(label)

    rings: Dict[int, List[str]] = {}
    for label in order:
        rings.setdefault(depth[label], []).append(label)

    nodes = []
    sequence_index = 0
    for label in order:
        d = depth[label]
        ring = rings[d]
        if d == 0:
            nodes.append(LayoutNode(label=label, term=terms.get(label), depth=0))
            continue
        index = ring.index(label)
        count = len(ring)
        if count >= EVEN_RING_MIN:
            angle = d * GOLDEN_ANGLE + 2 * math.pi * index / count
        else:
            angle = sequence_index * GOLDEN_ANGLE
        radius = d * ring_spacing
        nodes.append(LayoutNode(
            label=label,
            term=terms.get(label),
            depth=d,
            x=radius * math.cos(angle),
            y=radius * math.sin(angle),
            index_in_ring=index,
            ring_size=count,
        ))
        sequence_index += 1

    return Strand(
        nodes=nodes,
        edges=list(edges),
        anchor=anchor,
        anchor_term=terms.get(anchor),
        discipline_id=discipline_id,
    )


def semantic_neighborhoods(terms: Mapping[str, Term], edges: Sequence[SemanticEdge],
                           ring_spacing: float = RING_SPACING) -> List[Strand]:
    """Connected components of the edge graph restricted to terms, largest first."""
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        a, b = edge.term_a.lower(), edge.term_b.lower()
        if a not in terms or b not in terms or a == b:
            continue
        adjacency.setdefault(a, []).append(b)
        adjacency.setdefault(b, []).append(a)

    visited = set()
    components: List[List[str]] = []
    for start in adjacency:
        if start in visited:
            continue
        component = []
        queue = deque([start])
        visited.add(start)
        while queue:
            current = queue.popleft()
            component.append(current)
            for neighbor in adjacency[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        if len(component) >= MIN_STRAND_SIZE:
            components.append(component)

    components.sort(key=len, reverse=True)
    return [
        build_strand(component, _edges_within(component, edges), terms, ring_spacing)
        for component in components
    ]


def discipline_neighborhoods(terms: Mapping[str, Term], edges: Sequence[SemanticEdge],
                             ring_spacing: float = RING_SPACING) -> List[Strand]:
    """Groups of terms sharing a primary discipline, largest first."""
    groups: Dict[int, List[str]] = {}
    for key, term in terms.items():
        groups.setdefault(term.discipline, []).append(key)

    strands = [
        build_strand(labels, _edges_within(labels, edges), terms, ring_spacing, discipline_id)
        for discipline_id, labels in groups.items()
        if len(labels) >= MIN_STRAND_SIZE
    ]
    strands.sort(key=lambda strand: len(strand.nodes), reverse=True)
    return strands


def find_neighborhoods(terms: Sequence[Term], edges: Sequence[SemanticEdge] = (),
                       ring_spacing: float = RING_SPACING) -> List[Strand]:
    """
    Partition visible terms into navigable strands.

    Semantic components come first; terms left unclaimed are grouped by
    discipline. When neither yields a strand, the whole pool is grouped by
    discipline.

    Args:
        terms: Visible terms
        edges: Semantic edges of the run
        ring_spacing: Distance between rings

    Returns:
        List of Strand
    """
    pool = _dedupe_pool(terms)
    if not pool:
        return []

    strands: List[Strand] = []
    claimed = set()
    if edges:
        for strand in semantic_neighborhoods(pool, edges, ring_spacing):
            strands.append(strand)
            claimed.update(node.label for node in strand.nodes)

    remaining = {key: term for key, term in pool.items() if key not in claimed}
    if len(remaining) >= MIN_STRAND_SIZE:
        strands.extend(discipline_neighborhoods(remaining, edges, ring_spacing))

    if not strands:
        return discipline_neighborhoods(pool, edges, ring_spacing)

    logger.debug(f"Built {len(strands)} strands from {len(pool)} terms")
    return strands


class GalleryState:
    """
    Strand navigation: which strand is shown and which node has focus.
    """
    def __init__(self, ring_spacing: float = RING_SPACING):
        self.ring_spacing = ring_spacing
        self.strands: List[Strand] = []
        self.strand_index = 0
        self.focus_index = -1

    @property
    def current(self) -> Optional[Strand]:
        if not self.strands:
            return None
        return self.strands[self.strand_index]

    @property
    def focused(self) -> Optional[LayoutNode]:
        strand = self.current
        if strand is None or not 0 <= self.focus_index < len(strand.nodes):
            return None
        return strand.nodes[self.focus_index]

    def reset(self) -> None:
        self.strands = []
        self.strand_index = 0
        self.focus_index = -1

    def refresh(self, terms: Sequence[Term], edges: Sequence[SemanticEdge] = ()) -> List[Strand]:
        """Recompute strands for the visible terms, keeping the index in range."""
        self.strands = find_neighborhoods(terms, edges, self.ring_spacing)
        if self.strand_index >= len(self.strands):
            self.strand_index = max(0, len(self.strands) - 1)
        if self.focused is None:
            self.focus_index = 0 if self.strands else -1
        return self.strands

    def show(self, index: int) -> Optional[Strand]:
        if not self.strands:
            return None
        self.strand_index = index % len(self.strands)
        self.focus_index = 0
        return self.current

    def next_strand(self) -> Optional[Strand]:
        return self.show(self.strand_index + 1)

    def previous_strand(self) -> Optional[Strand]:
        return self.show(self.strand_index - 1)

    def focus_next(self) -> Optional[LayoutNode]:
        strand = self.current
        if strand is not None and self.focus_index < len(strand.nodes) - 1:
            self.focus_index += 1
        return self.focused

    def focus_previous(self) -> Optional[LayoutNode]:
        if self.focus_index > 0:
            self.focus_index -= 1
        return self.focused

    def focus_label(self, label: str) -> Optional[LayoutNode]:
        """Focus a node of the current strand by label, ignoring case."""
        strand = self.current
        if strand is None or not label:
            return None
        key = label.lower().strip()
        for i, node in enumerate(strand.nodes):
            if node.label == key:
                self.focus_index = i
                return node
        return None
