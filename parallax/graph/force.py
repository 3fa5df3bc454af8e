"""
Force-directed refinement of 3D term positions.

Semantic edges act as springs between the terms they connect while every pair
of points repels; the result is re-centred and scaled to a fixed radius.
"""
import logging
from typing import Any, List, Mapping, Sequence, Tuple

import numpy as np

from parallax.graph.edges import clamp_strength

logger = logging.getLogger(__name__)

ITERATIONS = 80
INITIAL_ALPHA = 0.25
ALPHA_DECAY = 0.975
REPULSION_K = 0.08
ATTRACTION_K = 0.15
TARGET_EDGE_LENGTH = 0.4
MIN_DISTANCE = 0.05
TARGET_RADIUS = 1.45


def _field(edge: Any, name: str) -> Any:
    if isinstance(edge, Mapping):
        return edge.get(name)
    return getattr(edge, name, None)


def _as_positions(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Pad or cut every point to three coordinates; missing values are 0."""
    positions = np.zeros((len(points), 3), dtype=float)
    for i, point in enumerate(points):
        for axis, value in enumerate(list(point)[:3]):
            positions[i, axis] = float(value or 0)
    return positions


def edge_springs(edges: Sequence[Any], term_index: Mapping[str, int],
                 count: int) -> List[Tuple[int, int, float, float]]:
    """
    Resolve edges to (i, j, rest_length, strength) springs.

    Edges whose endpoints are unknown, out of range or the same point are skipped.
    """
    springs = []
    for edge in edges:
        i = term_index.get(str(_field(edge, "term_a") or "").lower().strip())
        j = term_index.get(str(_field(edge, "term_b") or "").lower().strip())
        if i is None or j is None or i == j or i >= count or j >= count:
            continue
        strength = clamp_strength(_field(edge, "strength"))
        springs.append((i, j, TARGET_EDGE_LENGTH * (1.0 - strength * 0.5), strength))
    return springs


def simulate_forces(points: Sequence[Sequence[float]], edges: Sequence[Any],
                    term_index: Mapping[str, int], iterations: int = ITERATIONS) -> np.ndarray:
    """
    Run the spring-charge simulation without normalizing the result.

    Args:
        points: Initial positions, one per term
        edges: SemanticEdges or dicts with term_a, term_b, strength
        term_index: Lowercased term label -> index into points
        iterations: Number of cooling steps

    Returns:
        (n, 3) array of positions
    """
    pos = _as_positions(points)
    n = len(pos)
    springs = edge_springs(edges, term_index, n)
    if springs:
        si = np.array([s[0] for s in springs])
        sj = np.array([s[1] for s in springs])
        rest = np.array([s[2] for s in springs])
        strength = np.array([s[3] for s in springs])

    alpha = INITIAL_ALPHA
    for _ in range(iterations):
        # diff[i, j] points from i to j; the diagonal is zero and adds no force
        diff = pos[np.newaxis, :, :] - pos[:, np.newaxis, :]
        dist = np.maximum(np.linalg.norm(diff, axis=2), MIN_DISTANCE)
        repulse = REPULSION_K / (dist * dist)
        forces = -(repulse[:, :, np.newaxis] * diff / dist[:, :, np.newaxis]).sum(axis=1)

        if springs:
            delta = pos[sj] - pos[si]
            length = np.maximum(np.linalg.norm(delta, axis=1), MIN_DISTANCE)
            attract = ATTRACTION_K * strength * (length - rest)
            pull = attract[:, np.newaxis] * delta / length[:, np.newaxis]
            np.add.at(forces, si, pull)
            np.add.at(forces, sj, -pull)

        pos = pos + forces * alpha
        alpha *= ALPHA_DECAY
    return pos


def normalize_point_cloud(points: Sequence[Sequence[float]], radius: float = TARGET_RADIUS) -> List[List[float]]:
    """
    Centre points on their centroid and scale them so the farthest sits at radius.

    A cloud with no spread is only centred.
    """
    positions = np.asarray(points, dtype=float)
    if positions.size == 0:
        return []
    centred = positions - positions.mean(axis=0)
    extent = float(np.linalg.norm(centred, axis=1).max())
    if extent > 0:
        centred = centred * (radius / extent)
    return centred.tolist()


def refine_positions_with_edges(points: Sequence[Sequence[float]], edges: Sequence[Any],
                                term_index: Mapping[str, int],
                                radius: float = TARGET_RADIUS) -> List[List[float]]:
    """
    Refine positions using semantic edges as springs.

    Args:
        points: Initial 2D or 3D positions, one per term
        edges: SemanticEdges or dicts with term_a, term_b, strength
        term_index: Lowercased term label -> index into points
        radius: Bounding radius of the result

    Returns:
        List of [x, y, z]; copies of the input when there are fewer than 2 points
    """
    if len(points) < 2:
        return [list(point) for point in points]
    positions = simulate_forces(points, edges, term_index)
    logger.debug(f"Refined {len(points)} points over {ITERATIONS} iterations")
    return normalize_point_cloud(positions, radius)
