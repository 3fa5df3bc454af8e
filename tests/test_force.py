import unittest

import numpy as np

from parallax.graph.edges import SemanticEdge
from parallax.graph.force import (
    TARGET_RADIUS,
    edge_springs,
    normalize_point_cloud,
    refine_positions_with_edges,
    simulate_forces,
)

INDEX = {"a": 0, "b": 1}
POINTS = [[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]]


def distance(positions):
    return float(np.linalg.norm(np.asarray(positions[1]) - np.asarray(positions[0])))


class TestSprings(unittest.TestCase):
    def test_unknown_and_self_edges_skipped(self):
        edges = [
            {"term_a": "a", "term_b": "zzz", "strength": 1},
            {"term_a": "A", "term_b": "a", "strength": 1},
            SemanticEdge("A", "B", "causal", 1.0, ""),
        ]
        self.assertEqual(edge_springs(edges, INDEX, 2), [(0, 1, 0.2, 1.0)])

    def test_out_of_range_index_skipped(self):
        self.assertEqual(edge_springs([{"term_a": "a", "term_b": "b"}], INDEX, 1), [])


class TestSimulation(unittest.TestCase):
    def test_two_bodies_move_toward_rest_length(self):
        edges = [{"term_a": "a", "term_b": "b", "strength": 1.0}]
        rest = 0.2
        end = distance(simulate_forces(POINTS, edges, INDEX))
        self.assertLess(end, 2.0)
        self.assertLess(abs(end - rest), abs(2.0 - rest))

    def test_without_springs_points_repel(self):
        self.assertGreater(distance(simulate_forces(POINTS, [], INDEX)), 2.0)

    def test_unresolvable_edges_change_nothing(self):
        bad = [{"term_a": "a", "term_b": "missing", "strength": 1.0}]
        np.testing.assert_allclose(simulate_forces(POINTS, bad, INDEX), simulate_forces(POINTS, [], INDEX))


class TestRefine(unittest.TestCase):
    def test_fewer_than_two_points_copied(self):
        points = [[1.0, 2.0, 3.0]]
        refined = refine_positions_with_edges(points, [], {})
        self.assertEqual(refined, points)
        self.assertIsNot(refined[0], points[0])
        self.assertEqual(refine_positions_with_edges([], [], {}), [])

    def test_result_centred_at_target_radius(self):
        points = [[0, 0], [1, 0], [0, 1], [1, 1]]
        edges = [SemanticEdge("a", "b", "causal", 0.8, "")]
        refined = refine_positions_with_edges(points, edges, {"a": 0, "b": 1, "c": 2, "d": 3})
        arr = np.asarray(refined)
        self.assertEqual(arr.shape, (4, 3))
        np.testing.assert_allclose(arr.mean(axis=0), 0.0, atol=1e-9)
        self.assertAlmostEqual(float(np.linalg.norm(arr, axis=1).max()), TARGET_RADIUS)


class TestNormalizePointCloud(unittest.TestCase):
    def test_scales_farthest_point_to_radius(self):
        cloud = normalize_point_cloud([[0, 0, 0], [4, 0, 0]], radius=1.0)
        self.assertEqual(cloud, [[-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])

    def test_degenerate_cloud_only_centred(self):
        self.assertEqual(normalize_point_cloud([[1, 1, 1], [1, 1, 1]]), [[0.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
        self.assertEqual(normalize_point_cloud([]), [])


if __name__ == "__main__":
    unittest.main()
