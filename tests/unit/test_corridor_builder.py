"""Unit tests for corridor generation and polytope helpers"""

import threading

import pytest
import numpy as np

from corridor_planner.planning.corridor.corridor_builder import CorridorBuilder
from corridor_planner.planning.global_planner.occupancy_grid import OccupancyVolume
from corridor_planner.planning.global_planner.astar_planner import AStarPlanner
from corridor_planner.planning.corridor.polytope import (
    box_polytope, contains, violation, chebyshev_center, overlap
)

ORIGIN = np.array([0.0, 0.0, 0.0])
CORNER = np.array([10.0, 10.0, 5.0])


class TestPolytope:
    """Tests for H-polytope helpers"""

    def test_box_contains(self):
        """Test box half-spaces contain interior points only"""
        box = box_polytope(np.zeros(3), np.ones(3))

        assert box.shape == (6, 4)
        assert contains(box, [0.5, 0.5, 0.5])
        assert contains(box, [1.0, 1.0, 1.0])
        assert not contains(box, [1.1, 0.5, 0.5])

    def test_violation(self):
        """Test violation is the largest constraint value"""
        box = box_polytope(np.zeros(3), np.ones(3))

        values = violation(box, np.array([[0.5, 0.5, 0.5], [1.5, 0.5, 0.5]]))
        np.testing.assert_allclose(values, [-0.5, 0.5])

    def test_chebyshev_center_of_box(self):
        """Test the inscribed ball of a box"""
        found = chebyshev_center(box_polytope(np.zeros(3), np.array([2.0, 1.0, 4.0])))

        assert found is not None
        center, radius = found
        assert radius == pytest.approx(0.5)
        assert center[1] == pytest.approx(0.5)

    def test_chebyshev_center_of_empty_set(self):
        """Test disjoint half-spaces report no centre"""
        a = box_polytope(np.zeros(3), np.ones(3))
        b = box_polytope(np.full(3, 2.0), np.full(3, 3.0))

        assert chebyshev_center(np.vstack([a, b])) is None

    def test_overlap(self):
        """Test overlap requires a ball larger than eps"""
        a = box_polytope(np.zeros(3), np.ones(3))
        b = box_polytope(np.full(3, 0.5), np.full(3, 1.5))
        touching = box_polytope(np.array([1.0, 0.0, 0.0]), np.array([2.0, 1.0, 1.0]))

        assert overlap(a, b, 0.01)
        assert not overlap(a, touching, 0.01)


class TestCorridorBuilder:
    """Tests for CorridorBuilder"""

    def test_seed_count_follows_progress(self):
        """Test long route edges are split into seeds no longer than the progress"""
        builder = CorridorBuilder({})
        route = [np.array([1.0, 1.0, 1.0]), np.array([9.0, 1.0, 1.0])]

        polytopes = builder.convex_cover(route, np.zeros((0, 3)), ORIGIN, CORNER, 3.0, 1.0)

        assert len(polytopes) == 3

    def test_zero_length_edges_skipped(self):
        """Test repeated route points create no polytope"""
        builder = CorridorBuilder({})
        p = np.array([1.0, 1.0, 1.0])

        assert builder.convex_cover([p, p.copy()], np.zeros((0, 3)), ORIGIN, CORNER) == []

    def test_polytopes_contain_seed_segments(self):
        """Test every polytope keeps its seed segment while excluding nearby obstacles"""
        builder = CorridorBuilder({})
        route = [np.array([1.0, 1.0, 1.0]), np.array([5.0, 1.0, 1.0]), np.array([5.0, 5.0, 1.0])]
        surface = np.array([
            [3.0, 1.8, 1.0],
            [3.0, 0.4, 1.2],
            [4.2, 3.0, 1.0],
            [5.0, 3.0, 2.0],
        ])

        polytopes = builder.convex_cover(route, surface, ORIGIN, CORNER, 7.0, 3.0)

        assert len(polytopes) == 2
        for hpoly, (a, b) in zip(polytopes, zip(route[:-1], route[1:])):
            for s in np.linspace(0.0, 1.0, 11):
                assert contains(hpoly, a + s * (b - a), tol=1e-9)
            for point in surface:
                assert not contains(hpoly, point, tol=-1e-12)

    def test_cover_around_voxel_obstacle(self):
        """Test the cover terminates on a real obstacle surface and excludes every surface point"""
        config = {
            'map_bound': [0.0, 10.0, 0.0, 10.0, 0.0, 5.0],
            'voxel_width': 0.5,
            'dilate_radius': 0.5
        }
        xy = np.arange(4.6, 5.45, 0.1)
        zs = np.arange(0.0, 4.95, 0.1)
        grid = np.meshgrid(xy, xy, zs, indexing='ij')
        volume = OccupancyVolume(config)
        volume.build(np.stack([g.ravel() for g in grid], axis=1))

        route = AStarPlanner(config).plan_path(np.array([1.0, 5.0, 1.5]), np.array([9.0, 5.0, 1.5]),
                                               volume.origin, volume.corner, volume, 0.01)
        surface = volume.surface()
        assert len(route) >= 3
        assert len(surface) > 0

        builder = CorridorBuilder({})
        output = []
        worker = threading.Thread(
            target=lambda: output.append(builder.convex_cover(route, surface, volume.origin, volume.corner)),
            daemon=True
        )
        worker.start()
        worker.join(20.0)

        assert not worker.is_alive(), "convex cover did not terminate"
        polytopes = output[0]
        assert len(polytopes) >= 2
        for hpoly in polytopes:
            assert np.all(violation(hpoly, surface) >= -1e-9)

    def test_polytopes_clipped_to_bound(self):
        """Test inflated boxes never leave the map bound"""
        builder = CorridorBuilder({})
        route = [np.array([0.5, 0.5, 0.5]), np.array([2.0, 0.5, 0.5])]

        hpoly = builder.convex_cover(route, np.zeros((0, 3)), ORIGIN, CORNER, 7.0, 3.0)[0]

        assert not contains(hpoly, [-0.1, 0.5, 0.5])
        assert contains(hpoly, [0.0, 0.0, 0.0])

    def test_short_cut_empty(self):
        """Test compressing nothing gives nothing"""
        assert CorridorBuilder({}).short_cut([]) == []

    def test_short_cut_duplicates_single(self):
        """Test a single polytope is duplicated"""
        box = box_polytope(np.zeros(3), np.ones(3))

        compressed = CorridorBuilder({}).short_cut([box])

        assert len(compressed) == 2
        np.testing.assert_array_equal(compressed[0], compressed[1])

    def test_short_cut_drops_redundant_middle(self):
        """Test a middle polytope is dropped when its neighbours overlap"""
        builder = CorridorBuilder({})
        route = [np.array([1.0, 1.0, 1.0]), np.array([9.0, 1.0, 1.0])]
        polytopes = builder.convex_cover(route, np.zeros((0, 3)), ORIGIN, CORNER, 3.0, 3.0)

        compressed = builder.short_cut(polytopes)

        assert len(polytopes) == 3
        assert len(compressed) == 2
        assert compressed[0] is polytopes[0]
        assert compressed[-1] is polytopes[-1]

    def test_short_cut_keeps_chain_without_overlap(self):
        """Test nothing is dropped when only neighbours overlap"""
        builder = CorridorBuilder({})
        route = [np.array([1.0, 1.0, 1.0]), np.array([9.0, 1.0, 1.0])]
        polytopes = builder.convex_cover(route, np.zeros((0, 3)), ORIGIN, CORNER, 3.0, 1.0)

        assert len(builder.short_cut(polytopes)) == 3
