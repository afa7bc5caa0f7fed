"""
Тесты для запросов по боксу и радиусу
"""
import math
from dataclasses import dataclass
from decimal import Decimal

import numpy as np
import pytest

from spatial_trees.core.structures import Volume
from spatial_trees.core.tree import Octree, Quadtree
from spatial_trees.visualization.tracer import QueryTraceRecorder


@dataclass(frozen=True)
class Point:
    coords: tuple

    def spatial_index(self):
        return self.coords


def _ids(items):
    return sorted(map(id, items))


@pytest.fixture
def scenario_tree():
    tree = Quadtree(Volume([0, 0], [100, 100]), capacity=4)
    pts = [Point(c) for c in [
        (5, 5), (95, 5), (5, 95), (95, 95), (50, 50),
        (55, 55), (50, 60), (61, 50), (25, 75), (80, 30),
    ]]
    tree.extend(pts)
    return tree, pts


@pytest.fixture
def random_octree():
    rng = np.random.default_rng(42)
    coords = rng.uniform(0, 100, size=(400, 3))
    tree = Octree(Volume([0, 0, 0], [100, 100, 100]), capacity=5)
    pts = [Point(tuple(c)) for c in coords]
    tree.extend(pts)
    return tree, pts


class TestBoxQuery:
    """Тесты для get_in_volume"""

    def test_full_volume_returns_everything(self, random_octree) -> None:
        tree, pts = random_octree
        assert _ids(tree.get_in_volume(tree.bounds)) == _ids(pts)

    def test_matches_brute_force(self, random_octree) -> None:
        tree, pts = random_octree
        query = Volume([10, 20, 30], [60, 45, 90])
        expected = [p for p in pts if query.contains(p.coords)]
        assert _ids(tree.get_in_volume(query)) == _ids(expected)

    def test_no_duplicates(self, random_octree) -> None:
        tree, _ = random_octree
        found = tree.get_in_volume(Volume([0, 0, 0], [50, 50, 50]))
        assert len(found) == len(set(map(id, found)))

    def test_disjoint_queries_give_disjoint_results(self, random_octree) -> None:
        tree, _ = random_octree
        left = tree.get_in_volume(Volume([0, 0, 0], [49, 100, 100]))
        right = tree.get_in_volume(Volume([51, 0, 0], [100, 100, 100]))
        assert left and right
        assert not set(map(id, left)) & set(map(id, right))

    def test_query_outside_tree_is_empty(self, scenario_tree) -> None:
        tree, _ = scenario_tree
        assert tree.get_in_volume(Volume([200, 200], [300, 300])) == []

    def test_empty_tree(self) -> None:
        tree = Quadtree(Volume([0, 0], [1, 1]))
        assert tree.get_in_volume(tree.bounds) == []
        assert tree.get_in_radius([0.5, 0.5], 1.0) == []

    def test_order_is_deterministic(self, random_octree) -> None:
        tree, _ = random_octree
        query = Volume([0, 0, 0], [70, 70, 70])
        assert [id(p) for p in tree.get_in_volume(query)] == [id(p) for p in tree.get_in_volume(query)]

    def test_node_items_come_before_children(self) -> None:
        tree = Quadtree(Volume([0, 0], [10, 10]), capacity=1)
        a, b = Point((1, 1)), Point((9, 9))
        tree.extend([a, b])
        retained = Point((5, 5))
        tree.root.items.append(retained)
        assert tree.get_in_volume(tree.bounds) == [retained, a, b]

    def test_wrong_query_dimension_rejected(self, scenario_tree) -> None:
        tree, _ = scenario_tree
        with pytest.raises(ValueError, match="2D query volume"):
            tree.get_in_volume(Volume([0, 0, 0], [10, 10, 10]))


class TestRadiusQuery:
    """Тесты для get_in_radius"""

    def test_scenario_b(self, scenario_tree) -> None:
        tree, pts = scenario_tree
        found = tree.get_in_radius([50, 50], 10)
        expected = [p for p in pts if math.dist(p.coords, (50, 50)) <= 10]
        assert _ids(found) == _ids(expected)
        assert {p.coords for p in found} == {(50, 50), (55, 55), (50, 60)}

    def test_boundary_is_inclusive_2d(self) -> None:
        tree = Quadtree(Volume([-10, -10], [10, 10]))
        on_circle = Point((3, 4))
        tree.insert(on_circle)
        assert tree.get_in_radius([0, 0], 5) == [on_circle]
        assert tree.get_in_radius([0, 0], 4.999) == []

    def test_boundary_is_inclusive_3d(self) -> None:
        tree = Octree(Volume([-10, -10, -10], [10, 10, 10]))
        on_sphere = Point((2, 3, 6))
        tree.insert(on_sphere)
        assert tree.get_in_radius([0, 0, 0], 7) == [on_sphere]
        assert tree.get_in_radius([0, 0, 0], 6.999) == []

    def test_subset_of_box_query(self, random_octree) -> None:
        tree, _ = random_octree
        center, radius = [40.0, 60.0, 50.0], 25.0
        in_radius = tree.get_in_radius(center, radius)
        in_box = tree.get_in_volume(Volume.around(center, radius))
        assert set(map(id, in_radius)) <= set(map(id, in_box))
        assert all(math.dist(p.coords, center) <= radius for p in in_radius)

    def test_matches_brute_force(self, random_octree) -> None:
        tree, pts = random_octree
        center, radius = (30.0, 30.0, 70.0), 33.0
        expected = [p for p in pts if math.dist(p.coords, center) <= radius]
        assert _ids(tree.get_in_radius(center, radius)) == _ids(expected)

    def test_radius_beyond_tree_bounds(self, scenario_tree) -> None:
        tree, pts = scenario_tree
        assert _ids(tree.get_in_radius([50, 50], 1000)) == _ids(pts)

    def test_zero_radius(self, scenario_tree) -> None:
        tree, _ = scenario_tree
        assert [p.coords for p in tree.get_in_radius([50, 60], 0)] == [(50, 60)]

    def test_negative_radius_is_empty(self, scenario_tree) -> None:
        tree, _ = scenario_tree
        assert tree.get_in_radius([50, 50], -1) == []


class TestScalarTypes:
    """Запросы для разных скалярных типов"""

    def test_float32_tree(self) -> None:
        tree = Quadtree(Volume([0, 0], [100, 100], dtype='float32'), capacity=2)
        pts = [Point((3.0, 4.0)), Point((0.1, 0.2)), Point((99.9, 99.9)), Point((50.5, 50.5))]
        assert tree.extend(pts) == 4
        assert _ids(tree.get_in_radius([0, 0], 5)) == _ids(pts[:2])
        assert _ids(tree.get_in_volume(tree.bounds)) == _ids(pts)

    def test_decimal_tree(self) -> None:
        """Пользовательский скаляр через dtype=object"""
        d = Decimal
        tree = Quadtree(Volume([d(0), d(0)], [d(10), d(10)], dtype=object), capacity=1)
        pts = [Point((d(1), d(1))), Point((d(9), d(9))), Point((d(3), d(4)))]
        assert tree.extend(pts) == 3
        assert tree.stats['splits_performed'] >= 1
        found = tree.get_in_radius([d(0), d(0)], d(5))
        assert _ids(found) == _ids([pts[0], pts[2]])


class TestTracing:
    """Трассировка радиусных запросов"""

    def test_radius_query_recorded(self, scenario_tree) -> None:
        tree, _ = scenario_tree
        trace = QueryTraceRecorder()
        tree.trace = trace

        found = tree.get_in_radius([50, 50], 10)

        queries = trace.data['queries']
        assert len(queries) == 1
        assert queries[0]['kind'] == 'radius'
        assert queries[0]['box'] == {'min': [40.0, 40.0], 'max': [60.0, 60.0]}
        assert queries[0]['found'] == len(found)
        assert queries[0]['candidates'] >= len(found)

    def test_tracing_does_not_change_results(self, random_octree) -> None:
        tree, _ = random_octree
        plain = tree.get_in_radius([50, 50, 50], 20)
        tree.trace = QueryTraceRecorder()
        assert [id(p) for p in tree.get_in_radius([50, 50, 50], 20)] == [id(p) for p in plain]
