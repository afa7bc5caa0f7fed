"""
Тесты для загрузчиков и экспортёров
"""
import json

import numpy as np
import pytest

from spatial_trees.core.structures import Volume
from spatial_trees.core.tree import Octree
from spatial_trees.io.exporters import (
    export_leaves_json,
    export_query_results,
    export_statistics,
)
from spatial_trees.io.loaders import load_point_cloud, validate_point_cloud


@pytest.fixture
def xyz_file(tmp_path):
    path = tmp_path / 'cloud.xyz'
    path.write_text("0 0 0 7\n1 2 3 8\n4 5 6 9\n", encoding='utf-8')
    return path


class TestLoaders:
    """Тесты для load_point_cloud"""

    def test_load_xyz(self, xyz_file) -> None:
        points, metadata = load_point_cloud(xyz_file.as_posix())
        assert points.shape == (3, 3)
        assert points.dtype == np.float64
        assert metadata['format'] == 'xyz'
        assert metadata['columns'] == 4
        np.testing.assert_array_equal(metadata['extras'][:, 0], [7, 8, 9])

    def test_load_2d_keeps_first_columns(self, xyz_file) -> None:
        points, _ = load_point_cloud(xyz_file.as_posix(), dims=2)
        np.testing.assert_array_equal(points, [[0, 0], [1, 2], [4, 5]])

    def test_load_csv(self, tmp_path) -> None:
        path = tmp_path / 'cloud.csv'
        path.write_text("1.5,2.5\n3.5,4.5\n", encoding='utf-8')
        points, _ = load_point_cloud(path.as_posix(), dims=2)
        np.testing.assert_array_equal(points, [[1.5, 2.5], [3.5, 4.5]])

    def test_single_line_file(self, tmp_path) -> None:
        path = tmp_path / 'one.txt'
        path.write_text("1 2 3\n", encoding='utf-8')
        points, _ = load_point_cloud(path.as_posix())
        assert points.shape == (1, 3)

    def test_too_few_columns(self, tmp_path) -> None:
        path = tmp_path / 'flat.xyz'
        path.write_text("1 2\n3 4\n", encoding='utf-8')
        with pytest.raises(ValueError, match="столбцов"):
            load_point_cloud(path.as_posix(), dims=3)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_point_cloud((tmp_path / 'missing.xyz').as_posix())

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / 'cloud.bin'
        path.write_bytes(b'\x00')
        with pytest.raises(ValueError, match="Неподдерживаемый"):
            load_point_cloud(path.as_posix())


class TestValidate:
    """Тесты для validate_point_cloud"""

    def test_valid(self) -> None:
        validate_point_cloud(np.zeros((5, 2)))

    def test_wrong_shape(self) -> None:
        with pytest.raises(ValueError):
            validate_point_cloud(np.zeros((5, 4)))

    def test_nan(self) -> None:
        points = np.zeros((3, 3))
        points[1, 2] = np.nan
        with pytest.raises(ValueError, match="NaN"):
            validate_point_cloud(points)

    def test_not_an_array(self) -> None:
        with pytest.raises(TypeError):
            validate_point_cloud([[0, 0, 0]])


class TestExporters:
    """Тесты экспорта"""

    @pytest.fixture
    def tree_and_points(self):
        points = np.array([[1.0, 1.0, 1.0], [7.0, 7.0, 7.0], [2.0, 2.0, 2.0], [6.0, 1.0, 3.0]])
        tree = Octree(Volume([0, 0, 0], [8, 8, 8]), capacity=1, key=points.__getitem__)
        tree.extend(range(len(points)))
        return tree, points

    def test_export_query_results_json(self, tmp_path, tree_and_points) -> None:
        _, points = tree_and_points
        export_query_results({'box_0': [0, 2], 'radius_0': []}, points, tmp_path, ['json'])

        data = json.loads((tmp_path / 'queries.json').read_text(encoding='utf-8'))
        assert data['box_0']['count'] == 2
        assert data['box_0']['points'] == [[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]]
        assert data['radius_0'] == {'count': 0, 'indices': [], 'points': []}

    def test_export_query_results_text(self, tmp_path, tree_and_points) -> None:
        _, points = tree_and_points
        export_query_results({'box_0': [1, 3]}, points, tmp_path, ['xyz', 'none'])

        saved = np.loadtxt(tmp_path / 'queries_xyz' / 'box_0.xyz', ndmin=2)
        np.testing.assert_allclose(saved, points[[1, 3]])

    def test_export_leaves_json(self, tmp_path, tree_and_points) -> None:
        tree, _ = tree_and_points
        export_leaves_json(tree, tmp_path / 'nodes.json')

        nodes = json.loads((tmp_path / 'nodes.json').read_text(encoding='utf-8'))
        assert sum(n['count'] for n in nodes) == 4
        assert all(n['leaf'] for n in nodes)

    def test_export_statistics(self, tmp_path, tree_and_points) -> None:
        tree, points = tree_and_points
        export_statistics(tree, points, tmp_path / 'statistics.json', build_time=0.5, cpu_time_sec=0.25)

        stats = json.loads((tmp_path / 'statistics.json').read_text(encoding='utf-8'))
        assert stats['input']['total_points'] == 4
        assert stats['input']['inserted_points'] == 4
        assert stats['tree']['capacity'] == 1
        assert stats['tree']['splits_performed'] >= 1
        assert stats['performance']['points_per_sec_wall'] == pytest.approx(8.0)
