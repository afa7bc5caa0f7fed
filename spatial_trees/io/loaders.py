"""
Загрузчики облаков точек для построения деревьев
"""
import numpy as np
from numpy.typing import NDArray
from pathlib import Path
from typing import Tuple, Dict, Any
import logging

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = ('.txt', '.xyz', '.pts', '.csv')


def load_point_cloud(file_path: str, dims: int = 3) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Универсальный загрузчик облака точек

    Args:
        file_path: Путь к файлу
        dims: Сколько первых координат брать (2 - X Y, 3 - X Y Z)

    Returns:
        (coords, metadata)
        coords: Массив координат N×dims, float64
        metadata: Словарь с метаданными и дополнительными атрибутами

    Поддерживаемые форматы:
        .txt/.xyz/.pts/.csv: Текстовые файлы (первые столбцы - координаты)
        .ply: Через open3d
        .las/.laz: Через laspy
    """
    if dims not in (2, 3):
        raise ValueError(f"dims должно быть 2 или 3, получено: {dims}")

    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Файл не найден: {path}")

    ext = path.suffix.lower()
    metadata: Dict[str, Any] = {
        'format': ext.lstrip('.'),
        'source_path': path.as_posix(),
        'filename': path.name
    }

    logger.info(f"Loading {ext} file: {path.name}")

    if ext in TEXT_EXTENSIONS:
        coords, meta = _load_text_format(path, dims)
    elif ext == '.ply':
        coords, meta = _load_ply_format(path)
    elif ext in ['.las', '.laz']:
        coords, meta = _load_las_format(path)
    else:
        raise ValueError(f"Неподдерживаемый формат: {ext}")

    metadata.update(meta)
    coords = np.ascontiguousarray(coords[:, :dims], dtype=np.float64)

    logger.info(f"Loaded {coords.shape[0]:,} points from {path.name}")
    return coords, metadata


def _load_text_format(path: Path, dims: int) -> Tuple[np.ndarray, dict]:
    """Загрузка текстовых форматов (TXT, XYZ, PTS, CSV)"""
    delimiter = ',' if path.suffix.lower() == '.csv' else None
    try:
        arr = np.loadtxt(path.as_posix(), dtype=np.float64, delimiter=delimiter, ndmin=2)
    except ValueError as e:
        raise ValueError(f"Ошибка чтения текстового файла {path}: {e}") from e

    if arr.size == 0:
        raise ValueError(f"Файл {path} не содержит точек")

    if arr.shape[1] < dims:
        raise ValueError(f"В файле {path} меньше {dims} столбцов")

    metadata = {'columns': arr.shape[1]}
    if arr.shape[1] > dims:
        metadata['extras'] = arr[:, dims:].copy()
        logger.debug(f"Found {arr.shape[1] - dims} extra columns")

    return arr, metadata


def _load_ply_format(path: Path) -> Tuple[np.ndarray, dict]:
    """Загрузка PLY формата через open3d"""
    try:
        import open3d as o3d
    except ImportError:
        raise ImportError(
            "Для формата .ply требуется пакет open3d\n"
            "Установите: pip install open3d"
        )

    pcd = o3d.io.read_point_cloud(path.as_posix())
    coords = np.asarray(pcd.points, dtype=np.float64)

    metadata = {}
    if pcd.has_colors():
        metadata['rgb_float01'] = np.asarray(pcd.colors, dtype=np.float32)
        logger.debug("Found RGB colors")

    return coords, metadata


def _load_las_format(path: Path) -> Tuple[np.ndarray, dict]:
    """Загрузка LAS/LAZ формата через laspy"""
    try:
        import laspy
    except ImportError:
        raise ImportError(
            'Для .las/.laz требуется пакет laspy\n'
            'Установите: pip install "laspy[lazrs]"'
        )

    las = laspy.read(path.as_posix())
    coords = np.vstack([las.x, las.y, las.z]).T.astype(np.float64)

    metadata = {
        'las_point_format': las.point_format.id,
        'las_point_count': las.header.point_count
    }

    dim_names = set(las.point_format.dimension_names)
    if 'classification' in dim_names:
        metadata['classification'] = np.asarray(las.classification).copy()
        logger.debug("Found classification")

    return coords, metadata


def validate_point_cloud(points: NDArray[np.floating], min_points: int = 1) -> None:
    """
    Валидация загруженного облака точек

    Args:
        points: Массив координат (N x D)
        min_points: Минимальное количество точек

    Raises:
        ValueError: Если данные не соответствуют требованиям
    """
    if not isinstance(points, np.ndarray):
        raise TypeError("Expected numpy.ndarray")

    if points.ndim != 2 or points.shape[1] not in (2, 3):
        raise ValueError(f"Points must have shape (N, 2) or (N, 3), got {points.shape}")

    n = points.shape[0]
    if n < min_points:
        raise ValueError(f"Too few points: {n} < {min_points}")

    if not np.isfinite(points).all():
        n_invalid = int((~np.isfinite(points)).any(axis=1).sum())
        raise ValueError(f"Found {n_invalid} points with NaN or Inf coordinates")
