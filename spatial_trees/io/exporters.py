import json
import numpy as np
from pathlib import Path
from typing import Optional, List, Dict, Any
from dataclasses import asdict
import logging

from ..core.tree import SpatialTree

logger = logging.getLogger(__name__)


def export_query_results(results: Dict[str, List[int]],
                         points: np.ndarray,
                         output_dir: Path,
                         formats: List[str]) -> None:
    """
    Экспорт результатов запросов в указанные форматы

    Args:
        results: Имя запроса -> индексы найденных точек
        points: Исходные точки
        output_dir: Выходная директория
        formats: Список форматов ['json', 'xyz']
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for fmt in formats:
        if fmt == 'none':
            continue

        logger.info(f"Exporting query results to {fmt.upper()} format...")

        if fmt == 'json':
            export_results_json(results, points, output_dir / 'queries.json')
        elif fmt in ['xyz', 'txt']:
            export_results_text(results, points, output_dir / f'queries_{fmt}', extension=fmt)
        else:
            logger.warning(f"Unknown export format: {fmt}")


def export_results_json(results: Dict[str, List[int]],
                        points: np.ndarray,
                        output_file: Path) -> None:
    """
    Экспорт результатов запросов в JSON

    Формат:
    {
        "<query>": {
            "count": int,
            "indices": [int, ...],
            "points": [[x, y, (z)], ...]
        },
        ...
    }
    """
    data = {}
    for name, indices in results.items():
        idx = np.asarray(indices, dtype=np.int64)
        data[name] = {
            'count': int(idx.size),
            'indices': idx.tolist(),
            'points': points[idx].tolist() if idx.size else []
        }

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported {len(data)} query results to {output_file}")


def export_results_text(results: Dict[str, List[int]],
                        points: np.ndarray,
                        output_dir: Path,
                        extension: str = 'xyz') -> None:
    """
    Экспорт найденных точек в текстовые файлы (по файлу на запрос)

    Args:
        results: Имя запроса -> индексы найденных точек
        points: Массив точек
        output_dir: Директория для файлов
        extension: Расширение файлов ('xyz', 'txt')
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    for name, indices in results.items():
        output_file = output_dir / f'{name}.{extension}'
        selected = points[np.asarray(indices, dtype=np.int64)]
        np.savetxt(output_file, selected.reshape(-1, points.shape[1]), fmt='%.6f')
        logger.debug(f"Exported {len(indices)} points to {output_file.name}")

    logger.info(f"Exported {len(results)} files to {output_dir}")


def export_leaves_json(tree: SpatialTree, output_file: Path) -> None:
    """
    Экспорт узлов дерева в JSON

    Формат:
    [
        {
            "min": [x, y, (z)],
            "max": [x, y, (z)],
            "count": int,          # Количество объектов непосредственно в узле
            "level": int,          # Уровень в дереве
            "leaf": bool
        },
        ...
    ]
    """
    nodes_data = []
    for node in tree.root.iter_nodes():
        if not node.is_leaf() and not node.items:
            continue
        node_dict = node.volume.to_dict()
        node_dict.update({
            'count': node.item_count(),
            'level': node.level,
            'leaf': node.is_leaf()
        })
        nodes_data.append(node_dict)

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(nodes_data, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported {len(nodes_data)} nodes to {output_file}")


def export_statistics(tree: SpatialTree,
                      points: np.ndarray,
                      output_file: Path,
                      build_time: Optional[float] = None,
                      peak_memory_mb: Optional[float] = None,
                      cpu_time_sec: Optional[float] = None,
                      config: Optional[Any] = None) -> None:
    """
    Экспорт статистики построения дерева

    Args:
        tree: Построенное дерево
        points: Массив точек
        output_file: Путь к выходному JSON файлу
        build_time: Время построения (секунды)
        peak_memory_mb: Потребление памяти процессом (МБ)
        cpu_time_sec: Процессорное время построения (секунды)
        config: Конфигурация дерева
    """
    stats = tree.get_stats()
    leaf_sizes = [leaf.item_count() for leaf in tree.root.iter_leaves()]

    result = {
        'input': {
            'total_points': int(points.shape[0]),
            'inserted_points': len(tree),
            'bbox_min': points.min(axis=0).tolist() if points.size else [],
            'bbox_max': points.max(axis=0).tolist() if points.size else []
        },
        'tree': {
            'bounds': tree.bounds.to_dict(),
            'capacity': tree.capacity,
            'depth': stats['depth'],
            'total_nodes': stats['node_count'],
            'leaf_nodes': stats['leaf_count'],
            'internal_nodes': stats['node_count'] - stats['leaf_count'],
            'splits_performed': stats['splits_performed'],
            'retained_items': stats['retained_items']
        },
        'leaves': {
            'min_size': min(leaf_sizes) if leaf_sizes else 0,
            'max_size': max(leaf_sizes) if leaf_sizes else 0,
            'mean_size': float(np.mean(leaf_sizes)) if leaf_sizes else 0,
            'median_size': float(np.median(leaf_sizes)) if leaf_sizes else 0,
            'std_size': float(np.std(leaf_sizes)) if leaf_sizes else 0
        }
    }

    if build_time is not None:
        result['performance'] = {
            'build_time_wall_sec': build_time,
            'build_time_cpu_sec': cpu_time_sec,
            'peak_memory_mb': peak_memory_mb,
            'points_per_sec_wall': points.shape[0] / build_time if build_time > 0 else 0,
            'points_per_sec_cpu': points.shape[0] / cpu_time_sec if cpu_time_sec else 0
        }

    if config is not None:
        result['config'] = asdict(config)

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(result, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported statistics to {output_file}")
