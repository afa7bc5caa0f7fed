"""
Трассировщик для сбора данных визуализации запросов к дереву
"""
import csv
import json
import numpy as np
from pathlib import Path
from typing import Any, Iterable, Optional
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class QueryTraceRecorder:
    """
    Сборщик артефактов для визуализации работы дерева

    Записывает:
    1. Входные точки (подвыборка)
    2. Радиусные запросы: описанный бокс, число кандидатов и принятых
    3. Финальные листья дерева
    """
    max_points_sample: int = 8000
    max_queries: int = 1000
    data: dict = field(default_factory=dict)

    _have_input: bool = False
    _dropped_queries: int = 0
    _stats_file: Optional[Any] = None
    _stats_writer: Optional[Any] = None
    _stats_header_written: bool = False

    def __post_init__(self):
        """Инициализация структуры данных"""
        self.data = {
            'metadata': {
                'version': '1.0',
                'description': 'Spatial tree query trace for visualization'
            },
            'queries': []
        }

    def record_input_points(self, points: np.ndarray) -> None:
        """
        Запись подвыборки входных точек

        Args:
            points: Координаты точек (N x D)
        """
        if self._have_input:
            return

        n = min(len(points), self.max_points_sample)

        # Детерминированная подвыборка для воспроизводимости
        rng = np.random.default_rng(42)
        if len(points) > n:
            indices = rng.choice(len(points), size=n, replace=False)
        else:
            indices = np.arange(len(points))

        self.data['input_points'] = np.asarray(points)[indices].astype(float).tolist()

        self._have_input = True
        logger.debug(f"Recorded {n} input points for visualization")

    def record_radius_query(self,
                            center: np.ndarray,
                            radius: Any,
                            box: Any,
                            n_candidates: int,
                            n_found: int) -> None:
        """
        Запись радиусного запроса

        Args:
            center: Центр запроса
            radius: Радиус
            box: Описанный бокс (Volume)
            n_candidates: Число кандидатов из запроса по боксу
            n_found: Число объектов внутри радиуса
        """
        row = {
            'kind': 'radius',
            'center': [float(v) for v in center],
            'radius': float(radius),
            'box': box.to_dict(),
            'candidates': int(n_candidates),
            'found': int(n_found)
        }
        self._append_query(row)
        logger.debug(
            f"Radius query at {row['center']} r={row['radius']}: "
            f"{n_candidates} candidates in box, {n_found} within radius"
        )

    def record_box_query(self, box: Any, n_found: int) -> None:
        """Запись запроса по боксу"""
        row = {
            'kind': 'box',
            'box': box.to_dict(),
            'found': int(n_found)
        }
        self._append_query(row)
        logger.debug(f"Box query {row['box']}: {n_found} found")

    def _append_query(self, row: dict) -> None:
        if len(self.data['queries']) < self.max_queries:
            self.data['queries'].append(row)
        else:
            self._dropped_queries += 1

        self._write_stats_row(row)

    def record_final_boxes(self, leaves_iter: Iterable[Any]) -> None:
        """
        Запись финальных блоков (листьев дерева)

        Args:
            leaves_iter: Итератор по листовым узлам
        """
        final_boxes = []

        for leaf in leaves_iter:
            box = leaf.volume.to_dict()
            box['count'] = int(leaf.item_count())
            box['level'] = int(leaf.level)
            final_boxes.append(box)

        self.data['final_output'] = {
            'final_boxes': final_boxes,
            'total_leaves': len(final_boxes),
            'total_items': sum(b['count'] for b in final_boxes)
        }

        logger.debug(f"Recorded {len(final_boxes)} final blocks")

    def add_custom_data(self, key: str, value: Any) -> None:
        """
        Добавление пользовательских данных в трассировку

        Args:
            key: Ключ для данных
            value: Значение (должно быть JSON-сериализуемым)
        """
        if 'custom' not in self.data:
            self.data['custom'] = {}

        self.data['custom'][key] = value
        logger.debug(f"Added custom trace data: {key}")

    def start_stats_recording(self, path: Path) -> None:
        """Открывает CSV-файл для построчной записи запросов."""
        path.parent.mkdir(parents=True, exist_ok=True)
        self._stats_file = open(path, 'w', newline='', encoding='utf-8')
        self._stats_writer = csv.writer(self._stats_file)
        logger.info(f"Query statistics recording enabled, saving to {path}")

    def _write_stats_row(self, row: dict) -> None:
        if not self._stats_writer:
            return

        flat = {
            'kind': row['kind'],
            'box_min': ' '.join(str(v) for v in row['box']['min']),
            'box_max': ' '.join(str(v) for v in row['box']['max']),
            'radius': row.get('radius', ''),
            'candidates': row.get('candidates', ''),
            'found': row['found']
        }
        if not self._stats_header_written:
            self._stats_writer.writerow(flat.keys())
            self._stats_header_written = True
        self._stats_writer.writerow(flat.values())

    def close(self) -> None:
        """Закрывает CSV-файл статистики."""
        if self._stats_file:
            self._stats_file.close()
            self._stats_file = None
            self._stats_writer = None
            logger.debug("Stats CSV file closed.")

    def dump(self, path: Path) -> None:
        """
        Сохранение трассировки в JSON файл

        Args:
            path: Путь к выходному файлу
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        if self._dropped_queries:
            self.data['metadata']['dropped_queries'] = self._dropped_queries

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, ensure_ascii=False, indent=2)

        logger.info(f"Trace saved to {path}")

    def get_summary(self) -> dict:
        """
        Получение краткой сводки по трассировке

        Returns:
            Словарь со статистикой
        """
        summary = {
            'has_input_points': self._have_input,
            'n_queries': len(self.data['queries']),
            'n_dropped_queries': self._dropped_queries
        }

        if 'input_points' in self.data:
            summary['n_input_points'] = len(self.data['input_points'])

        if 'final_output' in self.data:
            final = self.data['final_output']
            summary['n_final_boxes'] = final.get('total_leaves', 0)
            summary['n_total_items'] = final.get('total_items', 0)

        return summary
