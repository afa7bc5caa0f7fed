from __future__ import annotations
import logging
from typing import Any, Callable, Generic, Iterable, Iterator, List, Optional, Sequence, TypeVar

import numpy as np

from .scalar import as_coords, euclidean_distance
from .structures import Index, Node, Volume
from ..config import DEFAULT_CAPACITY, DEFAULT_MAX_DEPTH, MAX_DEPTH_LIMIT
from ..visualization.tracer import QueryTraceRecorder

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _spatial_index(item: Index) -> Sequence[Any]:
    """Проекция по умолчанию - метод spatial_index() самого объекта"""
    return item.spatial_index()


class SpatialTree(Generic[T]):
    """
    Дерево разбиения пространства на 2^D равных частей (квадродерево / октодерево)

    Объект дерева - единственный владелец корневого узла. Вставка требует
    исключительного доступа ко всему дереву, запросы только читают.
    """

    #: Фиксированная размерность (None - определяется по корневому боксу)
    DIMS: Optional[int] = None

    def __init__(self,
                 volume: Volume,
                 capacity: int = DEFAULT_CAPACITY,
                 key: Optional[Callable[[T], Sequence[Any]]] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH,
                 trace: Optional[QueryTraceRecorder] = None):
        """
        Args:
            volume: Ограничивающий бокс корня
            capacity: Максимум объектов в листе до разбиения
            key: Проекция объекта в координату (по умолчанию item.spatial_index())
            max_depth: Уровень, начиная с которого листья больше не делятся
            trace: Опциональный трассировщик запросов
        """
        if self.DIMS is not None and volume.dims != self.DIMS:
            raise ValueError(
                f"{type(self).__name__} requires a {self.DIMS}D volume, got {volume.dims}D"
            )
        if not 0 <= max_depth <= MAX_DEPTH_LIMIT:
            raise ValueError(f"max_depth must be in [0, {MAX_DEPTH_LIMIT}], got {max_depth}")

        self.root = Node(volume, capacity)
        self.key = key if key is not None else _spatial_index
        self.max_depth = max_depth
        self.trace = trace

        # Статистика построения
        self.stats = {
            'nodes_created': 1,
            'splits_performed': 0,
            'items_retained': 0
        }

    @classmethod
    def with_capacity(cls, volume: Volume, capacity: int, **kwargs) -> SpatialTree[T]:
        """Пустое дерево с явной ёмкостью узлов"""
        return cls(volume, capacity=capacity, **kwargs)

    @property
    def bounds(self) -> Volume:
        """Ограничивающий бокс корня"""
        return self.root.volume

    @property
    def capacity(self) -> int:
        return self.root.capacity

    @property
    def dims(self) -> int:
        return self.root.volume.dims

    def __len__(self) -> int:
        return len(self.root)

    def __iter__(self) -> Iterator[T]:
        """Все объекты дерева в порядке обхода узлов"""
        for node in self.root.iter_nodes():
            yield from node.items

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bounds={self.bounds!r}, capacity={self.capacity}, len={len(self)})"

    def _coords(self, item: T) -> np.ndarray:
        return as_coords(self.key(item), self.bounds.dtype, self.dims)

    # ============ Вставка ============

    def insert(self, item: T) -> bool:
        """
        Вставка объекта с разбиением узлов при необходимости

        Returns:
            False, если координата объекта вне корневого бокса, иначе True
        """
        return self._insert(self.root, item, self._coords(item))

    def extend(self, items: Iterable[T]) -> int:
        """
        Вставка последовательности объектов

        Returns:
            Количество принятых объектов
        """
        accepted = 0
        rejected = 0
        for item in items:
            if self.insert(item):
                accepted += 1
            else:
                rejected += 1

        if rejected:
            logger.debug(f"Rejected {rejected} items outside {self.bounds!r}")
        return accepted

    def _insert(self, node: Node, item: T, coords: np.ndarray) -> bool:
        if not node.volume.contains(coords):
            return False

        if node.is_leaf():
            if len(node.items) < node.capacity or not self._can_split(node):
                node.items.append(item)
                return True
            self._subdivide(node)

        self._place(node, item, coords)
        return True

    def _place(self, node: Node, item: T, coords: np.ndarray) -> None:
        """Передача объекта первому принявшему ребёнку; иначе он остаётся в узле"""
        for child in node.children:
            if self._insert(child, item, coords):
                return

        node.items.append(item)
        self.stats['items_retained'] += 1
        logger.debug(f"Item at {coords.tolist()} retained at level {node.level}")

    def _can_split(self, node: Node) -> bool:
        return node.level < self.max_depth and node.volume.is_divisible()

    def _subdivide(self, node: Node) -> None:
        """Разбиение заполненного листа и перераспределение его объектов"""
        held = node.items
        node.items = []
        node.split()

        self.stats['nodes_created'] += len(node.children)
        self.stats['splits_performed'] += 1

        for item in held:
            self._place(node, item, self._coords(item))

    # ============ Запросы ============

    def get_in_volume(self, query: Volume) -> List[T]:
        """
        Все объекты внутри бокса query

        Порядок детерминирован: объекты узла, затем дети в порядке построения.
        """
        if query.dims != self.dims:
            raise ValueError(f"Expected {self.dims}D query volume, got {query.dims}D")

        found: List[T] = []
        self._collect(self.root, query, found)
        return found

    def _collect(self, node: Node, query: Volume, found: List[T]) -> None:
        if not node.volume.intersects(query):
            return

        for item in node.items:
            if query.contains(self._coords(item)):
                found.append(item)

        if node.children is not None:
            for child in node.children:
                self._collect(child, query, found)

    def get_in_radius(self, center: Sequence[Any], radius: Any) -> List[T]:
        """
        Все объекты на расстоянии <= radius от center

        Сначала выбираются кандидаты в описанном боксе, затем
        отбрасываются те, что дальше radius.
        """
        r = self.bounds.dtype.type(radius)
        if r < 0:
            return []

        c = as_coords(center, self.bounds.dtype, self.dims)
        box = Volume.around(c, r, self.bounds.dtype)
        candidates = self.get_in_volume(box)

        found = [item for item in candidates
                 if euclidean_distance(self._coords(item), c) <= r]

        if self.trace is not None:
            self.trace.record_radius_query(c, r, box, len(candidates), len(found))
        return found

    def get_stats(self) -> dict:
        """Статистика дерева и счётчики построения"""
        stats = self.root.get_stats()
        stats.update(self.stats)
        return stats


class Quadtree(SpatialTree[T]):
    """Дерево для двумерного пространства (4 квадранта на узел)"""
    DIMS = 2


class Octree(SpatialTree[T]):
    """Дерево для трёхмерного пространства (8 октантов на узел)"""
    DIMS = 3
