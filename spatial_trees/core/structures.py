from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Protocol, Sequence, Tuple, runtime_checkable
import numpy as np

from .scalar import DTypeLike, cast_small, resolve_dtype

# Допустимые размерности пространства
SUPPORTED_DIMS = (2, 3)


@runtime_checkable
class Index(Protocol):
    """
    Протокол для объектов, помещаемых в дерево

    spatial_index() возвращает координату объекта в порядке [x, y] или [x, y, z]
    """

    def spatial_index(self) -> Sequence[Any]:
        ...


@dataclass(frozen=True, eq=False)
class Volume:
    """
    Axis-Aligned Bounding Box в пространстве размерности 2 или 3

    Attributes:
        min_corner: Минимальные координаты (включительно)
        max_corner: Максимальные координаты (включительно)
        dtype: Скалярный тип координат
    """
    min_corner: np.ndarray  # shape: (D,)
    max_corner: np.ndarray  # shape: (D,)
    dtype: DTypeLike = np.float64

    def __post_init__(self):
        """Валидация данных после инициализации"""
        dtype = resolve_dtype(self.dtype)
        min_corner = np.array(self.min_corner, dtype=dtype)
        max_corner = np.array(self.max_corner, dtype=dtype)

        if min_corner.ndim != 1 or min_corner.shape != max_corner.shape:
            raise ValueError(
                f"Volume corners must be vectors of equal length, "
                f"got {min_corner.shape} and {max_corner.shape}"
            )

        if min_corner.shape[0] not in SUPPORTED_DIMS:
            raise ValueError(f"Volume must be 2D or 3D, got {min_corner.shape[0]}D")

        if np.any(min_corner > max_corner):
            raise ValueError("min_corner must be <= max_corner")

        min_corner.setflags(write=False)
        max_corner.setflags(write=False)
        object.__setattr__(self, 'min_corner', min_corner)
        object.__setattr__(self, 'max_corner', max_corner)
        object.__setattr__(self, 'dtype', dtype)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Volume):
            return NotImplemented
        return (self.dims == other.dims
                and bool(np.all(self.min_corner == other.min_corner))
                and bool(np.all(self.max_corner == other.max_corner)))

    def __repr__(self) -> str:
        return f"Volume(min={self.min_corner.tolist()}, max={self.max_corner.tolist()})"

    @property
    def dims(self) -> int:
        """Размерность пространства"""
        return int(self.min_corner.shape[0])

    def dimensions(self) -> np.ndarray:
        """Размеры по осям"""
        return self.max_corner - self.min_corner

    def center(self) -> np.ndarray:
        """
        Центр бокса

        Половины складываются отдельно, чтобы сумма углов не переполнялась
        у границы диапазона типа; результат прижимается к [min, max].
        """
        two = cast_small(self.dtype, 2)
        mid = self.min_corner / two + self.max_corner / two
        return np.minimum(np.maximum(mid, self.min_corner), self.max_corner)

    def measure(self) -> float:
        """Площадь (2D) или объём (3D) бокса"""
        return float(np.prod(self.dimensions()))

    def contains(self, point: Sequence[Any]) -> bool:
        """Проверка принадлежности точки боксу (обе границы включительно)"""
        p = np.asarray(point, dtype=self.dtype)
        return bool(np.all(self.min_corner <= p) and np.all(p <= self.max_corner))

    def intersects(self, other: Volume) -> bool:
        """Проверка пересечения боксов по каждой оси"""
        disjoint = (other.max_corner < self.min_corner) | (other.min_corner > self.max_corner)
        return not bool(np.any(disjoint))

    def subdivide(self) -> Tuple[Volume, ...]:
        """
        Разбиение на 2^D равных дочерних боксов

        Порядок детей - двоичный счётчик: бит i индекса ребёнка выбирает
        верхнюю половину по оси i (ось 0 - младший бит).

        Returns:
            Кортеж из 2^D боксов, покрывающих родителя без зазоров и перекрытий
        """
        mid = self.center()
        children = []
        for code in range(1 << self.dims):
            lo = self.min_corner.copy()
            hi = self.max_corner.copy()
            for axis in range(self.dims):
                if code >> axis & 1:
                    lo[axis] = mid[axis]
                else:
                    hi[axis] = mid[axis]
            children.append(Volume(lo, hi, self.dtype))
        return tuple(children)

    def is_divisible(self) -> bool:
        """Можно ли ещё поделить бокс пополам хотя бы по одной оси"""
        mid = self.center()
        return bool(np.any((mid > self.min_corner) & (mid < self.max_corner)))

    def to_dict(self) -> dict:
        """Сериализация в словарь с ключами 'min' и 'max'"""
        return {
            'min': [float(v) for v in self.min_corner],
            'max': [float(v) for v in self.max_corner]
        }

    @classmethod
    def from_points(cls, points: np.ndarray, dtype: DTypeLike = np.float64) -> Volume:
        """
        Минимальный бокс, содержащий все точки

        Args:
            points: Массив координат (N x D), N > 0
            dtype: Скалярный тип бокса
        """
        pts = np.asarray(points)
        if pts.ndim != 2 or pts.shape[0] == 0:
            raise ValueError(f"Expected non-empty (N, D) array, got shape {pts.shape}")
        return cls(pts.min(axis=0), pts.max(axis=0), dtype)

    @classmethod
    def around(cls, center: Sequence[Any], radius: Any, dtype: DTypeLike = np.float64) -> Volume:
        """Бокс [center - radius, center + radius] по каждой оси"""
        resolved = resolve_dtype(dtype)
        c = np.asarray(center, dtype=resolved)
        r = resolved.type(radius)
        return cls(c - r, c + r, resolved)


@dataclass(eq=False)
class Node:
    """
    Узел дерева разбиения

    Attributes:
        volume: Ограничивающий бокс узла
        capacity: Максимум объектов в листе до разбиения
        level: Уровень в дереве (0 для корня)
        items: Объекты, хранящиеся непосредственно в узле
        children: 2^D дочерних узлов (None для листьев)
    """
    volume: Volume
    capacity: int
    level: int = 0
    items: List[Any] = field(default_factory=list)
    children: Optional[Tuple[Node, ...]] = None

    def __post_init__(self):
        """Валидация параметров"""
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")

        if self.level < 0:
            raise ValueError("Level must be non-negative")

    def is_leaf(self) -> bool:
        """Проверка, является ли узел листом"""
        return self.children is None

    def item_count(self) -> int:
        """Количество объектов непосредственно в узле"""
        return len(self.items)

    def __len__(self) -> int:
        """Количество объектов в поддереве"""
        total = len(self.items)
        if self.children is not None:
            total += sum(len(child) for child in self.children)
        return total

    def split(self) -> None:
        """Создание 2^D дочерних узлов; дети наследуют ёмкость"""
        self.children = tuple(
            Node(volume, self.capacity, self.level + 1)
            for volume in self.volume.subdivide()
        )

    def depth(self) -> int:
        """Глубина поддерева с корнем в данном узле"""
        if self.is_leaf():
            return 0
        return 1 + max(child.depth() for child in self.children)

    def leaf_count(self) -> int:
        """Количество листьев в поддереве"""
        if self.is_leaf():
            return 1
        return sum(child.leaf_count() for child in self.children)

    def node_count(self) -> int:
        """Общее количество узлов в поддереве"""
        if self.is_leaf():
            return 1
        return 1 + sum(child.node_count() for child in self.children)

    def iter_nodes(self) -> Iterator[Node]:
        """Обход узлов в прямом порядке (родитель, затем дети по порядку)"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.children is not None:
                stack.extend(reversed(node.children))

    def iter_leaves(self) -> Iterator[Node]:
        """Итератор по листовым узлам"""
        return (node for node in self.iter_nodes() if node.is_leaf())

    def get_stats(self) -> dict:
        """Статистика поддерева"""
        leaf_sizes = [leaf.item_count() for leaf in self.iter_leaves()]
        return {
            'depth': self.depth(),
            'node_count': self.node_count(),
            'leaf_count': self.leaf_count(),
            'total_items': len(self),
            'retained_items': sum(n.item_count() for n in self.iter_nodes() if not n.is_leaf()),
            'min_leaf_size': min(leaf_sizes) if leaf_sizes else 0,
            'max_leaf_size': max(leaf_sizes) if leaf_sizes else 0,
            'median_leaf_size': int(np.median(leaf_sizes)) if leaf_sizes else 0
        }
