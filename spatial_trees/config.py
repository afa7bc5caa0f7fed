"""
Конфигурация и константы для пространственных деревьев
"""
from dataclasses import asdict, dataclass
from typing import Literal, Optional
import json
from pathlib import Path

# ============ КОНСТАНТЫ ============

# Размеры узлов
DEFAULT_CAPACITY = 8  # Ёмкость узла до разбиения
DEFAULT_MAX_DEPTH = 32  # Глубина, после которой листья не делятся (защита от совпадающих точек)
MAX_DEPTH_LIMIT = 64  # Верхняя граница max_depth: вставка рекурсивна по уровням

# Трассировка
TRACE_MAX_QUERIES = 1000  # Максимум запросов, сохраняемых трассировщиком


@dataclass
class TreeConfig:
    """Конфигурация построения дерева и запросов"""

    # ======== Структура дерева ========
    dims: Literal[2, 3] = 3  # 2 - квадродерево, 3 - октодерево
    capacity: int = DEFAULT_CAPACITY
    max_depth: int = DEFAULT_MAX_DEPTH
    dtype: Literal['float32', 'float64'] = 'float64'

    # ======== Корневой бокс ========
    # Если не задан, вычисляется по входным точкам
    bounds_min: Optional[list] = None
    bounds_max: Optional[list] = None

    # ======== Трассировка ========
    trace_enabled: bool = False
    trace_max_queries: int = TRACE_MAX_QUERIES

    def validate(self) -> None:
        """Проверка корректности конфигурации"""
        if self.dims not in (2, 3):
            raise ValueError(f"dims должно быть 2 или 3, получено: {self.dims}")

        if self.capacity < 1:
            raise ValueError(f"capacity должно быть >= 1, получено: {self.capacity}")

        if not 0 <= self.max_depth <= MAX_DEPTH_LIMIT:
            raise ValueError(
                f"max_depth должно быть в диапазоне [0, {MAX_DEPTH_LIMIT}], получено: {self.max_depth}"
            )

        if self.dtype not in ('float32', 'float64'):
            raise ValueError(f"dtype должен быть float32 или float64, получено: {self.dtype}")

        if (self.bounds_min is None) != (self.bounds_max is None):
            raise ValueError("bounds_min и bounds_max задаются только вместе")

        if self.bounds_min is not None:
            if len(self.bounds_min) != self.dims or len(self.bounds_max) != self.dims:
                raise ValueError(
                    f"Границы должны иметь {self.dims} компонент(ы), "
                    f"получено: {self.bounds_min}, {self.bounds_max}"
                )
            if any(lo > hi for lo, hi in zip(self.bounds_min, self.bounds_max)):
                raise ValueError("bounds_min должно быть <= bounds_max по всем осям")

        if self.trace_max_queries < 1:
            raise ValueError(f"trace_max_queries должно быть >= 1, получено: {self.trace_max_queries}")

    def save(self, path: Path) -> None:
        """Сохранение конфигурации в JSON"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Path) -> 'TreeConfig':
        """Загрузка конфигурации из JSON"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_args(cls, args, base: Optional['TreeConfig'] = None) -> 'TreeConfig':
        """Создание конфигурации из аргументов командной строки"""
        config = base if base is not None else cls()

        # Обновляем из аргументов (None - значение не задано)
        if getattr(args, 'dims', None) is not None:
            config.dims = args.dims
        if getattr(args, 'capacity', None) is not None:
            config.capacity = args.capacity
        if getattr(args, 'max_depth', None) is not None:
            config.max_depth = args.max_depth
        if getattr(args, 'dtype', None) is not None:
            config.dtype = args.dtype

        if getattr(args, 'bounds', None) is not None:
            config.bounds_min = list(args.bounds[:config.dims])
            config.bounds_max = list(args.bounds[config.dims:])

        if getattr(args, 'trace_json', False):
            config.trace_enabled = True

        config.validate()
        return config
