"""
Скалярный тип координат

Дерево параметризуется numpy-типом: float32 и float64 поддерживаются
штатно, dtype=object позволяет использовать пользовательские числа
(например, decimal.Decimal), если у них есть арифметика, сравнение
и метод sqrt().
"""
from typing import Any, Sequence, Union
import numpy as np

DTypeLike = Union[str, type, np.dtype]

# Поддерживаемые имена скалярных типов (для конфигурации и CLI)
SCALAR_TYPES = {
    'float32': np.float32,
    'float64': np.float64,
    'object': object,
}


def resolve_dtype(dtype: DTypeLike) -> np.dtype:
    """Преобразование имени/типа в numpy dtype с проверкой"""
    if isinstance(dtype, str):
        if dtype not in SCALAR_TYPES:
            raise ValueError(
                f"Unsupported scalar type '{dtype}', "
                f"expected one of {sorted(SCALAR_TYPES)}"
            )
        dtype = SCALAR_TYPES[dtype]

    resolved = np.dtype(dtype)
    if resolved.kind not in ('f', 'O'):
        raise ValueError(f"Scalar type must be floating point or object, got {resolved}")
    return resolved


def cast_small(dtype: np.dtype, value: int) -> Any:
    """Приведение малого целого к скалярному типу (нужно для деления пополам)"""
    return dtype.type(value)


def as_coords(values: Sequence[Any], dtype: np.dtype, dims: int) -> np.ndarray:
    """
    Приведение координаты к вектору нужного типа и размерности

    Raises:
        ValueError: если число компонент не совпадает с dims
    """
    arr = np.asarray(values, dtype=dtype)
    if arr.shape != (dims,):
        raise ValueError(f"Expected {dims}D coordinate, got shape {arr.shape}")
    return arr


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> Any:
    """Евклидово расстояние: корень из суммы квадратов разностей по осям"""
    diff = a - b
    return np.sqrt(np.sum(diff ** cast_small(a.dtype, 2)))
