from __future__ import annotations
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from typing import Any

# 1) Версия пакета
try:
    # имя дистрибутива - как в setup.py
    __version__ = _pkg_version("spatial-trees")
except PackageNotFoundError:
    # в editable/develop-режиме пакет может быть не «установлен»
    __version__ = "0.1.0"

_LAZY = {
    'Volume': 'structures',
    'Node': 'structures',
    'Index': 'structures',
    'SpatialTree': 'tree',
    'Quadtree': 'tree',
    'Octree': 'tree',
}

__all__ = ["__version__", "TreeConfig", *_LAZY]


# 2) Ленивый экспорт для публичного API (избегаем ранних импортов)
def __getattr__(name: str) -> Any:
    if name in _LAZY:
        from importlib import import_module
        module = import_module(f".core.{_LAZY[name]}", __name__)
        return getattr(module, name)
    if name == "TreeConfig":
        from .config import TreeConfig
        return TreeConfig
    raise AttributeError(name)
