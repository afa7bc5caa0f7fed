"""
Модуль ввода-вывода для пространственных деревьев
"""
from .loaders import (
    load_point_cloud,
    validate_point_cloud
)
from .exporters import (
    export_query_results,
    export_leaves_json,
    export_statistics
)

__all__ = [
    'load_point_cloud',
    'validate_point_cloud',
    'export_query_results',
    'export_leaves_json',
    'export_statistics'
]
