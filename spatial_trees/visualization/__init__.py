"""
Модуль визуализации для пространственных деревьев
"""
from .tracer import QueryTraceRecorder

__all__ = ['QueryTraceRecorder']
