"""
Ядро: геометрия боксов, узлы дерева и запросы
"""
from .structures import Index, Node, Volume
from .tree import Octree, Quadtree, SpatialTree

__all__ = ['Index', 'Node', 'Volume', 'SpatialTree', 'Quadtree', 'Octree']
