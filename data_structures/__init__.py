"""
Data structures for forest tree learners.

Datasets, the array-backed decision tree with its split variants, and the
partition arena used while a tree is grown.
"""
from data_structures.dataset import DataStorage
from data_structures.partition import PartitionArena
from data_structures.tree import (
    AxisAlignedSplit,
    DecisionTree,
    HyperplaneSplit,
    LeafStatistics,
    ProjectionSplit,
    SplitConfig,
    TreeNode,
)

__all__ = [
    "AxisAlignedSplit",
    "DataStorage",
    "DecisionTree",
    "HyperplaneSplit",
    "LeafStatistics",
    "PartitionArena",
    "ProjectionSplit",
    "SplitConfig",
    "TreeNode",
]
