"""State Space Model implementations."""
from .linear_gaussian import linear_gaussian_ssm
from .spatial_random_walk import SpatialRandomWalk, ring_adjacency

__all__ = [
    'linear_gaussian_ssm',
    'SpatialRandomWalk',
    'ring_adjacency',
]
