"""
Adaptive quiz selection: apportionment, weighted sampling and pool statistics.
"""
from .apportion import apportion
from .engine import QuizRequest, QuizSelection, SelectionEngine, create_seed, select_from_pool
from .sampler import weighted_sample
from .stats import PoolStatistics, coverage_recommendations, get_pool_statistics

__all__ = [
    "apportion",
    "QuizRequest",
    "QuizSelection",
    "SelectionEngine",
    "create_seed",
    "select_from_pool",
    "weighted_sample",
    "PoolStatistics",
    "coverage_recommendations",
    "get_pool_statistics",
]
