"""
Utility Functions.

This module contains metrics for assessing filter output:
- Error metrics (MSE, RMSE, NEES)
- Covariance diagnostics (symmetry, eigenvalues, trace)
- Prediction intervals and their coverage
"""
from .metrics import (
    compute_mse,
    compute_rmse,
    compute_nees,
    compute_symmetry_error,
    compute_min_eigenvalues,
    covariance_traces,
    prediction_intervals,
    interval_coverage,
    stability_summary,
)

__all__ = [
    'compute_mse',
    'compute_rmse',
    'compute_nees',
    'compute_symmetry_error',
    'compute_min_eigenvalues',
    'covariance_traces',
    'prediction_intervals',
    'interval_coverage',
    'stability_summary',
]
