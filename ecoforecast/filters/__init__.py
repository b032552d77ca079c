"""Kalman filter implementation with missing-data support."""
from .kf import (
    KalmanParams,
    FilterResult,
    kalman_filter,
    kalman_analysis,
    kalman_forecast,
    kalman_nowcast,
    sensitivity_sweep,
)
from .common import (
    ConfigurationError,
    SingularInnovationError,
    symmetrize,
    is_psd,
    observed_mask,
    joseph_update,
    standard_update,
)

__all__ = [
    # Main filter
    'kalman_filter',
    'kalman_nowcast',
    'sensitivity_sweep',
    # Steps
    'kalman_analysis',
    'kalman_forecast',
    # Containers
    'KalmanParams',
    'FilterResult',
    # Errors
    'ConfigurationError',
    'SingularInnovationError',
    # Utilities
    'symmetrize',
    'is_psd',
    'observed_mask',
    'joseph_update',
    'standard_update',
]
