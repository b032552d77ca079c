"""Shared pytest fixtures for unit tests."""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator."""
    return np.random.default_rng(42)


@pytest.fixture
def coupled_system():
    """2-state system with adjacency-coupled transition."""
    M = np.array([[0.95, 0.05], [0.05, 0.95]])
    Q = np.diag([0.1, 0.1])
    R = np.diag([0.2, 0.2])
    mu0 = np.zeros(2)
    P0 = np.eye(2)
    ys = np.array([[1.0, np.nan], [np.nan, 2.0], [3.0, 3.0]])
    return {'M': M, 'Q': Q, 'R': R, 'mu0': mu0, 'P0': P0, 'ys': ys}


@pytest.fixture
def correlated_forecast():
    """3-state forecast distribution with non-zero cross-covariances."""
    mu_f = np.array([1.0, -0.5, 2.0])
    P_f = np.array([
        [1.0, 0.6, 0.2],
        [0.6, 1.5, 0.3],
        [0.2, 0.3, 0.8],
    ])
    R = 0.25 * np.eye(3)
    return mu_f, P_f, R
