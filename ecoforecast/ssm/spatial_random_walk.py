"""Spatially coupled random walk over a network of locations."""
import numpy as np

from ..filters.kf import KalmanParams
from .linear_gaussian import linear_gaussian_ssm


def ring_adjacency(k):
    """Adjacency matrix of k locations arranged in a ring."""
    if k < 2:
        raise ValueError(f"k={k} must be at least 2.")
    adj = np.zeros((k, k))
    for i in range(k):
        adj[i, (i + 1) % k] = adj[(i + 1) % k, i] = 1.0
    return adj


class SpatialRandomWalk:
    """Random walk on log-scale activity at k locations with neighbour exchange.

    Transition: M = alpha * adj + diag(1 - alpha * rowsum(adj)), so each
    location keeps a share of its own state and exchanges `alpha` with
    every neighbour. Rows of M sum to one.

    Parameters
    ----------
    adjacency : ndarray [k, k]
        Symmetric 0/1 adjacency matrix with zero diagonal
    alpha : float
        Coupling strength between neighbours
    tau_proc : float
        Process noise variance
    tau_obs : float
        Observation noise variance
    rho : float
        Correlation between locations in the correlated process noise
    """

    def __init__(self, adjacency, alpha=0.05, tau_proc=0.1, tau_obs=0.2, rho=0.5):
        """Initialize model with given parameters."""
        adj = np.array(adjacency, dtype=float)
        if adj.ndim != 2 or adj.shape[0] != adj.shape[1]:
            raise ValueError(f"adjacency must be square, got shape {adj.shape}.")
        if not np.allclose(adj, adj.T) or np.any(np.diag(adj) != 0):
            raise ValueError("adjacency must be symmetric with zero diagonal.")
        if not 0.0 <= rho < 1.0:
            raise ValueError(f"rho={rho} must lie in [0, 1).")
        if tau_proc < 0 or tau_obs <= 0:
            raise ValueError("tau_proc must be non-negative and tau_obs positive.")

        self.adjacency = adj
        self.k = adj.shape[0]
        self.alpha = alpha
        self.tau_proc = tau_proc
        self.tau_obs = tau_obs
        self.rho = rho

        # Default initial state distribution
        self.m0 = np.zeros(self.k)
        self.P0 = np.eye(self.k)

    def set_initial(self, m0, P0):
        """Set initial state distribution."""
        self.m0 = m0
        self.P0 = P0

    def transition(self, spatial=True):
        """Transition operator; identity when `spatial` is False."""
        if not spatial:
            return np.eye(self.k)
        return self.alpha * self.adjacency + np.diag(1.0 - self.alpha * self.adjacency.sum(axis=1))

    def process_cov(self, correlated=False):
        """Process noise covariance, diagonal or with equal correlation `rho`."""
        if not correlated:
            return self.tau_proc * np.eye(self.k)
        return self.tau_proc * ((1.0 - self.rho) * np.eye(self.k) + self.rho * np.ones((self.k, self.k)))

    def obs_cov(self):
        """Observation noise covariance."""
        return self.tau_obs * np.eye(self.k)

    def params(self, spatial=True, correlated=False):
        """Return KalmanParams for the chosen transition and process noise."""
        return KalmanParams(self.transition(spatial), self.process_cov(correlated), self.obs_cov())

    def with_obs_noise(self, tau_obs):
        """Copy of this model with a different observation noise variance."""
        model = SpatialRandomWalk(self.adjacency, self.alpha, self.tau_proc, tau_obs, self.rho)
        model.set_initial(self.m0, self.P0)
        return model

    def simulate(self, T, rng, p_missing=0.0, x0=None, spatial=True, correlated=False):
        """Simulate T steps, return (xs, ys) with NaN for missing observations.

        If `x0` is None the first state is drawn from N(m0, P0).
        """
        return linear_gaussian_ssm(
            self.transition(spatial), self.process_cov(correlated), self.obs_cov(),
            self.m0, self.P0, T, rng, p_missing=p_missing, x0=x0
        )
