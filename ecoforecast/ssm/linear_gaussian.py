"""Linear Gaussian State Space Model (LGSSM) with missing observations."""
import numpy as np


def linear_gaussian_ssm(M, Q, R, m0, P0, T, rng, p_missing=0.0, x0=None):
    """
    Simulate Linear Gaussian SSM with identity observation mapping.

    Parameters
    ----------
    M : ndarray [k, k]
        State transition matrix
    Q : ndarray [k, k]
        Process noise covariance
    R : ndarray [k, k]
        Observation noise covariance
    m0 : ndarray [k]
        Mean of the state at the first observation
    P0 : ndarray [k, k]
        Covariance of the state at the first observation
    T : int
        Number of time steps
    rng : numpy.random.Generator
        Random number generator
    p_missing : float
        Probability that each observation entry is missing (set to NaN)
    x0 : ndarray [k], optional
        State at the first observation. If None, drawn from N(m0, P0).

    Returns
    -------
    xs : ndarray [T, k]
        Latent states
    ys : ndarray [T, k]
        Observations, NaN where missing
    """
    if not 0.0 <= p_missing <= 1.0:
        raise ValueError(f"p_missing={p_missing} must lie in [0, 1].")

    k = M.shape[0]
    x = rng.multivariate_normal(m0, P0) if x0 is None else np.array(x0, dtype=float)

    xs = np.zeros((T, k))
    ys = np.zeros((T, k))

    for t in range(T):
        y = x + rng.multivariate_normal(np.zeros(k), R)
        xs[t], ys[t] = x, y
        x = M @ x + rng.multivariate_normal(np.zeros(k), Q)

    if p_missing > 0:
        ys[rng.random((T, k)) < p_missing] = np.nan

    return xs, ys
