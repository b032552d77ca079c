"""
Metrics for assessing forecast and analysis trajectories.
"""
import numpy as np


def compute_mse(estimated, true):
    """
    Compute Mean Squared Error, ignoring entries where either input is NaN.

    Parameters
    ----------
    estimated : ndarray
        Estimated values
    true : ndarray
        True values (NaN where unknown)

    Returns
    -------
    float
        Mean squared error
    """
    return np.nanmean((np.asarray(estimated) - np.asarray(true))**2)


def compute_rmse(estimated, true):
    """Compute Root Mean Squared Error, ignoring NaN entries."""
    return np.sqrt(compute_mse(estimated, true))


def compute_nees(m_filt, P_filt, xs, regularize=1e-8):
    """
    Compute Normalized Estimation Error Squared (NEES).

    NEES = (x - m)' * P^{-1} * (x - m)

    For a consistent filter, NEES should follow chi-squared(n_x) distribution.

    Parameters
    ----------
    m_filt : ndarray [T, n_x]
        Filtered means
    P_filt : ndarray [T, n_x, n_x]
        Filtered covariances
    xs : ndarray [T, n_x]
        True states
    regularize : float
        Small value added to diagonal for numerical stability

    Returns
    -------
    ndarray [T]
        NEES values at each time step
    """
    T, n_x = m_filt.shape
    nees = np.zeros(T)

    for t in range(T):
        error = xs[t] - m_filt[t]
        P_reg = P_filt[t] + regularize * np.eye(n_x)
        try:
            nees[t] = error @ np.linalg.solve(P_reg, error)
        except np.linalg.LinAlgError:
            # Fallback to least squares for singular matrices
            nees[t] = error @ np.linalg.lstsq(P_reg, error, rcond=None)[0]

    return nees


def compute_symmetry_error(P_filt):
    """
    Compute max |P - P'| at each time step.

    Parameters
    ----------
    P_filt : ndarray [T, n_x, n_x]
        Covariance matrices

    Returns
    -------
    ndarray [T]
        Largest absolute asymmetry at each time step
    """
    return np.max(np.abs(P_filt - np.swapaxes(P_filt, -1, -2)), axis=(-2, -1))


def compute_min_eigenvalues(P_filt):
    """
    Compute minimum eigenvalue of P at each time step.

    Negative values indicate loss of positive semi-definiteness.
    """
    return np.array([np.linalg.eigvalsh(0.5 * (P + P.T)).min() for P in P_filt])


def covariance_traces(P_filt, indices=None):
    """
    Trace of each covariance, optionally restricted to a subset of indices.

    Parameters
    ----------
    P_filt : ndarray [T, n_x, n_x]
        Covariance matrices
    indices : array_like of int, optional
        State indices to include (default: all)

    Returns
    -------
    ndarray [T]
    """
    diag = np.diagonal(P_filt, axis1=-2, axis2=-1)
    if indices is not None:
        diag = diag[..., np.asarray(indices)]
    return diag.sum(axis=-1)


def prediction_intervals(means, covs, n_sigma=1.96):
    """
    Marginal mean +/- n_sigma standard deviation bands.

    Parameters
    ----------
    means : ndarray [T, n_x]
    covs : ndarray [T, n_x, n_x]
    n_sigma : float
        Half-width in standard deviations (default: 1.96, ~95%)

    Returns
    -------
    lower, upper : ndarray [T, n_x]
    """
    std = np.sqrt(np.clip(np.diagonal(covs, axis1=-2, axis2=-1), 0.0, None))
    return means - n_sigma * std, means + n_sigma * std


def interval_coverage(xs, lower, upper):
    """Fraction of known true values falling inside [lower, upper], NaN if none are known."""
    xs = np.asarray(xs)
    known = ~np.isnan(xs)
    if not np.any(known):
        return np.nan
    inside = (xs >= lower) & (xs <= upper)
    return np.count_nonzero(inside & known) / np.count_nonzero(known)


def stability_summary(cond_nums, mse=None):
    """
    Generate summary statistics for numerical stability metrics.

    Parameters
    ----------
    cond_nums : ndarray
        Condition numbers
    mse : float, optional
        Mean squared error

    Returns
    -------
    dict
        Summary statistics
    """
    summary = {
        'mean_cond': np.mean(cond_nums),
        'max_cond': np.max(cond_nums),
    }
    if mse is not None:
        summary['mse'] = mse
    return summary
