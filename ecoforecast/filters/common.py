"""Common numerical utilities and error types for the Kalman filter."""
import numpy as np


class ConfigurationError(ValueError):
    """Raised when matrix or vector dimensions are inconsistent."""
    pass


class SingularInnovationError(np.linalg.LinAlgError):
    """
    Raised when the innovation covariance H P_f H' + R cannot be inverted.

    Attributes
    ----------
    step : int or None
        Time step at which the failure occurred (None for a standalone call)
    indices : ndarray
        State indices whose observations were being fused
    cond : float
        Condition number of the innovation covariance
    """

    def __init__(self, message, step=None, indices=None, cond=np.inf):
        super().__init__(message)
        self.step = step
        self.indices = np.array([], dtype=int) if indices is None else np.asarray(indices)
        self.cond = cond


def symmetrize(P):
    """Return (P + P') / 2 as a new array."""
    return 0.5 * (P + P.T)


def is_psd(P, tol=1e-10):
    """Check if matrix is symmetric positive semi-definite."""
    P = np.asarray(P, dtype=float)
    if P.ndim != 2 or P.shape[0] != P.shape[1]:
        return False
    if not np.allclose(P, P.T, atol=1e-8):
        return False
    return bool(np.all(np.linalg.eigvalsh(P) >= -tol))


def check_square(name, A, k=None):
    """
    Validate that `A` is a finite square matrix, optionally of size k x k.

    Returns
    -------
    ndarray [k, k]
        `A` as a float array (a copy, never a view of the input)
    """
    A = np.array(A, dtype=float)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ConfigurationError(f"{name} must be a square matrix, got shape {A.shape}")
    if k is not None and A.shape[0] != k:
        raise ConfigurationError(f"{name} must be {k}x{k}, got {A.shape[0]}x{A.shape[1]}")
    if not np.all(np.isfinite(A)):
        raise ConfigurationError(f"{name} contains NaN or Inf")
    return A


def check_state_dims(mu, P):
    """
    Validate a (mean, covariance) pair and return float copies.

    Parameters
    ----------
    mu : array_like [k]
        State mean
    P : array_like [k, k]
        State covariance

    Returns
    -------
    mu : ndarray [k]
    P : ndarray [k, k]
    """
    mu = np.array(mu, dtype=float)
    if mu.ndim != 1:
        raise ConfigurationError(f"state mean must be a vector, got shape {mu.shape}")
    if not np.all(np.isfinite(mu)):
        raise ConfigurationError("state mean contains NaN or Inf")
    P = check_square("state covariance", P, len(mu))
    return mu, P


def observed_mask(y, mask=None):
    """
    Determine which entries of an observation vector are present.

    Parameters
    ----------
    y : array_like [k]
        Observation vector. NaN marks a missing entry unless `mask` is given.
        A numpy masked array contributes its own mask; an unmasked NaN in
        it is an error.
    mask : array_like of bool [k], optional
        Explicit availability indicator (True = observed). Takes precedence
        over NaN detection.

    Returns
    -------
    y : ndarray [k]
        Observation values as a plain float array
    obs : ndarray of bool [k]
        True where the observation is present
    """
    masked_input = isinstance(y, np.ma.MaskedArray)
    if masked_input:
        obs = ~np.ma.getmaskarray(y)
        y = np.array(np.ma.getdata(y), dtype=float)
    else:
        y = np.array(y, dtype=float)
        obs = ~np.isnan(y)

    if y.ndim != 1:
        raise ConfigurationError(f"observation must be a vector, got shape {y.shape}")

    if mask is not None:
        mask = np.array(mask, dtype=bool)
        if mask.shape != y.shape:
            raise ConfigurationError(
                f"mask shape {mask.shape} does not match observation shape {y.shape}"
            )
        obs = mask & obs if masked_input else mask

    if np.any(np.isnan(y[obs])):
        raise ConfigurationError("NaN observation flagged as present")

    return y, obs


def joseph_update(P_pred, K, H, R):
    """
    Compute Joseph-stabilized covariance update.

    Parameters
    ----------
    P_pred : ndarray [n_x, n_x]
        Forecast covariance
    K : ndarray [n_x, n_y]
        Kalman gain
    H : ndarray [n_y, n_x]
        Observation matrix restricted to observed rows
    R : ndarray [n_y, n_y]
        Observation noise covariance restricted to observed indices

    Returns
    -------
    ndarray [n_x, n_x]
        Updated covariance, symmetrized
    """
    IKH = np.eye(P_pred.shape[0]) - K @ H
    return symmetrize(IKH @ P_pred @ IKH.T + K @ R @ K.T)


def standard_update(P_pred, K, H):
    """
    Compute standard covariance update: P = (I - KH) P_pred, symmetrized.

    Parameters
    ----------
    P_pred : ndarray [n_x, n_x]
        Forecast covariance
    K : ndarray [n_x, n_y]
        Kalman gain
    H : ndarray [n_y, n_x]
        Observation matrix restricted to observed rows

    Returns
    -------
    ndarray [n_x, n_x]
        Updated covariance, symmetrized
    """
    return symmetrize((np.eye(P_pred.shape[0]) - K @ H) @ P_pred)
