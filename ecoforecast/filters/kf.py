"""Kalman Filter (KF) for linear Gaussian models with missing observations."""
import logging
from dataclasses import dataclass
from itertools import product

import numpy as np
from scipy import linalg as sla

from .common import (
    ConfigurationError,
    SingularInnovationError,
    check_square,
    check_state_dims,
    joseph_update,
    observed_mask,
    standard_update,
    symmetrize,
)

logger = logging.getLogger(__name__)


def _solve_lu(S, B):
    """Solve S @ X = B using LU factorization."""
    return sla.solve(S, B)


def _solve_cholesky(S, B):
    """Solve S @ X = B using Cholesky factorization (assumes S is SPD)."""
    L = sla.cholesky(S, lower=True)
    return sla.cho_solve((L, True), B)


SOLVERS = {
    'cholesky': _solve_cholesky,
    'lu': _solve_lu,
}


def _get_solver(solver):
    try:
        return SOLVERS[solver]
    except KeyError:
        raise ConfigurationError(
            f"solver must be one of {sorted(SOLVERS)}, got '{solver}'"
        ) from None


def _check_param(name, A, k=None):
    """Validate a (k, k) matrix or a (T, k, k) stack of per-step matrices."""
    A = np.array(A, dtype=float)
    if A.ndim == 3:
        if A.shape[0] == 0:
            raise ConfigurationError(f"{name} stack is empty")
        return np.stack([check_square(f"{name}[{t}]", A_t, k) for t, A_t in enumerate(A)])
    return check_square(name, A, k)


def _check_mapping(H, k):
    if H is None:
        return np.eye(k)
    H = np.array(H, dtype=float)
    if H.ndim != 2 or H.shape[1] != k:
        raise ConfigurationError(f"observation mapping H must have {k} columns, got shape {H.shape}")
    return H


@dataclass(frozen=True, eq=False)
class KalmanParams:
    """
    Fixed model matrices for one filter run.

    Each matrix is either a (k, k) array, constant over time, or a
    (T, k, k) stack holding one matrix per time step. Arrays are copied and
    made read-only, so one instance can be shared across runs.

    Attributes
    ----------
    M : ndarray [k, k] or [T, k, k]
        State transition operator
    Q : ndarray [k, k] or [T, k, k]
        Process noise covariance
    R : ndarray [n_y, n_y] or [T, n_y, n_y]
        Observation noise covariance
    """
    M: np.ndarray
    Q: np.ndarray
    R: np.ndarray

    def __post_init__(self):
        M = _check_param('transition M', self.M)
        k = M.shape[-1]
        Q = _check_param('process noise Q', self.Q, k)
        R = _check_param('observation noise R', self.R)

        lengths = {A.shape[0] for A in (M, Q, R) if A.ndim == 3}
        if len(lengths) > 1:
            raise ConfigurationError(f"per-step parameter stacks differ in length: {sorted(lengths)}")

        for name, A in (('M', M), ('Q', Q), ('R', R)):
            A.setflags(write=False)
            object.__setattr__(self, name, A)

    @property
    def k(self):
        """State dimension."""
        return self.M.shape[-1]

    @property
    def n_steps(self):
        """Number of per-step matrices, or None when time-invariant."""
        for A in (self.M, self.Q, self.R):
            if A.ndim == 3:
                return A.shape[0]
        return None

    def at(self, t):
        """Return the (M, Q, R) matrices in effect at time step t."""
        return tuple(A[t] if A.ndim == 3 else A for A in (self.M, self.Q, self.R))


@dataclass
class FilterResult:
    """
    Forecast and analysis trajectories of one filter run over T steps.

    forecast[t] is the prior for observation t (forecast[0] is the initial
    condition, forecast[T] the one-step-ahead prediction past the data);
    analysis[t] is the posterior after fusing observation t.

    Attributes
    ----------
    mu_f : ndarray [T+1, k]
    P_f : ndarray [T+1, k, k]
    mu_a : ndarray [T, k]
    P_a : ndarray [T, k, k]
    cond_nums : ndarray [T]
        Condition numbers of the analysis covariances
    n_obs : ndarray [T]
        Number of observed entries fused at each step
    """
    mu_f: np.ndarray
    P_f: np.ndarray
    mu_a: np.ndarray
    P_a: np.ndarray
    cond_nums: np.ndarray
    n_obs: np.ndarray

    @property
    def T(self):
        return self.mu_a.shape[0]


def kalman_analysis(mu_f, P_f, y, R, H=None, mask=None, joseph=False, solver='cholesky',
                    cond_limit=1e12, step=None):
    """
    Fuse a forecast distribution with a partially observed measurement.

    Parameters
    ----------
    mu_f : ndarray [k]
        Forecast mean
    P_f : ndarray [k, k]
        Forecast covariance
    y : ndarray [n_y]
        Observation; NaN (or a masked entry) marks a missing value
    R : ndarray [n_y, n_y]
        Observation noise covariance; only observed rows/columns are used
    H : ndarray [n_y, k], optional
        Observation mapping (default: identity)
    mask : ndarray of bool [n_y], optional
        Explicit availability indicator, True = observed
    joseph : bool
        Use Joseph stabilized covariance update (default: False)
    solver : str
        Solver for Kalman gain: 'cholesky' or 'lu' (default: 'cholesky')
    cond_limit : float
        Largest acceptable condition number of the innovation covariance
    step : int, optional
        Time step, reported in errors

    Returns
    -------
    mu_a : ndarray [k]
        Analysis mean
    P_a : ndarray [k, k]
        Analysis covariance
    """
    mu_f, P_f = check_state_dims(mu_f, P_f)
    k = len(mu_f)
    H = _check_mapping(H, k)
    n_y = H.shape[0]
    y, obs = observed_mask(y, mask)
    if len(y) != n_y:
        raise ConfigurationError(f"observation has length {len(y)}, expected {n_y}")
    R = check_square('observation noise R', R, n_y)
    solve_fn = _get_solver(solver)

    if not np.any(obs):
        logger.debug("step %s: no observations, analysis equals forecast", step)
        return mu_f, P_f

    idx = np.flatnonzero(obs)
    H_o = H[idx]
    R_o = R[np.ix_(idx, idx)]

    # Update: K = P_f @ H' @ S^{-1}
    S = symmetrize(H_o @ P_f @ H_o.T + R_o)
    cond = np.linalg.cond(S)
    logger.debug("step %s: fusing %d observations, cond(S)=%.3g", step, len(idx), cond)

    where = f"step {step}: " if step is not None else ""
    if not np.isfinite(cond) or cond > cond_limit:
        msg = (f"{where}innovation covariance for indices {idx.tolist()} is ill-conditioned "
               f"(cond={cond:.3g} > {cond_limit:.3g})")
        logger.error(msg)
        raise SingularInnovationError(msg, step=step, indices=idx, cond=cond)
    try:
        K = solve_fn(S.T, H_o @ P_f.T).T
    except np.linalg.LinAlgError as e:
        msg = f"{where}innovation covariance for indices {idx.tolist()} is singular: {e}"
        logger.error(msg)
        raise SingularInnovationError(msg, step=step, indices=idx, cond=cond) from e

    mu_a = mu_f + K @ (y[idx] - H_o @ mu_f)
    P_a = joseph_update(P_f, K, H_o, R_o) if joseph else standard_update(P_f, K, H_o)

    return mu_a, P_a


def kalman_forecast(mu_a, P_a, M, Q):
    """
    Propagate an analysis distribution one step: mu = M mu_a, P = M P_a M' + Q.

    Returns
    -------
    mu_f : ndarray [k]
    P_f : ndarray [k, k]
    """
    mu_a, P_a = check_state_dims(mu_a, P_a)
    k = len(mu_a)
    M = check_square('transition M', M, k)
    Q = check_square('process noise Q', Q, k)

    return M @ mu_a, symmetrize(M @ P_a @ M.T + Q)


def _as_params(params):
    if isinstance(params, KalmanParams):
        return params
    return KalmanParams(*params)


def _check_observations(ys, masks, n_y):
    """Split observations into values [T, n_y] and availability masks or None."""
    if isinstance(ys, np.ma.MaskedArray):
        present = ~np.ma.getmaskarray(ys)
        masks = present if masks is None else present & np.asarray(masks, dtype=bool)
        ys = np.ma.getdata(ys)
    ys = np.array(ys, dtype=float)
    if ys.ndim == 1 and n_y == 1:
        ys = ys[:, np.newaxis]
    if ys.ndim != 2 or ys.shape[1] != n_y:
        raise ConfigurationError(f"observations must have shape [T, {n_y}], got {ys.shape}")

    if masks is not None:
        masks = np.array(masks, dtype=bool)
        if masks.ndim == 1 and n_y == 1:
            masks = masks[:, np.newaxis]
        if masks.shape != ys.shape:
            raise ConfigurationError(f"masks shape {masks.shape} does not match observations {ys.shape}")
        if np.any(np.isnan(ys[masks])):
            raise ConfigurationError("masks mark NaN observations as present")
    return ys, masks


def kalman_filter(params, mu0, P0, ys, masks=None, H=None, joseph=False, solver='cholesky',
                  cond_limit=1e12):
    """
    Kalman Filter over a multivariate state with missing observations.

    Alternates analysis and forecast steps over the observation series,
    starting from the prior (mu0, P0) as forecast[0].

    Parameters
    ----------
    params : KalmanParams or tuple (M, Q, R)
        Transition operator and noise covariances; per-step stacks must have
        length T
    mu0 : ndarray [k]
        Initial mean
    P0 : ndarray [k, k]
        Initial covariance
    ys : ndarray [T, n_y]
        Observations, NaN where missing
    masks : ndarray of bool [T, n_y], optional
        Explicit availability indicators, True = observed
    H : ndarray [n_y, k], optional
        Observation mapping (default: identity)
    joseph : bool
        Use Joseph stabilized covariance update (default: False)
    solver : str
        Solver for Kalman gain: 'cholesky' or 'lu' (default: 'cholesky')
    cond_limit : float
        Largest acceptable condition number of the innovation covariance

    Returns
    -------
    FilterResult
        Forecast trajectory of length T+1 and analysis trajectory of length T
    """
    params = _as_params(params)
    mu0, P0 = check_state_dims(mu0, P0)
    k = len(mu0)
    if params.k != k:
        raise ConfigurationError(f"parameters are {params.k}-dimensional, initial state is {k}-dimensional")
    H = _check_mapping(H, k)
    n_y = H.shape[0]
    if params.R.shape[-1] != n_y:
        raise ConfigurationError(f"observation noise R must be {n_y}x{n_y}, got {params.R.shape[-2:]}")
    ys, masks = _check_observations(ys, masks, n_y)
    T = ys.shape[0]
    if params.n_steps is not None and params.n_steps != T:
        raise ConfigurationError(f"per-step parameters cover {params.n_steps} steps, observations {T}")
    _get_solver(solver)

    logger.info("Running Kalman filter: k=%d, T=%d, solver=%s, joseph=%s", k, T, solver, joseph)

    mu_f = np.zeros((T + 1, k))
    P_f = np.zeros((T + 1, k, k))
    mu_a = np.zeros((T, k))
    P_a = np.zeros((T, k, k))
    cond_nums = np.zeros(T)
    n_obs = np.zeros(T, dtype=int)

    mu_f[0], P_f[0] = mu0, P0

    for t in range(T):
        M_t, Q_t, R_t = params.at(t)
        mask_t = None if masks is None else masks[t]

        # Analysis
        mu_a[t], P_a[t] = kalman_analysis(
            mu_f[t], P_f[t], ys[t], R_t, H=H, mask=mask_t, joseph=joseph,
            solver=solver, cond_limit=cond_limit, step=t
        )
        n_obs[t] = np.count_nonzero(observed_mask(ys[t], mask_t)[1])
        cond_nums[t] = np.linalg.cond(P_a[t])

        # Forecast
        mu_f[t + 1], P_f[t + 1] = kalman_forecast(mu_a[t], P_a[t], M_t, Q_t)

    logger.info("Kalman filter finished: %d of %d steps had observations",
                np.count_nonzero(n_obs), T)

    return FilterResult(mu_f=mu_f, P_f=P_f, mu_a=mu_a, P_a=P_a,
                        cond_nums=cond_nums, n_obs=n_obs)


def kalman_nowcast(params, mu_prev, P_prev, y, mask=None, horizon=16, H=None, joseph=False,
                   solver='cholesky', cond_limit=1e12):
    """
    Online update: roll the previous analysis forward, fuse one new
    observation, then forecast `horizon` steps ahead without data.

    Parameters
    ----------
    params : KalmanParams or tuple (M, Q, R)
        Model matrices; per-step stacks must have length horizon + 1, entry 0
        being used to reach the current time
    mu_prev : ndarray [k]
        Previous analysis mean
    P_prev : ndarray [k, k]
        Previous analysis covariance
    y : ndarray [n_y]
        New observation, NaN where missing
    mask : ndarray of bool [n_y], optional
        Explicit availability indicator, True = observed
    horizon : int
        Number of forecast steps after the nowcast (default: 16)

    Returns
    -------
    means : ndarray [horizon+1, k]
        means[0] is the nowcast, means[1:] the forecast horizon
    covs : ndarray [horizon+1, k, k]
    """
    params = _as_params(params)
    mu_prev, P_prev = check_state_dims(mu_prev, P_prev)
    k = len(mu_prev)
    if params.k != k:
        raise ConfigurationError(f"parameters are {params.k}-dimensional, previous state is {k}-dimensional")
    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)) or horizon < 0:
        raise ConfigurationError(f"horizon must be a non-negative integer, got {horizon!r}")
    if params.n_steps is not None and params.n_steps != horizon + 1:
        raise ConfigurationError(
            f"per-step parameters cover {params.n_steps} steps, expected horizon + 1 = {horizon + 1}"
        )

    logger.info("Nowcast with %d-step forecast horizon", horizon)

    means = np.zeros((horizon + 1, k))
    covs = np.zeros((horizon + 1, k, k))

    M_0, Q_0, R_0 = params.at(0)
    mu, P = kalman_forecast(mu_prev, P_prev, M_0, Q_0)
    means[0], covs[0] = kalman_analysis(
        mu, P, y, R_0, H=H, mask=mask, joseph=joseph, solver=solver, cond_limit=cond_limit, step=0
    )

    for j in range(1, horizon + 1):
        M_j, Q_j, _ = params.at(j)
        means[j], covs[j] = kalman_forecast(means[j - 1], covs[j - 1], M_j, Q_j)

    return means, covs


def sensitivity_sweep(model, ys, mu0, P0, masks=None, **kwargs):
    """
    Run the filter under the four combinations of spatial/non-spatial
    transition and diagonal/correlated process noise.

    Parameters
    ----------
    model : object
        Provides `params(spatial, correlated) -> KalmanParams`
    ys : ndarray [T, k]
        Observations, NaN where missing
    mu0, P0 : ndarray
        Initial condition shared by every run (never modified)
    **kwargs
        Passed to `kalman_filter`

    Returns
    -------
    dict
        (spatial, correlated) -> FilterResult
    """
    results = {}
    for spatial, correlated in product((False, True), (False, True)):
        logger.info("Sensitivity run: spatial=%s, correlated=%s", spatial, correlated)
        params = model.params(spatial=spatial, correlated=correlated)
        results[(spatial, correlated)] = kalman_filter(params, mu0, P0, ys, masks=masks, **kwargs)
    return results
