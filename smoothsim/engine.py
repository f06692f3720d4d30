"""
State-Space Recursion Engine for smoothsim

Single source of error recursion with per-component lags. For a component c
with lag L the value used at time t is the one stored at t - L, so the first
maxlag rows of the state array hold the initial values.

For every path and every t (in increasing order):
    v(t)  = [state[t - lag_c, c] for each component c]
    ŷ(t)  = w · v(t)
    y(t)  = o(t) (ŷ(t) + e(t))
    x(t)  = F v(t) + g o(t) e(t)

Paths never interact, so each time step is evaluated for all paths at once.
Multiplicative error and multiplicative states are supported as well:
multiplicative states run the same recursion on log values.

Functions:
    - simulate_states: Generate data from supplied errors
    - fit_states: Filter an observed series, producing one-step errors
    - forecast_states: Deterministic point forecasts from the final states
    - impulse_response: Response of the additive model to a unit error
"""

from typing import Any, Dict, Optional

import numpy as np

from smoothsim.exceptions import ConfigurationError
from smoothsim.logger_config import get_logger


logger = get_logger(__name__)

ERROR_TYPES = ('A', 'M')
COMPONENT_TYPES = ('N', 'A', 'M')


def _check_types(error_type, trend_type, season_type):
    if error_type not in ERROR_TYPES:
        raise ConfigurationError(
            f"error_type must be 'A' or 'M', got {error_type}",
            parameter_name='error_type',
            allowed_range=ERROR_TYPES
        )
    for name, value in (('trend_type', trend_type), ('season_type', season_type)):
        if value not in COMPONENT_TYPES:
            raise ConfigurationError(
                f"{name} must be one of {COMPONENT_TYPES}, got {value}",
                parameter_name=name,
                allowed_range=COMPONENT_TYPES
            )
    return trend_type == 'M' or season_type == 'M'


def _check_positive_initial(initial_block, modellags):
    # Only the last lag_c rows of component c are read by the recursion
    maxlag = initial_block.shape[0]
    read = np.concatenate([initial_block[maxlag - lag:, c].ravel() for c, lag in enumerate(modellags)])
    if not np.all(read > 0):
        error_msg = (
            f"Multiplicative states need strictly positive initial values, "
            f"got minimum {np.min(read)}"
        )
        logger.error(error_msg)
        raise ConfigurationError(
            error_msg,
            parameter_name='initial',
            invalid_value=float(np.min(read)),
            allowed_range='> 0'
        )


def _measure(lagged, measurement, multiplicative):
    # lagged: (k, nsim), measurement: (nsim, k)
    if multiplicative:
        return np.exp(np.sum(measurement.T * np.log(lagged), axis=0))
    return np.sum(measurement.T * lagged, axis=0)


def _observe(fitted, error, error_type):
    if error_type == 'M':
        return fitted * (1 + error)
    return fitted + error


def _innovation(fitted, error, error_type, multiplicative):
    if error_type == 'A':
        return error / fitted if multiplicative else error
    return np.log1p(error) if multiplicative else error * fitted


def _transit(lagged, transition, persistence, innovation, multiplicative):
    if multiplicative:
        return np.exp(np.einsum('ijn,jn->in', transition, np.log(lagged)) + persistence * innovation)
    return np.einsum('ijn,jn->in', transition, lagged) + persistence * innovation


def simulate_states(
    states: np.ndarray,
    errors: np.ndarray,
    occurrence: np.ndarray,
    transition: np.ndarray,
    measurement: np.ndarray,
    persistence: np.ndarray,
    modellags,
    error_type: str = 'A',
    trend_type: str = 'N',
    season_type: str = 'N',
) -> Dict[str, np.ndarray]:
    """
    Run the recursion over all paths using the supplied errors.

    Args:
        states (np.ndarray): (obs + maxlag, k, nsim); only the first maxlag
            rows are read, the rest is overwritten
        errors (np.ndarray): (obs, nsim)
        occurrence (np.ndarray): (obs, nsim) of 0/1
        transition (np.ndarray): (k, k, nsim)
        measurement (np.ndarray): (nsim, k)
        persistence (np.ndarray): (k, nsim)
        modellags: Lag of each of the k components
        error_type (str): 'A' or 'M'
        trend_type (str): 'N', 'A' or 'M'
        season_type (str): 'N', 'A' or 'M'

    Returns:
        Dict[str, np.ndarray]:
            - states: (obs + maxlag, k, nsim) state trajectory
            - data: (obs, nsim) observations
            - fitted: (obs, nsim) one-step measurements ŷ
            - errors: (obs, nsim) errors as used

    The inputs are not modified; identical inputs give identical outputs.
    """
    multiplicative = _check_types(error_type, trend_type, season_type)

    states = np.array(states, dtype=float)
    errors = np.asarray(errors, dtype=float)
    occurrence = np.asarray(occurrence, dtype=float)
    modellags = np.asarray(modellags, dtype=int)

    obs, nsim = errors.shape
    k = states.shape[1]
    maxlag = states.shape[0] - obs
    columns = np.arange(k)
    if multiplicative:
        _check_positive_initial(states[:maxlag], modellags)

    data = np.zeros((obs, nsim))
    fitted = np.zeros((obs, nsim))

    for t in range(maxlag, maxlag + obs):
        i = t - maxlag
        lagged = states[t - modellags, columns, :]
        fitted[i] = _measure(lagged, measurement, multiplicative)
        data[i] = occurrence[i] * _observe(fitted[i], errors[i], error_type)
        innovation = occurrence[i] * _innovation(fitted[i], errors[i], error_type, multiplicative)
        states[t] = _transit(lagged, transition, persistence, innovation, multiplicative)

    return {'states': states, 'data': data, 'fitted': fitted, 'errors': errors.copy()}


def fit_states(
    y,
    initial_block: np.ndarray,
    transition: np.ndarray,
    measurement: np.ndarray,
    persistence: np.ndarray,
    modellags,
    occurrence: Optional[np.ndarray] = None,
    error_type: str = 'A',
    trend_type: str = 'N',
    season_type: str = 'N',
) -> Dict[str, Any]:
    """
    Filter one observed series through the model.

    The error at each step is computed from the observation instead of being
    supplied: y - ŷ for additive error, y / ŷ - 1 for multiplicative error.
    Periods with occurrence 0 do not update the states and get error 0.

    Args:
        y: Observed series of length obs
        initial_block (np.ndarray): (maxlag, k) initial states
        transition (np.ndarray): (k, k)
        measurement (np.ndarray): (k,)
        persistence (np.ndarray): (k,)
        modellags: Lag of each component
        occurrence (np.ndarray, optional): 0/1 per observation, default all ones

    Returns:
        Dict[str, Any]: states (obs + maxlag, k), fitted (obs,), errors (obs,)
    """
    multiplicative = _check_types(error_type, trend_type, season_type)

    y = np.asarray(y, dtype=float).ravel()
    obs = len(y)
    initial_block = np.asarray(initial_block, dtype=float)
    maxlag, k = initial_block.shape
    modellags = np.asarray(modellags, dtype=int)
    if multiplicative:
        _check_positive_initial(initial_block, modellags)
    occurrence = np.ones(obs) if occurrence is None else np.asarray(occurrence, dtype=float).ravel()

    transition = np.asarray(transition, dtype=float).reshape(k, k, 1)
    measurement = np.asarray(measurement, dtype=float).reshape(1, k)
    persistence = np.asarray(persistence, dtype=float).reshape(k, 1)

    states = np.zeros((obs + maxlag, k, 1))
    states[:maxlag, :, 0] = initial_block
    columns = np.arange(k)

    fitted = np.zeros(obs)
    errors = np.zeros(obs)

    for t in range(maxlag, maxlag + obs):
        i = t - maxlag
        lagged = states[t - modellags, columns, :]
        fitted[i] = _measure(lagged, measurement, multiplicative)[0]
        if occurrence[i]:
            errors[i] = y[i] / fitted[i] - 1 if error_type == 'M' else y[i] - fitted[i]
        innovation = np.array([errors[i]])
        innovation = occurrence[i] * _innovation(fitted[i:i + 1], innovation, error_type, multiplicative)
        states[t] = _transit(lagged, transition, persistence, innovation, multiplicative)

    return {'states': states[:, :, 0], 'fitted': fitted, 'errors': errors}


def forecast_states(
    states_tail: np.ndarray,
    transition: np.ndarray,
    measurement: np.ndarray,
    modellags,
    h: int,
    trend_type: str = 'N',
    season_type: str = 'N',
) -> np.ndarray:
    """
    Point forecasts for h steps from the last maxlag state rows.

    Args:
        states_tail (np.ndarray): (maxlag, k) final states of a fitted model
        transition (np.ndarray): (k, k)
        measurement (np.ndarray): (k,)
        modellags: Lag of each component
        h (int): Forecast horizon

    Returns:
        np.ndarray: Forecasts of length h
    """
    states_tail = np.asarray(states_tail, dtype=float)
    maxlag, k = states_tail.shape

    states = np.zeros((maxlag + h, k, 1))
    states[:maxlag, :, 0] = states_tail

    result = simulate_states(
        states,
        np.zeros((h, 1)),
        np.ones((h, 1)),
        np.asarray(transition, dtype=float).reshape(k, k, 1),
        np.asarray(measurement, dtype=float).reshape(1, k),
        np.zeros((k, 1)),
        modellags,
        error_type='A',
        trend_type=trend_type,
        season_type=season_type,
    )
    return result['data'][:, 0]


def impulse_response(transition, measurement, persistence, modellags, h: int) -> np.ndarray:
    """
    Weights psi_0..psi_{h-1} of the additive model.

    psi_0 = 1 and psi_j is the change of y(t + j) caused by a unit error at t,
    so the h-step-ahead error variance is sigma^2 * sum(psi_j^2, j < h).
    """
    measurement = np.asarray(measurement, dtype=float)
    k = measurement.size
    modellags = np.asarray(modellags, dtype=int)
    maxlag = int(modellags.max())

    errors = np.zeros((h, 1))
    if h > 0:
        errors[0, 0] = 1.0

    result = simulate_states(
        np.zeros((maxlag + h, k, 1)),
        errors,
        np.ones((h, 1)),
        np.asarray(transition, dtype=float).reshape(k, k, 1),
        measurement.reshape(1, k),
        np.asarray(persistence, dtype=float).reshape(k, 1),
        modellags,
    )
    return result['data'][:, 0]
