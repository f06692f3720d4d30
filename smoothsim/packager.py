"""
Result Packager for smoothsim

Turns the raw arrays of a simulation into labelled, time-indexed outputs.
Observation rows are indexed 1..obs; state rows are indexed 1-maxlag..obs so
that the initial block sits at times <= 0. With a single path, rank-3 arrays
are reduced to their first slice; with several paths every path keeps its
column position.
"""

from typing import Any, Dict, Sequence

import numpy as np
import pandas as pd

from smoothsim.orders import component_names
from smoothsim.logger_config import get_logger


logger = get_logger(__name__)


def make_model_name(orders: Sequence[int], lags: Sequence[int], iprob=1.0, prefix: str = 'GES') -> str:
    """
    Display name encoding every (order, lag) pair.

    Examples:
        >>> make_model_name([1, 1], [1, 4])
        'GES(1[1],1[4])'
        >>> make_model_name([1], [1], iprob=0.3)
        'iGES(1[1])'
    """
    body = ",".join(f"{order}[{lag}]" for order, lag in zip(orders, lags))
    name = f"{prefix}({body})"
    if np.any(np.asarray(iprob) != 1):
        name = f"i{name}"
    return name


def model_type(name: str) -> str:
    """Part of a model name between the parentheses, e.g. '1[1],1[4]'."""
    if not name or '(' not in name or ')' not in name:
        return None
    return name[name.index('(') + 1:name.rindex(')')]


def nobs(result: Dict[str, Any]) -> int:
    """Number of in-sample observations of a simulation or fitted model."""
    if 'fitted' in result:
        return len(result['fitted'])
    return int(result['obs'])


def _series(values: np.ndarray, index: pd.Index, name: str, frequency: int):
    if values.shape[1] == 1:
        output = pd.Series(values[:, 0], index=index, name=name)
    else:
        columns = [f"Series{j + 1}" for j in range(values.shape[1])]
        output = pd.DataFrame(values, index=index, columns=columns)
    output.attrs['frequency'] = frequency
    return output


def package_simulation(
    model_spec: Dict[str, Any],
    transition: np.ndarray,
    measurement: np.ndarray,
    persistence: np.ndarray,
    initial_block: np.ndarray,
    states: np.ndarray,
    data: np.ndarray,
    errors: np.ndarray,
    occurrence: np.ndarray,
    loglik: np.ndarray,
    frequency: int = 1,
    iprob=1.0,
    prefix: str = 'GES',
) -> Dict[str, Any]:
    """
    Build the simulation result dictionary.

    Args:
        model_spec (dict): Output of normalize_orders
        transition (np.ndarray): (k, k, nsim)
        measurement (np.ndarray): (nsim, k)
        persistence (np.ndarray): (k, nsim)
        initial_block (np.ndarray): (maxlag, k, nsim)
        states (np.ndarray): (obs + maxlag, k, nsim)
        data, errors, occurrence (np.ndarray): (obs, nsim)
        loglik (np.ndarray): (nsim,)
        frequency (int): Stored in ``attrs['frequency']`` of the series
        iprob: Occurrence probability, used for the model name
        prefix (str): Model family prefix of the name

    Returns:
        Dict[str, Any]: model, orders, lags, modellags, measurement,
        transition, persistence, initial, data, states, residuals,
        occurrences, loglik, frequency, nsim, obs
    """
    obs, nsim = data.shape
    maxlag = model_spec['maxlag']
    names = component_names(model_spec['modellags'])

    obs_index = pd.RangeIndex(1, obs + 1, name='time')
    states_index = pd.RangeIndex(1 - maxlag, obs + 1, name='time')

    result = {
        'model': make_model_name(model_spec['orders'], model_spec['lags'], iprob, prefix),
        'orders': list(model_spec['orders']),
        'lags': list(model_spec['lags']),
        'modellags': np.asarray(model_spec['modellags']).copy(),
        'data': _series(data, obs_index, 'data', frequency),
        'residuals': _series(errors, obs_index, 'residuals', frequency),
        'occurrences': _series(occurrence, obs_index, 'occurrences', frequency),
        'frequency': frequency,
        'nsim': nsim,
        'obs': obs,
    }

    if nsim == 1:
        state_frame = pd.DataFrame(states[:, :, 0], index=states_index, columns=names)
        state_frame.attrs['frequency'] = frequency
        result.update({
            'transition': transition[:, :, 0].copy(),
            'measurement': measurement[0, :].copy(),
            'persistence': persistence[:, 0].copy(),
            'initial': initial_block[:, :, 0].copy(),
            'states': state_frame,
            'loglik': float(loglik[0]),
        })
    else:
        result.update({
            'transition': transition.copy(),
            'measurement': measurement.copy(),
            'persistence': persistence.copy(),
            'initial': initial_block.copy(),
            'states': states.copy(),
            'loglik': np.asarray(loglik, dtype=float).copy(),
        })

    logger.debug(f"Packaged {result['model']}: obs={obs}, nsim={nsim}")
    return result
