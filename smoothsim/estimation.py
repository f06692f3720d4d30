"""
Estimation Module for smoothsim

Fits a GES model to an observed series by minimising the in-sample mean
squared one-step error. Any of transition, measurement, persistence and
initial may be fixed by the caller; the remaining values are estimated with
scipy.optimize.minimize. Candidates that fail the stability test receive a
prohibitive cost so the optimiser stays inside the stable region.

Functions:
    - fit_ges: Estimate a GES model
    - coef: Estimated parameters of a fitted model
    - sigma: Residual standard deviation of a fitted model
"""

from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from smoothsim.config_loader import resolve_config
from smoothsim.engine import fit_states, forecast_states
from smoothsim.evaluation import calculate_mae, calculate_rmse, gaussian_loglik, information_criteria
from smoothsim.exceptions import ConfigurationError, ModelFitError
from smoothsim.generator import check_supplied, is_stable
from smoothsim.logger_config import get_logger, log_exception
from smoothsim.orders import component_names, normalize_orders
from smoothsim.packager import make_model_name


logger = get_logger(__name__)

PENALTY = 1e100


def _initial_guess(y: np.ndarray, modellags: np.ndarray, maxlag: int) -> np.ndarray:
    """Level from the first observations, seasonal deviations for longer lags."""
    k = len(modellags)
    block = np.zeros((maxlag, k))
    for c, lag in enumerate(modellags):
        rows = slice(maxlag - lag, maxlag)
        head = y[:lag]
        if c == 0:
            block[rows, c] = np.mean(y[:maxlag]) if lag == 1 else head
        elif lag > 1:
            block[rows, c] = head - np.mean(head)
    return block


def _initial_mask(modellags: np.ndarray, maxlag: int) -> np.ndarray:
    """Cells of the initial block that the recursion actually reads."""
    mask = np.zeros((maxlag, len(modellags)), dtype=bool)
    for c, lag in enumerate(modellags):
        mask[maxlag - lag:, c] = True
    return mask


class _ParameterLayout:
    """Packs the free model parameters into one vector for the optimiser."""

    def __init__(self, k, maxlag, modellags, fixed):
        self.k = k
        self.maxlag = maxlag
        self.fixed = fixed
        self.mask = _initial_mask(modellags, maxlag)
        self.names = []
        if fixed['transition'] is None:
            self.names += [f"transition[{i + 1},{j + 1}]" for i in range(k) for j in range(k)]
        if fixed['measurement'] is None:
            self.names += [f"measurement[{i + 1}]" for i in range(k)]
        if fixed['persistence'] is None:
            self.names += [f"persistence[{i + 1}]" for i in range(k)]
        if fixed['initial'] is None:
            components, rows = np.nonzero(self.mask.T)
            self.names += [f"initial[{r + 1},{c + 1}]" for c, r in zip(components, rows)]

    def pack(self, transition, measurement, persistence, initial_block):
        parts = []
        if self.fixed['transition'] is None:
            parts.append(transition.ravel())
        if self.fixed['measurement'] is None:
            parts.append(measurement)
        if self.fixed['persistence'] is None:
            parts.append(persistence)
        if self.fixed['initial'] is None:
            parts.append(initial_block.T[self.mask.T])
        return np.concatenate(parts) if parts else np.zeros(0)

    def unpack(self, vector):
        k = self.k
        position = 0

        def take(size):
            nonlocal position
            chunk = vector[position:position + size]
            position += size
            return chunk

        transition = self.fixed['transition']
        if transition is None:
            transition = take(k * k).reshape(k, k)
        measurement = self.fixed['measurement']
        if measurement is None:
            measurement = take(k)
        persistence = self.fixed['persistence']
        if persistence is None:
            persistence = take(k)
        initial_block = self.fixed['initial']
        if initial_block is None:
            values = np.zeros((k, self.maxlag))
            values[self.mask.T] = take(int(self.mask.sum()))
            initial_block = values.T
        return transition, measurement, persistence, initial_block


def fit_ges(
    y,
    orders: Sequence[int] = (1,),
    lags: Sequence[int] = (1,),
    measurement=None,
    transition=None,
    persistence=None,
    initial=None,
    holdout: int = 0,
    error_type: str = 'A',
    frequency: Optional[int] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Estimate a GES model on an observed series.

    Args:
        y: Observed series (array-like or pd.Series)
        orders (Sequence[int]): Number of states per lag
        lags (Sequence[int]): Lag of each group of states
        measurement, transition, persistence, initial: Fixed values, same
            conventions as simulate_ges; None means estimate
        holdout (int): Number of final observations kept out of the fit
        error_type (str): 'A' or 'M'
        frequency (int, optional): Defaults to y.attrs['frequency'] or 1
        config (dict, optional): Partial configuration merged over defaults

    Returns:
        Dict[str, Any]:
            - model (str): e.g. "GES(1[1])"
            - transition, measurement, persistence, initial: Final values
            - states (pd.DataFrame): State trajectory, index 1-maxlag..obs
            - fitted, residuals, actuals (pd.Series): In-sample series
            - holdout (pd.Series or None): Held-out observations
            - sigma (float): Residual standard deviation
            - loglik (float), cf (float), cf_type (str)
            - n_param (int): Estimated parameters including the variance
            - coefficients (pd.Series): Estimated parameter values
            - ics (dict): AIC, AICc, BIC
            - accuracy (dict or None): RMSE and MAE on the holdout
            - orders, lags, modellags, frequency, error_type

    Raises:
        ModelFitError: Too few observations, or the optimiser fails
        ConfigurationError: Invalid error_type or holdout
    """
    config = resolve_config(config)
    est_config = config['estimation']

    if error_type not in ('A', 'M'):
        raise ConfigurationError(
            f"error_type must be 'A' or 'M', got {error_type}",
            parameter_name='error_type',
            allowed_range=('A', 'M')
        )

    if frequency is None:
        frequency = y.attrs.get('frequency', 1) if isinstance(y, pd.Series) else 1

    values = np.asarray(y, dtype=float).ravel()
    if np.any(np.isnan(values)):
        error_msg = "Series contains NaN values"
        logger.error(error_msg)
        raise ModelFitError(error_msg, model_type='GES')

    holdout = int(holdout)
    if holdout < 0 or holdout >= len(values):
        raise ConfigurationError(
            f"holdout must be between 0 and {len(values) - 1}, got {holdout}",
            parameter_name='holdout',
            invalid_value=holdout
        )

    in_sample = values[:len(values) - holdout]
    held_out = values[len(values) - holdout:] if holdout else None

    model_spec = normalize_orders(orders, lags)
    k = model_spec['components_number']
    maxlag = model_spec['maxlag']
    modellags = model_spec['modellags']
    name = make_model_name(model_spec['orders'], model_spec['lags'])

    if error_type == 'M' and np.any(in_sample <= 0):
        error_msg = "Multiplicative error requires strictly positive data"
        logger.error(error_msg)
        raise ModelFitError(error_msg, model_type=name)

    fixed = {
        'transition': check_supplied(transition, (k, k), 'transition matrix'),
        'measurement': check_supplied(measurement, (k,), 'measurement vector'),
        'persistence': check_supplied(persistence, (k,), 'persistence vector'),
        'initial': check_supplied(initial, (maxlag, k), 'initial vector'),
    }
    layout = _ParameterLayout(k, maxlag, modellags, fixed)
    n_param = len(layout.names) + 1

    if len(in_sample) <= n_param:
        error_msg = f"{name} needs more than {n_param} observations, got {len(in_sample)}"
        logger.error(error_msg)
        raise ModelFitError(error_msg, model_type=name, parameters={'n_param': n_param})

    start = layout.pack(
        np.eye(k),
        np.ones(k),
        np.full(k, 0.1),
        _initial_guess(in_sample, modellags, maxlag),
    )

    def cost(vector):
        f, w, g, block = layout.unpack(vector)
        if not is_stable(f, g, w):
            return PENALTY
        with np.errstate(all='ignore'):
            errors = fit_states(in_sample, block, f, w, g, modellags, error_type=error_type)['errors']
            value = np.mean(errors ** 2)
        return value if np.isfinite(value) else PENALTY

    logger.info(f"Fitting {name} on {len(in_sample)} observations ({len(layout.names)} free parameters)")

    if len(layout.names):
        try:
            optimum = minimize(
                cost, start,
                method=est_config['method'],
                options={'maxiter': est_config['maxiter']}
            )
        except (ValueError, TypeError) as e:
            error_msg = f"Optimiser '{est_config['method']}' failed for {name}: {str(e)}"
            logger.error(error_msg)
            log_exception(logger, e)
            raise ModelFitError(
                error_msg,
                model_type=name,
                parameters={'method': est_config['method'], 'maxiter': est_config['maxiter']}
            ) from e
        estimate = optimum.x
        if not optimum.success:
            logger.warning(f"Optimiser did not report convergence: {optimum.message}")
    else:
        estimate = start

    cf_value = cost(estimate)
    if cf_value >= PENALTY:
        error_msg = "Optimiser ended on an unstable or non-finite model"
        logger.error(error_msg)
        raise ModelFitError(error_msg, model_type=name)

    f, w, g, block = layout.unpack(estimate)
    filtered = fit_states(in_sample, block, f, w, g, modellags, error_type=error_type)

    obs = len(in_sample)
    obs_index = pd.RangeIndex(1, obs + 1, name='time')
    states = pd.DataFrame(
        filtered['states'],
        index=pd.RangeIndex(1 - maxlag, obs + 1, name='time'),
        columns=component_names(modellags),
    )
    residuals = filtered['errors']
    loglik = float(gaussian_loglik(residuals)[0])
    sigma_value = float(np.sqrt(np.sum(residuals ** 2) / (obs - n_param)))

    accuracy = None
    holdout_series = None
    if held_out is not None:
        predictions = forecast_states(filtered['states'][-maxlag:], f, w, modellags, holdout)
        accuracy = {
            'RMSE': calculate_rmse(held_out, predictions),
            'MAE': calculate_mae(held_out, predictions),
        }
        holdout_series = pd.Series(held_out, index=pd.RangeIndex(obs + 1, obs + holdout + 1, name='time'),
                                   name='holdout')

    model = {
        'model': name,
        'orders': list(model_spec['orders']),
        'lags': list(model_spec['lags']),
        'modellags': modellags.copy(),
        'transition': np.asarray(f, dtype=float).copy(),
        'measurement': np.asarray(w, dtype=float).copy(),
        'persistence': np.asarray(g, dtype=float).copy(),
        'initial': np.asarray(block, dtype=float).copy(),
        'states': states,
        'fitted': pd.Series(filtered['fitted'], index=obs_index, name='fitted'),
        'residuals': pd.Series(residuals, index=obs_index, name='residuals'),
        'actuals': pd.Series(in_sample, index=obs_index, name='actuals'),
        'holdout': holdout_series,
        'sigma': sigma_value,
        'loglik': loglik,
        'cf': float(cf_value),
        'cf_type': est_config['cf_type'],
        'n_param': n_param,
        'coefficients': pd.Series(estimate, index=layout.names, dtype=float),
        'ics': information_criteria(loglik, obs, n_param),
        'accuracy': accuracy,
        'frequency': frequency,
        'error_type': error_type,
    }

    logger.info(f"{name} fitted: cf={cf_value:.6f}, sigma={sigma_value:.6f}, AIC={model['ics']['AIC']:.4f}")
    return model


def coef(model: Dict[str, Any]) -> pd.Series:
    """Estimated parameters of a fitted model, labelled by position."""
    return model['coefficients']


def sigma(model: Dict[str, Any]) -> float:
    """Residual standard deviation of a fitted model."""
    return model['sigma']
