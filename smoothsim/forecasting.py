"""
Forecasting Module for smoothsim

Point forecasts and prediction intervals from a model fitted with fit_ges.

Interval types:
    - parametric: from the state-space structure. Additive-error models use
      the analytic variance sigma^2 * sum(psi_j^2); multiplicative-error
      models use quantiles of simulated future paths.
    - semiparametric: normal quantiles with the variances of the in-sample
      1..h-step-ahead errors.
    - nonparametric: quantile regression e_j = a * j^b on the in-sample
      multi-step errors (Taylor and Bunn, 1999).

Functions:
    - forecast: Point forecasts and intervals
    - multistep_errors: In-sample 1..h-step-ahead error matrix
    - resolve_intervals: Canonical interval type name
"""

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.regression.quantile_regression import QuantReg

from smoothsim.config_loader import resolve_config
from smoothsim.engine import forecast_states, impulse_response
from smoothsim.exceptions import ConfigurationError, ModelFitError
from smoothsim.logger_config import get_logger
from smoothsim.packager import nobs
from smoothsim.simulate import simulate_from_model


logger = get_logger(__name__)

INTERVAL_ALIASES = {
    'n': 'none',
    'none': 'none',
    'p': 'parametric',
    'parametric': 'parametric',
    'sp': 'semiparametric',
    'semiparametric': 'semiparametric',
    'np': 'nonparametric',
    'nonparametric': 'nonparametric',
}

# Exponents tried for e_j = a * j^b
POWER_GRID = np.round(np.arange(0.0, 3.01, 0.05), 2)


def resolve_intervals(intervals) -> str:
    """
    Canonical interval type.

    Examples:
        >>> resolve_intervals('sp')
        'semiparametric'
        >>> resolve_intervals(True)
        'parametric'
    """
    if isinstance(intervals, bool):
        return 'parametric' if intervals else 'none'
    canonical = INTERVAL_ALIASES.get(str(intervals).lower())
    if canonical is None:
        error_msg = f"Unknown interval type '{intervals}'"
        logger.error(error_msg)
        raise ConfigurationError(
            error_msg,
            parameter_name='intervals',
            invalid_value=intervals,
            allowed_range=sorted(set(INTERVAL_ALIASES.values()))
        )
    return canonical


def _final_states(model: Dict[str, Any]) -> np.ndarray:
    maxlag = int(np.max(model['modellags']))
    return np.asarray(model['states'])[-maxlag:, :]


def multistep_errors(model: Dict[str, Any], h: int, cumulative: bool = False) -> np.ndarray:
    """
    In-sample errors of 1..h-step-ahead forecasts.

    Row i holds the errors of the forecasts made after observing i values
    (i = 0 uses the initial states), for every origin with h observations
    ahead of it. Errors are y - forecast for additive-error models and
    y / forecast - 1 for multiplicative-error models.

    With cumulative=True each origin gives one error of the h-step total:
    sum(y) - sum(forecast), or sum(y) / sum(forecast) - 1 for
    multiplicative-error models.

    Returns:
        np.ndarray: (obs - h + 1, h), or (obs - h + 1,) when cumulative
    """
    actuals = np.asarray(model['actuals'], dtype=float)
    states = np.asarray(model['states'])
    modellags = model['modellags']
    maxlag = int(np.max(modellags))
    obs = len(actuals)

    origins = obs - h + 1
    if origins < 1:
        error_msg = f"Horizon {h} is longer than the {obs} in-sample observations"
        logger.error(error_msg)
        raise ModelFitError(error_msg, model_type=model['model'])

    multiplicative = model.get('error_type', 'A') == 'M'
    errors = np.zeros(origins) if cumulative else np.zeros((origins, h))
    for i in range(origins):
        predictions = forecast_states(states[i:i + maxlag], model['transition'], model['measurement'],
                                      modellags, h)
        observed = actuals[i:i + h]
        if cumulative:
            observed, predictions = observed.sum(), predictions.sum()
        if multiplicative:
            errors[i] = observed / predictions - 1
        else:
            errors[i] = observed - predictions
    return errors


def _pinball(residuals, quantile):
    return np.sum(np.maximum(quantile * residuals, (quantile - 1) * residuals))


def _power_quantile(errors: np.ndarray, quantile: float) -> np.ndarray:
    """Fit e_j = a * j^b for one quantile and return the bound for j = 1..h."""
    origins, h = errors.shape
    steps = np.tile(np.arange(1, h + 1, dtype=float), origins)
    endog = errors.ravel()

    best = None
    for power in POWER_GRID:
        exog = (steps ** power).reshape(-1, 1)
        fit = QuantReg(endog, exog).fit(q=quantile)
        loss = _pinball(endog - fit.predict(exog), quantile)
        if best is None or loss < best[0]:
            best = (loss, float(fit.params[0]), power)
        if h == 1:
            break

    _, scale, power = best
    logger.debug(f"Quantile {quantile:.3f}: e_j = {scale:.4f} * j^{power:.2f}")
    return scale * np.arange(1, h + 1, dtype=float) ** power


def _apply_bounds(point, lower_error, upper_error, error_type):
    if error_type == 'M':
        return point * (1 + lower_error), point * (1 + upper_error)
    return point + lower_error, point + upper_error


def forecast(
    model: Dict[str, Any],
    h,
    intervals=None,
    level: Optional[float] = None,
    cumulative: bool = False,
    nsim: Optional[int] = None,
    seed=None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Forecast a fitted model h steps ahead.

    Args:
        model (dict): Output of fit_ges
        h (int): Forecast horizon
        intervals: 'none', 'parametric', 'semiparametric', 'nonparametric',
            their short forms 'n', 'p', 'sp', 'np', or True/False
        level (float, optional): Confidence level, default forecast.level
        cumulative (bool): Forecast the sum over the horizon instead
        nsim (int, optional): Paths for simulated parametric intervals
        seed: Seed for simulated intervals
        config (dict, optional): Partial configuration merged over defaults

    Returns:
        Dict[str, Any]:
            - forecast (pd.Series): h values, or one value at obs + h when
              cumulative
            - lower, upper (pd.Series or None): Interval bounds
            - intervals (str), level (float), cumulative (bool), model (str)

    Raises:
        ConfigurationError: Unknown interval type, level outside (0, 1) or h < 1
        ModelFitError: Horizon too long for the empirical interval types
    """
    config = resolve_config(config)
    forecast_config = config['forecast']

    intervals = resolve_intervals(forecast_config['intervals'] if intervals is None else intervals)
    level = forecast_config['level'] if level is None else level
    nsim = forecast_config['nsim'] if nsim is None else int(nsim)

    if not 0 < level < 1:
        raise ConfigurationError(
            f"level must be between 0 and 1, got {level}",
            parameter_name='level',
            invalid_value=level,
            allowed_range=(0, 1)
        )

    h = int(abs(round(float(h))))
    if h < 1:
        raise ConfigurationError("Forecast horizon must be at least 1", parameter_name='h', invalid_value=h)

    error_type = model.get('error_type', 'A')
    obs = nobs(model)
    point = forecast_states(_final_states(model), model['transition'], model['measurement'],
                            model['modellags'], h)

    if cumulative:
        index = pd.RangeIndex(obs + h, obs + h + 1, name='time')
        point_values = np.array([point.sum()])
    else:
        index = pd.RangeIndex(obs + 1, obs + h + 1, name='time')
        point_values = point

    logger.info(f"Forecasting {model['model']} h={h}, intervals={intervals}, cumulative={cumulative}")

    result = {
        'model': model['model'],
        'forecast': pd.Series(point_values, index=index, name='forecast'),
        'lower': None,
        'upper': None,
        'intervals': intervals,
        'level': level,
        'cumulative': cumulative,
    }
    if intervals == 'none':
        return result

    alpha = (1 - level) / 2
    z = stats.norm.ppf(1 - alpha)

    if intervals == 'parametric' and error_type == 'A':
        psi = impulse_response(model['transition'], model['measurement'], model['persistence'],
                               model['modellags'], h)
        if cumulative:
            variance = model['sigma'] ** 2 * np.sum(np.cumsum(psi) ** 2)
        else:
            variance = model['sigma'] ** 2 * np.cumsum(psi ** 2)
        lower = point_values - z * np.sqrt(variance)
        upper = point_values + z * np.sqrt(variance)

    elif intervals == 'parametric':
        paths = simulate_from_model(model, nsim=nsim, obs=h, seed=seed)['data']
        paths = np.asarray(paths, dtype=float).reshape(h, -1)
        if cumulative:
            paths = paths.sum(axis=0, keepdims=True)
        lower = np.quantile(paths, alpha, axis=1)
        upper = np.quantile(paths, 1 - alpha, axis=1)

    elif cumulative:
        # Errors of the h-step totals, relative to the total for multiplicative error
        totals = multistep_errors(model, h, cumulative=True)
        if intervals == 'semiparametric':
            spread = z * np.sqrt(np.mean(totals ** 2))
            bounds = (np.array([-spread]), np.array([spread]))
        else:
            bounds = (np.quantile(totals, [alpha]), np.quantile(totals, [1 - alpha]))
        lower, upper = _apply_bounds(point_values, bounds[0], bounds[1], error_type)

    else:
        errors = multistep_errors(model, h)
        if intervals == 'semiparametric':
            spread = z * np.sqrt(np.mean(errors ** 2, axis=0))
            bounds = (-spread, spread)
        else:
            bounds = (_power_quantile(errors, alpha), _power_quantile(errors, 1 - alpha))
        lower, upper = _apply_bounds(point_values, bounds[0], bounds[1], error_type)

    result['lower'] = pd.Series(lower, index=index, name='lower')
    result['upper'] = pd.Series(upper, index=index, name='upper')
    return result
