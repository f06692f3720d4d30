"""
Evaluation Module for smoothsim

Accuracy metrics for fitted models, the Gaussian log-likelihood attached to
simulated paths, and information criteria.

Functions:
    - calculate_rmse: Root Mean Squared Error
    - calculate_mae: Mean Absolute Error
    - gaussian_loglik: Per-path log-likelihood at the fitted error variance
    - information_criteria: AIC, AICc and BIC
"""

from typing import Dict

import numpy as np
from statsmodels.tools.eval_measures import aic, aicc, bic

from smoothsim.logger_config import get_logger


logger = get_logger(__name__)


def _validate_pair(actual, predicted):
    actual = np.asarray(actual, dtype=np.float64)
    predicted = np.asarray(predicted, dtype=np.float64)

    if actual.size == 0 or predicted.size == 0:
        error_msg = "Input arrays cannot be empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if actual.shape != predicted.shape:
        error_msg = (
            f"Mismatched array lengths: actual ({actual.shape}) vs predicted ({predicted.shape})"
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    if np.any(np.isnan(actual)) or np.any(np.isnan(predicted)):
        error_msg = "Input arrays contain NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    return actual, predicted


def calculate_rmse(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Calculate Root Mean Squared Error (RMSE) between actual and predicted values.

    Args:
        actual (np.ndarray): Array of actual/observed values
        predicted (np.ndarray): Array of predicted values

    Returns:
        float: Root Mean Squared Error value

    Raises:
        ValueError: If arrays are empty, have mismatched lengths, or contain NaN

    Examples:
        >>> calculate_rmse(np.array([1, 2, 3]), np.array([1, 2, 5]))
        1.1547...
    """
    actual, predicted = _validate_pair(actual, predicted)
    rmse = float(np.sqrt(np.mean((actual - predicted) ** 2)))
    logger.debug(f"RMSE calculated: {rmse:.6f}")
    return rmse


def calculate_mae(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Calculate Mean Absolute Error (MAE) between actual and predicted values.

    Raises:
        ValueError: If arrays are empty, have mismatched lengths, or contain NaN

    Examples:
        >>> calculate_mae(np.array([1, 2, 3]), np.array([1, 2, 5]))
        0.666...
    """
    actual, predicted = _validate_pair(actual, predicted)
    mae = float(np.mean(np.abs(actual - predicted)))
    logger.debug(f"MAE calculated: {mae:.6f}")
    return mae


def gaussian_loglik(errors: np.ndarray) -> np.ndarray:
    """
    Gaussian log-likelihood of each column of an error matrix.

    Uses the concentrated form -obs/2 * (log(2*pi*e) + log(mean(e^2))), i.e.
    the normal likelihood at the fitted variance. It is applied whatever
    distribution generated the errors.

    Args:
        errors (np.ndarray): (obs,) or (obs, nsim)

    Returns:
        np.ndarray: One value per column
    """
    errors = np.asarray(errors, dtype=float)
    if errors.ndim == 1:
        errors = errors.reshape(-1, 1)
    obs = errors.shape[0]
    with np.errstate(divide='ignore'):
        return -obs / 2 * (np.log(2 * np.pi * np.e) + np.log(np.mean(errors ** 2, axis=0)))


def information_criteria(loglik: float, nobs: int, n_param: int) -> Dict[str, float]:
    """
    AIC, AICc and BIC for a fitted model.

    Args:
        loglik (float): Log-likelihood
        nobs (int): Number of in-sample observations
        n_param (int): Number of estimated parameters, including the variance

    Returns:
        Dict[str, float]: Keys 'AIC', 'AICc', 'BIC'. AICc is inf when
        nobs - n_param - 1 <= 0.
    """
    criteria = {
        'AIC': float(aic(loglik, nobs, n_param)),
        'BIC': float(bic(loglik, nobs, n_param)),
    }
    if nobs - n_param - 1 > 0:
        criteria['AICc'] = float(aicc(loglik, nobs, n_param))
    else:
        criteria['AICc'] = float('inf')
    return criteria
