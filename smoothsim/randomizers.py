"""
Error Generator for smoothsim

Draws the observation noise for simulated paths and the occurrence mask for
intermittent series. Distribution families come from scipy.stats and are
looked up by name; parameters supplied by the user are passed verbatim to the
family's ``rvs`` method.

Functions:
    - resolve_randomizer: Map a family name (or R-style alias) to a canonical name
    - generate_errors: (obs, nsim) error matrix with family-specific rescaling
    - normalize_probability: Validate and fit the occurrence probability to obs
    - generate_occurrence: Bernoulli occurrence mask
"""

from typing import Any, Dict, Optional, Union

import numpy as np
from scipy import stats

from smoothsim.exceptions import ConfigurationError, InvalidDegreesOfFreedomError
from smoothsim.logger_config import get_logger


logger = get_logger(__name__)


FAMILIES = {
    'normal': stats.norm,
    'lognormal': stats.lognorm,
    't': stats.t,
    'uniform': stats.uniform,
    'beta': stats.beta,
}

ALIASES = {
    'rnorm': 'normal',
    'norm': 'normal',
    'gaussian': 'normal',
    'rlnorm': 'lognormal',
    'lnorm': 'lognormal',
    'log-normal': 'lognormal',
    'rt': 't',
    'student': 't',
    'student-t': 't',
    'runif': 'uniform',
    'unif': 'uniform',
    'rbeta': 'beta',
}

# Families that have usable defaults when no parameters are given
DEFAULT_FAMILIES = ('normal', 'lognormal', 't', 'uniform')


def _scipy_distribution(name: str):
    distribution = getattr(stats, name, None)
    if distribution is None or not hasattr(distribution, 'rvs'):
        return None
    return distribution


def resolve_randomizer(name: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Canonical family name for a randomizer.

    Args:
        name (str): Family name such as "normal", "rt" or any scipy.stats
            distribution name
        params (dict, optional): Extra parameters that will be passed to rvs

    Returns:
        str: "normal", "lognormal", "t", "uniform", "beta" or a scipy.stats
        distribution name

    Raises:
        ConfigurationError: If parameters were given for a name that is not a
            known distribution

    Examples:
        >>> resolve_randomizer('rnorm')
        'normal'
        >>> resolve_randomizer('poisson', {'mu': 2})
        'poisson'
    """
    key = str(name).strip().lower()
    canonical = ALIASES.get(key, key)

    if not params:
        if canonical not in DEFAULT_FAMILIES:
            logger.warning(
                f"The chosen randomizer - {name} - needs some arbitrary parameters! "
                "Changing to 'normal' now."
            )
            return 'normal'
        return canonical

    if canonical in FAMILIES:
        return canonical

    if _scipy_distribution(canonical) is None:
        error_msg = f"Unknown randomizer '{name}'"
        logger.error(error_msg)
        raise ConfigurationError(
            error_msg,
            parameter_name='randomizer',
            invalid_value=name,
            allowed_range=sorted(FAMILIES) + ['any scipy.stats distribution']
        )
    return canonical


def get_distribution(family: str):
    """scipy.stats distribution object for a canonical family name."""
    return FAMILIES.get(family) or _scipy_distribution(family)


def normalize_probability(iprob, obs: int) -> Union[float, np.ndarray]:
    """
    Validate the occurrence probability and fit it to the number of observations.

    A constant probability (scalar, or a vector with identical values) is
    returned as a float. A varying vector must have length obs: longer vectors
    are cut, shorter ones are padded with their last value, with a warning.

    Raises:
        ConfigurationError: If any probability lies outside [0, 1]
    """
    probabilities = np.atleast_1d(np.asarray(iprob, dtype=float)).ravel()

    if probabilities.size == 0:
        error_msg = "iprob must contain at least one probability"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name='iprob', invalid_value=iprob)

    if np.any(np.isnan(probabilities)) or np.any(probabilities < 0) or np.any(probabilities > 1):
        error_msg = f"iprob values must lie in [0, 1], got {probabilities.tolist()}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name='iprob', invalid_value=iprob, allowed_range=(0, 1))

    if np.all(probabilities == probabilities[0]):
        return float(probabilities[0])

    if probabilities.size != obs:
        logger.warning("Length of iprob does not correspond to number of observations.")
        if probabilities.size > obs:
            logger.warning("We will cut off the excessive ones.")
            probabilities = probabilities[:obs]
        else:
            logger.warning("We will duplicate the last one.")
            padding = np.repeat(probabilities[-1], obs - probabilities.size)
            probabilities = np.concatenate([probabilities, padding])

    return probabilities


def _time_column(values, obs: int, nsim: int) -> np.ndarray:
    """Broadcast a scalar or per-time vector to (obs, nsim)."""
    values = np.asarray(values, dtype=float)
    if values.ndim == 0:
        return np.full((obs, nsim), float(values))
    return np.broadcast_to(values.reshape(-1, 1), (obs, nsim))


def generate_errors(
    randomizer: str,
    obs: int,
    nsim: int,
    initial_block: np.ndarray,
    components_number: int,
    maxlag: int,
    iprob: Union[float, np.ndarray] = 1.0,
    params: Optional[Dict[str, Any]] = None,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Draw the (obs, nsim) error matrix.

    Without parameters:
        - normal, uniform and t draws are centred per path and multiplied by
          the square root of the absolute mean of the path's first-component
          initial values, keeping errors in proportion to the series level
        - t uses obs - (components_number + maxlag) degrees of freedom
        - lognormal uses sdlog = 0.01 + (1 - iprob) and is shifted by -1

    With parameters (passed verbatim to rvs):
        - beta is centred at 0.5, scaled to unit root-mean-square and divided
          by the square root of the first initial value of the path
        - t is multiplied by the level scale described above
        - lognormal is shifted by -1
        - other families are returned as drawn

    Args:
        randomizer (str): Family name or alias
        obs (int): Number of observations
        nsim (int): Number of paths
        initial_block (np.ndarray): (maxlag, k, nsim) initial states
        components_number (int): k
        maxlag (int): Largest lag
        iprob (float or np.ndarray): Output of normalize_probability
        params (dict, optional): Keyword parameters for the distribution
        rng (np.random.Generator, optional): Random generator

    Returns:
        np.ndarray: Error matrix of shape (obs, nsim)

    Raises:
        InvalidDegreesOfFreedomError: If default t degrees of freedom <= 0
        ConfigurationError: If the distribution rejects the parameters
    """
    rng = rng if rng is not None else np.random.default_rng()
    params = dict(params or {})
    family = resolve_randomizer(randomizer, params)
    size = (obs, nsim)

    if obs == 0:
        return np.zeros(size)

    level_scale = np.sqrt(np.abs(initial_block[:, 0, :].mean(axis=0)))

    if not params:
        if family == 'normal':
            errors = stats.norm.rvs(size=size, random_state=rng)
        elif family == 'uniform':
            errors = stats.uniform.rvs(size=size, random_state=rng)
        elif family == 'lognormal':
            sdlog = 0.01 + (1 - _time_column(iprob, obs, nsim))
            errors = stats.lognorm.rvs(s=sdlog, size=size, random_state=rng) - 1
        else:
            degrees_of_freedom = obs - (components_number + maxlag)
            if degrees_of_freedom <= 0:
                error_msg = (
                    f"Student-t degrees of freedom obs - (k + maxlag) = {degrees_of_freedom} "
                    "must be positive. Increase obs or pass 'df' explicitly"
                )
                logger.error(error_msg)
                raise InvalidDegreesOfFreedomError(error_msg, degrees_of_freedom=degrees_of_freedom)
            errors = stats.t.rvs(degrees_of_freedom, size=size, random_state=rng)

        if family != 'lognormal':
            errors = errors - errors.mean(axis=0)
            errors = errors * level_scale
        return errors

    distribution = get_distribution(family)
    try:
        errors = distribution.rvs(size=size, random_state=rng, **params)
    except (TypeError, ValueError) as e:
        error_msg = f"Randomizer '{family}' rejected parameters {params}: {str(e)}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name='randomizer_params', invalid_value=params) from e

    errors = np.asarray(errors, dtype=float).reshape(size)

    if family == 'beta':
        errors = errors - 0.5
        errors = errors / (np.sqrt(np.mean(errors ** 2, axis=0)) * np.sqrt(np.abs(initial_block[0, 0, :])))
    elif family == 't':
        errors = errors * level_scale
    elif family == 'lognormal':
        errors = errors - 1

    return errors


def generate_occurrence(
    iprob: Union[float, np.ndarray],
    obs: int,
    nsim: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Occurrence mask of shape (obs, nsim): 1 = observed, 0 = intermittent zero.

    All ones when the probability is uniformly 1, otherwise independent
    Bernoulli draws per time step and path.
    """
    if np.all(np.asarray(iprob) == 1):
        return np.ones((obs, nsim))

    rng = rng if rng is not None else np.random.default_rng()
    probabilities = _time_column(iprob, obs, nsim)
    return rng.binomial(1, probabilities).astype(float)
