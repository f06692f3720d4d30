"""
Simulation entry points for smoothsim

simulate_ges generates series from a Generalised Exponential Smoothing (GES)
model with a single source of error. Pieces of the model that are not
supplied are generated at random, subject to the stability condition.

simulate_from_model draws new series from a model estimated with fit_ges.

Usage Examples:
    # 120 observations from GES(1[1]), 100 series
    sim = simulate_ges(orders=[1], lags=[1], obs=120, nsim=100)

    # Seasonal GES(1[1],1[4]) with a fixed transition matrix
    sim = simulate_ges(orders=[1, 1], lags=[1, 4], frequency=4, obs=80,
                       transition=[1, 0, 0.9, 0.9])
"""

from typing import Any, Dict, Optional, Sequence

import numpy as np
from scipy import stats

from smoothsim.config_loader import resolve_config
from smoothsim.engine import simulate_states
from smoothsim.evaluation import gaussian_loglik
from smoothsim.exceptions import ConfigurationError
from smoothsim.generator import check_supplied, generate_initial, generate_parameters
from smoothsim.logger_config import get_logger
from smoothsim.orders import normalize_orders
from smoothsim.packager import make_model_name, model_type, nobs, package_simulation
from smoothsim.randomizers import (
    generate_errors,
    generate_occurrence,
    normalize_probability,
    resolve_randomizer,
)


logger = get_logger(__name__)

# Families whose default draws are scaled to the level of the series
LEVEL_SCALED_FAMILIES = ('normal', 'uniform', 't')


def _natural(value, name: str) -> int:
    try:
        return int(abs(round(float(value))))
    except (TypeError, ValueError) as e:
        error_msg = f"{name} must be numeric, got {value}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name=name, invalid_value=value) from e


def _relative_errors(errors, initial_block):
    """Express level-scaled errors as proportions of the initial level."""
    level = np.abs(initial_block[:, 0, :].mean(axis=0))
    level = np.where(level > 0, level, 1.0)
    return errors / level


def simulate_ges(
    orders: Sequence[int] = (1,),
    lags: Sequence[int] = (1,),
    obs=None,
    nsim=None,
    frequency=None,
    measurement=None,
    transition=None,
    persistence=None,
    initial=None,
    randomizer: Optional[str] = None,
    iprob=None,
    randomizer_params: Optional[Dict[str, Any]] = None,
    error_type: Optional[str] = None,
    seed=None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Simulate data from a GES model with a single source of error.

    Args:
        orders (Sequence[int]): Number of states per lag, e.g. [1, 1]
        lags (Sequence[int]): Lag of each group of states, e.g. [1, 12]
        obs: Observations per series (coerced to abs(round(obs)))
        nsim: Number of series (coerced the same way)
        frequency: Frequency stored with the series (coerced the same way)
        measurement: Measurement vector w of length k, or None to generate
        transition: Transition matrix F, k x k or flat column-major, or None
        persistence: Persistence vector g of length k, or None to generate
        initial: Initial states, maxlag x k or flat column-major, or None to
            draw from U[initial.low, initial.high]
        randomizer (str): normal, lognormal, t, uniform, beta, R-style
            aliases (rnorm, ...) or any scipy.stats distribution name when
            randomizer_params are given
        iprob: Occurrence probability, scalar or per-observation vector
        randomizer_params (dict, optional): Passed verbatim to the
            distribution's rvs, e.g. {'df': 5} or {'a': 2, 'b': 3}
        error_type (str): 'A' (additive) or 'M' (multiplicative)
        seed: Seed or np.random.Generator
        config (dict, optional): Partial configuration merged over defaults

    Returns:
        Dict[str, Any]: See package_simulation. Wrong-sized matrices are
        reported with a warning and replaced by generated ones.

    Raises:
        DimensionMismatchError: orders and lags of different length
        InvalidOrderError: negative or complex orders or lags
        EmptyModelError: no components left after normalisation
        InvalidDegreesOfFreedomError: default t with obs <= k + maxlag
        StabilityError: no stable model can be generated
        ConfigurationError: invalid iprob, error_type or randomizer
    """
    config = resolve_config(config)
    sim_config = config['simulation']
    gen_config = config['generator']

    obs = _natural(sim_config['obs'] if obs is None else obs, 'obs')
    nsim = _natural(sim_config['nsim'] if nsim is None else nsim, 'nsim')
    frequency = _natural(sim_config['frequency'] if frequency is None else frequency, 'frequency')
    randomizer = sim_config['randomizer'] if randomizer is None else randomizer
    iprob = sim_config['iprob'] if iprob is None else iprob
    error_type = sim_config['error_type'] if error_type is None else error_type

    if error_type not in ('A', 'M'):
        error_msg = f"error_type must be 'A' or 'M', got {error_type}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name='error_type', allowed_range=('A', 'M'))

    rng = np.random.default_rng(seed)

    model_spec = normalize_orders(orders, lags)
    k = model_spec['components_number']
    maxlag = model_spec['maxlag']
    modellags = model_spec['modellags']

    initial_value = check_supplied(initial, (maxlag, k), 'initial vector')
    measurement_value = check_supplied(measurement, (k,), 'measurement vector')
    transition_value = check_supplied(transition, (k, k), 'transition matrix')
    persistence_value = check_supplied(persistence, (k,), 'persistence vector')

    iprob = normalize_probability(iprob, obs)
    family = resolve_randomizer(randomizer, randomizer_params)

    logger.info(
        f"Simulating {make_model_name(model_spec['orders'], model_spec['lags'], iprob)}: "
        f"obs={obs}, nsim={nsim}, randomizer={family}, error_type={error_type}"
    )

    initial_block = generate_initial(
        k, maxlag, nsim, initial_value, rng,
        low=config['initial']['low'], high=config['initial']['high']
    )
    parameters = generate_parameters(
        k, nsim,
        transition=transition_value,
        measurement=measurement_value,
        persistence=persistence_value,
        rng=rng,
        max_attempts=gen_config['max_attempts'],
        shrink_factor=gen_config['shrink_factor'],
        max_shrinks=gen_config['max_shrinks'],
    )

    errors = generate_errors(
        family, obs, nsim, initial_block, k, maxlag,
        iprob=iprob, params=randomizer_params, rng=rng
    )
    if error_type == 'M' and not randomizer_params and family in LEVEL_SCALED_FAMILIES:
        errors = _relative_errors(errors, initial_block)

    loglik = gaussian_loglik(errors)
    occurrence = generate_occurrence(iprob, obs, nsim, rng)

    states = np.zeros((obs + maxlag, k, nsim))
    states[:maxlag] = initial_block

    simulated = simulate_states(
        states, errors, occurrence,
        parameters['transition'], parameters['measurement'], parameters['persistence'],
        modellags, error_type=error_type
    )

    data = simulated['data']
    if np.any(np.asarray(iprob) != 1):
        data = np.round(data)

    return package_simulation(
        model_spec,
        parameters['transition'],
        parameters['measurement'],
        parameters['persistence'],
        initial_block,
        simulated['states'],
        data,
        errors,
        occurrence,
        loglik,
        frequency=frequency,
        iprob=iprob,
    )


def simulate_from_model(
    model: Dict[str, Any],
    nsim=1,
    obs=None,
    randomizer: str = 'normal',
    randomizer_params: Optional[Dict[str, Any]] = None,
    iprob=1.0,
    seed=None,
) -> Dict[str, Any]:
    """
    Simulate new series from a model estimated with fit_ges.

    The simulation starts from the model's final states and uses its
    transition, measurement and persistence. Without randomizer_params the
    errors are normal with the model's residual standard deviation.

    Args:
        model (dict): Output of fit_ges
        nsim: Number of series
        obs: Observations per series, default the model's sample size
        randomizer (str): Error family when randomizer_params are given
        randomizer_params (dict, optional): Passed verbatim to rvs
        iprob: Occurrence probability
        seed: Seed or np.random.Generator

    Returns:
        Dict[str, Any]: Same structure as simulate_ges
    """
    rng = np.random.default_rng(seed)
    nsim = _natural(nsim, 'nsim')
    obs = _natural(nobs(model) if obs is None else obs, 'obs')

    model_spec = normalize_orders(model['orders'], model['lags'])
    k = model_spec['components_number']
    maxlag = model_spec['maxlag']
    error_type = model.get('error_type', 'A')

    states_tail = np.asarray(model['states'])[-maxlag:, :]
    initial_block = np.repeat(states_tail[:, :, np.newaxis], nsim, axis=2)

    transition = np.repeat(np.asarray(model['transition'], dtype=float)[:, :, np.newaxis], nsim, axis=2)
    measurement = np.repeat(np.asarray(model['measurement'], dtype=float)[np.newaxis, :], nsim, axis=0)
    persistence = np.repeat(np.asarray(model['persistence'], dtype=float)[:, np.newaxis], nsim, axis=1)

    iprob = normalize_probability(iprob, obs)

    if randomizer_params:
        errors = generate_errors(
            randomizer, obs, nsim, initial_block, k, maxlag,
            iprob=iprob, params=randomizer_params, rng=rng
        )
    else:
        if resolve_randomizer(randomizer) != 'normal':
            logger.warning(
                f"Randomizer '{randomizer}' without parameters, using normal errors "
                f"with the model's sigma instead"
            )
        errors = stats.norm.rvs(scale=model['sigma'], size=(obs, nsim), random_state=rng)

    loglik = gaussian_loglik(errors)
    occurrence = generate_occurrence(iprob, obs, nsim, rng)

    states = np.zeros((obs + maxlag, k, nsim))
    states[:maxlag] = initial_block

    simulated = simulate_states(
        states, errors, occurrence, transition, measurement, persistence,
        model_spec['modellags'], error_type=error_type
    )

    data = simulated['data']
    if np.any(np.asarray(iprob) != 1):
        data = np.round(data)

    logger.info(f"Simulated {nsim} series of {obs} observations from {model['model']}")

    prefix = model['model'].lstrip('i').split('(')[0] if model_type(model['model']) else 'GES'
    return package_simulation(
        model_spec, transition, measurement, persistence, initial_block,
        simulated['states'], data, errors, occurrence, loglik,
        frequency=model.get('frequency', 1), iprob=iprob, prefix=prefix
    )
