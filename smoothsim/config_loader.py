"""
Configuration System Module - Simulation and Estimation Defaults

Centralises the defaults used by simulate_ges, fit_ges and forecast:
- simulation: observation count, number of paths, randomizer, iprob
- generator: retry cap and shrinking fallback for the stability search
- initial: range of uniformly drawn initial states
- estimation: optimiser settings
- forecast: interval type, confidence level, simulation paths
- logging: default level

Configuration is read from YAML (PyYAML) or JSON and deep-merged with
programmatic overrides.

Usage Examples:
    config = load_config()
    config = load_config('config/sim_params.yml')
    merged = merge_config(config, {'simulation': {'nsim': 100}})
    setup_logging(config)
"""

import copy
import json
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from smoothsim.exceptions import ConfigurationError
from smoothsim.logger_config import configure_logging, get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = 'config/sim_params.yml'

INTERVAL_TYPES = ['none', 'parametric', 'semiparametric', 'nonparametric']
ERROR_TYPES = ['A', 'M']


def get_default_config() -> Dict[str, Any]:
    """
    Return hardcoded default configuration.

    Returns:
        dict: Configuration with sections simulation, generator, initial,
              estimation, forecast and logging.

    Examples:
        >>> config = get_default_config()
        >>> config['simulation']['randomizer']
        'normal'
        >>> config['generator']['max_attempts']
        10000
    """
    default_config = {
        'simulation': {
            'obs': 10,
            'nsim': 1,
            'frequency': 1,
            'randomizer': 'normal',
            'iprob': 1.0,
            'error_type': 'A'
        },
        # None for max_attempts means an unbounded stability search
        'generator': {
            'max_attempts': 10000,
            'shrink_factor': 0.9,
            'max_shrinks': 200
        },
        'initial': {
            'low': 0.0,
            'high': 1000.0
        },
        'estimation': {
            'method': 'Nelder-Mead',
            'maxiter': 5000,
            'cf_type': 'MSE'
        },
        'forecast': {
            'level': 0.95,
            'intervals': 'none',
            'nsim': 10000
        },
        'logging': {
            'level': 'INFO'
        }
    }

    logger.debug("Default configuration created")
    return default_config


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file, falling back to defaults.

    Values found in the file are merged over the defaults, so a file only
    needs the keys it changes.

    Args:
        config_path (str, optional): Path to the configuration file.
                                    Default is 'config/sim_params.yml'.

    Returns:
        dict: Complete validated configuration dictionary.

    Raises:
        ConfigurationError: If the resulting configuration is invalid.
    """
    explicit = config_path is not None
    config_path = Path(config_path if explicit else DEFAULT_CONFIG_PATH)
    loaded = None

    if config_path.exists():
        try:
            logger.info(f"Loading configuration from {config_path}")
            with open(config_path, 'r') as f:
                if config_path.suffix.lower() == '.json':
                    loaded = json.load(f)
                else:
                    loaded = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            logger.warning(
                f"Parsing error in {config_path}: {str(e)}. "
                "Falling back to default configuration."
            )
            loaded = None
        except OSError as e:
            logger.warning(
                f"Error reading configuration from {config_path}: {str(e)}. "
                "Falling back to default configuration."
            )
            loaded = None
    elif explicit:
        logger.warning(
            f"Configuration file not found: {config_path}. "
            "Using default configuration."
        )
    else:
        logger.debug(f"No config file at {DEFAULT_CONFIG_PATH}. Using hardcoded defaults.")

    if loaded is not None and not isinstance(loaded, dict):
        logger.warning(f"Configuration in {config_path} is not a mapping, ignoring it")
        loaded = None

    if loaded:
        config = merge_config(get_default_config(), loaded)
    else:
        config = get_default_config()
        validate_config(config)

    logger.info("Configuration loaded and validated successfully")
    return config


def _check_positive_int(value, name, allow_zero=False):
    low = 0 if allow_zero else 1
    if isinstance(value, bool) or not isinstance(value, int) or value < low:
        raise ConfigurationError(
            f"{name} must be an integer >= {low}, got {value}",
            parameter_name=name,
            invalid_value=value
        )


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration schema and parameter ranges.

    Validation Rules:
    - simulation.obs, simulation.nsim, simulation.frequency: integers >= 0 / >= 1
    - simulation.iprob: in [0, 1]
    - simulation.error_type: 'A' or 'M'
    - generator.max_attempts: positive integer or None
    - generator.shrink_factor: in (0, 1)
    - initial.low < initial.high
    - forecast.level: in (0, 1)
    - forecast.intervals: one of none, parametric, semiparametric, nonparametric

    Args:
        config (dict): Configuration dictionary to validate.

    Returns:
        bool: True if configuration is valid.

    Raises:
        ConfigurationError: If validation fails with details about the error.
    """
    logger.debug("Validating configuration...")

    required_sections = ['simulation', 'generator', 'initial', 'estimation', 'forecast', 'logging']
    for section in required_sections:
        if not isinstance(config.get(section), dict):
            raise ConfigurationError(f"Missing required section: {section}", parameter_name=section)

    simulation = config['simulation']
    _check_positive_int(simulation.get('obs'), 'simulation.obs', allow_zero=True)
    _check_positive_int(simulation.get('nsim'), 'simulation.nsim')
    _check_positive_int(simulation.get('frequency'), 'simulation.frequency')

    if not isinstance(simulation.get('randomizer'), str):
        raise ConfigurationError(
            f"simulation.randomizer must be a string, got {simulation.get('randomizer')}",
            parameter_name='simulation.randomizer'
        )

    iprob = simulation.get('iprob')
    if not isinstance(iprob, (int, float)) or iprob < 0 or iprob > 1:
        raise ConfigurationError(
            f"simulation.iprob must be between 0 and 1, got {iprob}",
            parameter_name='simulation.iprob',
            invalid_value=iprob,
            allowed_range=(0, 1)
        )

    if simulation.get('error_type') not in ERROR_TYPES:
        raise ConfigurationError(
            f"simulation.error_type must be 'A' or 'M', got {simulation.get('error_type')}",
            parameter_name='simulation.error_type',
            allowed_range=ERROR_TYPES
        )

    generator = config['generator']
    if generator.get('max_attempts') is not None:
        _check_positive_int(generator.get('max_attempts'), 'generator.max_attempts')
    _check_positive_int(generator.get('max_shrinks'), 'generator.max_shrinks', allow_zero=True)
    shrink = generator.get('shrink_factor')
    if not isinstance(shrink, (int, float)) or not 0 < shrink < 1:
        raise ConfigurationError(
            f"generator.shrink_factor must be between 0 and 1, got {shrink}",
            parameter_name='generator.shrink_factor',
            invalid_value=shrink,
            allowed_range=(0, 1)
        )

    initial = config['initial']
    low, high = initial.get('low'), initial.get('high')
    if not isinstance(low, (int, float)) or not isinstance(high, (int, float)) or low >= high:
        raise ConfigurationError(
            f"initial.low must be below initial.high, got low={low}, high={high}",
            parameter_name='initial'
        )

    estimation = config['estimation']
    _check_positive_int(estimation.get('maxiter'), 'estimation.maxiter')
    if estimation.get('cf_type') != 'MSE':
        raise ConfigurationError(
            f"estimation.cf_type must be 'MSE', got {estimation.get('cf_type')}",
            parameter_name='estimation.cf_type',
            allowed_range=['MSE']
        )

    forecast = config['forecast']
    level = forecast.get('level')
    if not isinstance(level, (int, float)) or not 0 < level < 1:
        raise ConfigurationError(
            f"forecast.level must be between 0 and 1, got {level}",
            parameter_name='forecast.level',
            invalid_value=level,
            allowed_range=(0, 1)
        )
    if forecast.get('intervals') not in INTERVAL_TYPES:
        raise ConfigurationError(
            f"forecast.intervals must be one of {INTERVAL_TYPES}, got {forecast.get('intervals')}",
            parameter_name='forecast.intervals',
            allowed_range=INTERVAL_TYPES
        )
    _check_positive_int(forecast.get('nsim'), 'forecast.nsim')

    log_level = config['logging'].get('level')
    if not isinstance(log_level, str) or log_level.upper() not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
        raise ConfigurationError(
            f"logging.level is not a valid level name: {log_level}",
            parameter_name='logging.level'
        )

    logger.debug("Configuration validation successful")
    return True


def merge_config(
    base_config: Dict[str, Any],
    overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Deep-merge overrides into a copy of the base configuration and validate.

    Args:
        base_config (dict): Base configuration dictionary.
        overrides (dict): Nested override parameters, e.g. {'simulation': {'nsim': 20}}

    Returns:
        dict: Merged configuration with overrides applied.

    Raises:
        ConfigurationError: If merged configuration fails validation.

    Examples:
        >>> merged = merge_config(get_default_config(), {'forecast': {'level': 0.9}})
        >>> merged['forecast']['level']
        0.9
    """
    merged = copy.deepcopy(base_config)

    def deep_merge(target: Dict, source: Dict, path: str = "") -> None:
        for key, value in source.items():
            current_path = f"{path}.{key}" if path else key

            if key not in target:
                logger.warning(f"Override key not in base config: {current_path}")
                target[key] = value
            elif isinstance(value, dict) and isinstance(target.get(key), dict):
                deep_merge(target[key], value, current_path)
            else:
                old_value = target[key]
                target[key] = value
                logger.debug(f"Override config: {current_path} = {value} (was {old_value})")

    if overrides:
        deep_merge(merged, overrides)

    try:
        validate_config(merged)
    except ConfigurationError as e:
        logger.error(f"Merged configuration validation failed: {str(e)}")
        raise

    return merged


def resolve_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return a validated full configuration, merging a partial one over the defaults."""
    if config is None:
        return get_default_config()
    return merge_config(get_default_config(), config)


def setup_logging(config: Optional[Dict[str, Any]] = None, log_file: Optional[str] = None):
    """
    Configure logging at the level named in the logging section.

    Args:
        config (dict, optional): Partial configuration merged over defaults
        log_file (str, optional): Also write records to this file

    Returns:
        logging.Logger: Configured root logger

    Examples:
        >>> setup_logging(load_config('config/sim_params.yml'))
    """
    config = resolve_config(config)
    return configure_logging(log_level=config['logging']['level'], log_file=log_file)
