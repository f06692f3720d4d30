"""
smoothsim - State-Space Simulation and Estimation for Exponential Smoothing Models

Generates and fits series from single-source-of-error state-space models
with several seasonal lags, intermittent occurrence and a choice of error
distributions.

Modules:
    - orders: Lag/order normalisation
    - generator: Stable random transition, measurement and persistence
    - randomizers: Error distributions and occurrence masks
    - engine: State-space recursion
    - packager: Labelled, time-indexed results
    - simulate: simulate_ges and simulate_from_model
    - estimation: fit_ges
    - forecasting: Point forecasts and prediction intervals
    - evaluation: Accuracy metrics, log-likelihood, information criteria
    - config_loader: Defaults and YAML configuration
"""

from smoothsim.orders import normalize_orders, component_names
from smoothsim.generator import generate_parameters, is_stable
from smoothsim.randomizers import generate_errors, generate_occurrence
from smoothsim.engine import simulate_states, fit_states, forecast_states
from smoothsim.packager import make_model_name, model_type, nobs
from smoothsim.simulate import simulate_ges, simulate_from_model
from smoothsim.estimation import fit_ges, coef, sigma
from smoothsim.forecasting import forecast, multistep_errors
from smoothsim.evaluation import calculate_rmse, calculate_mae, information_criteria
from smoothsim.config_loader import load_config, get_default_config, merge_config, setup_logging

__version__ = "1.0.0"
__all__ = [
    "normalize_orders",
    "component_names",
    "generate_parameters",
    "is_stable",
    "generate_errors",
    "generate_occurrence",
    "simulate_states",
    "fit_states",
    "forecast_states",
    "make_model_name",
    "model_type",
    "nobs",
    "simulate_ges",
    "simulate_from_model",
    "fit_ges",
    "coef",
    "sigma",
    "forecast",
    "multistep_errors",
    "calculate_rmse",
    "calculate_mae",
    "information_criteria",
    "load_config",
    "get_default_config",
    "merge_config",
    "setup_logging",
]
