"""
Unit Tests for Model Estimation (smoothsim/estimation.py)

Test Coverage:
- Persistence recovered from simulated local level data
- Fixed parameters are excluded from the estimated coefficients
- Holdout accuracy, information criteria, coef() and sigma()
- Fatal errors for short or invalid series
- simulate_from_model continues from the final states
"""

import numpy as np
import pandas as pd
import pytest

from smoothsim.estimation import coef, fit_ges, sigma
from smoothsim.exceptions import ConfigurationError, ModelFitError
from smoothsim.packager import nobs
from smoothsim.simulate import simulate_from_model, simulate_ges


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def local_level_series():
    """300 observations of GES(1[1]) with F=1, w=1, g=0.3, level 100."""
    sim = simulate_ges(obs=300, transition=[1], measurement=[1], persistence=[0.3],
                       initial=[100], seed=2024)
    return sim['data']


@pytest.fixture(scope="module")
def fitted_model(local_level_series):
    return fit_ges(local_level_series, transition=[1], measurement=[1])


@pytest.fixture(scope="module")
def fixed_model(local_level_series):
    """Nothing left to estimate."""
    return fit_ges(local_level_series, transition=[1], measurement=[1], persistence=[0.3],
                   initial=[100])


# ============================================================================
# ESTIMATION
# ============================================================================

class TestFitGes:

    def test_persistence_recovered(self, fitted_model):
        estimate = fitted_model['persistence'][0]
        assert abs(estimate - 0.3) < 0.15, f"Expected persistence near 0.3, got {estimate:.3f}"

    def test_coefficient_names(self, fitted_model):
        assert list(coef(fitted_model).index) == ['persistence[1]', 'initial[1,1]']
        assert fitted_model['n_param'] == 3

    def test_residuals_match_fitted(self, fitted_model):
        np.testing.assert_allclose(
            fitted_model['actuals'].values - fitted_model['fitted'].values,
            fitted_model['residuals'].values,
        )

    def test_output_structure(self, fitted_model):
        assert fitted_model['model'] == "GES(1[1])"
        assert fitted_model['cf_type'] == 'MSE'
        assert isinstance(fitted_model['states'], pd.DataFrame)
        assert fitted_model['states'].shape == (301, 1)
        assert set(fitted_model['ics']) == {'AIC', 'AICc', 'BIC'}
        assert fitted_model['accuracy'] is None
        assert nobs(fitted_model) == 300

    def test_sigma(self, fitted_model):
        residuals = fitted_model['residuals'].values
        expected = np.sqrt(np.sum(residuals ** 2) / (300 - 3))
        assert sigma(fitted_model) == pytest.approx(expected)

    def test_cost_is_mse(self, fitted_model):
        assert fitted_model['cf'] == pytest.approx(np.mean(fitted_model['residuals'].values ** 2))

    def test_fully_fixed_model(self, fixed_model):
        assert len(coef(fixed_model)) == 0
        assert fixed_model['n_param'] == 1
        assert fixed_model['persistence'][0] == 0.3

    def test_fixed_model_reproduces_errors(self, local_level_series):
        """Filtering with the true parameters gives back the simulated errors."""
        sim = simulate_ges(obs=50, transition=[1], measurement=[1], persistence=[0.3],
                           initial=[100], seed=5)
        model = fit_ges(sim['data'], transition=[1], measurement=[1], persistence=[0.3], initial=[100])
        np.testing.assert_allclose(model['residuals'].values, sim['residuals'].values, atol=1e-8)

    def test_seasonal_model_fits(self):
        sim = simulate_ges(orders=[1, 1], lags=[1, 4], obs=80, frequency=4,
                           transition=[1, 0, 0, 1], measurement=[1, 1],
                           persistence=[0.2, 0.1], initial=[50, 50, 50, 50, -3, -1, 1, 3], seed=7)
        model = fit_ges(sim['data'], orders=[1, 1], lags=[1, 4],
                        transition=[1, 0, 0, 1], measurement=[1, 1])

        assert model['frequency'] == 4
        assert model['initial'].shape == (4, 2)
        assert len(coef(model)) == 2 + 1 + 4
        assert np.isfinite(model['sigma'])


class TestHoldout:

    def test_accuracy_on_holdout(self, local_level_series):
        model = fit_ges(local_level_series, transition=[1], measurement=[1], holdout=20)

        assert len(model['actuals']) == 280
        assert len(model['holdout']) == 20
        assert model['holdout'].index[0] == 281
        assert set(model['accuracy']) == {'RMSE', 'MAE'}
        assert model['accuracy']['RMSE'] >= model['accuracy']['MAE']

    def test_invalid_holdout(self, local_level_series):
        with pytest.raises(ConfigurationError):
            fit_ges(local_level_series, holdout=300)


class TestFitErrors:

    def test_too_few_observations(self):
        """lags [12] needs 16 parameters, more than 10 observations."""
        with pytest.raises(ModelFitError):
            fit_ges(np.arange(10, dtype=float), orders=[1], lags=[12])

    def test_multiplicative_needs_positive_data(self):
        with pytest.raises(ModelFitError):
            fit_ges(np.array([1.0, -2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0]), error_type='M')

    def test_nan_values(self):
        with pytest.raises(ModelFitError):
            fit_ges(np.array([1.0, np.nan] * 10))

    def test_unknown_optimiser(self, local_level_series):
        with pytest.raises(ModelFitError):
            fit_ges(local_level_series, config={'estimation': {'method': 'no-such-method'}})

    def test_invalid_error_type(self, local_level_series):
        with pytest.raises(ConfigurationError):
            fit_ges(local_level_series, error_type='B')


# ============================================================================
# SIMULATION FROM A FITTED MODEL
# ============================================================================

class TestSimulateFromModel:

    def test_shapes(self, fitted_model):
        sim = simulate_from_model(fitted_model, nsim=4, obs=12, seed=1)

        assert sim['data'].shape == (12, 4)
        assert sim['states'].shape == (13, 1, 4)
        assert sim['model'] == "GES(1[1])"

    def test_starts_from_final_states(self, fitted_model):
        sim = simulate_from_model(fitted_model, nsim=3, obs=5, seed=1)
        final_level = fitted_model['states'].values[-1, 0]

        np.testing.assert_allclose(sim['states'][0, 0, :], final_level)

    def test_default_length(self, fixed_model):
        sim = simulate_from_model(fixed_model, seed=3)
        assert len(sim['data']) == 300

    def test_error_scale_follows_sigma(self, fixed_model):
        sim = simulate_from_model(fixed_model, nsim=20, obs=200, seed=3)
        spread = np.std(sim['residuals'].values)
        assert spread == pytest.approx(fixed_model['sigma'], rel=0.1)
