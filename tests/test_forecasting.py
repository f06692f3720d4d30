"""
Unit Tests for Forecasting (smoothsim/forecasting.py)

Test Coverage:
- Point forecasts from the final states
- Parametric, semiparametric and nonparametric intervals
- Cumulative forecasts
- In-sample multi-step error matrix
- Interval type aliases and invalid arguments
"""

import numpy as np
import pytest

from smoothsim.estimation import fit_ges
from smoothsim.exceptions import ConfigurationError, ModelFitError
from smoothsim.forecasting import forecast, multistep_errors, resolve_intervals
from smoothsim.simulate import simulate_ges


@pytest.fixture(scope="module")
def additive_model():
    sim = simulate_ges(obs=120, transition=[1], measurement=[1], persistence=[0.3],
                       initial=[100], seed=31)
    return fit_ges(sim['data'], transition=[1], measurement=[1], persistence=[0.3], initial=[100])


@pytest.fixture(scope="module")
def multiplicative_model():
    sim = simulate_ges(obs=120, error_type='M', transition=[1], measurement=[1],
                       persistence=[0.3], initial=[100], seed=32)
    return fit_ges(sim['data'], transition=[1], measurement=[1], persistence=[0.3],
                   initial=[100], error_type='M')


class TestPointForecast:

    def test_local_level_is_flat(self, additive_model):
        result = forecast(additive_model, h=6)
        final_level = additive_model['states'].values[-1, 0]

        np.testing.assert_allclose(result['forecast'].values, np.full(6, final_level))
        assert result['lower'] is None
        assert result['intervals'] == 'none'

    def test_index_follows_sample(self, additive_model):
        result = forecast(additive_model, h=3)
        assert list(result['forecast'].index) == [121, 122, 123]

    def test_cumulative_is_sum(self, additive_model):
        single = forecast(additive_model, h=5)
        total = forecast(additive_model, h=5, cumulative=True)

        assert len(total['forecast']) == 1
        assert total['forecast'].index[0] == 125
        assert total['forecast'].iloc[0] == pytest.approx(single['forecast'].sum())


class TestIntervals:

    def test_parametric_widens(self, additive_model):
        result = forecast(additive_model, h=8, intervals='parametric', level=0.9)
        width = (result['upper'] - result['lower']).values

        assert np.all(np.diff(width) > 0), "Interval width should grow with the horizon"
        assert np.all(result['lower'] < result['forecast'])

    def test_parametric_one_step_width(self, additive_model):
        """One step ahead the interval is forecast +/- z sigma."""
        result = forecast(additive_model, h=1, intervals='p', level=0.95)
        half_width = (result['upper'] - result['forecast']).iloc[0]
        assert half_width == pytest.approx(1.959964 * additive_model['sigma'], rel=1e-5)

    def test_parametric_cumulative(self, additive_model):
        result = forecast(additive_model, h=4, intervals='parametric', cumulative=True)
        assert result['lower'].iloc[0] < result['forecast'].iloc[0] < result['upper'].iloc[0]

    def test_semiparametric(self, additive_model):
        result = forecast(additive_model, h=6, intervals='sp')
        assert result['intervals'] == 'semiparametric'
        assert np.all(result['lower'] < result['upper'])

    def test_nonparametric(self, additive_model):
        result = forecast(additive_model, h=6, intervals='np')
        assert result['intervals'] == 'nonparametric'
        assert np.all(result['lower'] < result['upper'])

    def test_nonparametric_cumulative(self, additive_model):
        result = forecast(additive_model, h=4, intervals='np', cumulative=True)
        assert result['lower'].iloc[0] < result['upper'].iloc[0]

    def test_multiplicative_parametric(self, multiplicative_model):
        result = forecast(multiplicative_model, h=5, intervals='parametric', nsim=500, seed=1)

        assert np.all(result['lower'] < result['forecast'])
        assert np.all(result['forecast'] < result['upper'])

    def test_multiplicative_semiparametric(self, multiplicative_model):
        result = forecast(multiplicative_model, h=5, intervals='sp')
        assert np.all(result['lower'] > 0)
        assert np.all(result['lower'] < result['upper'])


class TestCumulativeMultiplicative:
    """Constant level 100 with relative errors e ~ N(0, 0.05)."""

    H = 10

    @pytest.fixture(scope="class")
    def relative_errors(self):
        return np.random.default_rng(40).normal(0, 0.05, size=400)

    @pytest.fixture(scope="class")
    def constant_model(self, relative_errors):
        actuals = 100 * (1 + relative_errors)
        return fit_ges(actuals, transition=[1], measurement=[1], persistence=[0],
                       initial=[100], error_type='M')

    def window_means(self, relative_errors):
        """Relative error of each h-step total: sum(y) / (100 h) - 1."""
        return np.convolve(relative_errors, np.ones(self.H) / self.H, mode='valid')

    def test_total_errors_are_relative_to_total(self, constant_model, relative_errors):
        totals = multistep_errors(constant_model, self.H, cumulative=True)

        assert totals.shape == (391,)
        np.testing.assert_allclose(totals, self.window_means(relative_errors), atol=1e-10)

    def test_semiparametric_width(self, constant_model, relative_errors):
        result = forecast(constant_model, h=self.H, intervals='semiparametric', cumulative=True, level=0.95)
        point = result['forecast'].iloc[0]
        half_width = (result['upper'].iloc[0] - point) / point

        expected = 1.959964 * np.sqrt(np.mean(self.window_means(relative_errors) ** 2))
        assert point == pytest.approx(1000.0)
        assert half_width == pytest.approx(expected, rel=1e-5)
        assert half_width < 1.959964 * 0.05, "Total of h values is relatively less uncertain than one value"

    def test_nonparametric_bounds(self, constant_model, relative_errors):
        result = forecast(constant_model, h=self.H, intervals='nonparametric', cumulative=True, level=0.9)
        means = self.window_means(relative_errors)

        assert result['lower'].iloc[0] == pytest.approx(1000 * (1 + np.quantile(means, 0.05)))
        assert result['upper'].iloc[0] == pytest.approx(1000 * (1 + np.quantile(means, 0.95)))


class TestMultistepErrors:

    def test_first_column_is_residuals(self, additive_model):
        errors = multistep_errors(additive_model, 5)

        assert errors.shape == (116, 5)
        np.testing.assert_allclose(errors[:, 0], additive_model['residuals'].values[:116], atol=1e-10)

    def test_horizon_too_long(self, additive_model):
        with pytest.raises(ModelFitError):
            multistep_errors(additive_model, 500)


class TestArguments:

    @pytest.mark.parametrize("value,expected", [
        ('n', 'none'),
        ('p', 'parametric'),
        ('sp', 'semiparametric'),
        ('np', 'nonparametric'),
        (True, 'parametric'),
        (False, 'none'),
    ])
    def test_aliases(self, value, expected):
        assert resolve_intervals(value) == expected

    def test_unknown_interval_type(self, additive_model):
        with pytest.raises(ConfigurationError):
            forecast(additive_model, h=3, intervals='bootstrap')

    def test_invalid_level(self, additive_model):
        with pytest.raises(ConfigurationError):
            forecast(additive_model, h=3, intervals='p', level=1.5)

    def test_level_from_config(self, additive_model):
        result = forecast(additive_model, h=2, intervals='p', config={'forecast': {'level': 0.8}})
        assert result['level'] == 0.8
