"""
Unit Tests for the State-Space Engine (smoothsim/engine.py)

Test Coverage:
- Hand-computed local level recursion
- Intermittent periods leave the states untouched
- Seasonal lags read the state stored maxlag rows back
- Multiplicative error and multiplicative states
- Determinism, input immutability and path independence
- Filtering, point forecasts and the impulse response
"""

import numpy as np
import pytest

from smoothsim.engine import fit_states, forecast_states, impulse_response, simulate_states
from smoothsim.exceptions import ConfigurationError


def local_level(alpha=0.5, level=10.0, nsim=1, obs=3):
    """Arrays for F=1, w=1, g=alpha with the initial level set."""
    states = np.zeros((obs + 1, 1, nsim))
    states[0] = level
    return {
        'states': states,
        'transition': np.ones((1, 1, nsim)),
        'measurement': np.ones((nsim, 1)),
        'persistence': np.full((1, nsim), alpha),
        'modellags': [1],
    }


def run(arrays, errors, occurrence=None, **kwargs):
    errors = np.asarray(errors, dtype=float)
    if occurrence is None:
        occurrence = np.ones_like(errors)
    return simulate_states(
        arrays['states'], errors, occurrence,
        arrays['transition'], arrays['measurement'], arrays['persistence'],
        arrays['modellags'], **kwargs
    )


class TestSimulateStates:

    def test_local_level_by_hand(self):
        """F=1, w=1, g=0.5, x0=10, e=[1, -2, 0.5]."""
        result = run(local_level(), [[1.0], [-2.0], [0.5]])

        np.testing.assert_allclose(result['data'][:, 0], [11.0, 8.5, 10.0])
        np.testing.assert_allclose(result['states'][:, 0, 0], [10.0, 10.5, 9.5, 9.75])
        np.testing.assert_allclose(result['fitted'][:, 0], [10.0, 10.5, 9.5])

    def test_intermittent_period_keeps_state(self):
        """With o=[1, 0, 1] the second period is zero and the state is carried."""
        result = run(local_level(), [[1.0], [-2.0], [0.5]], occurrence=[[1.0], [0.0], [1.0]])

        np.testing.assert_allclose(result['data'][:, 0], [11.0, 0.0, 11.0])
        np.testing.assert_allclose(result['states'][:, 0, 0], [10.0, 10.5, 10.5, 10.75])

    def test_seasonal_lag_pattern(self):
        """Level 5 plus seasonal [1, 2, 3, 4] repeats every four periods."""
        obs = 8
        states = np.zeros((obs + 4, 2, 1))
        states[:4, 0, 0] = 5.0
        states[:4, 1, 0] = [1.0, 2.0, 3.0, 4.0]

        result = simulate_states(
            states,
            np.zeros((obs, 1)),
            np.ones((obs, 1)),
            np.eye(2).reshape(2, 2, 1),
            np.ones((1, 2)),
            np.zeros((2, 1)),
            [1, 4],
        )

        np.testing.assert_allclose(result['data'][:, 0], [6, 7, 8, 9, 6, 7, 8, 9])

    def test_multiplicative_error(self):
        """y = ŷ(1 + e) and the state moves by g e ŷ."""
        result = run(local_level(obs=1), [[0.1]], error_type='M')

        assert result['data'][0, 0] == pytest.approx(11.0)
        assert result['states'][1, 0, 0] == pytest.approx(10.5)

    def test_multiplicative_states(self):
        """Additive error on multiplicative states updates log values by g e / ŷ."""
        result = run(local_level(obs=1), [[1.0]], trend_type='M')

        assert result['data'][0, 0] == pytest.approx(11.0)
        assert result['states'][1, 0, 0] == pytest.approx(10 * np.exp(0.05))

    def test_multiplicative_states_need_positive_initial(self):
        """log of a non-positive level would turn every output into NaN."""
        arrays = local_level(alpha=0.3, level=-10.0, obs=3)

        with pytest.raises(ConfigurationError) as exc_info:
            run(arrays, [[0.1], [0.2], [0.3]], trend_type='M')
        assert exc_info.value.parameter_name == 'initial'

    def test_multiplicative_season_checks_read_cells_only(self):
        """Rows of the lag-1 component before maxlag - 1 are never read."""
        states = np.zeros((4 + 2, 2, 1))
        states[3, 0, 0] = 10.0
        states[:4, 1, 0] = [1.0, 1.1, 0.9, 1.0]

        result = simulate_states(
            states, np.zeros((2, 1)), np.ones((2, 1)),
            np.eye(2).reshape(2, 2, 1), np.ones((1, 2)), np.zeros((2, 1)),
            [1, 4], season_type='M',
        )
        np.testing.assert_allclose(result['data'][:, 0], [10.0, 11.0])

    def test_deterministic_and_inputs_untouched(self):
        arrays = local_level(obs=3)
        errors = np.array([[1.0], [-2.0], [0.5]])
        before = arrays['states'].copy()

        first = run(arrays, errors)
        second = run(arrays, errors)

        np.testing.assert_array_equal(first['data'], second['data'])
        np.testing.assert_array_equal(arrays['states'], before)

    def test_paths_are_independent(self):
        """Running three paths together equals running each alone."""
        rng = np.random.default_rng(7)
        errors = rng.normal(size=(20, 3))
        alphas = np.array([0.1, 0.5, 0.9])

        together = local_level(nsim=3, obs=20)
        together['persistence'] = alphas.reshape(1, 3)
        joint = run(together, errors)

        for j in range(3):
            alone = run(local_level(alpha=alphas[j], obs=20), errors[:, [j]])
            np.testing.assert_allclose(joint['data'][:, j], alone['data'][:, 0])
            np.testing.assert_allclose(joint['states'][:, :, j], alone['states'][:, :, 0])

    def test_invalid_error_type(self):
        with pytest.raises(ConfigurationError):
            run(local_level(obs=1), [[0.0]], error_type='X')

    def test_invalid_component_type(self):
        with pytest.raises(ConfigurationError):
            run(local_level(obs=1), [[0.0]], season_type='Q')


class TestFitStates:

    def test_recovers_simulated_errors(self):
        rng = np.random.default_rng(11)
        errors = rng.normal(size=(30, 1))
        simulated = run(local_level(alpha=0.3, obs=30), errors)

        filtered = fit_states(simulated['data'][:, 0], [[10.0]], [[1.0]], [1.0], [0.3], [1])

        np.testing.assert_allclose(filtered['errors'], errors[:, 0], atol=1e-10)
        np.testing.assert_allclose(filtered['states'], simulated['states'][:, :, 0], atol=1e-10)

    def test_multiplicative_error_recovered(self):
        errors = np.array([[0.1], [-0.05], [0.02]])
        simulated = run(local_level(obs=3), errors, error_type='M')

        filtered = fit_states(simulated['data'][:, 0], [[10.0]], [[1.0]], [1.0], [0.5], [1], error_type='M')

        np.testing.assert_allclose(filtered['errors'], errors[:, 0], atol=1e-12)

    def test_multiplicative_states_need_positive_initial(self):
        with pytest.raises(ConfigurationError):
            fit_states([11.0, 9.0], [[0.0]], [[1.0]], [1.0], [0.3], [1], trend_type='M')

    def test_zero_occurrence_has_no_error(self):
        filtered = fit_states([11.0, 0.0, 11.0], [[10.0]], [[1.0]], [1.0], [0.5], [1],
                              occurrence=[1, 0, 1])

        np.testing.assert_allclose(filtered['errors'], [1.0, 0.0, 0.5])


class TestForecastStates:

    def test_local_level_is_flat(self):
        forecasts = forecast_states(np.array([[12.5]]), [[1.0]], [1.0], [1], 5)
        np.testing.assert_allclose(forecasts, np.full(5, 12.5))

    def test_seasonal_forecast_repeats(self):
        tail = np.column_stack([np.full(4, 5.0), [1.0, 2.0, 3.0, 4.0]])
        forecasts = forecast_states(tail, np.eye(2), [1.0, 1.0], [1, 4], 6)
        np.testing.assert_allclose(forecasts, [6, 7, 8, 9, 6, 7])


class TestImpulseResponse:

    def test_local_level(self):
        """psi = [1, alpha, alpha, ...] for the local level model."""
        psi = impulse_response([[1.0]], [1.0], [0.4], [1], 4)
        np.testing.assert_allclose(psi, [1.0, 0.4, 0.4, 0.4])

    def test_damped(self):
        """psi_j = phi^(j-1) alpha for F=phi."""
        psi = impulse_response([[0.5]], [1.0], [0.4], [1], 3)
        np.testing.assert_allclose(psi, [1.0, 0.4, 0.2])
