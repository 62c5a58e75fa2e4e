import logging

import jax.numpy as jnp
import numpy as np
import pytest

import mspeirv.config as config
import mspeirv.simulation as simulation
from mspeirv.layout import VACCINE_ELIGIBLE, StateLayout
from mspeirv.typing import OutOfRangeError


@pytest.fixture
def layout():
    return StateLayout(num_stages=2)


@pytest.fixture
def rates(layout):
    return simulation.MSPEIRVRates(layout)


@pytest.fixture
def initial_state(layout):
    return layout.build_state(
        S=[900.0, 800.0], I=[10.0, 5.0], R=[90.0, 195.0], M=[20.0, 0.0]
    )


@pytest.fixture
def closed_params(make_parameters):
    """Transmission, recovery and aging but no births or deaths."""
    return make_parameters(
        2,
        theta=[1 / 365, 0.0],
        omega=[1 / 180, 1 / 180],
        sigma=[1 / 10, 1 / 10],
        gamma=[1 / 7, 1 / 7],
        N=[1000.0, 1000.0],
        beta=[[0.2, 0.1], [0.1, 0.2]],
        alpha=[[0.1, 0.1], [0.1, 0.1]],
    ).to_ode_params()


@pytest.fixture
def static_params(make_parameters):
    """Every rate 0, the state only changes through campaigns."""
    return make_parameters(2).to_ode_params()


def test_simulation_expected_shapes(rates, initial_state, closed_params):
    for days, save_step in [(10, 1), (30, 1), (28, 7)]:
        solution = simulation.simulate(
            rates,
            duration_days=days,
            initial_state=initial_state,
            ode_parameters=closed_params,
            solver_parameters=config.SolverParams(),
            save_step=save_step,
        )
        assert solution.ys.shape == (days // save_step + 1, 20)


def test_simulation_conserves_population(rates, initial_state, closed_params):
    solution = simulation.simulate(
        rates,
        duration_days=120,
        initial_state=initial_state,
        ode_parameters=closed_params,
        solver_parameters=config.SolverParams(),
    )
    totals = jnp.sum(solution.ys, axis=1)
    assert jnp.allclose(totals, jnp.sum(initial_state), rtol=1e-6)
    assert jnp.allclose(solution.ys[0], initial_state)


def test_simulation_requires_jax_arrays(rates, initial_state, closed_params):
    with pytest.raises(TypeError):
        simulation.simulate(
            rates,
            duration_days=10,
            initial_state=np.array(initial_state),
            ode_parameters=closed_params,
            solver_parameters=config.SolverParams(),
        )


def test_campaign_applied_on_trigger_day(
    layout, rates, initial_state, static_params
):
    campaign = config.SIACampaign(
        first_stratum=0, last_stratum=1, coverage=1.0, trigger_time=5.0
    )
    ts, ys = simulation.simulate_with_campaigns(
        rates,
        duration_days=10,
        initial_state=initial_state,
        ode_parameters=static_params,
        solver_parameters=config.SolverParams(constant_step_size=0.5),
        campaigns=[campaign],
    )
    assert jnp.allclose(ts, jnp.arange(11.0))
    assert ys.shape == (11, 20)
    for day in range(5):
        assert jnp.allclose(ys[day], initial_state)
    vaccinated = simulation.apply_sia(initial_state, 0, 1, 1.0, layout)
    for day in range(5, 11):
        assert jnp.allclose(ys[day], vaccinated)
    after = layout.split(ys[-1])
    for name in VACCINE_ELIGIBLE:
        assert jnp.allclose(after[name], 0.0)


def test_campaigns_apply_in_order(layout, rates, initial_state, static_params):
    campaigns = [
        config.SIACampaign(
            first_stratum=0, last_stratum=0, coverage=0.5, trigger_time=7.0
        ),
        config.SIACampaign(
            first_stratum=0, last_stratum=1, coverage=0.5, trigger_time=0.0
        ),
    ]
    ts, ys = simulation.simulate_with_campaigns(
        rates,
        duration_days=10,
        initial_state=initial_state,
        ode_parameters=static_params,
        solver_parameters=config.SolverParams(),
        campaigns=campaigns,
    )
    first = simulation.apply_sia(initial_state, 0, 1, 0.5, layout)
    second = simulation.apply_sia(first, 0, 0, 0.5, layout)
    # a campaign on day 0 is already visible in the first saved state
    assert jnp.allclose(ys[0], first)
    assert jnp.allclose(ys[6], first)
    assert jnp.allclose(ys[7], second)
    assert jnp.allclose(ys[-1], second)


def test_campaign_after_simulation_is_skipped(
    rates, initial_state, closed_params, caplog
):
    late = config.SIACampaign(
        first_stratum=0, last_stratum=1, coverage=0.9, trigger_time=30.0
    )
    with caplog.at_level(logging.WARNING, logger="mspeirv"):
        ts, ys = simulation.simulate_with_campaigns(
            rates,
            duration_days=30,
            initial_state=initial_state,
            ode_parameters=closed_params,
            solver_parameters=config.SolverParams(),
            campaigns=[late],
        )
    assert "Skipping SIA" in caplog.text
    solution = simulation.simulate(
        rates,
        duration_days=30,
        initial_state=initial_state,
        ode_parameters=closed_params,
        solver_parameters=config.SolverParams(),
    )
    assert jnp.allclose(ts, solution.ts)
    assert jnp.allclose(ys, solution.ys)


def test_out_of_range_campaign_rejected_before_solving(
    rates, initial_state, static_params, monkeypatch
):
    solves = []
    monkeypatch.setattr(
        "mspeirv.simulation.odes._solve",
        lambda *args, **kwargs: solves.append(args),
    )
    campaigns = [
        config.SIACampaign(
            first_stratum=0, last_stratum=1, coverage=0.5, trigger_time=2.0
        ),
        config.SIACampaign(
            first_stratum=1, last_stratum=2, coverage=0.5, trigger_time=6.0
        ),
    ]
    with pytest.raises(OutOfRangeError):
        simulation.simulate_with_campaigns(
            rates,
            duration_days=10,
            initial_state=initial_state,
            ode_parameters=static_params,
            solver_parameters=config.SolverParams(),
            campaigns=campaigns,
        )
    assert solves == []


def test_build_save_times():
    assert np.array_equal(simulation.build_save_times(4), np.arange(5.0))
    assert np.array_equal(
        simulation.build_save_times(14, save_step=7), np.array([0.0, 7.0, 14.0])
    )
    # non positive steps fall back to daily saves
    assert len(simulation.build_save_times(3, save_step=0)) == 4
