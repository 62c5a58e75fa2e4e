"""Integrate the MSPEIRV rate function with diffrax, optionally around SIA campaigns."""

import logging
from typing import List, Sequence, Tuple

import jax.numpy as jnp
import numpy as np
from diffrax import (  # type: ignore
    AbstractStepSizeController,
    ClipStepSizeController,
    ConstantStepSize,
    ODETerm,
    PIDController,
    SaveAt,
    Solution,
    diffeqsolve,
)
from jax import Array

from ..config.params import MSPEIRVParams, SIACampaign, SolverParams
from ..typing import OutOfRangeError, StateVector
from ..utils.log_decorator import log_decorator
from .rates import MSPEIRVRates
from .sia import apply_campaign

logger = logging.getLogger("mspeirv")


def _stepsize_controller(
    solver_parameters: SolverParams,
) -> Tuple[AbstractStepSizeController, float | None]:
    """Build the step size controller and initial step from `solver_parameters`."""
    if solver_parameters.constant_step_size > 0.0:
        # if user specifies they want constant step size, set it here
        return ConstantStepSize(), solver_parameters.constant_step_size
    jump_ts = (
        jnp.array(solver_parameters.discontinuity_points)
        if len(solver_parameters.discontinuity_points) > 0
        else None
    )
    controller = ClipStepSizeController(
        controller=PIDController(
            rtol=solver_parameters.ode_solver_rel_tolerance,
            atol=solver_parameters.ode_solver_abs_tolerance,
        ),
        jump_ts=jump_ts,
    )
    # first step size determined automatically
    return controller, None


def _solve(
    rates: MSPEIRVRates,
    t0: float,
    t1: float,
    initial_state: StateVector,
    ode_parameters: MSPEIRVParams,
    solver_parameters: SolverParams,
    save_times: Array,
) -> Solution:
    stepsize_controller, dt0 = _stepsize_controller(solver_parameters)
    return diffeqsolve(
        ODETerm(rates),
        solver_parameters.solver_method,
        t0,
        t1,
        dt0,
        initial_state,
        args=ode_parameters,
        stepsize_controller=stepsize_controller,
        saveat=SaveAt(ts=save_times),
        max_steps=solver_parameters.max_steps,
    )


def _check_inputs(
    rates: MSPEIRVRates, initial_state: StateVector, duration_days: float
) -> None:
    if not isinstance(initial_state, Array):
        raise TypeError(
            "Please pass jax.numpy.array instead of np.array to the rates"
        )
    rates.layout.check_state(initial_state)
    assert isinstance(
        duration_days, (int, float)
    ), "duration_days must be of type int or float"
    assert duration_days > 0, "duration_days must be positive"


def build_save_times(duration_days: float, save_step: float = 1) -> np.ndarray:
    """Days on which the state is saved, every `save_step` days from 0."""
    if save_step <= 0:
        save_step = 1
    return np.arange(int(duration_days // save_step) + 1) * float(save_step)


@log_decorator()
def simulate(
    rates: MSPEIRVRates,
    duration_days: float,
    initial_state: StateVector,
    ode_parameters: MSPEIRVParams,
    solver_parameters: SolverParams,
    save_step: float = 1,
) -> Solution:
    """Solve the MSPEIRV rates for `duration_days` days from `initial_state`.

    Parameters
    ----------
    rates : MSPEIRVRates
        rate function, called as `rates(t, state, ode_parameters)`.
    duration_days : float
        number of days to solve for.
    initial_state : StateVector
        flat jax array following `rates.layout` at t=0.
    ode_parameters : MSPEIRVParams
        parameters passed to `rates`.
    solver_parameters : SolverParams
        solver specific parameters that dictate how the ODE solver works.
    save_step : float, optional
        days between saved states, by default 1.

    Returns
    -------
    diffrax.Solution
        Solution object, sol.ys holding the state every `save_step` days
        from t=0 up to and including `duration_days`. For more information on whats
        included within diffrax.Solution see:
        https://docs.kidger.site/diffrax/api/solution/

    Raises
    ------
    TypeError
        `initial_state` must be a jax.Array.
    """
    _check_inputs(rates, initial_state, duration_days)
    return _solve(
        rates,
        0.0,
        duration_days,
        initial_state,
        ode_parameters,
        solver_parameters,
        jnp.asarray(build_save_times(duration_days, save_step)),
    )


@log_decorator()
def simulate_with_campaigns(
    rates: MSPEIRVRates,
    duration_days: float,
    initial_state: StateVector,
    ode_parameters: MSPEIRVParams,
    solver_parameters: SolverParams,
    campaigns: Sequence[SIACampaign],
    save_step: float = 1,
) -> Tuple[Array, Array]:
    """Solve the MSPEIRV rates, conducting SIA campaigns on their trigger days.

    Integration stops at every campaign's `trigger_time`, the campaign is
    applied to the state and integration resumes from the updated state.
    Campaigns sharing a trigger time are applied in the order given.

    Parameters
    ----------
    rates : MSPEIRVRates
        rate function, called as `rates(t, state, ode_parameters)`.
    duration_days : float
        number of days to solve for.
    initial_state : StateVector
        flat jax array following `rates.layout` at t=0.
    ode_parameters : MSPEIRVParams
        parameters passed to `rates`.
    solver_parameters : SolverParams
        solver specific parameters that dictate how the ODE solver works.
    campaigns : Sequence[SIACampaign]
        campaigns to conduct, those triggered on or after `duration_days`
        are skipped.
    save_step : float, optional
        days between saved states, by default 1.

    Returns
    -------
    tuple[jax.Array, jax.Array]
        saved days, shape (T,), and the states on those days, shape
        (T, layout.size). A state saved on a trigger day is the state
        after that day's campaigns.

    Raises
    ------
    TypeError
        `initial_state` must be a jax.Array.
    OutOfRangeError
        if a campaign targets strata outside of `rates.layout`, raised
        before any integration.
    """
    _check_inputs(rates, initial_state, duration_days)
    for campaign in campaigns:
        if campaign.last_stratum >= rates.layout.num_stages:
            raise OutOfRangeError(
                f"SIA on day {campaign.trigger_time} targets strata "
                f"[{campaign.first_stratum}, {campaign.last_stratum}], "
                f"layout has {rates.layout.num_stages} strata"
            )
    scheduled: List[SIACampaign] = []
    for campaign in sorted(campaigns, key=lambda c: c.trigger_time):
        if campaign.trigger_time >= duration_days:
            logger.warning(
                f"Skipping SIA on day {campaign.trigger_time}, simulation "
                f"ends on day {duration_days}."
            )
        else:
            scheduled.append(campaign)

    save_times = build_save_times(duration_days, save_step)
    state = initial_state
    t0 = 0.0
    saved_ts: List[Array] = []
    saved_ys: List[Array] = []
    stops = [c.trigger_time for c in scheduled] + [duration_days]
    for idx, t1 in enumerate(stops):
        final = idx == len(stops) - 1
        upper = save_times <= t1 if final else save_times < t1
        segment_ts = save_times[(save_times >= t0) & upper]
        if t1 > t0 and (len(segment_ts) > 0 or not final):
            if not final:
                # always save the end of the segment to resume from
                segment_ts = np.append(segment_ts, t1)
            solution = _solve(
                rates,
                t0,
                t1,
                state,
                ode_parameters,
                solver_parameters,
                jnp.asarray(segment_ts),
            )
            ys = solution.ys
            if final:
                saved_ts.append(jnp.asarray(segment_ts))
                saved_ys.append(ys)
            else:
                saved_ts.append(jnp.asarray(segment_ts[:-1]))
                saved_ys.append(ys[:-1])
                state = ys[-1]
        if not final:
            state = apply_campaign(state, scheduled[idx], rates.layout)
            t0 = t1
    logger.debug(
        f"Solved {duration_days} days around {len(scheduled)} SIA campaigns."
    )
    return jnp.concatenate(saved_ts), jnp.concatenate(saved_ys)
