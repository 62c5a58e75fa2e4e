"""Instantaneous rates of change of the age-stratified MSPEIRV model."""

from typing import Dict

import jax
import jax.numpy as jnp
from jax.typing import ArrayLike

from ..config.params import MSPEIRVParams
from ..layout import (
    COMPARTMENTS,
    INFECTIOUS,
    VACCINATED,
    VACCINE_ELIGIBLE,
    StateLayout,
)
from ..typing import StateGradients, StateVector, UnknownNameError

DAYS_PER_YEAR = 365.0


def seasonal_forcing(t: ArrayLike, period: float = DAYS_PER_YEAR) -> jax.Array:
    """Computes the seasonal multiplier cos(2 pi t / period)."""
    return jnp.cos(2 * jnp.pi * t / period)


def routine_coverage(t: ArrayLike, p: MSPEIRVParams, num_stages: int) -> jax.Array:
    """Fraction of each stratum's incoming cohort diverted to vaccination.

    Only the routine vaccination entry stratum receives a non-zero value,
    read from `p.pv` at the current simulation year. Years past the end of
    `p.pv` hold the final year's coverage.
    """
    year = jnp.clip(
        jnp.floor(t / DAYS_PER_YEAR).astype(int), 0, p.pv.shape[0] - 1
    )
    pv = jnp.where(p.routine_vaccination, p.pv[year], 0.0)
    return jnp.where(
        jnp.arange(num_stages) == p.routine_vaccination_entry_stratum, pv, 0.0
    )


def aging_inflow(theta: jax.Array, x: jax.Array) -> jax.Array:
    """Inflow into each stratum from the next youngest at its aging rate."""
    return jnp.zeros(x.shape).at[1:].set(theta[:-1] * x[:-1])


class MSPEIRVRates:
    """Rate function of the MSPEIRV model over a flat state vector.

    Compartment offsets are resolved once from `layout` when the instance
    is created, calls only slice the state.
    """

    def __init__(self, layout: StateLayout):
        """Resolve the offsets of every compartment within `layout`.

        Raises
        ------
        UnknownNameError
            if `layout` does not hold exactly the ten model compartments.
        """
        unexpected = set(layout.compartments) - set(COMPARTMENTS)
        if unexpected:
            raise UnknownNameError(
                f"compartments {sorted(unexpected)} are not part of the model"
            )
        self.layout = layout
        self.num_stages = layout.num_stages
        self.offsets = {name: layout.resolve(name) for name in COMPARTMENTS}

    def unpack(self, state: StateVector) -> Dict[str, jax.Array]:
        """Slice `state` into per-compartment arrays of shape (num_stages,)."""
        self.layout.check_state(state)
        return {
            name: state[offset : offset + self.num_stages]
            for name, offset in self.offsets.items()
        }

    def __call__(
        self,
        t: ArrayLike,
        state: StateVector,
        p: MSPEIRVParams,
    ) -> StateGradients:
        """Calculate the instantaneous gradient of `state` at day `t`.

        Parameters
        ----------
        t : ArrayLike
            current time of the model in days.
        state : StateVector
            flat state vector following `self.layout`.
        p : MSPEIRVParams
            parameters needed by the MSPEIRV rates.

        Returns
        -------
        StateGradients
            new vector, same layout as `state`, holding the rate of change
            of every compartment within every stratum.

        Note
        ----
        Strata are computed all at once rather than one at a time, stratum
        `i` only ever reads stratum `i - 1` of the state for aging so the
        result is the same.
        """
        x = self.unpack(state)
        # whole population, births into M are proportional to it
        n_total = jnp.sum(state)
        m, s, sp1, sp2, sp3 = x["M"], x["S"], x["SP1"], x["SP2"], x["SP3"]
        e, ep, i, r, v = x["E"], x["EP"], x[INFECTIOUS], x["R"], x[VACCINATED]
        local_n = sum(x.values())

        # FOI and pregnancy entry are anchored to the target stratum size N,
        # empty strata get neither
        nonempty = local_n != 0
        anchor = jnp.where(
            nonempty, p.N / jnp.where(nonempty, local_n, 1.0), 0.0
        )
        growth = (1 + p.db) ** t
        b = p.b * growth
        f = p.f * growth * anchor
        # beta[j, i] * I_j summed over infecting strata j
        force_of_infection = (
            jnp.sum(
                (1 + p.alpha * seasonal_forcing(t)) * p.beta * i[:, None],
                axis=0,
            )
            * anchor
        )
        exits = p.mu + p.theta

        dm = b * n_total - (p.omega + exits) * m
        ds = p.omega * m + p.delta3 * sp3 - (force_of_infection + exits + f) * s
        dsp1 = f * s - (exits + p.delta1 + force_of_infection) * sp1
        dsp2 = p.delta1 * sp1 - (exits + p.delta2 + force_of_infection) * sp2
        dsp3 = p.delta2 * sp2 - (exits + p.delta3 + force_of_infection) * sp3
        de = force_of_infection * (s + sp2 + sp3) - (p.sigma + exits) * e
        dep = force_of_infection * sp1 - (p.sigma + exits) * ep
        di = p.sigma * (e + ep) + p.eps * local_n - (p.gamma + exits) * i
        dr = p.gamma * i - exits * r
        dv = -exits * v

        derivatives = {
            "M": dm,
            "S": ds,
            "SP1": dsp1,
            "SP2": dsp2,
            "SP3": dsp3,
            "E": de,
            "EP": dep,
            "R": dr,
        }
        # aging, routine vaccination diverts part of the entry stratum's cohort
        pv = routine_coverage(t, p, self.num_stages)
        for name in VACCINE_ELIGIBLE:
            derivatives[name] = derivatives[name] + (1 - pv) * aging_inflow(
                p.theta, x[name]
            )
        derivatives[INFECTIOUS] = di + aging_inflow(p.theta, i)
        eligible = sum(x[name] for name in VACCINE_ELIGIBLE)
        derivatives[VACCINATED] = (
            dv
            + aging_inflow(p.theta, v)
            + pv * aging_inflow(p.theta, eligible)
        )
        return jnp.concatenate(
            [derivatives[name] for name in self.layout.compartments]
        )


def get_rates(
    t: ArrayLike,
    state: StateVector,
    p: MSPEIRVParams,
    layout: StateLayout,
) -> StateGradients:
    """Functional form of `MSPEIRVRates(layout)(t, state, p)`."""
    return MSPEIRVRates(layout)(t, state, p)
