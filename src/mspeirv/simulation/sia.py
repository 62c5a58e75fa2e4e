"""Supplementary immunization activities (mass vaccination campaigns)."""

import logging

import jax.numpy as jnp

from ..config.params import SIACampaign
from ..layout import VACCINATED, VACCINE_ELIGIBLE, StateLayout
from ..typing import (
    InvalidCoverageError,
    OutOfRangeError,
    StateVector,
)

logger = logging.getLogger("mspeirv")


def apply_sia(
    state: StateVector,
    first_stratum: int,
    last_stratum: int,
    coverage: float,
    layout: StateLayout,
) -> StateVector:
    """Instantly vaccinate `coverage` of the eligible population in a range of strata.

    Within every stratum of [first_stratum, last_stratum] the vaccinated
    compartment gains `coverage` of everyone not infectious and not already
    vaccinated, while each of those compartments keeps `1 - coverage` of
    its population. Infectious individuals are untouched.

    Parameters
    ----------
    state : StateVector
        flat state vector following `layout`, left unchanged.
    first_stratum : int
        youngest targeted stratum, 0-based inclusive.
    last_stratum : int
        oldest targeted stratum, 0-based inclusive.
    coverage : float
        fraction of the eligible population vaccinated, within [0, 1].
    layout : StateLayout
        layout of `state`.

    Returns
    -------
    StateVector
        new state vector after the campaign.

    Raises
    ------
    InvalidCoverageError
        if `coverage` is outside of [0, 1].
    OutOfRangeError
        unless 0 <= first_stratum <= last_stratum < layout.num_stages.
    ValueError
        if `state` does not match `layout`.
    """
    coverage = float(coverage)
    if not 0.0 <= coverage <= 1.0:
        raise InvalidCoverageError(
            f"coverage must be within [0, 1], got {coverage}"
        )
    if not 0 <= first_stratum <= last_stratum < layout.num_stages:
        raise OutOfRangeError(
            f"stratum range [{first_stratum}, {last_stratum}] is not an "
            f"ordered range within [0, {layout.num_stages})"
        )
    layout.check_state(state)
    n = layout.num_stages

    strata = jnp.arange(n)
    vaccinated = jnp.where(
        (strata >= first_stratum) & (strata <= last_stratum), coverage, 0.0
    )
    state = jnp.asarray(state)
    eligible = jnp.zeros(n)
    for name in VACCINE_ELIGIBLE:
        offset = layout.resolve(name)
        eligible = eligible + state[offset : offset + n]
        state = state.at[offset : offset + n].multiply(1 - vaccinated)
    offset = layout.resolve(VACCINATED)
    return state.at[offset : offset + n].add(vaccinated * eligible)


def apply_campaign(
    state: StateVector, campaign: SIACampaign, layout: StateLayout
) -> StateVector:
    """Apply a scheduled `campaign` to `state`, see `apply_sia`."""
    logger.info(
        f"Conducting SIA on day {campaign.trigger_time} for strata "
        f"[{campaign.first_stratum}, {campaign.last_stratum}] at coverage "
        f"{campaign.coverage}."
    )
    return apply_sia(
        state,
        campaign.first_stratum,
        campaign.last_stratum,
        campaign.coverage,
        layout,
    )
